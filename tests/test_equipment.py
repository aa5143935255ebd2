"""
Tests for equipment resolution.
"""

from __future__ import annotations

import copy

import pytest

from src.engine.errors import ItemNotFound, NotEquippable, NotEquipped, SlotNotFound
from src.models import (
    EquipmentSlotConfiguration,
    EquipmentSlotDefinition,
    ItemType,
    create_character,
    create_item,
)
from src.skills.equipment import (
    describe_equipment,
    determine_slot,
    equip,
    equip_by_name,
    equipped_items,
    equipped_weapon,
    total_armor,
    unequip,
)


@pytest.fixture
def config() -> EquipmentSlotConfiguration:
    return EquipmentSlotConfiguration.create_default()


@pytest.fixture
def hero(config):
    character = create_character("Hero", armor=2)
    character.ensure_slots(config.slot_ids())
    character.add_item(create_item("Iron Sword", ItemType.WEAPON, damage_bonus=5))
    character.add_item(create_item("Rusty Axe", ItemType.WEAPON, damage_bonus=3))
    character.add_item(create_item("Leather Helmet", ItemType.ARMOR, armor_bonus=2))
    character.add_item(create_item("Chain Mail", ItemType.ARMOR, armor_bonus=4))
    character.add_item(create_item("Leather Boots", ItemType.ARMOR, armor_bonus=1))
    character.add_item(create_item("Health Potion", ItemType.CONSUMABLE))
    return character


# =============================================================================
# Slot Inference
# =============================================================================


class TestDetermineSlot:
    """Tests for determine_slot."""

    def test_explicit_slot_wins(self, config):
        ring = create_item("Odd Ring", ItemType.ARMOR, equipment_slot="hands")
        assert determine_slot(ring, config) == "hands"

    def test_explicit_slot_case_insensitive(self, config):
        ring = create_item("Odd Ring", ItemType.ARMOR, equipment_slot="HANDS")
        assert determine_slot(ring, config) == "hands"

    def test_invalid_explicit_slot_falls_through(self, config):
        boots = create_item("Leather Boots", ItemType.ARMOR, equipment_slot="tail")
        assert determine_slot(boots, config) == "feet"

    def test_single_compatible_slot(self):
        config = EquipmentSlotConfiguration.create_minimal()
        club = create_item("Club", ItemType.WEAPON)
        assert determine_slot(club, config) == "weapon"

    @pytest.mark.parametrize(
        ("name", "slot"),
        [
            ("Leather Helmet", "head"),
            ("Chain Mail", "chest"),
            ("Leather Boots", "feet"),
            ("Iron Gauntlets", "hands"),
            ("Wooden Shield", "off_hand"),
            ("Leather Armor", "chest"),
        ],
    )
    def test_keywords_pick_among_compatible(self, config, name, slot):
        assert determine_slot(create_item(name, ItemType.ARMOR), config) == slot

    def test_name_or_type_keyword_first_match_wins(self):
        config = EquipmentSlotConfiguration(
            slots=[
                EquipmentSlotDefinition(
                    id="body",
                    display_name="Body",
                    keywords=["armor"],
                    compatible_types=[ItemType.ARMOR],
                ),
                EquipmentSlotDefinition(
                    id="feet",
                    display_name="Feet",
                    keywords=["boots"],
                    compatible_types=[ItemType.ARMOR],
                ),
            ]
        )
        boots = create_item("Leather Boots", ItemType.ARMOR)
        # the type keyword on the earlier slot beats the name keyword on the later one
        assert determine_slot(boots, config) == "body"

    def test_unmatched_armor_goes_to_chest(self, config):
        trinket = create_item("Mysterious Trinket", ItemType.ARMOR)
        assert determine_slot(trinket, config) == "chest"

    def test_first_compatible_follows_list_order(self):
        config = EquipmentSlotConfiguration(
            slots=[
                EquipmentSlotDefinition(
                    id="left_ring",
                    display_name="Left Ring",
                    compatible_types=[ItemType.TREASURE],
                    display_order=2,
                ),
                EquipmentSlotDefinition(
                    id="right_ring",
                    display_name="Right Ring",
                    compatible_types=[ItemType.TREASURE],
                    display_order=1,
                ),
            ]
        )
        ring = create_item("Gold Band", ItemType.TREASURE, is_equippable=True)
        assert determine_slot(ring, config) == "left_ring"
        assert config.slot_ids() == ["right_ring", "left_ring"]

    def test_keyword_scan_when_no_type_match(self, config):
        tiara = create_item("Jeweled Crown", ItemType.TREASURE, is_equippable=True)
        assert determine_slot(tiara, config) == "head"

    def test_none_when_nothing_fits(self, config):
        potion = create_item("Health Potion", ItemType.CONSUMABLE)
        assert determine_slot(potion, config) is None

    def test_pure(self, config):
        boots = create_item("Leather Boots", ItemType.ARMOR)
        config_before = config.model_dump()
        boots_before = boots.model_dump()
        first = determine_slot(boots, config)
        second = determine_slot(boots, config)
        assert first == second
        assert config.model_dump() == config_before
        assert boots.model_dump() == boots_before

    def test_sci_fi_preset(self):
        config = EquipmentSlotConfiguration.create_sci_fi()
        rifle = create_item("Plasma Rifle", ItemType.WEAPON)
        pistol = create_item("Laser Pistol", ItemType.WEAPON)
        assert determine_slot(rifle, config) == "primary_weapon"
        assert determine_slot(pistol, config) == "secondary_weapon"

    def test_duplicate_slot_ids_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            EquipmentSlotConfiguration(
                slots=[
                    EquipmentSlotDefinition(id="head", display_name="Head"),
                    EquipmentSlotDefinition(id="Head", display_name="Also Head"),
                ]
            )


# =============================================================================
# Equip / Unequip
# =============================================================================


class TestEquip:
    """Tests for equip and equip_by_name."""

    def test_equip_into_empty_slot(self, hero, config):
        result = equip(hero, "iron_sword", "main_hand", config)
        assert hero.equipment_slots["main_hand"] == "iron_sword"
        assert result.previous_item_id is None
        assert result.damage_delta == 5

    def test_equip_displaces_exactly_one(self, hero, config):
        equip(hero, "iron_sword", "main_hand", config)
        result = equip(hero, "rusty_axe", "main_hand", config)

        assert result.previous_item_id == "iron_sword"
        assert result.damage_delta == -2
        assert hero.equipment_slots["main_hand"] == "rusty_axe"
        assert "iron_sword" in hero.carried_items
        assert list(hero.equipment_slots.values()).count("iron_sword") == 0

    def test_equip_moves_between_slots(self, hero, config):
        equip(hero, "iron_sword", "main_hand", config)
        result = equip(hero, "iron_sword", "off_hand", config)
        assert result.moved_from_slot == "main_hand"
        assert hero.equipment_slots["main_hand"] is None
        assert hero.equipment_slots["off_hand"] == "iron_sword"

    def test_equip_same_slot_twice(self, hero, config):
        equip(hero, "iron_sword", "main_hand", config)
        result = equip(hero, "iron_sword", "main_hand", config)
        assert "already equipped" in result.message
        assert hero.equipment_slots["main_hand"] == "iron_sword"

    def test_item_not_carried(self, hero, config):
        with pytest.raises(ItemNotFound):
            equip(hero, "excalibur", "main_hand", config)

    def test_not_equippable(self, hero, config):
        with pytest.raises(NotEquippable):
            equip(hero, "health_potion", "main_hand", config)

    def test_unknown_slot(self, hero, config):
        with pytest.raises(SlotNotFound):
            equip(hero, "iron_sword", "tail", config)

    def test_failed_equip_leaves_state(self, hero, config):
        before = copy.deepcopy(hero.equipment_slots)
        with pytest.raises(SlotNotFound):
            equip(hero, "iron_sword", "tail", config)
        assert hero.equipment_slots == before

    def test_equip_by_name_infers_slot(self, hero, config):
        result = equip_by_name(hero, "boots", config)
        assert result.slot_id == "feet"
        assert hero.equipment_slots["feet"] == "leather_boots"

    def test_equip_by_name_unknown_item(self, hero, config):
        with pytest.raises(ItemNotFound):
            equip_by_name(hero, "crown", config)


class TestUnequip:
    """Tests for unequip."""

    def test_unequip_by_slot_with_space(self, hero, config):
        equip(hero, "iron_sword", "main_hand", config)
        result = unequip(hero, "main hand", config)
        assert result.item_id == "iron_sword"
        assert hero.equipment_slots["main_hand"] is None
        assert "iron_sword" in hero.carried_items

    @pytest.mark.parametrize("identifier", ["main-hand", "Main  Hand", " main_hand "])
    def test_unequip_slot_separators_collapse(self, hero, config, identifier):
        equip(hero, "iron_sword", "main_hand", config)
        result = unequip(hero, identifier, config)
        assert result.slot_id == "main_hand"
        assert hero.equipment_slots["main_hand"] is None

    def test_unequip_by_display_name_with_hyphen(self, hero, config):
        equip(hero, "leather_boots", "feet", config)
        config.get_slot("feet").display_name = "Foot Wear"
        result = unequip(hero, "foot-wear", config)
        assert result.item_id == "leather_boots"

    def test_unequip_by_item_name(self, hero, config):
        equip_by_name(hero, "boots", config)
        result = unequip(hero, "boots", config)
        assert result.slot_id == "feet"
        assert hero.equipment_slots["feet"] is None

    def test_unequip_empty_slot(self, hero, config):
        with pytest.raises(NotEquipped):
            unequip(hero, "head", config)

    def test_unequip_not_equipped_item(self, hero, config):
        with pytest.raises(NotEquipped):
            unequip(hero, "sword", config)

    def test_equip_then_unequip_restores_slots(self, hero, config):
        before = dict(hero.equipment_slots)
        equip_by_name(hero, "helmet", config)
        unequip(hero, "helmet", config)
        assert hero.equipment_slots == before
        assert "leather_helmet" in hero.carried_items


# =============================================================================
# Queries
# =============================================================================


class TestQueries:
    """Tests for armor totals and weapon lookup."""

    def test_total_armor_base_only(self, hero):
        assert total_armor(hero) == 2

    def test_total_armor_sums_equipped(self, hero, config):
        equip_by_name(hero, "helmet", config)
        equip_by_name(hero, "chain mail", config)
        equip_by_name(hero, "boots", config)
        assert total_armor(hero) == 9

    def test_total_armor_never_below_base(self, hero, config):
        for name in ("helmet", "chain mail", "boots", "sword"):
            equip_by_name(hero, name, config)
            assert total_armor(hero) >= hero.armor

    def test_equipped_items(self, hero, config):
        equip_by_name(hero, "helmet", config)
        assert [i.id for i in equipped_items(hero)] == ["leather_helmet"]

    def test_equipped_weapon_uses_slot_order(self, hero, config):
        equip(hero, "rusty_axe", "off_hand", config)
        equip(hero, "iron_sword", "main_hand", config)
        assert equipped_weapon(hero, config).id == "iron_sword"

    def test_equipped_weapon_none(self, hero, config):
        equip_by_name(hero, "helmet", config)
        assert equipped_weapon(hero, config) is None
        assert equipped_weapon(hero) is None

    def test_describe_equipment(self, hero, config):
        equip_by_name(hero, "sword", config)
        text = describe_equipment(hero, config)
        assert "Main Hand: Iron Sword" in text
        assert "Head: (empty)" in text
        assert "Total armor: 2" in text
