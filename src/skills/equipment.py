"""
Equipment Resolution Skill.

Decides which slot an item belongs in and moves item ids in and out of a
character's slot map. Slots only hold ids; the items themselves always
stay in carried_items.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field

from src.engine.errors import ItemNotFound, NotEquippable, NotEquipped, SlotNotFound
from src.models.character import Character
from src.models.equipment import EquipmentSlotConfiguration, EquipmentSlotDefinition
from src.models.item import Item, ItemType


# "main hand", "main-hand" and "Main  Hand" all name main_hand
_SEPARATORS = re.compile(r"[\s_-]+")


class EquipResult(BaseModel):
    """Outcome of equipping an item."""

    item_id: str
    item_name: str
    slot_id: str
    slot_name: str
    previous_item_id: str | None = Field(
        default=None, description="Item displaced from the target slot"
    )
    previous_item_name: str | None = None
    moved_from_slot: str | None = Field(
        default=None, description="Slot the item was moved out of"
    )
    damage_delta: int = 0
    armor_delta: int = 0
    message: str = ""


class UnequipResult(BaseModel):
    """Outcome of unequipping an item."""

    item_id: str
    item_name: str
    slot_id: str
    slot_name: str
    message: str = ""


# =============================================================================
# Slot Inference
# =============================================================================


def determine_slot(item: Item, config: EquipmentSlotConfiguration) -> str | None:
    """
    Decide which slot an item should go in.

    Order of preference:
    1. The item's explicit slot, if the configuration has it
    2. The only type-compatible slot
    3. Among several compatible slots, the first whose keywords appear in
       the item name or type, else the first compatible slot
    4. Any slot whose keywords appear in the item name or type
    5. None

    Pure: neither the item nor the configuration is touched.
    """
    if item.equipment_slot:
        explicit = config.get_slot(item.equipment_slot)
        if explicit is not None:
            return explicit.id

    candidates = config.slots_for_type(item.type)
    if len(candidates) == 1:
        return candidates[0].id

    name = item.name.lower()
    type_name = item.type.value

    if candidates:
        for slot in candidates:
            if slot.keyword_in(name) or slot.keyword_in(type_name):
                return slot.id
        return candidates[0].id

    for slot in config.slots:
        if slot.keyword_in(name) or slot.keyword_in(type_name):
            return slot.id

    return None


# =============================================================================
# Equip / Unequip
# =============================================================================


def equip(
    character: Character,
    item_id: str,
    slot_id: str,
    config: EquipmentSlotConfiguration,
) -> EquipResult:
    """
    Put a carried item into a slot.

    An occupied slot is overwritten; the displaced item stays carried.
    If the item already sits in another slot it is moved.

    Raises:
        ItemNotFound: item is not carried
        NotEquippable: item cannot be equipped
        SlotNotFound: slot is not in the configuration
    """
    carried = character.carried_items.get(item_id)
    if carried is None:
        raise ItemNotFound(f"You don't have that item ({item_id}).")
    item = carried.item

    if not item.is_equippable:
        raise NotEquippable(f"You can't equip {item.name}.")

    slot = config.get_slot(slot_id)
    if slot is None:
        raise SlotNotFound(f"There is no '{slot_id}' slot.")

    character.ensure_slots([slot.id])

    moved_from = character.slot_of(item.id)
    if moved_from == slot.id:
        return EquipResult(
            item_id=item.id,
            item_name=item.name,
            slot_id=slot.id,
            slot_name=slot.display_name,
            message=f"{item.name} is already equipped in your {slot.display_name}.",
        )
    if moved_from is not None:
        character.equipment_slots[moved_from] = None

    previous: Item | None = None
    previous_id = character.equipment_slots.get(slot.id)
    if previous_id is not None:
        previous = character.carried_items[previous_id].item

    character.equipment_slots[slot.id] = item.id

    damage_delta = item.damage_bonus - (previous.damage_bonus if previous else 0)
    armor_delta = item.armor_bonus - (previous.armor_bonus if previous else 0)

    message = f"You equip {item.name} ({slot.display_name})."
    if previous is not None:
        message = f"You swap {previous.name} for {item.name} ({slot.display_name})."
    bonuses = _describe_bonuses(damage_delta, armor_delta)
    if bonuses:
        message = f"{message} {bonuses}"

    return EquipResult(
        item_id=item.id,
        item_name=item.name,
        slot_id=slot.id,
        slot_name=slot.display_name,
        previous_item_id=previous.id if previous else None,
        previous_item_name=previous.name if previous else None,
        moved_from_slot=moved_from,
        damage_delta=damage_delta,
        armor_delta=armor_delta,
        message=message,
    )


def equip_by_name(
    character: Character,
    text: str,
    config: EquipmentSlotConfiguration,
) -> EquipResult:
    """Resolve a carried item by name, infer its slot, and equip it."""
    item = character.find_carried(text)
    if item is None:
        raise ItemNotFound(f"You don't have '{text}'.")
    if not item.is_equippable:
        raise NotEquippable(f"You can't equip {item.name}.")

    slot_id = determine_slot(item, config)
    if slot_id is None:
        raise SlotNotFound(f"There's nowhere to equip {item.name}.")

    return equip(character, item.id, slot_id, config)


def unequip(
    character: Character,
    identifier: str,
    config: EquipmentSlotConfiguration,
) -> UnequipResult:
    """
    Clear a slot, addressed by slot id/name or by the equipped item's name.

    Slot ids are tried first ("main hand" or "main-hand" -> "main_hand"), then the names
    of currently equipped items.

    Raises:
        NotEquipped: nothing matching is equipped
    """
    text = identifier.strip().lower()
    if not text:
        raise NotEquipped("Unequip what?")

    slot = _find_slot(text, config)
    if slot is not None:
        item_id = character.equipment_slots.get(slot.id)
        if item_id is None:
            raise NotEquipped(f"Nothing is equipped in your {slot.display_name}.")
        return _clear_slot(character, slot, item_id)

    for slot in config.ordered_slots():
        item_id = character.equipment_slots.get(slot.id)
        if item_id is None:
            continue
        item = character.carried_items[item_id].item
        if item.matches(text):
            return _clear_slot(character, slot, item_id)

    raise NotEquipped(f"You don't have '{identifier.strip()}' equipped.")


def _slot_key(text: str) -> str:
    return _SEPARATORS.sub("_", text.strip().lower()).strip("_")


def _find_slot(text: str, config: EquipmentSlotConfiguration) -> EquipmentSlotDefinition | None:
    key = _slot_key(text)
    slot = config.get_slot(key)
    if slot is not None:
        return slot
    for candidate in config.slots:
        if _slot_key(candidate.display_name) == key:
            return candidate
    return None


def _clear_slot(
    character: Character, slot: EquipmentSlotDefinition, item_id: str
) -> UnequipResult:
    item = character.carried_items[item_id].item
    character.equipment_slots[slot.id] = None
    return UnequipResult(
        item_id=item.id,
        item_name=item.name,
        slot_id=slot.id,
        slot_name=slot.display_name,
        message=f"You unequip {item.name} from your {slot.display_name}.",
    )


def _describe_bonuses(damage: int, armor: int) -> str:
    parts = []
    if damage:
        parts.append(f"Damage {damage:+d}")
    if armor:
        parts.append(f"Armor {armor:+d}")
    return ", ".join(parts)


# =============================================================================
# Queries
# =============================================================================


def equipped_items(character: Character) -> list[Item]:
    """Items referenced by occupied slots."""
    items: list[Item] = []
    seen: set[str] = set()
    for item_id in character.equipment_slots.values():
        if item_id is None or item_id in seen:
            continue
        carried = character.carried_items.get(item_id)
        if carried is not None:
            items.append(carried.item)
            seen.add(item_id)
    return items


def total_armor(character: Character) -> int:
    """Base armor plus every equipped armor bonus."""
    return character.armor + sum(item.armor_bonus for item in equipped_items(character))


def equipped_weapon(
    character: Character,
    config: EquipmentSlotConfiguration | None = None,
) -> Item | None:
    """
    The weapon used for attacks.

    With a configuration, the first weapon-compatible slot (display order)
    holding a weapon. Without one, any equipped weapon.
    """
    if config is not None:
        for slot in config.slots_for_type(ItemType.WEAPON):
            item_id = character.equipment_slots.get(slot.id)
            if item_id is None:
                continue
            item = character.carried_items[item_id].item
            if item.type == ItemType.WEAPON:
                return item
        return None

    for item in equipped_items(character):
        if item.type == ItemType.WEAPON:
            return item
    return None


def describe_equipment(character: Character, config: EquipmentSlotConfiguration) -> str:
    """One line per slot plus combat totals."""
    lines = ["=== Equipment ==="]
    for slot in config.ordered_slots():
        item_id = character.equipment_slots.get(slot.id)
        if item_id is None:
            lines.append(f"  {slot.display_name}: (empty)")
            continue
        item = character.carried_items[item_id].item
        bonus = _describe_bonuses(item.damage_bonus, item.armor_bonus)
        suffix = f" [{bonus}]" if bonus else ""
        lines.append(f"  {slot.display_name}: {item.name}{suffix}")

    weapon = equipped_weapon(character, config)
    lines.append(f"Weapon damage bonus: +{weapon.damage_bonus if weapon else 0}")
    lines.append(f"Total armor: {total_armor(character)}")
    return "\n".join(lines)
