"""
Tests for the core data models.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.engine.errors import InvariantViolation
from src.engine.models import Action, ActionSource, ActionVerb, GameSession, SessionMode
from src.models import (
    CarriedItem,
    Character,
    EquipmentSlotConfiguration,
    Exit,
    ItemType,
    NPCBehavior,
    Quest,
    Room,
    WinCondition,
    WinConditionType,
    World,
    create_character,
    create_item,
)

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def sword():
    return create_item("Iron Sword", ItemType.WEAPON, damage_bonus=5)


@pytest.fixture
def small_world() -> World:
    rooms = {
        "hall": Room(
            id="hall",
            name="Great Hall",
            exits={
                "north": Exit(display_name="North", destination_room_id="vault"),
                "cellar": Exit(
                    display_name="Cellar Stairs",
                    destination_room_id="vault",
                    is_available=False,
                    unavailable_reason="The cellar door is locked.",
                ),
            },
            npc_ids=["guard"],
        ),
        "vault": Room(id="vault", name="Vault"),
    }
    guard = create_character("Castle Guard", char_id="guard", npc=NPCBehavior())
    return World(
        rooms=rooms,
        player=create_character("Hero", char_id="player"),
        npcs={"guard": guard},
        starting_room_id="hall",
    )


# =============================================================================
# Item Tests
# =============================================================================


class TestItem:
    """Tests for Item and create_item."""

    def test_create_item_ids_from_name(self):
        item = create_item("Leather Helmet", ItemType.ARMOR, armor_bonus=2)
        assert item.id == "leather_helmet"
        assert item.is_equippable is True

    def test_consumables_not_equippable_by_default(self):
        potion = create_item("Health Potion", ItemType.CONSUMABLE)
        assert potion.is_equippable is False

    def test_negative_bonus_rejected(self):
        with pytest.raises(ValidationError):
            create_item("Cursed Ring", ItemType.ARMOR, armor_bonus=-3)

    def test_matches_partial_name(self, sword):
        assert sword.matches("sword")
        assert sword.matches("IRON")
        assert sword.matches("iron_sword")
        assert not sword.matches("axe")
        assert not sword.matches("")

    def test_carried_quantity_at_least_one(self, sword):
        with pytest.raises(ValidationError):
            CarriedItem(item=sword, quantity=0)


# =============================================================================
# Character Tests
# =============================================================================


class TestCharacter:
    """Tests for the shared combatant model."""

    def test_slot_must_reference_carried_item(self):
        with pytest.raises(ValidationError, match="not carrying"):
            Character(name="Hero", equipment_slots={"main_hand": "ghost_sword"})

    def test_take_damage_clamps_at_zero(self):
        hero = create_character("Hero", health=10)
        applied = hero.take_damage(25)
        assert applied == 10
        assert hero.health == 0
        assert not hero.is_alive

    def test_heal_clamps_at_max(self):
        hero = create_character("Hero", health=20)
        hero.take_damage(5)
        assert hero.heal(50) == 5
        assert hero.health == 20

    def test_add_item_merges_stacks(self, sword):
        hero = create_character("Hero")
        hero.add_item(sword)
        hero.add_item(sword, quantity=2)
        assert hero.carried_items[sword.id].quantity == 3

    def test_remove_last_unit_clears_slot(self, sword):
        hero = create_character("Hero")
        hero.add_item(sword)
        hero.equipment_slots["main_hand"] = sword.id

        removed = hero.remove_item(sword.id)

        assert removed == sword
        assert sword.id not in hero.carried_items
        assert hero.equipment_slots["main_hand"] is None

    def test_remove_partial_stack_keeps_slot(self, sword):
        hero = create_character("Hero")
        hero.add_item(sword, quantity=2)
        hero.equipment_slots["main_hand"] = sword.id

        hero.remove_item(sword.id)

        assert hero.carried_items[sword.id].quantity == 1
        assert hero.equipment_slots["main_hand"] == sword.id

    def test_remove_missing_item_returns_none(self):
        assert create_character("Hero").remove_item("nothing") is None

    def test_find_carried_prefers_exact(self):
        hero = create_character("Hero")
        hero.add_item(create_item("Sword Belt", ItemType.MISCELLANEOUS))
        hero.add_item(create_item("Sword", ItemType.WEAPON))
        assert hero.find_carried("sword").name == "Sword"

    def test_npc_component(self):
        hero = create_character("Hero")
        guard = create_character("Guard", npc=NPCBehavior(personality="Stern."))
        assert not hero.is_npc
        assert guard.is_npc

    def test_npc_memory_window(self):
        behavior = NPCBehavior()
        for i in range(15):
            behavior.remember("user", f"line {i}")
        recent = behavior.recent(10)
        assert len(recent) == 10
        assert recent[0].content == "line 5"
        assert recent[-1].content == "line 14"
        assert behavior.recent(0) == []


# =============================================================================
# Room & World Tests
# =============================================================================


class TestRoom:
    """Tests for exits and floor items."""

    def test_find_exit_exact(self, small_world):
        room = small_world.rooms["hall"]
        assert room.find_exit("north").destination_room_id == "vault"
        assert room.find_exit("NORTH") is not None

    def test_find_exit_substring_of_name(self):
        room = Room(
            id="r",
            name="R",
            exits={"deep": Exit(display_name="Deeper Into The Forest", destination_room_id="r")},
        )
        assert room.find_exit("forest") is not None

    def test_find_exit_name_inside_input(self, small_world):
        room = small_world.rooms["hall"]
        assert room.find_exit("head north quickly") is not None

    def test_unavailable_exit_hidden(self, small_world):
        room = small_world.rooms["hall"]
        assert room.find_exit("cellar") is None
        blocked = room.find_blocked_exit("cellar")
        assert blocked.unavailable_reason == "The cellar door is locked."

    def test_take_item_removes_from_floor(self, sword):
        room = Room(id="r", name="R", items=[sword])
        assert room.take_item("sword") == sword
        assert room.items == []


class TestWorld:
    """Tests for world snapshot validation."""

    def test_slots_normalised(self, small_world):
        slot_ids = EquipmentSlotConfiguration.create_default().slot_ids()
        assert set(small_world.player.equipment_slots) == set(slot_ids)
        assert all(v is None for v in small_world.player.equipment_slots.values())

    def test_unknown_start_room(self):
        with pytest.raises(ValidationError, match="Starting room"):
            World(
                rooms={"a": Room(id="a", name="A")},
                player=create_character("Hero"),
                starting_room_id="b",
            )

    def test_exit_to_unknown_room(self):
        with pytest.raises(ValidationError, match="unknown room"):
            World(
                rooms={
                    "a": Room(
                        id="a",
                        name="A",
                        exits={"x": Exit(display_name="X", destination_room_id="nowhere")},
                    )
                },
                player=create_character("Hero"),
                starting_room_id="a",
            )

    def test_room_lists_unknown_npc(self):
        with pytest.raises(ValidationError, match="unknown NPC"):
            World(
                rooms={"a": Room(id="a", name="A", npc_ids=["ghost"])},
                player=create_character("Hero"),
                starting_room_id="a",
            )


class TestQuest:
    """Tests for quest completion."""

    def test_complete_objectives(self):
        quest = Quest(id="q", title="Q", objectives=["one", "two"])
        assert quest.complete_objective("one")
        assert not quest.is_complete
        assert quest.complete_objective("two")
        assert quest.is_complete

    def test_unknown_objective_ignored(self):
        quest = Quest(id="q", title="Q", objectives=["one"])
        assert not quest.complete_objective("three")
        assert not quest.is_complete

    def test_empty_quest_never_complete(self):
        assert not Quest(id="q", title="Q").is_complete


class TestWinCondition:
    """Tests for victory messages."""

    def test_narration_preferred(self):
        condition = WinCondition(
            id="w",
            type=WinConditionType.ROOM,
            target_id="x",
            victory_narration="The sun rises.",
            victory_message="You win.",
        )
        assert condition.message == "The sun rises."

    def test_message_when_no_narration(self):
        condition = WinCondition(
            id="w", type=WinConditionType.ROOM, target_id="x", victory_message="You win."
        )
        assert condition.message == "You win."


# =============================================================================
# Session Tests
# =============================================================================


class TestGameSession:
    """Tests for the mutable session."""

    def test_from_world(self, small_world):
        session = GameSession.from_world(small_world)
        assert session.current_room_id == "hall"
        assert session.mode == SessionMode.EXPLORING
        assert not session.is_over

    def test_recent_commands_bounded(self, small_world):
        session = GameSession.from_world(small_world, history_limit=5)
        for i in range(7):
            session.add_recent_command(f"cmd {i}")
        assert session.recent_commands == ["cmd 2", "cmd 3", "cmd 4", "cmd 5", "cmd 6"]

    def test_missing_current_room_is_fatal(self, small_world):
        session = GameSession.from_world(small_world)
        session.current_room_id = "void"
        with pytest.raises(InvariantViolation):
            _ = session.current_room

    def test_enter_and_end_combat(self, small_world):
        session = GameSession.from_world(small_world)
        session.enter_combat("guard")
        assert session.in_combat
        assert session.combat_target.name == "Castle Guard"
        session.end_combat()
        assert session.mode == SessionMode.EXPLORING
        assert session.combat_target is None

    def test_find_npc_by_partial_name(self, small_world):
        session = GameSession.from_world(small_world)
        assert session.find_npc_in_room("guard").id == "guard"
        assert session.find_npc_in_room("castle").id == "guard"
        assert session.find_npc_in_room("dragon") is None


class TestAction:
    """Tests for the Action value type."""

    def test_action_is_frozen(self):
        action = Action(verb=ActionVerb.LOOK)
        with pytest.raises(ValidationError):
            action.target = "x"  # type: ignore[misc]

    def test_defaults(self):
        action = Action(verb=ActionVerb.MOVE, target="north")
        assert action.details == ""
        assert action.source == ActionSource.FALLBACK
