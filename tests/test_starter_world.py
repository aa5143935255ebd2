"""
Tests for the bundled starter world, including a full scripted playthrough.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from src.content import create_starter_world
from src.engine.game import create_engine
from src.engine.models import SessionOutcome
from src.skills.equipment import total_armor


class TestStarterWorldContent:
    """Tests for the world snapshot itself."""

    def test_player(self):
        world = create_starter_world("Aria")
        assert world.player.name == "Aria"
        assert world.player.id == "player"
        assert "leather_helmet" in world.player.carried_items
        assert world.player.carried_items["health_potion"].quantity == 2

    def test_rooms_connected(self):
        world = create_starter_world()
        assert world.starting_room_id == "start"
        assert set(world.rooms) == {"start", "tavern", "forest", "cave", "merchant_stall"}
        for room in world.rooms.values():
            assert room.available_exits(), f"{room.id} is a dead end"

    def test_every_slot_normalised(self):
        world = create_starter_world()
        slot_ids = set(world.equipment_slots.slot_ids())
        for character in [world.player, *world.npcs.values()]:
            assert set(character.equipment_slots) == slot_ids

    def test_shaman_armed(self):
        shaman = create_starter_world().npcs["goblin_shaman"]
        assert shaman.equipment_slots["main_hand"] == "bone_staff"
        assert shaman.npc is not None

    def test_worlds_independent(self):
        first = create_starter_world()
        second = create_starter_world()
        first.npcs["goblin_shaman"].take_damage(1000)
        assert second.npcs["goblin_shaman"].is_alive

    def test_win_conditions(self):
        world = create_starter_world()
        assert [w.id for w in world.win_conditions] == ["slay_shaman", "goblin_threat_done"]


class TestPlaythrough:
    """Scripted game using only the fallback parser."""

    @pytest.mark.asyncio
    async def test_gear_up_and_slay_the_shaman(self):
        engine = create_engine(create_starter_world("Hero"))
        session = engine.session

        await engine.process_turn("wear my helmet")
        await engine.process_turn("take boots")
        await engine.process_turn("wear boots")
        await engine.process_turn("e")
        await engine.process_turn("take chain mail")
        await engine.process_turn("wear chain mail")
        await engine.process_turn("talk to barrick about the goblins")
        await engine.process_turn("go back to town square")
        await engine.process_turn("s")
        await engine.process_turn("take sword")
        await engine.process_turn("wield sword")

        assert total_armor(session.player) == 7
        assert session.player.equipment_slots["main_hand"] == "iron_sword"
        assert "bartender" in session.talked_to

        await engine.process_turn("back")
        await engine.process_turn("north")
        result = await engine.process_turn("go deeper")
        assert session.current_room_id == "cave"
        assert "Objective complete: Find the Goblin Lair" in result.message

        moved = await engine.process_turn("back")
        blocked = await engine.process_turn("attack grak")
        assert moved.results[0].success
        assert blocked.results[0].error == "invalid_target"
        await engine.process_turn("deeper")

        with patch("src.skills.combat.secrets.randbelow", return_value=0):
            result = None
            for _ in range(12):
                result = await engine.process_turn("attack grak")
                if result.game_over:
                    break

        assert result.outcome == SessionOutcome.VICTORY
        assert result.victory.condition_id == "slay_shaman"
        assert "Quest complete: The Goblin Threat" in result.message
        assert session.player.is_alive
