"""
World snapshot models: rooms, exits, quests and win conditions.

A World is produced by a content provider (see src.content) and is the
only thing a GameSession needs to start.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from src.models.character import Character
from src.models.equipment import EquipmentSlotConfiguration
from src.models.item import Item


class Exit(BaseModel):
    """A way out of a room."""

    display_name: str
    destination_room_id: str
    description: str = Field(default="")
    is_available: bool = Field(default=True)
    unavailable_reason: str = Field(default="")


class Room(BaseModel):
    """A location the player can stand in."""

    id: str
    name: str
    description: str = Field(default="")
    exits: dict[str, Exit] = Field(default_factory=dict)
    npc_ids: list[str] = Field(default_factory=list)
    items: list[Item] = Field(default_factory=list, description="Items on the floor")
    metadata: dict[str, Any] = Field(default_factory=dict)

    def available_exits(self) -> dict[str, Exit]:
        return {k: e for k, e in self.exits.items() if e.is_available}

    def find_exit(self, name: str) -> Exit | None:
        """
        Find an available exit by name.

        Tries an exact match on key or display name, then exit names that
        contain the input, then inputs that contain an exit name.
        """
        return _match_exit(self.available_exits(), name)

    def find_blocked_exit(self, name: str) -> Exit | None:
        """Find an exit that exists but is currently unavailable."""
        blocked = {k: e for k, e in self.exits.items() if not e.is_available}
        return _match_exit(blocked, name)

    def find_item(self, text: str) -> Item | None:
        needle = text.strip().lower()
        for item in self.items:
            if item.id.lower() == needle or item.name.lower() == needle:
                return item
        for item in self.items:
            if item.matches(needle):
                return item
        return None

    def take_item(self, text: str) -> Item | None:
        """Remove an item from the floor and return it."""
        item = self.find_item(text)
        if item is not None:
            self.items.remove(item)
        return item


def _match_exit(exits: dict[str, Exit], name: str) -> Exit | None:
    needle = name.strip().lower()
    if not needle:
        return None

    for key, exit_ in exits.items():
        if key.lower() == needle or exit_.display_name.lower() == needle:
            return exit_
    for key, exit_ in exits.items():
        if needle in key.lower() or needle in exit_.display_name.lower():
            return exit_
    for key, exit_ in exits.items():
        if key.lower() in needle or exit_.display_name.lower() in needle:
            return exit_
    return None


class QuestStatus(str, Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    COMPLETED = "completed"


class ObjectiveType(str, Enum):
    """World facts that can complete an objective automatically."""

    REACH_LOCATION = "reach_location"
    DEFEAT_ENEMY = "defeat_enemy"
    COLLECT_ITEM = "collect_item"
    TALK_TO_NPC = "talk_to_npc"


class ObjectiveTrigger(BaseModel):
    """Completes an objective once the session satisfies it."""

    type: ObjectiveType
    target_id: str


class Quest(BaseModel):
    """
    A quest made of named objectives.

    Objectives without a trigger must be completed explicitly via
    complete_objective().
    """

    id: str
    title: str
    description: str = Field(default="")
    objectives: list[str] = Field(default_factory=list)
    completed_objectives: set[str] = Field(default_factory=set)
    triggers: dict[str, ObjectiveTrigger] = Field(
        default_factory=dict, description="Objective name -> trigger"
    )
    status: QuestStatus = Field(default=QuestStatus.ACTIVE)

    @property
    def is_complete(self) -> bool:
        # A quest without objectives has nothing to finish
        if not self.objectives:
            return False
        return set(self.objectives) <= self.completed_objectives

    def complete_objective(self, objective: str) -> bool:
        """Mark an objective done. Returns False for unknown objectives."""
        if objective not in self.objectives:
            return False
        self.completed_objectives.add(objective)
        if self.is_complete:
            self.status = QuestStatus.COMPLETED
        return True


class WinConditionType(str, Enum):
    ROOM = "room"
    ITEM = "item"
    NPC_DEFEAT = "npc_defeat"
    QUEST_COMPLETE = "quest_complete"


class WinCondition(BaseModel):
    """A predicate over the session that ends the game in victory."""

    id: str
    type: WinConditionType
    target_id: str
    description: str = Field(default="")
    victory_narration: str = Field(default="")
    victory_message: str = Field(default="You have won!")

    @property
    def message(self) -> str:
        return self.victory_narration or self.victory_message


class World(BaseModel):
    """A fully populated world snapshot."""

    title: str = Field(default="Untitled Adventure")
    rooms: dict[str, Room]
    player: Character
    npcs: dict[str, Character] = Field(default_factory=dict)
    quests: dict[str, Quest] = Field(default_factory=dict)
    win_conditions: list[WinCondition] = Field(default_factory=list)
    equipment_slots: EquipmentSlotConfiguration = Field(
        default_factory=EquipmentSlotConfiguration.create_default
    )
    starting_room_id: str

    @model_validator(mode="after")
    def validate_references(self) -> World:
        """Rooms, exits and NPC placements must reference known ids."""
        if self.starting_room_id not in self.rooms:
            raise ValueError(f"Starting room '{self.starting_room_id}' not in world")

        for room in self.rooms.values():
            for key, exit_ in room.exits.items():
                if exit_.destination_room_id not in self.rooms:
                    raise ValueError(
                        f"Exit '{key}' in '{room.id}' leads to unknown room "
                        f"'{exit_.destination_room_id}'"
                    )
            for npc_id in room.npc_ids:
                if npc_id not in self.npcs:
                    raise ValueError(f"Room '{room.id}' lists unknown NPC '{npc_id}'")

        slot_ids = self.equipment_slots.slot_ids()
        self.player.ensure_slots(slot_ids)
        for npc in self.npcs.values():
            npc.ensure_slots(slot_ids)
        return self
