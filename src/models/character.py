"""
Character models.

A single combatant model is shared by the player and every NPC.
Non-player behaviour (personality, conversation memory, movement) lives
in an optional NPCBehavior component.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

from src.models.item import CarriedItem, Item


class Alignment(str, Enum):
    """How a character stands toward the player."""

    GOOD = "good"
    NEUTRAL = "neutral"
    EVIL = "evil"


class NPCRole(str, Enum):
    """Narrative role of a character."""

    PLAYER = "player"
    ENEMY = "enemy"
    MERCHANT = "merchant"
    QUEST_GIVER = "quest_giver"
    INFORMANT = "informant"
    COMPANION = "companion"
    NEUTRAL = "neutral"


class ConversationEntry(BaseModel):
    """One line of an NPC's conversation memory."""

    role: str = Field(description="user or assistant")
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class NPCBehavior(BaseModel):
    """Behaviour component attached to non-player characters."""

    personality: str = Field(default="", description="Persona prompt for dialogue")
    conversation: list[ConversationEntry] = Field(default_factory=list)

    home_room_id: str | None = None
    current_room_id: str | None = None
    patrol_room_ids: list[str] = Field(default_factory=list)
    can_move: bool = False
    can_join_party: bool = False

    def remember(self, role: str, content: str) -> None:
        """Append a line to conversation memory."""
        self.conversation.append(ConversationEntry(role=role, content=content))

    def recent(self, limit: int) -> list[ConversationEntry]:
        """Most recent conversation entries, oldest first."""
        if limit <= 0:
            return []
        return self.conversation[-limit:]


class Character(BaseModel):
    """
    A combatant: the player or an NPC.

    equipment_slots maps slot id -> carried item id (or None when empty).
    Slot values must always reference a key of carried_items.
    """

    id: str = Field(default_factory=lambda: uuid4().hex[:8])
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default="")

    health: int = Field(default=100, ge=0)
    max_health: int = Field(default=100, ge=1)
    level: int = Field(default=1, ge=1)
    experience: int = Field(default=0, ge=0)

    strength: int = Field(default=10)
    agility: int = Field(default=10)
    armor: int = Field(default=0, ge=0, description="Base armor before equipment")

    equipment_slots: dict[str, str | None] = Field(default_factory=dict)
    carried_items: dict[str, CarriedItem] = Field(default_factory=dict)

    role: NPCRole = Field(default=NPCRole.NEUTRAL)
    alignment: Alignment = Field(default=Alignment.NEUTRAL)

    npc: NPCBehavior | None = Field(default=None)

    @model_validator(mode="after")
    def validate_equipment(self) -> Character:
        """Every equipped id must be carried."""
        for slot_id, item_id in self.equipment_slots.items():
            if item_id is not None and item_id not in self.carried_items:
                raise ValueError(
                    f"Slot '{slot_id}' references item '{item_id}' that {self.name} is not carrying"
                )
        if self.health > self.max_health:
            self.health = self.max_health
        return self

    # =========================================================================
    # Vitals
    # =========================================================================

    @property
    def is_alive(self) -> bool:
        return self.health > 0

    @property
    def is_npc(self) -> bool:
        return self.npc is not None

    def take_damage(self, amount: int) -> int:
        """
        Reduce health, clamped at zero.

        Returns:
            Damage actually applied
        """
        applied = min(max(0, amount), self.health)
        self.health -= applied
        return applied

    def heal(self, amount: int) -> int:
        """Restore health up to max. Returns the amount healed."""
        healed = min(max(0, amount), self.max_health - self.health)
        self.health += healed
        return healed

    def gain_experience(self, amount: int) -> None:
        self.experience += max(0, amount)

    # =========================================================================
    # Inventory
    # =========================================================================

    def add_item(self, item: Item, quantity: int = 1) -> None:
        """Add an item stack, merging with an existing stack."""
        carried = self.carried_items.get(item.id)
        if carried is not None:
            carried.quantity += quantity
        else:
            self.carried_items[item.id] = CarriedItem(item=item, quantity=quantity)

    def remove_item(self, item_id: str, quantity: int = 1) -> Item | None:
        """
        Remove units of a carried item.

        When the last unit leaves, any slot holding it is cleared.

        Returns:
            The removed item, or None if not carried
        """
        carried = self.carried_items.get(item_id)
        if carried is None:
            return None

        carried.quantity -= quantity
        if carried.quantity <= 0:
            del self.carried_items[item_id]
            for slot_id, equipped_id in self.equipment_slots.items():
                if equipped_id == item_id:
                    self.equipment_slots[slot_id] = None
        return carried.item

    def find_carried(self, text: str) -> Item | None:
        """Find a carried item by id or (partial) name."""
        needle = text.strip().lower()
        if not needle:
            return None

        # Exact matches beat partial ones
        for carried in self.carried_items.values():
            if carried.item.id.lower() == needle or carried.item.name.lower() == needle:
                return carried.item
        for carried in self.carried_items.values():
            if carried.item.matches(needle):
                return carried.item
        return None

    def slot_of(self, item_id: str) -> str | None:
        """The slot currently holding an item, if any."""
        for slot_id, equipped_id in self.equipment_slots.items():
            if equipped_id == item_id:
                return slot_id
        return None

    def ensure_slots(self, slot_ids: list[str]) -> None:
        """Make sure every configured slot has an entry."""
        for slot_id in slot_ids:
            self.equipment_slots.setdefault(slot_id, None)


def create_character(
    name: str,
    char_id: str | None = None,
    description: str = "",
    health: int = 100,
    strength: int = 10,
    agility: int = 10,
    armor: int = 0,
    level: int = 1,
    role: NPCRole = NPCRole.NEUTRAL,
    alignment: Alignment = Alignment.NEUTRAL,
    npc: NPCBehavior | None = None,
) -> Character:
    """Factory function to create a character at full health."""
    return Character(
        id=char_id or name.lower().replace(" ", "_"),
        name=name,
        description=description,
        health=health,
        max_health=health,
        strength=strength,
        agility=agility,
        armor=armor,
        level=level,
        role=role,
        alignment=alignment,
        npc=npc,
    )
