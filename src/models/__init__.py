"""
Core Data Models.

These models define the game's ontology: items, characters, equipment
slots, rooms, quests and the world snapshot that ties them together.
"""

from src.models.character import (
    Alignment,
    Character,
    ConversationEntry,
    NPCBehavior,
    NPCRole,
    create_character,
)
from src.models.equipment import EquipmentSlotConfiguration, EquipmentSlotDefinition
from src.models.item import CarriedItem, Item, ItemType, create_item
from src.models.world import (
    Exit,
    ObjectiveTrigger,
    ObjectiveType,
    Quest,
    QuestStatus,
    Room,
    WinCondition,
    WinConditionType,
    World,
)

__all__ = [
    "Alignment",
    "CarriedItem",
    "Character",
    "ConversationEntry",
    "EquipmentSlotConfiguration",
    "EquipmentSlotDefinition",
    "Exit",
    "Item",
    "ItemType",
    "NPCBehavior",
    "NPCRole",
    "ObjectiveTrigger",
    "ObjectiveType",
    "Quest",
    "QuestStatus",
    "Room",
    "WinCondition",
    "WinConditionType",
    "World",
    "create_character",
    "create_item",
]
