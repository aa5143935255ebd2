"""
Stateless Skills.

Skills are plain functions that:
- Take structured input (Pydantic models)
- Execute game rules (slot inference, attacks, fleeing)
- Return structured output
- NEVER maintain state between calls
- NEVER call LLMs
"""

from src.skills.combat import (
    AttackResult,
    CombatConfig,
    FleeResult,
    attempt_flee,
    experience_for_defeat,
    hit_chance,
    resolve_attack,
)
from src.skills.equipment import (
    EquipResult,
    UnequipResult,
    determine_slot,
    equip,
    equip_by_name,
    equipped_items,
    equipped_weapon,
    total_armor,
    unequip,
)

__all__ = [
    "AttackResult",
    "CombatConfig",
    "EquipResult",
    "FleeResult",
    "UnequipResult",
    "attempt_flee",
    "determine_slot",
    "equip",
    "equip_by_name",
    "equipped_items",
    "equipped_weapon",
    "experience_for_defeat",
    "hit_chance",
    "resolve_attack",
    "total_armor",
    "unequip",
]
