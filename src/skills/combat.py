"""
Combat Resolution Skill.

One attack at a time: hit check, raw damage from strength and weapon,
armor reduction, health update. Every constant lives in CombatConfig so
a world can tune them without touching the formulas.
"""

from __future__ import annotations

import secrets

from pydantic import BaseModel, Field

from src.models.character import Character
from src.models.equipment import EquipmentSlotConfiguration
from src.skills.equipment import equipped_weapon, total_armor


class CombatConfig(BaseModel):
    """Tunable combat constants."""

    # Damage
    base_damage: int = Field(default=5, description="Damage at the strength baseline")
    strength_baseline: int = Field(default=10)
    min_damage: int = Field(default=1, ge=1, description="Floor for raw and final damage")

    # Armor
    armor_divisor: int = Field(default=2, ge=1)
    armor_reduction_cap: int | None = Field(
        default=None, ge=0, description="Max damage armor can absorb; None = uncapped"
    )

    # Hit chance
    guaranteed_hit_agility: int = Field(
        default=0, description="Defenders at or below this agility are always hit"
    )
    agility_baseline: int = Field(default=10)
    base_accuracy: int = Field(default=70)
    accuracy_per_agility: int = Field(default=2, ge=0)
    base_dodge: int = Field(default=10)
    dodge_per_agility: int = Field(default=3, ge=0)
    min_hit_chance: int = Field(default=20, ge=0, le=100)
    max_hit_chance: int = Field(default=95, ge=0, le=100)

    # Fleeing
    base_flee_chance: int = Field(default=50)
    flee_per_agility: int = Field(default=5, ge=0)
    min_flee_chance: int = Field(default=15, ge=0, le=100)
    max_flee_chance: int = Field(default=95, ge=0, le=100)

    # Rewards
    experience_per_level: int = Field(default=10, ge=0)
    experience_health_divisor: int = Field(default=5, ge=1)


class AttackResult(BaseModel):
    """Result of a single attack."""

    attacker_id: str
    defender_id: str
    hit: bool
    hit_chance: int = Field(description="Percent chance to hit")
    roll: int | None = Field(default=None, description="d100 roll (0-99), None if automatic")

    raw_damage: int = 0
    weapon_bonus: int = 0
    total_armor: int = 0
    armor_reduction: int = 0
    damage_after_armor: int = 0
    damage_applied: int = Field(default=0, description="Damage after clamping to remaining health")

    defender_health: int
    defender_defeated: bool = False
    message: str = ""


class FleeResult(BaseModel):
    """Result of an attempt to escape combat."""

    success: bool
    chance: int
    roll: int
    message: str = ""


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def hit_chance(
    attacker: Character,
    defender: Character,
    config: CombatConfig | None = None,
) -> int:
    """
    Percent chance that attacker hits defender.

    Returns 100 for defenders at or below the guaranteed-hit agility.
    Never increases as defender agility rises.
    """
    config = config or CombatConfig()
    if defender.agility <= config.guaranteed_hit_agility:
        return 100

    accuracy = config.base_accuracy + (
        attacker.agility - config.agility_baseline
    ) * config.accuracy_per_agility
    dodge = config.base_dodge + (
        defender.agility - config.agility_baseline
    ) * config.dodge_per_agility
    return _clamp(accuracy - dodge, config.min_hit_chance, config.max_hit_chance)


def base_damage(character: Character, config: CombatConfig | None = None) -> int:
    """Unarmed damage: base + floor((strength - baseline) / 2), at least min_damage."""
    config = config or CombatConfig()
    modifier = (character.strength - config.strength_baseline) // 2
    return max(config.min_damage, config.base_damage + modifier)


def raw_damage(
    character: Character,
    slots: EquipmentSlotConfiguration | None = None,
    config: CombatConfig | None = None,
) -> int:
    """Base damage plus the equipped weapon's bonus."""
    weapon = equipped_weapon(character, slots)
    return base_damage(character, config) + (weapon.damage_bonus if weapon else 0)


def armor_reduction(armor: int, config: CombatConfig | None = None) -> int:
    """floor(armor / divisor), optionally capped."""
    config = config or CombatConfig()
    reduction = max(0, armor) // config.armor_divisor
    if config.armor_reduction_cap is not None:
        reduction = min(reduction, config.armor_reduction_cap)
    return reduction


def resolve_attack(
    attacker: Character,
    defender: Character,
    slots: EquipmentSlotConfiguration | None = None,
    config: CombatConfig | None = None,
) -> AttackResult:
    """
    Resolve one attack and apply its damage to the defender.

    A hit always deals at least min_damage; defender health never drops
    below zero.
    """
    config = config or CombatConfig()

    chance = hit_chance(attacker, defender, config)
    roll: int | None = None
    if chance < 100:
        roll = secrets.randbelow(100)
        if roll >= chance:
            return AttackResult(
                attacker_id=attacker.id,
                defender_id=defender.id,
                hit=False,
                hit_chance=chance,
                roll=roll,
                defender_health=defender.health,
                defender_defeated=not defender.is_alive,
                message=f"{attacker.name} attacks {defender.name} but misses!",
            )

    weapon = equipped_weapon(attacker, slots)
    weapon_bonus = weapon.damage_bonus if weapon else 0
    raw = base_damage(attacker, config) + weapon_bonus

    armor = total_armor(defender)
    reduction = armor_reduction(armor, config)
    after_armor = max(config.min_damage, raw - reduction)

    applied = defender.take_damage(after_armor)
    defeated = not defender.is_alive

    message = f"{attacker.name} hits {defender.name} for {after_armor} damage!"
    if defeated:
        message = f"{message} {defender.name} is defeated!"

    return AttackResult(
        attacker_id=attacker.id,
        defender_id=defender.id,
        hit=True,
        hit_chance=chance,
        roll=roll,
        raw_damage=raw,
        weapon_bonus=weapon_bonus,
        total_armor=armor,
        armor_reduction=reduction,
        damage_after_armor=after_armor,
        damage_applied=applied,
        defender_health=defender.health,
        defender_defeated=defeated,
        message=message,
    )


def flee_chance(
    runner: Character,
    pursuer: Character,
    config: CombatConfig | None = None,
) -> int:
    """Percent chance to escape, driven by the agility difference."""
    config = config or CombatConfig()
    chance = config.base_flee_chance + (runner.agility - pursuer.agility) * config.flee_per_agility
    return _clamp(chance, config.min_flee_chance, config.max_flee_chance)


def attempt_flee(
    runner: Character,
    pursuer: Character,
    config: CombatConfig | None = None,
) -> FleeResult:
    """Roll to escape from combat."""
    chance = flee_chance(runner, pursuer, config)
    roll = secrets.randbelow(100)
    success = roll < chance
    if success:
        message = f"You escape from {pursuer.name}!"
    else:
        message = f"You try to flee, but {pursuer.name} blocks your escape!"
    return FleeResult(success=success, chance=chance, roll=roll, message=message)


def experience_for_defeat(defeated: Character, config: CombatConfig | None = None) -> int:
    """Experience awarded for defeating a character."""
    config = config or CombatConfig()
    return (
        defeated.level * config.experience_per_level
        + defeated.max_health // config.experience_health_divisor
    )


def health_bar(character: Character, width: int = 10) -> str:
    """Text health bar like [███████░░░] 70%."""
    ratio = character.health / character.max_health if character.max_health else 0.0
    filled = round(ratio * width)
    percent = round(ratio * 100)
    return f"[{'█' * filled}{'░' * (width - filled)}] {percent:3d}%"
