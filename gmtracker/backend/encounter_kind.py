"""Encounter kinds and their tagged wire representation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


ENCOUNTER_TYPE_FIELD = "encounter_type"

UNKNOWN = "unknown"
REWARD_INITIALIZATION = "rewardInitialization"
ACCOMPLISHMENT = "accomplishment"
COMBAT = "combat"
SUBSYSTEM = "subsystem"

# Integer codes persisted in encounters.encounter_type_id next to the JSON payload.
ENCOUNTER_TYPE_IDS: dict[str, int] = {
    UNKNOWN: 0,
    REWARD_INITIALIZATION: 1,
    ACCOMPLISHMENT: 2,
    COMBAT: 3,
    SUBSYSTEM: 4,
}


class AccomplishmentLevel(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"


class SubsystemType(str, Enum):
    VICTORY_POINTS = "victoryPoints"
    INFLUENCE = "influence"
    RESEARCH = "research"
    CHASE = "chase"
    INFILTRATION = "infiltration"
    REPUTATION = "reputation"


@dataclass(frozen=True)
class EncounterEnemy:
    id: int
    level_adjustment: int = 0


@dataclass(frozen=True)
class SubsystemCheck:
    name: str
    vp: int = 1


@dataclass(frozen=True)
class UnknownEncounter:
    pass


@dataclass(frozen=True)
class AccomplishmentEncounter:
    level: AccomplishmentLevel | None = None


@dataclass(frozen=True)
class RewardInitializationEncounter:
    pass


@dataclass(frozen=True)
class CombatEncounter:
    enemies: tuple[EncounterEnemy, ...] = ()
    hazards: tuple[int, ...] = ()


@dataclass(frozen=True)
class SubsystemEncounter:
    subsystem_type: SubsystemType = SubsystemType.VICTORY_POINTS
    subsystem_checks: tuple[SubsystemCheck, ...] = ()


EncounterKind = Union[
    UnknownEncounter,
    AccomplishmentEncounter,
    RewardInitializationEncounter,
    CombatEncounter,
    SubsystemEncounter,
]


def encounter_type_of(kind: EncounterKind) -> str:
    """Return the wire discriminant for an encounter kind."""
    if isinstance(kind, CombatEncounter):
        return COMBAT
    if isinstance(kind, SubsystemEncounter):
        return SUBSYSTEM
    if isinstance(kind, AccomplishmentEncounter):
        return ACCOMPLISHMENT
    if isinstance(kind, RewardInitializationEncounter):
        return REWARD_INITIALIZATION
    if isinstance(kind, UnknownEncounter):
        return UNKNOWN
    raise TypeError(f"Unsupported encounter kind: {type(kind).__name__}")


def encounter_kind_to_dict(kind: EncounterKind) -> dict[str, Any]:
    encounter_type = encounter_type_of(kind)
    payload: dict[str, Any] = {ENCOUNTER_TYPE_FIELD: encounter_type}
    if isinstance(kind, CombatEncounter):
        payload["enemies"] = [
            {"id": enemy.id, "level_adjustment": enemy.level_adjustment} for enemy in kind.enemies
        ]
        payload["hazards"] = list(kind.hazards)
    elif isinstance(kind, SubsystemEncounter):
        payload["subsystemType"] = kind.subsystem_type.value
        payload["subsystemChecks"] = [{"name": check.name, "vp": check.vp} for check in kind.subsystem_checks]
    elif isinstance(kind, AccomplishmentEncounter) and kind.level is not None:
        payload["accomplishmentLevel"] = kind.level.value
    return payload


def encounter_kind_from_dict(payload: dict[str, Any]) -> EncounterKind:
    """Parse a tagged encounter kind, raising ValueError on malformed input."""
    if not isinstance(payload, dict):
        raise ValueError("encounter kind must be an object")
    encounter_type = payload.get(ENCOUNTER_TYPE_FIELD, UNKNOWN)
    if encounter_type == COMBAT:
        enemies = tuple(_parse_enemy(entry) for entry in _as_list(payload.get("enemies", []), "enemies"))
        hazards = tuple(_as_int(entry, "hazards") for entry in _as_list(payload.get("hazards", []), "hazards"))
        return CombatEncounter(enemies=enemies, hazards=hazards)
    if encounter_type == SUBSYSTEM:
        raw_type = payload.get("subsystemType", SubsystemType.VICTORY_POINTS.value)
        try:
            subsystem_type = SubsystemType(raw_type)
        except ValueError as exc:
            raise ValueError(f"unknown subsystemType: {raw_type!r}") from exc
        checks = tuple(_parse_check(entry) for entry in _as_list(payload.get("subsystemChecks", []), "subsystemChecks"))
        return SubsystemEncounter(subsystem_type=subsystem_type, subsystem_checks=checks)
    if encounter_type == ACCOMPLISHMENT:
        raw_level = payload.get("accomplishmentLevel")
        if raw_level is None:
            return AccomplishmentEncounter()
        try:
            return AccomplishmentEncounter(level=AccomplishmentLevel(raw_level))
        except ValueError as exc:
            raise ValueError(f"unknown accomplishmentLevel: {raw_level!r}") from exc
    if encounter_type == REWARD_INITIALIZATION:
        return RewardInitializationEncounter()
    if encounter_type == UNKNOWN:
        return UnknownEncounter()
    raise ValueError(f"unknown encounter_type: {encounter_type!r}")


def _parse_enemy(entry: Any) -> EncounterEnemy:
    # Older payloads list bare creature ids.
    if isinstance(entry, dict):
        return EncounterEnemy(
            id=_as_int(entry.get("id"), "enemies.id"),
            level_adjustment=_as_int(entry.get("level_adjustment", 0), "enemies.level_adjustment"),
        )
    return EncounterEnemy(id=_as_int(entry, "enemies"))


def _parse_check(entry: Any) -> SubsystemCheck:
    if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
        raise ValueError("subsystemChecks entries need a string name")
    return SubsystemCheck(name=entry["name"], vp=_as_int(entry.get("vp", 1), "subsystemChecks.vp"))


def _as_list(value: Any, field_name: str) -> list[Any]:
    if not isinstance(value, list):
        raise ValueError(f"{field_name} must be a list")
    return value


def _as_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer, got {value!r}")
    return value
