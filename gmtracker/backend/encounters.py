"""Encounter assembly: resolve rosters against the library and derive totals."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any

from .encounter_kind import AccomplishmentEncounter, CombatEncounter, encounter_kind_to_dict
from .engine import assess_encounter, classify_final_experience, experience_for_accomplishment
from .library import LibraryLookup
from .models import (
    Difficulty,
    Encounter,
    EncounterChanges,
    EncounterInput,
    EncounterRoster,
    resolve_derived,
)
from .stats import compute_treasure_value


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncounterEvaluation:
    raw_experience: int
    difficulty: Difficulty | None
    total_experience: int
    total_items_value: float
    total_treasure_value: float
    unresolved: tuple[str, ...] = ()


def evaluate_roster(roster: EncounterRoster, library: LibraryLookup) -> EncounterEvaluation:
    """Compute the derived XP and treasure for a roster.

    Creatures, hazards and items missing from the library contribute nothing;
    their references are reported back in ``unresolved``. Accomplishments that
    carry a level add its preset XP on top of ``extra_experience``.
    """
    unresolved: list[str] = []
    enemies: list[tuple[int, int]] = []
    hazards: list[tuple[int, bool]] = []

    kind = roster.kind
    if isinstance(kind, CombatEncounter):
        levels = library.creature_levels(enemy.id for enemy in kind.enemies)
        for enemy in kind.enemies:
            level = levels.get(enemy.id)
            if level is None:
                unresolved.append(f"creature:{enemy.id}")
                continue
            enemies.append((level, enemy.level_adjustment))

        profiles = library.hazard_profiles(kind.hazards)
        for hazard_id in kind.hazards:
            profile = profiles.get(hazard_id)
            if profile is None:
                unresolved.append(f"hazard:{hazard_id}")
                continue
            hazards.append((profile.level, profile.complex))

    items = library.item_profiles(roster.treasure_items)
    item_prices: list[float | None] = []
    for item_id in roster.treasure_items:
        item = items.get(item_id)
        if item is None:
            unresolved.append(f"item:{item_id}")
            item_prices.append(None)
        else:
            item_prices.append(item.price)

    extra_experience = roster.extra_experience
    if isinstance(kind, AccomplishmentEncounter) and kind.level is not None:
        extra_experience += experience_for_accomplishment(kind.level)

    if unresolved:
        logger.warning("encounter references missing from library: %s", ", ".join(unresolved))

    assessment = assess_encounter(enemies, hazards, roster.party_level, roster.party_size)
    return EncounterEvaluation(
        raw_experience=assessment.raw_experience,
        difficulty=assessment.difficulty,
        total_experience=assessment.total_experience + extra_experience,
        total_items_value=compute_treasure_value(item_prices),
        total_treasure_value=compute_treasure_value(item_prices, roster.treasure_currency),
        unresolved=tuple(unresolved),
    )


def roster_of(data: EncounterInput) -> EncounterRoster:
    return EncounterRoster(
        kind=data.kind,
        party_level=data.party_level,
        party_size=data.party_size,
        treasure_items=data.treasure_items,
        treasure_currency=data.treasure_currency,
        extra_experience=data.extra_experience,
    )


def build_encounter(
    encounter_id: str,
    owner_id: str,
    data: EncounterInput,
    library: LibraryLookup,
    now: str,
) -> Encounter:
    evaluation = evaluate_roster(roster_of(data), library)
    return Encounter(
        id=encounter_id,
        owner_id=owner_id,
        session_id=data.session_id,
        name=data.name,
        description=data.description,
        status=data.status,
        kind=data.kind,
        party_level=data.party_level,
        party_size=data.party_size,
        treasure_items=data.treasure_items,
        treasure_currency=data.treasure_currency,
        extra_experience=data.extra_experience,
        total_experience=resolve_derived(data.total_experience, evaluation.total_experience),
        total_items_value=resolve_derived(data.total_items_value, evaluation.total_items_value),
        created_at=now,
        updated_at=now,
    )


def apply_changes(encounter: Encounter, changes: EncounterChanges, library: LibraryLookup, now: str) -> Encounter:
    """Merge a partial edit and recompute every derived field not given explicitly."""
    session_id = encounter.session_id
    if changes.clear_session:
        session_id = None
    elif changes.session_id is not None:
        session_id = changes.session_id

    updated = replace(
        encounter,
        session_id=session_id,
        name=_pick(changes.name, encounter.name),
        description=_pick(changes.description, encounter.description),
        status=_pick(changes.status, encounter.status),
        kind=_pick(changes.kind, encounter.kind),
        party_level=_pick(changes.party_level, encounter.party_level),
        party_size=_pick(changes.party_size, encounter.party_size),
        treasure_items=_pick(changes.treasure_items, encounter.treasure_items),
        treasure_currency=_pick(changes.treasure_currency, encounter.treasure_currency),
        extra_experience=_pick(changes.extra_experience, encounter.extra_experience),
        updated_at=now,
    )
    evaluation = evaluate_roster(updated.roster, library)
    return replace(
        updated,
        total_experience=resolve_derived(changes.total_experience, evaluation.total_experience),
        total_items_value=resolve_derived(changes.total_items_value, evaluation.total_items_value),
    )


def encounter_to_wire(encounter: Encounter) -> dict[str, Any]:
    difficulty: Difficulty | None = None
    if isinstance(encounter.kind, CombatEncounter) and (encounter.kind.enemies or encounter.kind.hazards):
        difficulty = classify_final_experience(encounter.total_experience.value, encounter.extra_experience)
    return {
        "id": encounter.id,
        "owner_id": encounter.owner_id,
        "session_id": encounter.session_id,
        "name": encounter.name,
        "description": encounter.description,
        "status": encounter.status.wire_name,
        "encounter_kind": encounter_kind_to_dict(encounter.kind),
        "party_level": encounter.party_level,
        "party_size": encounter.party_size,
        "treasure_items": list(encounter.treasure_items),
        "treasure_currency": encounter.treasure_currency,
        "extra_experience": encounter.extra_experience,
        "total_experience": encounter.total_experience.value,
        "total_experience_overridden": encounter.total_experience.overridden,
        "total_items_value": encounter.total_items_value.value,
        "total_items_value_overridden": encounter.total_items_value.overridden,
        "difficulty": difficulty.wire_name if difficulty is not None else None,
        "created_at": encounter.created_at,
        "updated_at": encounter.updated_at,
    }


def _pick(value: Any, fallback: Any) -> Any:
    return fallback if value is None else value
