"""Experience award and encounter difficulty calculations.

Everything here is a pure function over plain numbers: callers resolve creature
and hazard levels beforehand and persist whatever comes out.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from .encounter_kind import AccomplishmentLevel
from .models import Difficulty


REFERENCE_PARTY_SIZE = 4
SIMPLE_HAZARD_DIVISOR = 5

# Creature level minus party level -> XP; saturates outside [-4, 4].
_XP_BY_LEVEL_DIFFERENCE: dict[int, int] = {
    -4: 10,
    -3: 15,
    -2: 20,
    -1: 30,
    0: 40,
    1: 60,
    2: 80,
    3: 120,
    4: 160,
}
_MIN_LEVEL_DIFFERENCE = min(_XP_BY_LEVEL_DIFFERENCE)
_MAX_LEVEL_DIFFERENCE = max(_XP_BY_LEVEL_DIFFERENCE)

ACCOMPLISHMENT_EXPERIENCE: dict[AccomplishmentLevel, int] = {
    AccomplishmentLevel.MINOR: 10,
    AccomplishmentLevel.MODERATE: 30,
    AccomplishmentLevel.MAJOR: 80,
}


@dataclass(frozen=True)
class DifficultyBudget:
    base: int
    per_extra_player: int


DIFFICULTY_BUDGETS: dict[Difficulty, DifficultyBudget] = {
    Difficulty.TRIVIAL: DifficultyBudget(base=40, per_extra_player=10),
    Difficulty.LOW: DifficultyBudget(base=60, per_extra_player=20),
    Difficulty.MODERATE: DifficultyBudget(base=80, per_extra_player=20),
    Difficulty.SEVERE: DifficultyBudget(base=120, per_extra_player=30),
    Difficulty.EXTREME: DifficultyBudget(base=160, per_extra_player=40),
}


@dataclass(frozen=True)
class SeverityRange:
    difficulty: Difficulty
    start: int
    end: float

    def contains(self, experience: int) -> bool:
        return self.start <= experience < self.end


@dataclass(frozen=True)
class EncounterAssessment:
    raw_experience: int
    difficulty: Difficulty | None
    total_experience: int


def calculate_enemy_xp(level_diff: int) -> int:
    """XP a single creature is worth given its level relative to the party."""
    clamped = max(_MIN_LEVEL_DIFFERENCE, min(_MAX_LEVEL_DIFFERENCE, level_diff))
    return _XP_BY_LEVEL_DIFFERENCE[clamped]


def calculate_hazard_xp(level_diff: int, is_complex: bool) -> int:
    """Simple hazards are worth a fifth of an equivalent creature."""
    experience = calculate_enemy_xp(level_diff)
    if is_complex:
        return experience
    return experience // SIMPLE_HAZARD_DIVISOR


def experience_for_accomplishment(level: AccomplishmentLevel) -> int:
    return ACCOMPLISHMENT_EXPERIENCE[level]


def difficulty_budget(difficulty: Difficulty, party_size: int) -> int:
    budget = DIFFICULTY_BUDGETS[difficulty]
    return budget.base + (party_size - REFERENCE_PARTY_SIZE) * budget.per_extra_player


def severity_boundaries(party_size: int) -> list[SeverityRange]:
    """Partition [0, inf) into difficulty ranges for a party of the given size.

    Each boundary sits at the floored midpoint between two consecutive adjusted
    budgets. Boundaries never decrease and never go below zero, so degenerate
    party sizes yield empty ranges rather than overlapping ones.
    """
    difficulties = sorted(DIFFICULTY_BUDGETS)
    budgets = [difficulty_budget(difficulty, party_size) for difficulty in difficulties]

    starts = [0]
    for lower, upper in zip(budgets, budgets[1:]):
        starts.append(max((lower + upper) // 2, starts[-1]))
    ends: list[float] = [float(start) for start in starts[1:]]
    ends.append(math.inf)

    return [
        SeverityRange(difficulty=difficulty, start=start, end=end)
        for difficulty, start, end in zip(difficulties, starts, ends)
    ]


def classify_difficulty(raw_xp: int, party_size: int) -> Difficulty:
    """Classify raw (unnormalised) encounter XP for the given party size."""
    return next(severity.difficulty for severity in severity_boundaries(party_size) if raw_xp < severity.end)


def classify_final_experience(total_experience: int, extra_experience: int) -> Difficulty:
    """Classify an already normalised XP award.

    Stored totals include the manual adjustment and are already scaled to a
    four-player party, so the adjustment is removed and the reference
    boundaries apply.
    """
    return classify_difficulty(total_experience - extra_experience, REFERENCE_PARTY_SIZE)


def normalize_for_party_size(raw_xp: int, party_size: int) -> tuple[Difficulty, int]:
    difficulty = classify_difficulty(raw_xp, party_size)
    correction = (party_size - REFERENCE_PARTY_SIZE) * DIFFICULTY_BUDGETS[difficulty].per_extra_player
    return difficulty, raw_xp - correction


def assess_encounter(
    enemies: Iterable[tuple[int, int]],
    hazards: Iterable[tuple[int, bool]],
    party_level: int,
    party_size: int,
) -> EncounterAssessment:
    """Sum roster XP, classify it and apply the party size correction.

    ``enemies`` holds ``(level, level_adjustment)`` pairs and ``hazards`` holds
    ``(level, is_complex)`` pairs. A zero party level or size, or an empty
    roster, is not computable and yields 0 with no difficulty.
    """
    enemies = list(enemies)
    hazards = list(hazards)
    if (not enemies and not hazards) or party_level == 0 or party_size == 0:
        return EncounterAssessment(raw_experience=0, difficulty=None, total_experience=0)

    raw = sum(calculate_enemy_xp(level + adjustment - party_level) for level, adjustment in enemies)
    raw += sum(calculate_hazard_xp(level - party_level, is_complex) for level, is_complex in hazards)

    difficulty, total = normalize_for_party_size(raw, party_size)
    return EncounterAssessment(raw_experience=raw, difficulty=difficulty, total_experience=total)


def compute_encounter_xp(
    enemies: Iterable[tuple[int, int]],
    hazards: Iterable[tuple[int, bool]],
    party_level: int,
    party_size: int,
) -> int:
    return assess_encounter(enemies, hazards, party_level, party_size).total_experience
