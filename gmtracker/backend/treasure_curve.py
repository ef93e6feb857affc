"""Reference curve of treasure a typical party earns per level."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Sequence


MIN_CURVE_LEVEL = 1
MAX_CURVE_LEVEL = 20

# Encounter XP below each threshold earns the matching tier; anything above is extreme.
ENCOUNTER_TIER_THRESHOLDS = (40, 80, 120)


@dataclass(frozen=True)
class TreasureByLevel:
    level: int
    total_value: float
    currency_per_additional_player: float
    encounter_low: float = 0.0
    encounter_moderate: float = 0.0
    encounter_severe: float = 0.0
    encounter_extreme: float = 0.0
    permanent_items_by_level: Mapping[int, int] = field(default_factory=dict, compare=False, hash=False)
    consumable_items_by_level: Mapping[int, int] = field(default_factory=dict, compare=False, hash=False)

    def value_for_party(self, party_size: int, reference_party_size: int = 4) -> float:
        return self.total_value + (party_size - reference_party_size) * self.currency_per_additional_player

    def encounter_treasure(self, experience: int) -> float:
        """Treasure for a single encounter, picked by the encounter's XP tier."""
        low, moderate, severe = ENCOUNTER_TIER_THRESHOLDS
        if experience < low:
            return self.encounter_low
        if experience < moderate:
            return self.encounter_moderate
        if experience < severe:
            return self.encounter_severe
        return self.encounter_extreme


def curve_entry(reference_curve: Sequence[TreasureByLevel], level: int) -> TreasureByLevel | None:
    """Return the row for ``level``, clamped to the levels the curve covers."""
    if not reference_curve:
        return None
    levels = [entry.level for entry in reference_curve]
    clamped = min(max(level, min(levels)), max(levels))
    for entry in reference_curve:
        if entry.level == clamped:
            return entry
    return None


def _items(level: int) -> tuple[dict[int, int], dict[int, int]]:
    if level == MIN_CURVE_LEVEL:
        return {2: 2, 1: 2}, {2: 2, 1: 3}
    if level == MAX_CURVE_LEVEL:
        return {20: 4}, {20: 4}
    return {level + 1: 2, level: 2}, {level + 1: 2, level: 2, level - 1: 2}


def _row(
    level: int,
    total_value: float,
    per_player: float,
    low: float,
    moderate: float,
    severe: float,
    extreme: float,
) -> TreasureByLevel:
    permanent, consumable = _items(level)
    return TreasureByLevel(
        level=level,
        total_value=total_value,
        currency_per_additional_player=per_player,
        encounter_low=low,
        encounter_moderate=moderate,
        encounter_severe=severe,
        encounter_extreme=extreme,
        permanent_items_by_level=permanent,
        consumable_items_by_level=consumable,
    )


# Pathfinder 2e "Party Treasure by Level" and "Treasure by Encounter",
# gold pieces for a party of four.
PARTY_TREASURE_BY_LEVEL: tuple[TreasureByLevel, ...] = (
    _row(1, 175, 10, 13, 18, 26, 35),
    _row(2, 300, 18, 23, 30, 45, 60),
    _row(3, 500, 30, 38, 50, 75, 100),
    _row(4, 850, 50, 65, 85, 130, 170),
    _row(5, 1350, 80, 100, 135, 200, 270),
    _row(6, 2000, 125, 150, 200, 300, 400),
    _row(7, 2900, 180, 220, 290, 440, 580),
    _row(8, 4000, 250, 300, 400, 600, 800),
    _row(9, 5700, 350, 430, 570, 860, 1140),
    _row(10, 8000, 500, 600, 800, 1200, 1600),
    _row(11, 11500, 700, 865, 1150, 1725, 2300),
    _row(12, 16500, 1000, 1250, 1650, 2475, 3300),
    _row(13, 25000, 1500, 1875, 2500, 3750, 5000),
    _row(14, 36500, 2250, 2750, 3650, 5500, 7300),
    _row(15, 54500, 3250, 4100, 5450, 8200, 10900),
    _row(16, 82500, 5000, 6200, 8250, 12400, 16500),
    _row(17, 128000, 7500, 9600, 12800, 19200, 25600),
    _row(18, 208000, 12000, 15600, 20800, 31200, 41600),
    _row(19, 355000, 20000, 26600, 35500, 53250, 71000),
    _row(20, 490000, 35000, 36800, 49000, 73500, 98000),
)
