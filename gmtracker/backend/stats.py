"""Treasure valuation and campaign progress reporting."""

from __future__ import annotations

import math
from typing import Iterable, Mapping, Sequence

from .encounter_kind import ACCOMPLISHMENT, COMBAT, SUBSYSTEM, encounter_type_of
from .library import ItemProfile
from .models import Campaign, CampaignSession, CampaignStats, Encounter, EncounterStats, EncounterStatus
from .treasure_curve import PARTY_TREASURE_BY_LEVEL, TreasureByLevel, curve_entry


EXPERIENCE_PER_LEVEL = 1000


def compute_treasure_value(prices: Iterable[float | None], currency: float = 0.0) -> float:
    """Sum item prices plus flat currency; unpriced items count as zero."""
    return float(sum(price for price in prices if price is not None)) + float(currency)


def split_experience(total_xp: int) -> tuple[int, int]:
    """Return (level, experience into that level); negative totals count as zero."""
    return divmod(max(total_xp, 0), EXPERIENCE_PER_LEVEL)


def cumulative_expected_treasure(
    reference_curve: Sequence[TreasureByLevel],
    level: int,
    party_size: int,
) -> float:
    """Expected combined treasure by the time ``level`` has been completed."""
    return float(sum(entry.value_for_party(party_size) for entry in reference_curve if entry.level <= level))


def expected_items_by_end_of_level(
    reference_curve: Sequence[TreasureByLevel],
    level: int,
    consumable: bool,
) -> dict[int, int]:
    """Item counts keyed by item level, summed over curve rows up to ``level``."""
    totals: dict[int, int] = {}
    for entry in reference_curve:
        if entry.level > level:
            continue
        counts = entry.consumable_items_by_level if consumable else entry.permanent_items_by_level
        for item_level, count in counts.items():
            totals[item_level] = totals.get(item_level, 0) + count
    return totals


def round_half_away_from_zero(value: float) -> float:
    return math.copysign(math.floor(abs(value) + 0.5), value)


def interpolate_expected_treasure(
    total_xp: int,
    party_size: int,
    reference_curve: Sequence[TreasureByLevel] = PARTY_TREASURE_BY_LEVEL,
) -> float:
    """Expected treasure at the party's exact point within its current level."""
    start, end = _level_endpoints(total_xp, party_size, reference_curve)
    _, experience_in_level = split_experience(total_xp)
    fraction = experience_in_level / EXPERIENCE_PER_LEVEL
    return round_half_away_from_zero(start + fraction * (end - start))


def build_campaign_stats(
    campaign: Campaign,
    sessions: Sequence[CampaignSession],
    encounters: Sequence[Encounter],
    item_profiles: Mapping[int, ItemProfile] | None = None,
    reference_curve: Sequence[TreasureByLevel] = PARTY_TREASURE_BY_LEVEL,
) -> CampaignStats:
    """Walk a campaign's encounters in session order keeping running totals.

    Drafts and encounters outside the campaign's sessions are ignored.
    ``item_profiles`` supplies level and consumable flag for the item counts;
    items missing from it are not counted.
    """
    item_profiles = item_profiles or {}
    ordered_sessions = sorted(sessions, key=lambda session: (session.session_order, session.id))
    session_ix = {session.id: index for index, session in enumerate(ordered_sessions)}
    campaign_encounters = sorted(
        (
            encounter
            for encounter in encounters
            if encounter.session_id in session_ix and encounter.status != EncounterStatus.DRAFT
        ),
        key=lambda encounter: (session_ix[encounter.session_id or ""], encounter.created_at, encounter.id),
    )

    total_xp = 0
    items_value = 0.0
    currency = 0.0
    type_counts = {ACCOMPLISHMENT: 0, COMBAT: 0, SUBSYSTEM: 0}
    permanent_items: dict[int, int] = {}
    consumable_items: dict[int, int] = {}
    encounter_stats: list[EncounterStats] = []
    for encounter in campaign_encounters:
        encounter_type = encounter_type_of(encounter.kind)
        if encounter_type in type_counts:
            type_counts[encounter_type] += 1
        for item_id in encounter.treasure_items:
            profile = item_profiles.get(item_id)
            if profile is None:
                continue
            counts = consumable_items if profile.consumable else permanent_items
            counts[profile.level] = counts.get(profile.level, 0) + 1
        experience = encounter.total_experience.value
        level_before, _ = split_experience(total_xp)
        expected_row = curve_entry(reference_curve, level_before + 1)
        total_xp += experience
        items_value += encounter.total_items_value.value
        currency += encounter.treasure_currency
        encounter_stats.append(
            EncounterStats(
                encounter_id=encounter.id,
                encounter_type=encounter_type,
                session_id=encounter.session_id or "",
                session_ix=session_ix[encounter.session_id or ""],
                experience=experience,
                accumulated_xp=total_xp,
                accumulated_items_treasure=items_value,
                accumulated_currency_treasure=currency,
                expected_combined_treasure=interpolate_expected_treasure(
                    total_xp, campaign.party_size, reference_curve
                ),
                calculated_expected_total_treasure=(
                    expected_row.value_for_party(campaign.party_size) * experience / EXPERIENCE_PER_LEVEL
                    if expected_row is not None
                    else 0.0
                ),
                pf_expected_total_treasure=(
                    expected_row.encounter_treasure(experience) if expected_row is not None else 0.0
                ),
            )
        )

    level, experience_this_level = split_experience(total_xp)
    start, end = _level_endpoints(total_xp, campaign.party_size, reference_curve)
    return CampaignStats(
        num_sessions=len(ordered_sessions),
        num_encounters=len(campaign_encounters),
        num_accomplishments=type_counts[ACCOMPLISHMENT],
        num_combat_encounters=type_counts[COMBAT],
        num_subsystem_encounters=type_counts[SUBSYSTEM],
        level=level,
        total_xp=total_xp,
        experience_this_level=experience_this_level,
        total_combined_treasure=items_value + currency,
        total_treasure_items_value=items_value,
        total_currency=currency,
        total_expected_combined_treasure=interpolate_expected_treasure(
            total_xp, campaign.party_size, reference_curve
        ),
        total_expected_combined_treasure_start_of_level=start,
        total_expected_combined_treasure_end_of_level=end,
        encounters=encounter_stats,
        total_permanent_items_by_level=permanent_items,
        total_consumable_items_by_level=consumable_items,
        expected_permanent_items_by_end_of_level=expected_items_by_end_of_level(
            reference_curve, level + 1, consumable=False
        ),
        expected_consumable_items_by_end_of_level=expected_items_by_end_of_level(
            reference_curve, level + 1, consumable=True
        ),
    )


def _level_endpoints(
    total_xp: int,
    party_size: int,
    reference_curve: Sequence[TreasureByLevel],
) -> tuple[float, float]:
    level, _ = split_experience(total_xp)
    return (
        cumulative_expected_treasure(reference_curve, level, party_size),
        cumulative_expected_treasure(reference_curve, level + 1, party_size),
    )
