import pytest

from gmtracker.backend.encounter_kind import AccomplishmentEncounter, CombatEncounter
from gmtracker.backend.library import ItemProfile
from gmtracker.backend.models import (
    Campaign,
    CampaignSession,
    Computed,
    Encounter,
    EncounterStatus,
    Overridden,
)
from gmtracker.backend.stats import (
    build_campaign_stats,
    compute_treasure_value,
    cumulative_expected_treasure,
    interpolate_expected_treasure,
    round_half_away_from_zero,
    split_experience,
)
from gmtracker.backend.treasure_curve import PARTY_TREASURE_BY_LEVEL, TreasureByLevel


def _encounter(
    encounter_id: str,
    session_id: str,
    kind,
    experience: int,
    items_value: float = 0.0,
    currency: float = 0.0,
    status: EncounterStatus = EncounterStatus.SUCCESS,
    created_at: str = "2024-01-01T00:00:00+00:00",
    treasure_items: tuple[int, ...] = (),
) -> Encounter:
    return Encounter(
        id=encounter_id,
        owner_id="owner-1",
        session_id=session_id,
        name=encounter_id,
        description="",
        status=status,
        kind=kind,
        party_level=1,
        party_size=4,
        treasure_items=treasure_items,
        treasure_currency=currency,
        extra_experience=0,
        total_experience=Computed(experience),
        total_items_value=Overridden(items_value),
        created_at=created_at,
        updated_at=created_at,
    )


def test_compute_treasure_value_treats_unpriced_items_as_zero() -> None:
    assert compute_treasure_value([10.0, None, 5.5], 2.0) == 17.5
    assert compute_treasure_value([]) == 0.0


def test_split_experience_clamps_negative_totals() -> None:
    assert split_experience(2350) == (2, 350)
    assert split_experience(-200) == (0, 0)


def test_round_half_away_from_zero() -> None:
    assert round_half_away_from_zero(2.5) == 3
    assert round_half_away_from_zero(-2.5) == -3
    assert round_half_away_from_zero(2.4) == 2


def test_cumulative_expected_treasure_adjusts_for_party_size() -> None:
    assert cumulative_expected_treasure(PARTY_TREASURE_BY_LEVEL, 0, 4) == 0
    assert cumulative_expected_treasure(PARTY_TREASURE_BY_LEVEL, 2, 4) == 475
    assert cumulative_expected_treasure(PARTY_TREASURE_BY_LEVEL, 2, 5) == 475 + 10 + 18


def test_interpolate_expected_treasure_within_level() -> None:
    assert interpolate_expected_treasure(0, 4) == 0
    assert interpolate_expected_treasure(500, 4) == 88
    assert interpolate_expected_treasure(1000, 4) == 175
    assert interpolate_expected_treasure(1500, 5) == 344


def test_interpolate_expected_treasure_saturates_past_the_curve() -> None:
    ceiling = cumulative_expected_treasure(PARTY_TREASURE_BY_LEVEL, 20, 4)

    assert interpolate_expected_treasure(25_000, 4) == ceiling
    assert interpolate_expected_treasure(30_500, 4) == ceiling


def test_interpolate_expected_treasure_accepts_custom_curve() -> None:
    curve = (TreasureByLevel(1, 100, 0), TreasureByLevel(2, 200, 0))

    assert interpolate_expected_treasure(1250, 4, curve) == 150


def test_interpolate_expected_treasure_treats_negative_xp_as_zero() -> None:
    assert interpolate_expected_treasure(-500, 4) == 0


def test_build_campaign_stats_orders_by_session_and_skips_drafts() -> None:
    campaign = Campaign(id="camp-1", owner_id="owner-1", name="Abomination Vaults", description="", party_size=4)
    sessions = [
        CampaignSession(id="s-late", campaign_id="camp-1", name="Second", session_order=2),
        CampaignSession(id="s-early", campaign_id="camp-1", name="First", session_order=1),
    ]
    encounters = [
        _encounter("fight", "s-late", CombatEncounter(), 400, items_value=50.0, currency=10.0),
        _encounter("deed", "s-early", AccomplishmentEncounter(), 30),
        _encounter("draft", "s-early", CombatEncounter(), 999, status=EncounterStatus.DRAFT),
        _encounter("elsewhere", "s-other", CombatEncounter(), 999),
    ]

    stats = build_campaign_stats(campaign, sessions, encounters)

    assert [entry.encounter_id for entry in stats.encounters] == ["deed", "fight"]
    assert [entry.session_ix for entry in stats.encounters] == [0, 1]
    assert [entry.accumulated_xp for entry in stats.encounters] == [30, 430]
    assert stats.num_sessions == 2
    assert stats.num_encounters == 2
    assert stats.num_accomplishments == 1
    assert stats.num_combat_encounters == 1
    assert stats.num_subsystem_encounters == 0
    assert stats.level == 0
    assert stats.total_xp == 430
    assert stats.experience_this_level == 430
    assert stats.total_treasure_items_value == 50.0
    assert stats.total_currency == 10.0
    assert stats.total_combined_treasure == 60.0
    assert stats.total_expected_combined_treasure == 75
    assert stats.total_expected_combined_treasure_start_of_level == 0
    assert stats.total_expected_combined_treasure_end_of_level == 175


def test_build_campaign_stats_for_empty_campaign() -> None:
    campaign = Campaign(id="camp-1", owner_id="owner-1", name="Fresh", description="", party_size=4)

    stats = build_campaign_stats(campaign, [], [])

    assert stats.num_sessions == 0
    assert stats.total_xp == 0
    assert stats.encounters == []
    assert stats.total_expected_combined_treasure == pytest.approx(0)


def test_build_campaign_stats_reports_expected_treasure_per_encounter() -> None:
    campaign = Campaign(id="camp-1", owner_id="owner-1", name="Outlaws", description="", party_size=4)
    sessions = [CampaignSession(id="s-1", campaign_id="camp-1", name="One", session_order=1)]
    encounters = [
        _encounter("skirmish", "s-1", CombatEncounter(), 60, created_at="2024-01-01T00:00:00+00:00"),
        _encounter("boss", "s-1", CombatEncounter(), 1000, created_at="2024-01-02T00:00:00+00:00"),
        _encounter("ambush", "s-1", CombatEncounter(), 120, created_at="2024-01-03T00:00:00+00:00"),
    ]

    stats = build_campaign_stats(campaign, sessions, encounters)

    calculated = [entry.calculated_expected_total_treasure for entry in stats.encounters]
    assert calculated == [pytest.approx(10.5), pytest.approx(175.0), pytest.approx(36.0)]
    assert [entry.pf_expected_total_treasure for entry in stats.encounters] == [18, 35, 60]


def test_build_campaign_stats_counts_items_by_level() -> None:
    campaign = Campaign(id="camp-1", owner_id="owner-1", name="Outlaws", description="", party_size=4)
    sessions = [CampaignSession(id="s-1", campaign_id="camp-1", name="One", session_order=1)]
    encounters = [
        _encounter("loot", "s-1", CombatEncounter(), 600, treasure_items=(1, 2)),
        _encounter("vault", "s-1", CombatEncounter(), 580, treasure_items=(1, 99)),
    ]
    profiles = {
        1: ItemProfile(price=20.0, level=2, consumable=False),
        2: ItemProfile(price=4.0, level=1, consumable=True),
    }

    stats = build_campaign_stats(campaign, sessions, encounters, profiles)

    assert stats.level == 1
    assert stats.total_permanent_items_by_level == {2: 2}
    assert stats.total_consumable_items_by_level == {1: 1}
    assert stats.expected_permanent_items_by_end_of_level == {1: 2, 2: 4, 3: 2}
    assert stats.expected_consumable_items_by_end_of_level == {1: 5, 2: 4, 3: 2}


def test_build_campaign_stats_without_item_profiles_counts_nothing() -> None:
    campaign = Campaign(id="camp-1", owner_id="owner-1", name="Outlaws", description="", party_size=4)
    sessions = [CampaignSession(id="s-1", campaign_id="camp-1", name="One", session_order=1)]
    encounters = [_encounter("loot", "s-1", CombatEncounter(), 40, treasure_items=(1,))]

    stats = build_campaign_stats(campaign, sessions, encounters)

    assert stats.total_permanent_items_by_level == {}
    assert stats.total_consumable_items_by_level == {}
    assert stats.expected_permanent_items_by_end_of_level == {2: 2, 1: 2}
