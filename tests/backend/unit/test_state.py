from gmtracker.backend.encounter_kind import CombatEncounter, RewardInitializationEncounter
from gmtracker.backend.models import CampaignInitialization, EncounterStatus
from gmtracker.backend.state import build_empty_draft, build_initialization_encounter, utc_now_iso


def test_build_empty_draft_is_an_empty_combat_draft() -> None:
    draft = build_empty_draft()

    assert draft.status == EncounterStatus.DRAFT
    assert draft.kind == CombatEncounter()
    assert draft.total_experience is None


def test_build_initialization_encounter_carries_starting_rewards() -> None:
    seed = build_initialization_encounter(
        CampaignInitialization(experience=2500, gold=120.0, items=(7, 9)),
        session_id="session-1",
    )

    assert isinstance(seed.kind, RewardInitializationEncounter)
    assert seed.session_id == "session-1"
    assert seed.status == EncounterStatus.PREPARED
    assert seed.extra_experience == 2500
    assert seed.treasure_currency == 120.0
    assert seed.treasure_items == (7, 9)
    assert (seed.party_level, seed.party_size) == (1, 1)


def test_utc_now_iso_is_utc() -> None:
    assert utc_now_iso().endswith("+00:00")
