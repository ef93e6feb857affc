"""Builders for freshly created encounters and timestamps."""

from __future__ import annotations

from datetime import datetime, timezone

from .encounter_kind import CombatEncounter, RewardInitializationEncounter
from .models import CampaignInitialization, EncounterInput, EncounterStatus


INITIALIZATION_ENCOUNTER_NAME = "Initialization encounter"
INITIAL_SESSION_NAME = "Untitled session"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_empty_draft() -> EncounterInput:
    """Return the blank draft handed out when an owner has none yet."""
    return EncounterInput(status=EncounterStatus.DRAFT, kind=CombatEncounter())


def build_initialization_encounter(initialization: CampaignInitialization, session_id: str) -> EncounterInput:
    """Seed a campaign's first session with the rewards it starts with."""
    return EncounterInput(
        name=INITIALIZATION_ENCOUNTER_NAME,
        description="Experience, gold and items the party held when the campaign was created.",
        session_id=session_id,
        status=EncounterStatus.PREPARED,
        kind=RewardInitializationEncounter(),
        party_level=1,
        party_size=1,
        treasure_items=initialization.items,
        treasure_currency=initialization.gold,
        extra_experience=initialization.experience,
    )
