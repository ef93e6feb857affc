"""Backend package for the GM encounter tracker."""

from .config import BackendSettings, configure_logging, load_settings
from .engine import classify_difficulty, compute_encounter_xp, severity_boundaries
from .library import InMemoryLibrary, LibraryLookup, PostgresLibrary
from .security import generate_token, hash_token, verify_token
from .stats import build_campaign_stats, compute_treasure_value, interpolate_expected_treasure
from .store import EncounterStore, InMemoryEncounterStore, PostgresEncounterStore, create_store

__all__ = [
    "BackendSettings",
    "build_campaign_stats",
    "classify_difficulty",
    "compute_encounter_xp",
    "compute_treasure_value",
    "configure_logging",
    "create_store",
    "EncounterStore",
    "generate_token",
    "hash_token",
    "InMemoryEncounterStore",
    "InMemoryLibrary",
    "interpolate_expected_treasure",
    "LibraryLookup",
    "load_settings",
    "PostgresEncounterStore",
    "PostgresLibrary",
    "severity_boundaries",
    "verify_token",
]
