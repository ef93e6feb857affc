"""Domain models for encounter API responses and persistence contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar, Generic, TypeVar, Union

from .encounter_kind import EncounterKind, UnknownEncounter


T = TypeVar("T")


class _WireEnum(IntEnum):
    """Integer-coded enum that travels by name on the wire."""

    @property
    def wire_name(self) -> str:
        return self.name.capitalize()

    @classmethod
    def from_wire(cls, value: str | int) -> "_WireEnum":
        if isinstance(value, bool):
            raise ValueError(f"invalid {cls.__name__}: {value!r}")
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError as exc:
                raise ValueError(f"invalid {cls.__name__} code: {value}") from exc
        try:
            return cls[str(value).upper()]
        except KeyError as exc:
            raise ValueError(f"invalid {cls.__name__}: {value!r}") from exc


class Difficulty(_WireEnum):
    TRIVIAL = 0
    LOW = 1
    MODERATE = 2
    SEVERE = 3
    EXTREME = 4


class EncounterStatus(_WireEnum):
    DRAFT = 0
    PREPARED = 1
    ARCHIVED = 2
    SUCCESS = 3
    FAILURE = 4


@dataclass(frozen=True)
class Computed(Generic[T]):
    value: T
    overridden: ClassVar[bool] = False


@dataclass(frozen=True)
class Overridden(Generic[T]):
    value: T
    overridden: ClassVar[bool] = True


Derived = Union[Computed[T], Overridden[T]]


def resolve_derived(explicit: T | None, computed: T) -> Derived[T]:
    """An explicit value always wins; the computed value is only a default."""
    if explicit is not None:
        return Overridden(explicit)
    return Computed(computed)


@dataclass(frozen=True)
class Currency:
    gold: float = 0.0
    silver: float = 0.0
    copper: float = 0.0

    def as_gold(self) -> float:
        return self.gold + self.silver / 10 + self.copper / 100

    @classmethod
    def from_wire(cls, value: float | int | dict[str, float]) -> "Currency":
        """Accept either a bare gold amount or a {gold, silver, copper} object."""
        if isinstance(value, bool):
            raise ValueError("currency must be a number or an object")
        if isinstance(value, (int, float)):
            return cls(gold=float(value))
        if isinstance(value, dict):
            unknown = set(value) - {"gold", "silver", "copper"}
            if unknown:
                raise ValueError(f"unknown currency denominations: {sorted(unknown)}")
            return cls(
                gold=float(value.get("gold", 0)),
                silver=float(value.get("silver", 0)),
                copper=float(value.get("copper", 0)),
            )
        raise ValueError("currency must be a number or an object")


@dataclass(frozen=True)
class EncounterInput:
    name: str = ""
    description: str = ""
    session_id: str | None = None
    status: EncounterStatus = EncounterStatus.PREPARED
    kind: EncounterKind = field(default_factory=UnknownEncounter)
    party_level: int = 0
    party_size: int = 0
    treasure_items: tuple[int, ...] = ()
    treasure_currency: float = 0.0
    extra_experience: int = 0
    total_experience: int | None = None
    total_items_value: float | None = None


@dataclass(frozen=True)
class EncounterChanges:
    name: str | None = None
    description: str | None = None
    session_id: str | None = None
    clear_session: bool = False
    status: EncounterStatus | None = None
    kind: EncounterKind | None = None
    party_level: int | None = None
    party_size: int | None = None
    treasure_items: tuple[int, ...] | None = None
    treasure_currency: float | None = None
    extra_experience: int | None = None
    total_experience: int | None = None
    total_items_value: float | None = None


@dataclass(frozen=True)
class EncounterRoster:
    """The persisted inputs the derived encounter fields are computed from."""

    kind: EncounterKind
    party_level: int
    party_size: int
    treasure_items: tuple[int, ...]
    treasure_currency: float
    extra_experience: int


@dataclass(frozen=True)
class Encounter:
    id: str
    owner_id: str
    session_id: str | None
    name: str
    description: str
    status: EncounterStatus
    kind: EncounterKind
    party_level: int
    party_size: int
    treasure_items: tuple[int, ...]
    treasure_currency: float
    extra_experience: int
    total_experience: Derived[int]
    total_items_value: Derived[float]
    created_at: str
    updated_at: str

    @property
    def roster(self) -> EncounterRoster:
        return EncounterRoster(
            kind=self.kind,
            party_level=self.party_level,
            party_size=self.party_size,
            treasure_items=self.treasure_items,
            treasure_currency=self.treasure_currency,
            extra_experience=self.extra_experience,
        )


@dataclass(frozen=True)
class EncounterFilters:
    name: str | None = None
    status: EncounterStatus | None = None
    session_id: str | None = None


@dataclass(frozen=True)
class CreatedOwner:
    owner_id: str
    token: str


@dataclass(frozen=True)
class CampaignInitialization:
    experience: int = 0
    gold: float = 0.0
    items: tuple[int, ...] = ()


@dataclass(frozen=True)
class Campaign:
    id: str
    owner_id: str
    name: str
    description: str
    party_size: int


@dataclass(frozen=True)
class CampaignSession:
    id: str
    campaign_id: str
    name: str
    session_order: int


@dataclass(frozen=True)
class EncounterStats:
    encounter_id: str
    encounter_type: str
    session_id: str
    session_ix: int
    experience: int
    accumulated_xp: int
    accumulated_items_treasure: float
    accumulated_currency_treasure: float
    expected_combined_treasure: float
    calculated_expected_total_treasure: float = 0.0
    pf_expected_total_treasure: float = 0.0


@dataclass(frozen=True)
class CampaignStats:
    num_sessions: int
    num_encounters: int
    num_accomplishments: int
    num_combat_encounters: int
    num_subsystem_encounters: int
    level: int
    total_xp: int
    experience_this_level: int
    total_combined_treasure: float
    total_treasure_items_value: float
    total_currency: float
    total_expected_combined_treasure: float
    total_expected_combined_treasure_start_of_level: float
    total_expected_combined_treasure_end_of_level: float
    encounters: list[EncounterStats]
    total_permanent_items_by_level: dict[int, int] = field(default_factory=dict)
    total_consumable_items_by_level: dict[int, int] = field(default_factory=dict)
    expected_permanent_items_by_end_of_level: dict[int, int] = field(default_factory=dict)
    expected_consumable_items_by_end_of_level: dict[int, int] = field(default_factory=dict)
