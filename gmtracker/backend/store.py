"""Persistence interfaces and implementations for encounter data."""

from __future__ import annotations

import json
import logging
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Protocol, Sequence

from .encounter_kind import ENCOUNTER_TYPE_IDS, encounter_kind_from_dict, encounter_kind_to_dict, encounter_type_of
from .encounters import EncounterEvaluation, apply_changes, build_encounter, evaluate_roster
from .library import InMemoryLibrary, LibraryLookup, PostgresLibrary
from .models import (
    Campaign,
    CampaignInitialization,
    CampaignSession,
    CampaignStats,
    Computed,
    CreatedOwner,
    Derived,
    Encounter,
    EncounterChanges,
    EncounterFilters,
    EncounterInput,
    EncounterRoster,
    EncounterStatus,
    Overridden,
)
from .security import generate_token, hash_token, verify_token
from .state import INITIAL_SESSION_NAME, build_empty_draft, build_initialization_encounter, utc_now_iso
from .stats import build_campaign_stats


logger = logging.getLogger(__name__)


class EncounterStore(Protocol):
    library: LibraryLookup

    def register_owner(self) -> CreatedOwner:
        """Create an owner and return its id with a fresh raw token."""

    def resolve_owner(self, raw_token: str) -> str | None:
        """Return the owner id for a valid token."""

    def create_campaign(
        self,
        owner_id: str,
        name: str,
        description: str,
        party_size: int,
        initialization: CampaignInitialization | None = None,
    ) -> Campaign:
        """Create a campaign with its first session, seeded from initialization."""

    def list_campaigns(self, owner_id: str) -> list[Campaign]:
        """Return the owner's campaigns."""

    def create_session(self, owner_id: str, campaign_id: str, name: str) -> CampaignSession | None:
        """Append a session to an owned campaign."""

    def delete_session(self, owner_id: str, session_id: str) -> bool:
        """Delete an owned session together with its encounters."""

    def insert_encounters(self, owner_id: str, encounters: Sequence[EncounterInput]) -> list[Encounter] | None:
        """Insert non-draft encounters; None when a referenced session is not owned."""

    def get_encounters(self, owner_id: str, filters: EncounterFilters) -> list[Encounter]:
        """Return the owner's non-draft encounters matching filters."""

    def get_encounter(self, owner_id: str, encounter_id: str) -> Encounter | None:
        """Return one owned encounter."""

    def edit_encounter(self, owner_id: str, encounter_id: str, changes: EncounterChanges) -> Encounter | None:
        """Apply a partial edit and recompute derived fields."""

    def delete_encounter(self, owner_id: str, encounter_id: str) -> bool:
        """Delete one owned encounter."""

    def load_encounter_roster(self, encounter_id: str) -> EncounterRoster | None:
        """Return the inputs the derived fields are computed from."""

    def save_encounter_derived(self, encounter_id: str, total_experience: int, total_items_value: float) -> bool:
        """Store computed totals; explicitly overridden fields are left alone."""

    def get_draft(self, owner_id: str) -> Encounter:
        """Return the owner's draft, creating an empty one when missing."""

    def replace_draft(self, owner_id: str, draft: EncounterInput) -> Encounter:
        """Atomically replace the owner's draft."""

    def clear_draft(self, owner_id: str) -> None:
        """Discard the owner's draft."""

    def promote_draft(self, owner_id: str, session_id: str | None = None) -> Encounter | None:
        """Turn the owner's draft into a prepared encounter."""

    def get_campaign_stats(self, owner_id: str, campaign_id: str) -> CampaignStats | None:
        """Return expected-vs-actual progress for an owned campaign."""


def recompute_encounter(store: EncounterStore, encounter_id: str) -> EncounterEvaluation | None:
    """Re-run the aggregator against fresh library data and persist the result."""
    roster = store.load_encounter_roster(encounter_id)
    if roster is None:
        return None
    evaluation = evaluate_roster(roster, store.library)
    store.save_encounter_derived(encounter_id, evaluation.total_experience, evaluation.total_items_value)
    return evaluation


def _ensure_not_draft(data: EncounterInput) -> None:
    if data.status == EncounterStatus.DRAFT:
        raise ValueError("drafts are managed through replace_draft")


@dataclass
class InMemoryEncounterStore:
    server_salt: str
    library: LibraryLookup = field(default_factory=InMemoryLibrary)

    def __post_init__(self) -> None:
        self._lock = threading.Lock()
        self._owners: dict[str, str] = {}
        self._campaigns: dict[str, Campaign] = {}
        self._sessions: dict[str, CampaignSession] = {}
        self._encounters: dict[str, Encounter] = {}
        self._drafts: dict[str, Encounter] = {}

    def register_owner(self) -> CreatedOwner:
        owner_id = str(uuid.uuid4())
        token = generate_token()
        with self._lock:
            self._owners[owner_id] = hash_token(token, self.server_salt)
        return CreatedOwner(owner_id=owner_id, token=token)

    def resolve_owner(self, raw_token: str) -> str | None:
        with self._lock:
            owners = list(self._owners.items())
        for owner_id, token_hash in owners:
            if verify_token(raw_token, token_hash, self.server_salt):
                return owner_id
        return None

    def create_campaign(
        self,
        owner_id: str,
        name: str,
        description: str,
        party_size: int,
        initialization: CampaignInitialization | None = None,
    ) -> Campaign:
        campaign = Campaign(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            name=name,
            description=description,
            party_size=party_size,
        )
        session = CampaignSession(id=str(uuid.uuid4()), campaign_id=campaign.id, name=INITIAL_SESSION_NAME, session_order=1)
        with self._lock:
            self._campaigns[campaign.id] = campaign
            self._sessions[session.id] = session
            if initialization is not None:
                seed = build_encounter(
                    encounter_id=str(uuid.uuid4()),
                    owner_id=owner_id,
                    data=build_initialization_encounter(initialization, session.id),
                    library=self.library,
                    now=utc_now_iso(),
                )
                self._encounters[seed.id] = seed
        logger.info("created campaign %s for owner %s", campaign.id, owner_id)
        return campaign

    def list_campaigns(self, owner_id: str) -> list[Campaign]:
        with self._lock:
            campaigns = list(self._campaigns.values())
        return [campaign for campaign in campaigns if campaign.owner_id == owner_id]

    def create_session(self, owner_id: str, campaign_id: str, name: str) -> CampaignSession | None:
        with self._lock:
            campaign = self._campaigns.get(campaign_id)
            if campaign is None or campaign.owner_id != owner_id:
                return None
            orders = [session.session_order for session in self._sessions.values() if session.campaign_id == campaign_id]
            session = CampaignSession(
                id=str(uuid.uuid4()),
                campaign_id=campaign_id,
                name=name,
                session_order=max(orders, default=0) + 1,
            )
            self._sessions[session.id] = session
        return session

    def delete_session(self, owner_id: str, session_id: str) -> bool:
        with self._lock:
            if not self._owns_session(owner_id, session_id):
                return False
            del self._sessions[session_id]
            doomed = [encounter.id for encounter in self._encounters.values() if encounter.session_id == session_id]
            for encounter_id in doomed:
                del self._encounters[encounter_id]
        logger.info("deleted session %s and %d encounters", session_id, len(doomed))
        return True

    def insert_encounters(self, owner_id: str, encounters: Sequence[EncounterInput]) -> list[Encounter] | None:
        for data in encounters:
            _ensure_not_draft(data)
        now = utc_now_iso()
        with self._lock:
            if any(data.session_id is not None and not self._owns_session(owner_id, data.session_id) for data in encounters):
                return None
            created = [
                build_encounter(encounter_id=str(uuid.uuid4()), owner_id=owner_id, data=data, library=self.library, now=now)
                for data in encounters
            ]
            for encounter in created:
                self._encounters[encounter.id] = encounter
        return created

    def get_encounters(self, owner_id: str, filters: EncounterFilters) -> list[Encounter]:
        with self._lock:
            encounters = list(self._encounters.values())
        name = filters.name.casefold() if filters.name is not None else None
        return [
            encounter
            for encounter in encounters
            if encounter.owner_id == owner_id
            and (name is None or name in encounter.name.casefold())
            and (filters.status is None or encounter.status == filters.status)
            and (filters.session_id is None or encounter.session_id == filters.session_id)
        ]

    def get_encounter(self, owner_id: str, encounter_id: str) -> Encounter | None:
        with self._lock:
            encounter = self._encounters.get(encounter_id)
        if encounter is None or encounter.owner_id != owner_id:
            return None
        return encounter

    def edit_encounter(self, owner_id: str, encounter_id: str, changes: EncounterChanges) -> Encounter | None:
        if changes.status == EncounterStatus.DRAFT:
            raise ValueError("drafts are managed through replace_draft")
        with self._lock:
            encounter = self._encounters.get(encounter_id)
            if encounter is None or encounter.owner_id != owner_id:
                return None
            if changes.session_id is not None and not self._owns_session(owner_id, changes.session_id):
                return None
            updated = apply_changes(encounter, changes, self.library, utc_now_iso())
            self._encounters[encounter_id] = updated
        return updated

    def delete_encounter(self, owner_id: str, encounter_id: str) -> bool:
        with self._lock:
            encounter = self._encounters.get(encounter_id)
            if encounter is None or encounter.owner_id != owner_id:
                return False
            del self._encounters[encounter_id]
        return True

    def load_encounter_roster(self, encounter_id: str) -> EncounterRoster | None:
        with self._lock:
            encounter = self._encounters.get(encounter_id)
        return encounter.roster if encounter is not None else None

    def save_encounter_derived(self, encounter_id: str, total_experience: int, total_items_value: float) -> bool:
        with self._lock:
            encounter = self._encounters.get(encounter_id)
            if encounter is None:
                return False
            self._encounters[encounter_id] = replace(
                encounter,
                total_experience=_keep_override(encounter.total_experience, total_experience),
                total_items_value=_keep_override(encounter.total_items_value, total_items_value),
                updated_at=utc_now_iso(),
            )
        return True

    def get_draft(self, owner_id: str) -> Encounter:
        with self._lock:
            draft = self._drafts.get(owner_id)
            if draft is None:
                draft = self._new_draft(owner_id, build_empty_draft())
                self._drafts[owner_id] = draft
        return draft

    def replace_draft(self, owner_id: str, draft: EncounterInput) -> Encounter:
        new_draft = self._new_draft(owner_id, draft)
        with self._lock:
            previous = self._drafts.get(owner_id)
            self._drafts[owner_id] = new_draft
        if previous is not None:
            logger.debug("replaced draft %s with %s for owner %s", previous.id, new_draft.id, owner_id)
        return new_draft

    def clear_draft(self, owner_id: str) -> None:
        with self._lock:
            self._drafts.pop(owner_id, None)

    def promote_draft(self, owner_id: str, session_id: str | None = None) -> Encounter | None:
        with self._lock:
            draft = self._drafts.get(owner_id)
            if draft is None:
                return None
            if session_id is not None and not self._owns_session(owner_id, session_id):
                return None
            promoted = replace(
                draft,
                status=EncounterStatus.PREPARED,
                session_id=session_id if session_id is not None else draft.session_id,
                updated_at=utc_now_iso(),
            )
            del self._drafts[owner_id]
            self._encounters[promoted.id] = promoted
        logger.info("promoted draft %s for owner %s", promoted.id, owner_id)
        return promoted

    def get_campaign_stats(self, owner_id: str, campaign_id: str) -> CampaignStats | None:
        with self._lock:
            campaign = self._campaigns.get(campaign_id)
            if campaign is None or campaign.owner_id != owner_id:
                return None
            sessions = [session for session in self._sessions.values() if session.campaign_id == campaign_id]
            session_ids = {session.id for session in sessions}
            encounters = [encounter for encounter in self._encounters.values() if encounter.session_id in session_ids]
        item_ids = [item_id for encounter in encounters for item_id in encounter.treasure_items]
        return build_campaign_stats(campaign, sessions, encounters, self.library.item_profiles(item_ids))

    def _new_draft(self, owner_id: str, data: EncounterInput) -> Encounter:
        return build_encounter(
            encounter_id=str(uuid.uuid4()),
            owner_id=owner_id,
            data=replace(data, status=EncounterStatus.DRAFT),
            library=self.library,
            now=utc_now_iso(),
        )

    def _owns_session(self, owner_id: str, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        campaign = self._campaigns.get(session.campaign_id)
        return campaign is not None and campaign.owner_id == owner_id


def _keep_override(current: Derived[Any], computed: Any) -> Derived[Any]:
    if isinstance(current, Overridden):
        return current
    return Computed(computed)


_ENCOUNTER_COLUMNS = """
    e.id, e.owner_id, e.session_id, e.name, e.description, e.status, e.encounter_kind,
    e.party_level, e.party_size, e.treasure_items, e.treasure_currency, e.extra_experience,
    e.total_experience, e.total_experience_overridden, e.total_items_value,
    e.total_items_value_overridden, e.created_at, e.updated_at
"""


def _iso(value: Any) -> str:
    return value.isoformat() if isinstance(value, datetime) else str(value)


def _row_to_encounter(row: Sequence[Any]) -> Encounter:
    kind_json = row[6] if isinstance(row[6], dict) else json.loads(row[6])
    total_experience: Derived[int] = Overridden(int(row[12])) if row[13] else Computed(int(row[12]))
    total_items_value: Derived[float] = Overridden(float(row[14])) if row[15] else Computed(float(row[14]))
    return Encounter(
        id=str(row[0]),
        owner_id=str(row[1]),
        session_id=str(row[2]) if row[2] is not None else None,
        name=row[3],
        description=row[4] or "",
        status=EncounterStatus(int(row[5])),
        kind=encounter_kind_from_dict(kind_json),
        party_level=int(row[7]),
        party_size=int(row[8]),
        treasure_items=tuple(int(item) for item in (row[9] or [])),
        treasure_currency=float(row[10] or 0),
        extra_experience=int(row[11]),
        total_experience=total_experience,
        total_items_value=total_items_value,
        created_at=_iso(row[16]),
        updated_at=_iso(row[17]),
    )


def _encounter_params(encounter: Encounter) -> tuple:
    return (
        encounter.id,
        encounter.owner_id,
        encounter.session_id,
        encounter.name,
        encounter.description,
        int(encounter.status),
        ENCOUNTER_TYPE_IDS[encounter_type_of(encounter.kind)],
        json.dumps(encounter_kind_to_dict(encounter.kind)),
        encounter.party_level,
        encounter.party_size,
        list(encounter.treasure_items),
        encounter.treasure_currency,
        encounter.extra_experience,
        encounter.total_experience.value,
        encounter.total_experience.overridden,
        encounter.total_items_value.value,
        encounter.total_items_value.overridden,
        encounter.created_at,
        encounter.updated_at,
    )


_INSERT_ENCOUNTER_SQL = """
    INSERT INTO encounters (
        id, owner_id, session_id, name, description, status, encounter_type_id, encounter_kind,
        party_level, party_size, treasure_items, treasure_currency, extra_experience,
        total_experience, total_experience_overridden, total_items_value,
        total_items_value_overridden, created_at, updated_at
    )
    VALUES (%s, %s, %s, %s, %s, %s, %s, %s::jsonb, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
"""

_UPDATE_ENCOUNTER_SQL = """
    UPDATE encounters
    SET session_id = %s, name = %s, description = %s, status = %s, encounter_type_id = %s,
        encounter_kind = %s::jsonb, party_level = %s, party_size = %s, treasure_items = %s,
        treasure_currency = %s, extra_experience = %s, total_experience = %s,
        total_experience_overridden = %s, total_items_value = %s,
        total_items_value_overridden = %s, updated_at = %s
    WHERE id = %s
"""


def _update_params(encounter: Encounter) -> tuple:
    # Everything after id and owner_id, without created_at, then the id for WHERE.
    params = _encounter_params(encounter)
    return params[2:17] + (encounter.updated_at, encounter.id)


# Serialises draft writers per owner; the partial unique index is only a backstop.
_LOCK_OWNER_SQL = "SELECT id FROM owners WHERE id = %s FOR UPDATE"

_SELECT_DRAFT_SQL = f"SELECT {_ENCOUNTER_COLUMNS} FROM encounters e WHERE e.owner_id = %s AND e.status = %s"

_OWNED_SESSION_SQL = """
    SELECT s.id
    FROM campaign_sessions s
    JOIN campaigns c ON c.id = s.campaign_id
    WHERE s.id = %s AND c.owner_id = %s
"""


@dataclass
class PostgresEncounterStore:
    database_url: str
    server_salt: str
    library: LibraryLookup = field(init=False)

    def __post_init__(self) -> None:
        self.library = PostgresLibrary(database_url=self.database_url)

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url)

    def register_owner(self) -> CreatedOwner:
        owner_id = str(uuid.uuid4())
        token = generate_token()
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "INSERT INTO owners (id, token_hash, created_at) VALUES (%s, %s, now())",
                    (owner_id, hash_token(token, self.server_salt)),
                )
            conn.commit()
        return CreatedOwner(owner_id=owner_id, token=token)

    def resolve_owner(self, raw_token: str) -> str | None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT id FROM owners WHERE token_hash = %s", (hash_token(raw_token, self.server_salt),))
                row = cur.fetchone()
        return str(row[0]) if row is not None else None

    def create_campaign(
        self,
        owner_id: str,
        name: str,
        description: str,
        party_size: int,
        initialization: CampaignInitialization | None = None,
    ) -> Campaign:
        campaign = Campaign(id=str(uuid.uuid4()), owner_id=owner_id, name=name, description=description, party_size=party_size)
        session_id = str(uuid.uuid4())
        with self._connect() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        INSERT INTO campaigns (id, owner_id, name, description, party_size)
                        VALUES (%s, %s, %s, %s, %s)
                        """,
                        (campaign.id, owner_id, name, description, party_size),
                    )
                    cur.execute(
                        """
                        INSERT INTO campaign_sessions (id, campaign_id, name, session_order)
                        VALUES (%s, %s, %s, 1)
                        """,
                        (session_id, campaign.id, INITIAL_SESSION_NAME),
                    )
                    if initialization is not None:
                        seed = build_encounter(
                            encounter_id=str(uuid.uuid4()),
                            owner_id=owner_id,
                            data=build_initialization_encounter(initialization, session_id),
                            library=self.library,
                            now=utc_now_iso(),
                        )
                        cur.execute(_INSERT_ENCOUNTER_SQL, _encounter_params(seed))
        logger.info("created campaign %s for owner %s", campaign.id, owner_id)
        return campaign

    def list_campaigns(self, owner_id: str) -> list[Campaign]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT id, owner_id, name, description, party_size FROM campaigns WHERE owner_id = %s ORDER BY name",
                    (owner_id,),
                )
                rows = cur.fetchall()
        return [_row_to_campaign(row) for row in rows]

    def create_session(self, owner_id: str, campaign_id: str, name: str) -> CampaignSession | None:
        session_id = str(uuid.uuid4())
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO campaign_sessions (id, campaign_id, name, session_order)
                    SELECT %s, c.id, %s, COALESCE(MAX(s.session_order), 0) + 1
                    FROM campaigns c
                    LEFT JOIN campaign_sessions s ON s.campaign_id = c.id
                    WHERE c.id = %s AND c.owner_id = %s
                    GROUP BY c.id
                    RETURNING session_order
                    """,
                    (session_id, name, campaign_id, owner_id),
                )
                row = cur.fetchone()
            conn.commit()
        if row is None:
            return None
        return CampaignSession(id=session_id, campaign_id=campaign_id, name=name, session_order=int(row[0]))

    def delete_session(self, owner_id: str, session_id: str) -> bool:
        # encounters follow through ON DELETE CASCADE
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    DELETE FROM campaign_sessions
                    WHERE id = %s
                      AND campaign_id IN (SELECT id FROM campaigns WHERE owner_id = %s)
                    """,
                    (session_id, owner_id),
                )
                deleted = cur.rowcount
            conn.commit()
        return deleted > 0

    def insert_encounters(self, owner_id: str, encounters: Sequence[EncounterInput]) -> list[Encounter] | None:
        for data in encounters:
            _ensure_not_draft(data)
        now = utc_now_iso()
        created = [
            build_encounter(encounter_id=str(uuid.uuid4()), owner_id=owner_id, data=data, library=self.library, now=now)
            for data in encounters
        ]
        with self._connect() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    for session_id in {data.session_id for data in encounters if data.session_id is not None}:
                        cur.execute(_OWNED_SESSION_SQL, (session_id, owner_id))
                        if cur.fetchone() is None:
                            return None
                    for encounter in created:
                        cur.execute(_INSERT_ENCOUNTER_SQL, _encounter_params(encounter))
        return created

    def get_encounters(self, owner_id: str, filters: EncounterFilters) -> list[Encounter]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    SELECT {_ENCOUNTER_COLUMNS}
                    FROM encounters e
                    WHERE e.owner_id = %s
                      AND e.status <> %s
                      AND (%s::text IS NULL OR e.name ILIKE '%%' || %s || '%%')
                      AND (%s::integer IS NULL OR e.status = %s)
                      AND (%s::text IS NULL OR e.session_id = %s)
                    ORDER BY e.created_at, e.id
                    """,
                    (
                        owner_id,
                        int(EncounterStatus.DRAFT),
                        filters.name,
                        filters.name,
                        _status_code(filters.status),
                        _status_code(filters.status),
                        filters.session_id,
                        filters.session_id,
                    ),
                )
                rows = cur.fetchall()
        return [_row_to_encounter(row) for row in rows]

    def get_encounter(self, owner_id: str, encounter_id: str) -> Encounter | None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT {_ENCOUNTER_COLUMNS} FROM encounters e WHERE e.id = %s AND e.owner_id = %s AND e.status <> %s",
                    (encounter_id, owner_id, int(EncounterStatus.DRAFT)),
                )
                row = cur.fetchone()
        return _row_to_encounter(row) if row is not None else None

    def edit_encounter(self, owner_id: str, encounter_id: str, changes: EncounterChanges) -> Encounter | None:
        if changes.status == EncounterStatus.DRAFT:
            raise ValueError("drafts are managed through replace_draft")
        with self._connect() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.execute(
                        f"""
                        SELECT {_ENCOUNTER_COLUMNS} FROM encounters e
                        WHERE e.id = %s AND e.owner_id = %s AND e.status <> %s
                        FOR UPDATE
                        """,
                        (encounter_id, owner_id, int(EncounterStatus.DRAFT)),
                    )
                    row = cur.fetchone()
                    if row is None:
                        return None
                    if changes.session_id is not None:
                        cur.execute(_OWNED_SESSION_SQL, (changes.session_id, owner_id))
                        if cur.fetchone() is None:
                            return None
                    updated = apply_changes(_row_to_encounter(row), changes, self.library, utc_now_iso())
                    cur.execute(_UPDATE_ENCOUNTER_SQL, _update_params(updated))
        return updated

    def delete_encounter(self, owner_id: str, encounter_id: str) -> bool:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM encounters WHERE id = %s AND owner_id = %s AND status <> %s",
                    (encounter_id, owner_id, int(EncounterStatus.DRAFT)),
                )
                deleted = cur.rowcount
            conn.commit()
        return deleted > 0

    def load_encounter_roster(self, encounter_id: str) -> EncounterRoster | None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT {_ENCOUNTER_COLUMNS} FROM encounters e WHERE e.id = %s", (encounter_id,))
                row = cur.fetchone()
        return _row_to_encounter(row).roster if row is not None else None

    def save_encounter_derived(self, encounter_id: str, total_experience: int, total_items_value: float) -> bool:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE encounters
                    SET total_experience = CASE WHEN total_experience_overridden THEN total_experience ELSE %s END,
                        total_items_value = CASE WHEN total_items_value_overridden THEN total_items_value ELSE %s END,
                        updated_at = now()
                    WHERE id = %s
                    """,
                    (total_experience, total_items_value, encounter_id),
                )
                updated = cur.rowcount
            conn.commit()
        return updated > 0

    def get_draft(self, owner_id: str) -> Encounter:
        with self._connect() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.execute(_LOCK_OWNER_SQL, (owner_id,))
                    cur.execute(_SELECT_DRAFT_SQL, (owner_id, int(EncounterStatus.DRAFT)))
                    row = cur.fetchone()
                    if row is not None:
                        return _row_to_encounter(row)
                    draft = self._new_draft(owner_id, build_empty_draft())
                    cur.execute(_INSERT_ENCOUNTER_SQL, _encounter_params(draft))
        return draft

    def replace_draft(self, owner_id: str, draft: EncounterInput) -> Encounter:
        new_draft = self._new_draft(owner_id, draft)
        with self._connect() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.execute(_LOCK_OWNER_SQL, (owner_id,))
                    cur.execute(
                        "DELETE FROM encounters WHERE owner_id = %s AND status = %s",
                        (owner_id, int(EncounterStatus.DRAFT)),
                    )
                    cur.execute(_INSERT_ENCOUNTER_SQL, _encounter_params(new_draft))
        return new_draft

    def _new_draft(self, owner_id: str, data: EncounterInput) -> Encounter:
        return build_encounter(
            encounter_id=str(uuid.uuid4()),
            owner_id=owner_id,
            data=replace(data, status=EncounterStatus.DRAFT),
            library=self.library,
            now=utc_now_iso(),
        )

    def clear_draft(self, owner_id: str) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM encounters WHERE owner_id = %s AND status = %s",
                    (owner_id, int(EncounterStatus.DRAFT)),
                )
            conn.commit()

    def promote_draft(self, owner_id: str, session_id: str | None = None) -> Encounter | None:
        with self._connect() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    if session_id is not None:
                        cur.execute(_OWNED_SESSION_SQL, (session_id, owner_id))
                        if cur.fetchone() is None:
                            return None
                    cur.execute(
                        f"""
                        UPDATE encounters e
                        SET status = %s, session_id = COALESCE(%s, e.session_id), updated_at = now()
                        WHERE e.owner_id = %s AND e.status = %s
                        RETURNING {_ENCOUNTER_COLUMNS}
                        """,
                        (int(EncounterStatus.PREPARED), session_id, owner_id, int(EncounterStatus.DRAFT)),
                    )
                    row = cur.fetchone()
        if row is None:
            return None
        promoted = _row_to_encounter(row)
        logger.info("promoted draft %s for owner %s", promoted.id, owner_id)
        return promoted

    def get_campaign_stats(self, owner_id: str, campaign_id: str) -> CampaignStats | None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT id, owner_id, name, description, party_size FROM campaigns WHERE id = %s AND owner_id = %s",
                    (campaign_id, owner_id),
                )
                campaign_row = cur.fetchone()
                if campaign_row is None:
                    return None
                cur.execute(
                    "SELECT id, campaign_id, name, session_order FROM campaign_sessions WHERE campaign_id = %s",
                    (campaign_id,),
                )
                session_rows = cur.fetchall()
                cur.execute(
                    f"""
                    SELECT {_ENCOUNTER_COLUMNS}
                    FROM encounters e
                    JOIN campaign_sessions s ON s.id = e.session_id
                    WHERE s.campaign_id = %s
                    """,
                    (campaign_id,),
                )
                encounter_rows = cur.fetchall()
        sessions = [
            CampaignSession(id=str(row[0]), campaign_id=str(row[1]), name=row[2], session_order=int(row[3]))
            for row in session_rows
        ]
        encounters = [_row_to_encounter(row) for row in encounter_rows]
        item_ids = [item_id for encounter in encounters for item_id in encounter.treasure_items]
        return build_campaign_stats(
            _row_to_campaign(campaign_row),
            sessions,
            encounters,
            self.library.item_profiles(item_ids),
        )


def _row_to_campaign(row: Sequence[Any]) -> Campaign:
    return Campaign(
        id=str(row[0]),
        owner_id=str(row[1]),
        name=row[2],
        description=row[3] or "",
        party_size=int(row[4]),
    )


def _status_code(status: EncounterStatus | None) -> int | None:
    return int(status) if status is not None else None


def create_store(database_url: str | None, server_salt: str) -> EncounterStore:
    if database_url:
        return PostgresEncounterStore(database_url=database_url, server_salt=server_salt)
    return InMemoryEncounterStore(server_salt=server_salt)
