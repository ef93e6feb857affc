"""FastAPI endpoints for encounter bookkeeping, calculations and websocket sync."""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import asdict
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from .config import load_settings
from .encounter_kind import COMBAT, ENCOUNTER_TYPE_FIELD, encounter_kind_from_dict
from .encounters import encounter_to_wire, evaluate_roster
from .engine import severity_boundaries
from .models import (
    CampaignInitialization,
    Currency,
    Encounter,
    EncounterChanges,
    EncounterFilters,
    EncounterInput,
    EncounterRoster,
    EncounterStatus,
)
from .store import EncounterStore, create_store, recompute_encounter


logger = logging.getLogger(__name__)

CurrencyValue = float | dict[str, float]


class OwnerResponse(BaseModel):
    owner_id: str
    token: str


class LibraryCreature(BaseModel):
    id: int
    level: int


class LibraryHazard(BaseModel):
    id: int
    level: int
    complex: bool = False


class LibraryItem(BaseModel):
    id: int
    price: float | None = None
    level: int = 0
    consumable: bool = False


class LibraryRequest(BaseModel):
    creatures: list[LibraryCreature] = Field(default_factory=list)
    hazards: list[LibraryHazard] = Field(default_factory=list)
    items: list[LibraryItem] = Field(default_factory=list)


class ExperienceRequest(BaseModel):
    party_level: int
    party_size: int = Field(ge=0)
    enemies: list[Any] = Field(default_factory=list)
    hazards: list[Any] = Field(default_factory=list)
    treasure_items: list[int] = Field(default_factory=list)
    treasure_currency: CurrencyValue = 0.0
    extra_experience: int = 0


class ExperienceResponse(BaseModel):
    raw_experience: int
    difficulty: str | None
    total_experience: int
    total_items_value: float
    total_treasure_value: float
    unresolved: list[str]


class SeverityRangeResponse(BaseModel):
    difficulty: str
    start: int
    end: int | None


class InitializationPayload(BaseModel):
    experience: int = Field(default=0, ge=0)
    gold: CurrencyValue = 0.0
    items: list[int] = Field(default_factory=list)


class CampaignRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    party_size: int = Field(default=4, ge=1)
    initialization: InitializationPayload | None = None


class SessionRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class EncounterPayload(BaseModel):
    name: str = Field(default="", max_length=200)
    description: str = ""
    session_id: str | None = None
    status: str | int = "Prepared"
    encounter_kind: dict[str, Any] = Field(default_factory=lambda: {ENCOUNTER_TYPE_FIELD: COMBAT})
    party_level: int = 0
    party_size: int = Field(default=0, ge=0)
    treasure_items: list[int] = Field(default_factory=list)
    treasure_currency: CurrencyValue = 0.0
    extra_experience: int = 0
    total_experience: int | None = None
    total_items_value: float | None = None

    def to_input(self) -> EncounterInput:
        return EncounterInput(
            name=self.name,
            description=self.description,
            session_id=self.session_id,
            status=EncounterStatus.from_wire(self.status),
            kind=encounter_kind_from_dict(self.encounter_kind),
            party_level=self.party_level,
            party_size=self.party_size,
            treasure_items=tuple(self.treasure_items),
            treasure_currency=Currency.from_wire(self.treasure_currency).as_gold(),
            extra_experience=self.extra_experience,
            total_experience=self.total_experience,
            total_items_value=self.total_items_value,
        )


class CreateEncountersRequest(BaseModel):
    encounters: list[EncounterPayload] = Field(min_length=1)


class EncounterPatch(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    description: str | None = None
    session_id: str | None = None
    clear_session: bool = False
    status: str | int | None = None
    encounter_kind: dict[str, Any] | None = None
    party_level: int | None = None
    party_size: int | None = Field(default=None, ge=0)
    treasure_items: list[int] | None = None
    treasure_currency: CurrencyValue | None = None
    extra_experience: int | None = None
    total_experience: int | None = None
    total_items_value: float | None = None

    def to_changes(self) -> EncounterChanges:
        return EncounterChanges(
            name=self.name,
            description=self.description,
            session_id=self.session_id,
            clear_session=self.clear_session,
            status=EncounterStatus.from_wire(self.status) if self.status is not None else None,
            kind=encounter_kind_from_dict(self.encounter_kind) if self.encounter_kind is not None else None,
            party_level=self.party_level,
            party_size=self.party_size,
            treasure_items=tuple(self.treasure_items) if self.treasure_items is not None else None,
            treasure_currency=(
                Currency.from_wire(self.treasure_currency).as_gold() if self.treasure_currency is not None else None
            ),
            extra_experience=self.extra_experience,
            total_experience=self.total_experience,
            total_items_value=self.total_items_value,
        )


class PromoteRequest(BaseModel):
    session_id: str | None = None


class EncounterWebSocketHub:
    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = defaultdict(set)

    async def connect(self, owner_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections[owner_id].add(websocket)

    def disconnect(self, owner_id: str, websocket: WebSocket) -> None:
        connections = self._connections.get(owner_id)
        if connections is None:
            return
        connections.discard(websocket)
        if not connections:
            self._connections.pop(owner_id, None)

    async def send_event(self, websocket: WebSocket, event: dict[str, Any]) -> None:
        await websocket.send_json(event)

    async def broadcast(self, owner_id: str, event: dict[str, Any]) -> None:
        stale_connections: list[WebSocket] = []
        for websocket in list(self._connections.get(owner_id, set())):
            try:
                await self.send_event(websocket, event)
            except RuntimeError:
                stale_connections.append(websocket)
        for websocket in stale_connections:
            self.disconnect(owner_id=owner_id, websocket=websocket)


def _default_store() -> EncounterStore:
    settings = load_settings()
    return create_store(database_url=settings.database_url, server_salt=settings.server_salt)


def _unprocessable(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=422, detail=str(exc))


def _parse_status(value: str) -> EncounterStatus:
    return EncounterStatus.from_wire(int(value) if value.isdigit() else value)


def create_app(store: EncounterStore | None = None) -> FastAPI:
    app = FastAPI(title="GM Tracker API", version="0.3.0")
    encounter_store = store if store is not None else _default_store()
    websocket_hub = EncounterWebSocketHub()
    app.state.websocket_hub = websocket_hub

    async def publish_encounter(owner_id: str, encounter: Encounter) -> None:
        await websocket_hub.broadcast(owner_id, {"type": "encounter.updated", "encounter": encounter_to_wire(encounter)})

    async def publish_removal(owner_id: str, encounter_id: str) -> None:
        await websocket_hub.broadcast(owner_id, {"type": "encounter.deleted", "encounter_id": encounter_id})

    app.state.publish_encounter = publish_encounter

    def get_store() -> EncounterStore:
        return encounter_store

    def get_owner(
        token: str = Query(min_length=1),
        local_store: EncounterStore = Depends(get_store),
    ) -> str:
        owner_id = local_store.resolve_owner(token)
        if owner_id is None:
            raise HTTPException(status_code=403, detail="Token invalid")
        return owner_id

    @app.post("/api/owners", response_model=OwnerResponse)
    def register_owner(local_store: EncounterStore = Depends(get_store)) -> OwnerResponse:
        created = local_store.register_owner()
        return OwnerResponse(owner_id=created.owner_id, token=created.token)

    @app.post("/api/library")
    def load_library(
        payload: LibraryRequest,
        local_store: EncounterStore = Depends(get_store),
    ) -> dict[str, int]:
        library = local_store.library
        for creature in payload.creatures:
            library.add_creature(creature.id, creature.level)
        for hazard in payload.hazards:
            library.add_hazard(hazard.id, hazard.level, hazard.complex)
        for item in payload.items:
            library.add_item(item.id, item.price, item.level, item.consumable)
        logger.info(
            "library loaded %d creatures, %d hazards, %d items",
            len(payload.creatures),
            len(payload.hazards),
            len(payload.items),
        )
        return {"creatures": len(payload.creatures), "hazards": len(payload.hazards), "items": len(payload.items)}

    @app.post("/api/calculate/experience", response_model=ExperienceResponse)
    def calculate_experience(
        payload: ExperienceRequest,
        local_store: EncounterStore = Depends(get_store),
    ) -> ExperienceResponse:
        try:
            kind = encounter_kind_from_dict(
                {ENCOUNTER_TYPE_FIELD: COMBAT, "enemies": payload.enemies, "hazards": payload.hazards}
            )
            currency = Currency.from_wire(payload.treasure_currency).as_gold()
        except ValueError as exc:
            raise _unprocessable(exc) from exc
        roster = EncounterRoster(
            kind=kind,
            party_level=payload.party_level,
            party_size=payload.party_size,
            treasure_items=tuple(payload.treasure_items),
            treasure_currency=currency,
            extra_experience=payload.extra_experience,
        )
        evaluation = evaluate_roster(roster, local_store.library)
        return ExperienceResponse(
            raw_experience=evaluation.raw_experience,
            difficulty=evaluation.difficulty.wire_name if evaluation.difficulty is not None else None,
            total_experience=evaluation.total_experience,
            total_items_value=evaluation.total_items_value,
            total_treasure_value=evaluation.total_treasure_value,
            unresolved=list(evaluation.unresolved),
        )

    @app.get("/api/calculate/boundaries", response_model=list[SeverityRangeResponse])
    def calculate_boundaries(party_size: int = Query(default=4, ge=0)) -> list[SeverityRangeResponse]:
        return [
            SeverityRangeResponse(
                difficulty=severity.difficulty.wire_name,
                start=severity.start,
                end=None if math.isinf(severity.end) else int(severity.end),
            )
            for severity in severity_boundaries(party_size)
        ]

    @app.get("/api/campaigns")
    def list_campaigns(
        owner_id: str = Depends(get_owner),
        local_store: EncounterStore = Depends(get_store),
    ) -> list[dict[str, Any]]:
        return [asdict(campaign) for campaign in local_store.list_campaigns(owner_id)]

    @app.post("/api/campaigns")
    def create_campaign(
        payload: CampaignRequest,
        owner_id: str = Depends(get_owner),
        local_store: EncounterStore = Depends(get_store),
    ) -> dict[str, Any]:
        initialization = None
        if payload.initialization is not None:
            try:
                gold = Currency.from_wire(payload.initialization.gold).as_gold()
            except ValueError as exc:
                raise _unprocessable(exc) from exc
            initialization = CampaignInitialization(
                experience=payload.initialization.experience,
                gold=gold,
                items=tuple(payload.initialization.items),
            )
        campaign = local_store.create_campaign(
            owner_id=owner_id,
            name=payload.name,
            description=payload.description,
            party_size=payload.party_size,
            initialization=initialization,
        )
        return asdict(campaign)

    @app.post("/api/campaigns/{campaign_id}/sessions")
    def create_session(
        campaign_id: str,
        payload: SessionRequest,
        owner_id: str = Depends(get_owner),
        local_store: EncounterStore = Depends(get_store),
    ) -> dict[str, Any]:
        session = local_store.create_session(owner_id=owner_id, campaign_id=campaign_id, name=payload.name)
        if session is None:
            raise HTTPException(status_code=404, detail="Campaign not found")
        return asdict(session)

    @app.delete("/api/sessions/{session_id}", status_code=204)
    def delete_session(
        session_id: str,
        owner_id: str = Depends(get_owner),
        local_store: EncounterStore = Depends(get_store),
    ) -> None:
        if not local_store.delete_session(owner_id=owner_id, session_id=session_id):
            raise HTTPException(status_code=404, detail="Session not found")

    @app.get("/api/campaigns/{campaign_id}/stats")
    def campaign_stats(
        campaign_id: str,
        owner_id: str = Depends(get_owner),
        local_store: EncounterStore = Depends(get_store),
    ) -> dict[str, Any]:
        stats = local_store.get_campaign_stats(owner_id=owner_id, campaign_id=campaign_id)
        if stats is None:
            raise HTTPException(status_code=404, detail="Campaign not found")
        return asdict(stats)

    @app.get("/api/encounters/draft")
    def get_draft(
        owner_id: str = Depends(get_owner),
        local_store: EncounterStore = Depends(get_store),
    ) -> dict[str, Any]:
        return encounter_to_wire(local_store.get_draft(owner_id))

    @app.put("/api/encounters/draft")
    async def replace_draft(
        payload: EncounterPayload,
        owner_id: str = Depends(get_owner),
        local_store: EncounterStore = Depends(get_store),
    ) -> dict[str, Any]:
        try:
            draft = local_store.replace_draft(owner_id, payload.to_input())
        except ValueError as exc:
            raise _unprocessable(exc) from exc
        await publish_encounter(owner_id, draft)
        return encounter_to_wire(draft)

    @app.delete("/api/encounters/draft", status_code=204)
    def clear_draft(
        owner_id: str = Depends(get_owner),
        local_store: EncounterStore = Depends(get_store),
    ) -> None:
        local_store.clear_draft(owner_id)

    @app.post("/api/encounters/draft/promote")
    async def promote_draft(
        payload: PromoteRequest,
        owner_id: str = Depends(get_owner),
        local_store: EncounterStore = Depends(get_store),
    ) -> dict[str, Any]:
        promoted = local_store.promote_draft(owner_id, session_id=payload.session_id)
        if promoted is None:
            raise HTTPException(status_code=404, detail="Draft or session not found")
        await publish_encounter(owner_id, promoted)
        return encounter_to_wire(promoted)

    @app.get("/api/encounters")
    def list_encounters(
        name: str | None = None,
        status: str | None = None,
        session_id: str | None = None,
        owner_id: str = Depends(get_owner),
        local_store: EncounterStore = Depends(get_store),
    ) -> list[dict[str, Any]]:
        try:
            filters = EncounterFilters(
                name=name,
                status=_parse_status(status) if status is not None else None,
                session_id=session_id,
            )
        except ValueError as exc:
            raise _unprocessable(exc) from exc
        return [encounter_to_wire(encounter) for encounter in local_store.get_encounters(owner_id, filters)]

    @app.post("/api/encounters")
    async def create_encounters(
        payload: CreateEncountersRequest,
        owner_id: str = Depends(get_owner),
        local_store: EncounterStore = Depends(get_store),
    ) -> list[dict[str, Any]]:
        try:
            created = local_store.insert_encounters(owner_id, [entry.to_input() for entry in payload.encounters])
        except ValueError as exc:
            raise _unprocessable(exc) from exc
        if created is None:
            raise HTTPException(status_code=404, detail="Session not found")
        for encounter in created:
            await publish_encounter(owner_id, encounter)
        return [encounter_to_wire(encounter) for encounter in created]

    @app.get("/api/encounters/{encounter_id}")
    def get_encounter(
        encounter_id: str,
        owner_id: str = Depends(get_owner),
        local_store: EncounterStore = Depends(get_store),
    ) -> dict[str, Any]:
        encounter = local_store.get_encounter(owner_id, encounter_id)
        if encounter is None:
            raise HTTPException(status_code=404, detail="Encounter not found")
        return encounter_to_wire(encounter)

    @app.patch("/api/encounters/{encounter_id}")
    async def edit_encounter(
        encounter_id: str,
        payload: EncounterPatch,
        owner_id: str = Depends(get_owner),
        local_store: EncounterStore = Depends(get_store),
    ) -> dict[str, Any]:
        try:
            updated = local_store.edit_encounter(owner_id, encounter_id, payload.to_changes())
        except ValueError as exc:
            raise _unprocessable(exc) from exc
        if updated is None:
            raise HTTPException(status_code=404, detail="Encounter or session not found")
        await publish_encounter(owner_id, updated)
        return encounter_to_wire(updated)

    @app.post("/api/encounters/{encounter_id}/recompute")
    async def recompute(
        encounter_id: str,
        owner_id: str = Depends(get_owner),
        local_store: EncounterStore = Depends(get_store),
    ) -> dict[str, Any]:
        if local_store.get_encounter(owner_id, encounter_id) is None:
            raise HTTPException(status_code=404, detail="Encounter not found")
        evaluation = recompute_encounter(local_store, encounter_id)
        refreshed = local_store.get_encounter(owner_id, encounter_id)
        if evaluation is None or refreshed is None:
            raise HTTPException(status_code=404, detail="Encounter not found")
        await publish_encounter(owner_id, refreshed)
        wire = encounter_to_wire(refreshed)
        wire["unresolved"] = list(evaluation.unresolved)
        return wire

    @app.delete("/api/encounters/{encounter_id}", status_code=204)
    async def delete_encounter(
        encounter_id: str,
        owner_id: str = Depends(get_owner),
        local_store: EncounterStore = Depends(get_store),
    ) -> None:
        if not local_store.delete_encounter(owner_id, encounter_id):
            raise HTTPException(status_code=404, detail="Encounter not found")
        await publish_removal(owner_id, encounter_id)

    @app.websocket("/ws/encounters")
    async def encounter_ws(
        websocket: WebSocket,
        local_store: EncounterStore = Depends(get_store),
    ) -> None:
        token = websocket.query_params.get("token")
        if token is None or token == "":
            await websocket.close(code=1008)
            return
        owner_id = local_store.resolve_owner(token)
        if owner_id is None:
            await websocket.close(code=1008)
            return

        await websocket_hub.connect(owner_id=owner_id, websocket=websocket)
        await websocket_hub.send_event(
            websocket,
            {"type": "draft", "encounter": encounter_to_wire(local_store.get_draft(owner_id))},
        )

        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            websocket_hub.disconnect(owner_id=owner_id, websocket=websocket)

    return app


app = create_app()
