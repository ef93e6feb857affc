import pytest

fastapi = pytest.importorskip("fastapi")
pytest.importorskip("httpx")
from fastapi.testclient import TestClient

from gmtracker.backend.api import create_app
from gmtracker.backend.store import InMemoryEncounterStore

GOBLIN_LIBRARY = {
    "creatures": [{"id": 1, "level": 5}, {"id": 2, "level": 7}],
    "hazards": [{"id": 10, "level": 5, "complex": False}],
    "items": [{"id": 100, "price": 30.0}],
}


def _client() -> TestClient:
    store = InMemoryEncounterStore(server_salt="test-salt")
    client = TestClient(create_app(store=store))
    client.post("/api/library", json=GOBLIN_LIBRARY)
    return client


def _token(client: TestClient) -> str:
    return client.post("/api/owners").json()["token"]


def _combat(enemy_count: int) -> dict:
    return {"encounter_type": "combat", "enemies": [{"id": 1, "level_adjustment": 0}] * enemy_count, "hazards": []}


def test_post_owners_returns_id_and_token() -> None:
    client = _client()

    response = client.post("/api/owners")

    assert response.status_code == 200
    data = response.json()
    assert data["owner_id"]
    assert data["token"]


def test_calculate_experience_uses_library() -> None:
    client = _client()

    response = client.post(
        "/api/calculate/experience",
        json={"party_level": 5, "party_size": 4, "enemies": [1, 1, 1, 1], "treasure_items": [100, 555]},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["raw_experience"] == 160
    assert data["difficulty"] == "Extreme"
    assert data["total_experience"] == 160
    assert data["total_items_value"] == 30.0
    assert data["unresolved"] == ["item:555"]


def test_calculate_experience_rejects_malformed_enemies() -> None:
    client = _client()

    response = client.post("/api/calculate/experience", json={"party_level": 5, "party_size": 4, "enemies": ["x"]})

    assert response.status_code == 422


def test_calculate_boundaries_for_four_players() -> None:
    client = _client()

    response = client.get("/api/calculate/boundaries", params={"party_size": 4})

    assert response.status_code == 200
    assert response.json() == [
        {"difficulty": "Trivial", "start": 0, "end": 50},
        {"difficulty": "Low", "start": 50, "end": 70},
        {"difficulty": "Moderate", "start": 70, "end": 100},
        {"difficulty": "Severe", "start": 100, "end": 140},
        {"difficulty": "Extreme", "start": 140, "end": None},
    ]


def test_owner_routes_reject_invalid_token() -> None:
    client = _client()

    response = client.get("/api/campaigns", params={"token": "invalid"})

    assert response.status_code == 403


def test_campaign_flow_reports_stats() -> None:
    client = _client()
    token = _token(client)

    campaign = client.post(
        "/api/campaigns",
        params={"token": token},
        json={"name": "Vaults", "party_size": 4, "initialization": {"experience": 500, "gold": {"gold": 10, "silver": 5}}},
    ).json()
    session = client.post(
        f"/api/campaigns/{campaign['id']}/sessions",
        params={"token": token},
        json={"name": "Session 2"},
    ).json()
    created = client.post(
        "/api/encounters",
        params={"token": token},
        json={
            "encounters": [
                {
                    "name": "Goblin ambush",
                    "session_id": session["id"],
                    "status": "Success",
                    "encounter_kind": _combat(4),
                    "party_level": 5,
                    "party_size": 4,
                }
            ]
        },
    )
    stats = client.get(f"/api/campaigns/{campaign['id']}/stats", params={"token": token})

    assert created.status_code == 200
    assert created.json()[0]["difficulty"] == "Extreme"
    assert stats.status_code == 200
    data = stats.json()
    assert data["num_sessions"] == 2
    assert data["num_encounters"] == 2
    assert data["num_combat_encounters"] == 1
    assert data["total_xp"] == 660
    assert data["total_currency"] == 10.5
    assert [entry["accumulated_xp"] for entry in data["encounters"]] == [500, 660]
    assert len(client.get("/api/campaigns", params={"token": token}).json()) == 1


def test_stats_count_library_items_and_accomplishment_experience() -> None:
    client = _client()
    token = _token(client)
    client.post("/api/library", json={"items": [{"id": 200, "price": 4.0, "level": 3, "consumable": True}]})
    campaign = client.post("/api/campaigns", params={"token": token}, json={"name": "Outlaws"}).json()
    session = client.post(
        f"/api/campaigns/{campaign['id']}/sessions",
        params={"token": token},
        json={"name": "Heist"},
    ).json()

    created = client.post(
        "/api/encounters",
        params={"token": token},
        json={
            "encounters": [
                {
                    "name": "Stole the ledger",
                    "session_id": session["id"],
                    "status": "Success",
                    "encounter_kind": {"encounter_type": "accomplishment", "accomplishmentLevel": "major"},
                    "party_level": 3,
                    "party_size": 4,
                    "treasure_items": [200, 100],
                }
            ]
        },
    )
    data = client.get(f"/api/campaigns/{campaign['id']}/stats", params={"token": token}).json()

    assert created.status_code == 200
    assert created.json()[0]["total_experience"] == 80
    assert created.json()[0]["encounter_kind"]["accomplishmentLevel"] == "major"
    assert data["total_xp"] == 80
    assert data["num_accomplishments"] == 1
    assert data["total_consumable_items_by_level"] == {"3": 1}
    assert data["total_permanent_items_by_level"] == {"0": 1}
    assert data["expected_permanent_items_by_end_of_level"] == {"2": 2, "1": 2}


def test_create_encounters_rejects_unknown_kind() -> None:
    client = _client()
    token = _token(client)

    response = client.post(
        "/api/encounters",
        params={"token": token},
        json={"encounters": [{"encounter_kind": {"encounter_type": "dungeon"}}]},
    )

    assert response.status_code == 422


def test_create_encounters_rejects_foreign_session() -> None:
    client = _client()
    token = _token(client)

    response = client.post(
        "/api/encounters",
        params={"token": token},
        json={"encounters": [{"session_id": "not-mine"}]},
    )

    assert response.status_code == 404


def test_patch_encounter_overrides_and_recomputes() -> None:
    client = _client()
    token = _token(client)
    created = client.post(
        "/api/encounters",
        params={"token": token},
        json={"encounters": [{"encounter_kind": _combat(2), "party_level": 5, "party_size": 4}]},
    ).json()[0]

    overridden = client.patch(f"/api/encounters/{created['id']}", params={"token": token}, json={"total_experience": 999})
    recomputed = client.patch(f"/api/encounters/{created['id']}", params={"token": token}, json={"party_level": 6})

    assert created["total_experience"] == 80
    assert overridden.json()["total_experience"] == 999
    assert overridden.json()["total_experience_overridden"] is True
    assert recomputed.json()["total_experience"] == 60
    assert recomputed.json()["total_experience_overridden"] is False


def test_list_and_delete_encounters() -> None:
    client = _client()
    token = _token(client)
    created = client.post(
        "/api/encounters",
        params={"token": token},
        json={"encounters": [{"name": "Rats", "status": "Archived"}, {"name": "Bandits"}]},
    ).json()

    archived = client.get("/api/encounters", params={"token": token, "status": "Archived"}).json()
    deleted = client.delete(f"/api/encounters/{created[0]['id']}", params={"token": token})
    missing = client.get(f"/api/encounters/{created[0]['id']}", params={"token": token})

    assert [encounter["name"] for encounter in archived] == ["Rats"]
    assert deleted.status_code == 204
    assert missing.status_code == 404


def test_draft_replace_and_promote() -> None:
    client = _client()
    token = _token(client)

    empty = client.get("/api/encounters/draft", params={"token": token}).json()
    replaced = client.put(
        "/api/encounters/draft",
        params={"token": token},
        json={"name": "Next fight", "encounter_kind": _combat(4), "party_level": 5, "party_size": 4},
    ).json()
    promoted = client.post("/api/encounters/draft/promote", params={"token": token}, json={})
    listed = client.get("/api/encounters", params={"token": token}).json()

    assert empty["status"] == "Draft"
    assert empty["encounter_kind"] == {"encounter_type": "combat", "enemies": [], "hazards": []}
    assert replaced["id"] != empty["id"]
    assert replaced["total_experience"] == 160
    assert promoted.status_code == 200
    assert promoted.json()["status"] == "Prepared"
    assert [encounter["id"] for encounter in listed] == [replaced["id"]]


def test_recompute_endpoint_reports_unresolved_references() -> None:
    client = _client()
    token = _token(client)
    created = client.post(
        "/api/encounters",
        params={"token": token},
        json={
            "encounters": [
                {
                    "encounter_kind": {"encounter_type": "combat", "enemies": [1, 77]},
                    "party_level": 5,
                    "party_size": 4,
                }
            ]
        },
    ).json()[0]

    response = client.post(f"/api/encounters/{created['id']}/recompute", params={"token": token})

    assert response.status_code == 200
    assert response.json()["total_experience"] == 40
    assert response.json()["unresolved"] == ["creature:77"]


def test_websocket_sends_draft_after_connect() -> None:
    client = _client()
    token = _token(client)

    with client.websocket_connect(f"/ws/encounters?token={token}") as websocket:
        message = websocket.receive_json()

    assert message["type"] == "draft"
    assert message["encounter"]["status"] == "Draft"


def test_websocket_rejects_invalid_token() -> None:
    client = _client()

    with pytest.raises(Exception):
        with client.websocket_connect("/ws/encounters?token=invalid"):
            pass


def test_websocket_broadcasts_draft_updates() -> None:
    store = InMemoryEncounterStore(server_salt="test-salt")
    app = create_app(store=store)

    with TestClient(app) as client:
        token = client.post("/api/owners").json()["token"]

        with client.websocket_connect(f"/ws/encounters?token={token}") as websocket:
            websocket.receive_json()

            client.put("/api/encounters/draft", params={"token": token}, json={"name": "Live edit"})

            message = websocket.receive_json()

    assert message["type"] == "encounter.updated"
    assert message["encounter"]["name"] == "Live edit"
