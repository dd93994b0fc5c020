"""
API integration tests.
Uses TestClient to avoid starting a server.
Requires: pip install httpx (for TestClient)
"""
from __future__ import annotations

import pytest

try:
    from fastapi.testclient import TestClient
    HAS_HTTPX = True
except (ImportError, RuntimeError):
    HAS_HTTPX = False

pytestmark = pytest.mark.skipif(not HAS_HTTPX, reason="httpx required for TestClient")

from padel_league.api import app
from padel_league.persistence.db import init_db, set_db_path


@pytest.fixture(autouse=True)
def isolated_db(tmp_path):
    """Use a temporary DB for each test."""
    db_path = tmp_path / "test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    yield db_path


@pytest.fixture
def client():
    return TestClient(app)


def _signup(client, username: str) -> tuple[str, dict[str, str]]:
    resp = client.post("/signup", json={"username": username, "password": "secret123"})
    assert resp.status_code == 200
    data = resp.json()
    return data["user_id"], {"Authorization": f"Bearer {data['token']}"}


def _league_payload(**overrides):
    payload = {
        "name": "Spring League",
        "start_date": "2025-03-01",
        "end_date": "2025-04-30",
        "venue": "Central Padel",
        "min_teams": 2,
        "max_teams": 8,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def organizer(client):
    return _signup(client, "organizer")


@pytest.fixture
def scheduled_league(client, organizer):
    """League with three registered teams and a generated schedule."""
    _, org_headers = organizer
    league = client.post("/leagues", json=_league_payload(), headers=org_headers).json()
    players = {}
    for name in ("alpha", "bravo", "charlie"):
        uid, headers = _signup(client, name)
        team = client.post("/teams", json={"name": f"Team {name}"}, headers=headers).json()
        resp = client.post(f"/leagues/{league['id']}/teams", json={"team_id": team["id"]}, headers=headers)
        assert resp.status_code == 200
        players[team["id"]] = headers
    resp = client.post(f"/leagues/{league['id']}/schedule", headers=org_headers)
    assert resp.status_code == 200
    return league, players, resp.json()["matches"]


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}


def test_signup_and_login(client):
    _signup(client, "maria")
    resp = client.post("/login", json={"username": "maria", "password": "secret123"})
    assert resp.status_code == 200
    assert resp.json()["token"]
    bad = client.post("/login", json={"username": "maria", "password": "wrong-pass"})
    assert bad.status_code == 401


def test_signup_duplicate_username(client):
    _signup(client, "maria")
    resp = client.post("/signup", json={"username": "maria", "password": "secret123"})
    assert resp.status_code == 400


def test_create_team_requires_login(client):
    resp = client.post("/teams", json={"name": "No Auth"})
    assert resp.status_code == 401


def test_create_team_defaults_to_creator(client):
    uid, headers = _signup(client, "maria")
    resp = client.post("/teams", json={"name": "Smash Bros"}, headers=headers)
    assert resp.status_code == 200
    team = resp.json()
    assert team["member_ids"] == [uid]
    assert client.get(f"/teams/{team['id']}").json()["name"] == "Smash Bros"


def test_create_league_validation(client, organizer):
    _, headers = organizer
    resp = client.post("/leagues", json=_league_payload(end_date="2025-02-01"), headers=headers)
    assert resp.status_code == 400
    resp = client.post("/leagues", json=_league_payload(min_teams=10, max_teams=4), headers=headers)
    assert resp.status_code == 400


def test_create_and_get_league(client, organizer):
    uid, headers = organizer
    resp = client.post("/leagues", json=_league_payload(), headers=headers)
    assert resp.status_code == 200
    league = resp.json()
    assert league["status"] == "draft"
    assert league["organizer_id"] == uid
    fetched = client.get(f"/leagues/{league['id']}").json()
    assert fetched["team_ids"] == []
    assert len(client.get("/leagues").json()["leagues"]) == 1


def test_schedule_generated(client, scheduled_league):
    league, _, matches = scheduled_league
    assert len(matches) == 3
    assert all(m["status"] == "scheduled" for m in matches)
    schedule = client.get(f"/leagues/{league['id']}/schedule").json()
    assert [m["id"] for m in schedule["matches"]] == [m["id"] for m in matches]
    assert client.get(f"/leagues/{league['id']}").json()["schedule_generated"] is True


def test_generate_schedule_twice_is_400(client, organizer, scheduled_league):
    league, _, _ = scheduled_league
    _, headers = organizer
    resp = client.post(f"/leagues/{league['id']}/schedule", headers=headers)
    assert resp.status_code == 400


def test_generate_schedule_organizer_only(client, scheduled_league):
    league, players, _ = scheduled_league
    headers = next(iter(players.values()))
    resp = client.post(f"/leagues/{league['id']}/schedule", headers=headers)
    assert resp.status_code == 403


def test_clear_schedule(client, organizer, scheduled_league):
    league, _, _ = scheduled_league
    _, headers = organizer
    resp = client.delete(f"/leagues/{league['id']}/schedule", headers=headers)
    assert resp.status_code == 204
    assert client.get(f"/leagues/{league['id']}/schedule").json()["matches"] == []


def test_submit_result_updates_rankings(client, scheduled_league):
    league, players, matches = scheduled_league
    match = matches[0]
    headers = players[match["team_a_id"]]
    resp = client.post(
        f"/matches/{match['id']}/result",
        json={"team_a_score": [6, 4, 6], "team_b_score": [3, 6, 2]},
        headers=headers,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["match"]["status"] == "completed"
    assert data["match"]["result"]["winner"] == match["team_a_id"]
    assert [r["team_id"] for r in data["rankings"]] == [match["team_a_id"], match["team_b_id"]]

    rankings = client.get(f"/leagues/{league['id']}/rankings").json()["rankings"]
    assert rankings[0]["team_id"] == match["team_a_id"]
    assert rankings[0]["points"] == 3
    assert rankings[0]["rank"] == 1

    again = client.post(
        f"/matches/{match['id']}/result",
        json={"team_a_score": [6, 6], "team_b_score": [0, 0]},
        headers=headers,
    )
    assert again.status_code == 400


def test_submit_invalid_score_is_400(client, scheduled_league):
    _, players, matches = scheduled_league
    match = matches[0]
    resp = client.post(
        f"/matches/{match['id']}/result",
        json={"team_a_score": [6, 6], "team_b_score": [6, 3]},
        headers=players[match["team_a_id"]],
    )
    assert resp.status_code == 400
    assert client.get(f"/matches/{match['id']}").json()["status"] == "scheduled"


def test_submit_result_by_outsider_is_403(client, scheduled_league):
    _, players, matches = scheduled_league
    match = matches[0]
    outsider = next(
        h for tid, h in players.items() if tid not in (match["team_a_id"], match["team_b_id"])
    )
    resp = client.post(
        f"/matches/{match['id']}/result",
        json={"team_a_score": [6, 6], "team_b_score": [1, 1]},
        headers=outsider,
    )
    assert resp.status_code == 403


def test_update_match_status(client, organizer, scheduled_league):
    _, _, matches = scheduled_league
    _, headers = organizer
    match = matches[0]
    resp = client.patch(
        f"/matches/{match['id']}", json={"status": "in_progress", "location": "Court 3"}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "in_progress"
    assert resp.json()["location"] == "Court 3"
    bad = client.patch(f"/matches/{match['id']}", json={"status": "completed"}, headers=headers)
    assert bad.status_code == 400


def test_league_status_transitions(client, organizer, scheduled_league):
    league, _, _ = scheduled_league
    _, headers = organizer
    resp = client.post(f"/leagues/{league['id']}/status", json={"status": "active"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "active"
    resp = client.post(f"/leagues/{league['id']}/status", json={"status": "draft"}, headers=headers)
    assert resp.status_code == 400


def test_recompute_rankings(client, organizer, scheduled_league):
    league, players, matches = scheduled_league
    _, headers = organizer
    for match in matches[:2]:
        client.post(
            f"/matches/{match['id']}/result",
            json={"team_a_score": [6, 6], "team_b_score": [2, 2]},
            headers=headers,
        )
    before = client.get(f"/leagues/{league['id']}/rankings").json()["rankings"]
    resp = client.post(f"/leagues/{league['id']}/rankings/recompute", headers=headers)
    assert resp.status_code == 200
    after = resp.json()["rankings"]
    assert [(r["team_id"], r["points"]) for r in after] == [(r["team_id"], r["points"]) for r in before]


def test_not_found(client, organizer):
    _, headers = organizer
    assert client.get("/leagues/missing").status_code == 404
    assert client.get("/matches/missing").status_code == 404
    assert client.get("/teams/missing").status_code == 404
    assert client.get("/leagues/missing/rankings").status_code == 404
    resp = client.post("/leagues/missing/schedule", headers=headers)
    assert resp.status_code == 404


def test_rejected_match_update_changes_nothing(client, organizer, scheduled_league):
    _, _, matches = scheduled_league
    _, headers = organizer
    match = matches[0]
    resp = client.patch(
        f"/matches/{match['id']}", json={"location": "Court 9", "status": "completed"}, headers=headers
    )
    assert resp.status_code == 400
    stored = client.get(f"/matches/{match['id']}").json()
    assert stored["location"] == "Central Padel"
    assert stored["status"] == "scheduled"


def test_activation_below_min_teams_is_400(client, organizer):
    _, headers = organizer
    league = client.post("/leagues", json=_league_payload(min_teams=4), headers=headers).json()
    resp = client.post(f"/leagues/{league['id']}/status", json={"status": "active"}, headers=headers)
    assert resp.status_code == 400
    assert client.get(f"/leagues/{league['id']}").json()["status"] == "draft"


def test_registration_deadline_after_start_is_400(client, organizer):
    _, headers = organizer
    resp = client.post("/leagues", json=_league_payload(registration_deadline="2025-03-02"), headers=headers)
    assert resp.status_code == 400
    resp = client.post("/leagues", json=_league_payload(registration_deadline="2025-03-01"), headers=headers)
    assert resp.status_code == 200
    assert resp.json()["registration_deadline"] == "2025-03-01"


def test_list_and_remove_league_teams(client, organizer):
    _, org_headers = organizer
    league = client.post("/leagues", json=_league_payload(), headers=org_headers).json()
    _, headers = _signup(client, "delta")
    team = client.post("/teams", json={"name": "Team delta"}, headers=headers).json()
    client.post(f"/leagues/{league['id']}/teams", json={"team_id": team["id"]}, headers=headers)

    teams = client.get(f"/leagues/{league['id']}/teams").json()["teams"]
    assert [t["id"] for t in teams] == [team["id"]]

    _, stranger = _signup(client, "echo")
    assert client.delete(f"/leagues/{league['id']}/teams/{team['id']}", headers=stranger).status_code == 403
    assert client.delete(f"/leagues/{league['id']}/teams/{team['id']}", headers=headers).status_code == 204
    assert client.get(f"/leagues/{league['id']}/teams").json()["teams"] == []
    assert client.delete(f"/leagues/{league['id']}/teams/{team['id']}", headers=headers).status_code == 400


def test_create_and_list_matches(client, organizer, scheduled_league):
    league, players, matches = scheduled_league
    _, headers = organizer
    team_ids = list(players)
    payload = {
        "league_id": league["id"],
        "team_a_id": team_ids[0],
        "team_b_id": team_ids[1],
        "scheduled_date": "2025-04-29",
    }
    assert client.post("/matches", json=payload, headers=players[team_ids[0]]).status_code == 403
    resp = client.post("/matches", json=payload, headers=headers)
    assert resp.status_code == 201
    created = resp.json()
    same_team = client.post("/matches", json={**payload, "team_b_id": team_ids[0]}, headers=headers)
    assert same_team.status_code == 400

    listing = client.get("/matches", params={"league_id": league["id"], "limit": 2}).json()
    assert listing["pagination"] == {"total": 4, "page": 1, "limit": 2, "pages": 2}
    assert [m["id"] for m in listing["matches"]] == [m["id"] for m in matches[:2]]

    by_team = client.get("/matches", params={"team_id": team_ids[0], "start_date": "2025-04-01"}).json()
    assert created["id"] in [m["id"] for m in by_team["matches"]]
    assert all(team_ids[0] in (m["team_a_id"], m["team_b_id"]) for m in by_team["matches"])
