"""HTTP-level tests: status codes, error bodies and the actor headers."""

import random

import pytest
from fastapi.testclient import TestClient

from main import app
from database import get_db
from core.round_manager import RoundManager
from api.deps import get_round_manager


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_round_manager] = lambda: RoundManager(rng=random.Random(7))
    yield TestClient(app)
    app.dependency_overrides.clear()


def as_member(member):
    return {"X-Member-Id": member["id"]}


ADMIN = {"X-User-Role": "admin"}


def create_club(client, names=("Alice", "Bob", "Carol"), managers=(), **config):
    response = client.post("/api/clubs", json={"name": "Film Night", "type": "movie", "config": config})
    assert response.status_code == 201
    club = response.json()
    members = []
    for name in names:
        response = client.post(
            f"/api/clubs/{club['id']}/members",
            json={"name": name, "is_club_manager": name in managers}
        )
        assert response.status_code == 201
        members.append(response.json())
    return club, members


def open_round(client, club, recommender, titles=("Heat", "Ran")):
    round_obj = client.post(
        f"/api/clubs/{club['id']}/rounds",
        json={"current_recommender_id": recommender["id"]}
    ).json()
    recs = client.post(
        f"/api/rounds/{round_obj['id']}/recommendations",
        json={"recommendations": [{"title": t} for t in titles]}
    ).json()
    response = client.post(f"/api/rounds/{round_obj['id']}/voting/start")
    assert response.status_code == 200
    return round_obj, recs


def vote(client, round_obj, member, pairs, headers=None):
    return client.post(
        f"/api/rounds/{round_obj['id']}/votes",
        json={
            "member_id": member["id"],
            "votes": [{"recommendation_id": rec["id"], "points": points} for rec, points in pairs]
        },
        headers=as_member(member) if headers is None else headers
    )


class TestClubs:
    def test_create_with_defaults(self, client):
        response = client.post("/api/clubs", json={"name": "Readers"})
        assert response.status_code == 201
        body = response.json()
        assert body["type"] == "book"
        assert body["config"] == {
            "min_recommendations": 3,
            "max_recommendations": 5,
            "voting_points": [3, 2, 1],
            "turn_order": "sequential",
            "tie_breaking_method": "random",
            "minimum_participation": 80,
        }

    def test_invalid_config(self, client):
        response = client.post("/api/clubs", json={"name": "Readers", "config": {"turn_order": "alphabetical"}})
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "BadRequest"

    def test_patch_config(self, client):
        club, _ = create_club(client, names=())
        response = client.patch(f"/api/clubs/{club['id']}", json={"config": {"voting_points": [5, 3]}})
        assert response.status_code == 200
        assert response.json()["config"]["voting_points"] == [5, 3]

    def test_unknown_club(self, client):
        response = client.get("/api/clubs/missing")
        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "NotFound"

    def test_remove_member(self, client):
        club, (alice, bob) = create_club(client, names=("Alice", "Bob"))
        response = client.delete(f"/api/clubs/{club['id']}/members/{alice['id']}")
        assert response.status_code == 204
        names = [m["name"] for m in client.get(f"/api/clubs/{club['id']}/members").json()]
        assert names == ["Bob"]

    def test_get_and_update_member(self, client):
        club, (alice, bob) = create_club(client, names=("Alice", "Bob"))
        url = f"/api/clubs/{club['id']}/members/{alice['id']}"
        assert client.get(url).json()["name"] == "Alice"

        response = client.patch(url, json={"email": "alice@example.com", "is_club_manager": True})
        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Alice"
        assert body["email"] == "alice@example.com"
        assert body["is_club_manager"] is True

        other, _ = create_club(client, names=())
        assert client.get(f"/api/clubs/{other['id']}/members/{bob['id']}").status_code == 404

    def test_update_member_rejects_empty_name(self, client):
        club, (alice,) = create_club(client, names=("Alice",))
        response = client.patch(f"/api/clubs/{club['id']}/members/{alice['id']}", json={"name": ""})
        assert response.status_code == 422

    def test_delete_club(self, client):
        club, (alice, _, _) = create_club(client, min_recommendations=2)
        open_round(client, club, alice)

        assert client.delete(f"/api/clubs/{club['id']}").status_code == 204
        assert client.get(f"/api/clubs/{club['id']}").status_code == 404
        assert client.get(f"/api/clubs/{club['id']}/events").status_code == 404
        assert client.delete(f"/api/clubs/{club['id']}").status_code == 404


class TestRoundFlow:
    def test_full_cycle(self, client):
        club, (alice, bob, carol) = create_club(client, min_recommendations=2, minimum_participation=100)
        round_obj, (heat, ran) = open_round(client, club, alice)

        assert vote(client, round_obj, alice, [(heat, 3), (ran, 2)]).status_code == 201
        assert vote(client, round_obj, bob, [(heat, 3), (ran, 2)]).status_code == 201
        assert vote(client, round_obj, carol, [(heat, 2), (ran, 3)]).status_code == 201

        response = client.post(f"/api/rounds/{round_obj['id']}/voting/close")
        assert response.status_code == 200
        result = response.json()
        assert result["winner"]["title"] == "Heat"
        assert result["totals"] == {heat["id"]: 8, ran["id"]: 7}
        assert result["participation"] == {"voted": 3, "total": 3, "percentage": 100.0}
        assert result["tied_ids"] == []
        assert result["round"]["status"] == "completing"

        response = client.post(
            f"/api/rounds/{round_obj['id']}/completions",
            json={"member_id": alice["id"], "is_completed": True},
            headers=as_member(alice)
        )
        assert response.status_code == 201

        status = client.get(f"/api/rounds/{round_obj['id']}/completions/status").json()
        assert status["winning_recommendation_id"] == heat["id"]
        assert status["summary"] == {"completed": 1, "total": 3, "all_completed": False, "percentage": pytest.approx(100 / 3)}

        response = client.post(f"/api/rounds/{round_obj['id']}/finish")
        assert response.status_code == 200
        body = response.json()
        assert body["finished_round"]["status"] == "finished"
        assert body["next_round"]["status"] == "recommending"
        assert body["next_round"]["current_recommender_id"] == bob["id"]

        active = client.get(f"/api/clubs/{club['id']}/rounds/active").json()
        assert active["id"] == body["next_round"]["id"]

        history = client.get(f"/api/clubs/{club['id']}/rounds/history").json()
        assert [h["winning_title"] for h in history] == ["Heat"]

    def test_second_round_conflicts(self, client):
        club, (alice, bob, _) = create_club(client)
        client.post(f"/api/clubs/{club['id']}/rounds", json={"current_recommender_id": alice["id"]})
        response = client.post(f"/api/clubs/{club['id']}/rounds", json={"current_recommender_id": bob["id"]})
        assert response.status_code == 409
        assert response.json()["detail"] == {
            "error": "Conflict",
            "message": "There is already an active round for this club",
        }

    def test_start_voting_without_enough_recommendations(self, client):
        club, (alice, _, _) = create_club(client)
        round_obj = client.post(
            f"/api/clubs/{club['id']}/rounds", json={"current_recommender_id": alice["id"]}
        ).json()
        response = client.post(f"/api/rounds/{round_obj['id']}/voting/start")
        assert response.status_code == 400

    def test_finish_twice(self, client):
        club, members = create_club(client, min_recommendations=2)
        round_obj, (heat, ran) = open_round(client, club, members[0])
        for member in members:
            vote(client, round_obj, member, [(heat, 3)])
        client.post(f"/api/rounds/{round_obj['id']}/voting/close")

        assert client.post(f"/api/rounds/{round_obj['id']}/finish").status_code == 200
        response = client.post(f"/api/rounds/{round_obj['id']}/finish")
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "BadRequest"

    def test_participation_shortfall(self, client):
        club, members = create_club(client, names=("A", "B", "C", "D"), min_recommendations=2)
        round_obj, (heat, _) = open_round(client, club, members[0])
        for member in members[:2]:
            vote(client, round_obj, member, [(heat, 3)])

        response = client.post(f"/api/rounds/{round_obj['id']}/voting/close")
        assert response.status_code == 400
        assert "50.0% voted" in response.json()["detail"]["message"]
        assert client.get(f"/api/rounds/{round_obj['id']}").json()["status"] == "voting"

    def test_edit_after_voting_started(self, client):
        club, (alice, _, _) = create_club(client, min_recommendations=2)
        _, (heat, _) = open_round(client, club, alice)
        response = client.patch(f"/api/recommendations/{heat['id']}", json={"title": "Thief"})
        assert response.status_code == 400
        assert client.delete(f"/api/recommendations/{heat['id']}").status_code == 400
        assert client.get(f"/api/recommendations/{heat['id']}").json()["title"] == "Heat"


class TestBallots:
    def test_duplicate_points(self, client):
        club, (alice, _, _) = create_club(client, min_recommendations=2)
        round_obj, (heat, ran) = open_round(client, club, alice)

        response = vote(client, round_obj, alice, [(heat, 3), (ran, 3)])
        assert response.status_code == 400
        assert response.json()["detail"]["message"] == "cannot assign same points to multiple recommendations"
        assert client.get(f"/api/rounds/{round_obj['id']}/votes").json() == []

    def test_vote_twice(self, client):
        club, (alice, _, _) = create_club(client, min_recommendations=2)
        round_obj, (heat, _) = open_round(client, club, alice)
        vote(client, round_obj, alice, [(heat, 3)])
        assert vote(client, round_obj, alice, [(heat, 2)]).status_code == 400

    def test_voting_for_someone_else(self, client):
        club, (alice, bob, _) = create_club(client, min_recommendations=2)
        round_obj, (heat, _) = open_round(client, club, alice)
        response = vote(client, round_obj, bob, [(heat, 3)], headers=as_member(alice))
        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "Forbidden"

    def test_manager_and_admin_may_vote_for_others(self, client):
        club, (alice, bob, carol) = create_club(client, managers=("Alice",), min_recommendations=2)
        round_obj, (heat, _) = open_round(client, club, alice)
        assert vote(client, round_obj, bob, [(heat, 3)], headers=as_member(alice)).status_code == 201
        assert vote(client, round_obj, carol, [(heat, 3)], headers=ADMIN).status_code == 201

    def test_requires_caller_identity(self, client):
        club, (alice, _, _) = create_club(client, min_recommendations=2)
        round_obj, (heat, _) = open_round(client, club, alice)
        assert vote(client, round_obj, alice, [(heat, 3)], headers={}).status_code == 401

    def test_unknown_round(self, client):
        response = client.post(
            "/api/rounds/missing/votes",
            json={"member_id": "someone", "votes": []},
            headers=ADMIN
        )
        assert response.status_code == 404


class TestEventFeed:
    def test_poll_after_last_seen(self, client):
        club, (alice, _, _) = create_club(client, min_recommendations=2)
        open_round(client, club, alice)

        events = client.get(f"/api/clubs/{club['id']}/events").json()
        assert [e["event_type"] for e in events] == [
            "CLUB_CREATED",
            "MEMBER_ADDED",
            "MEMBER_ADDED",
            "MEMBER_ADDED",
            "ROUND_STARTED",
            "RECOMMENDATIONS_ADDED",
            "ROUND_STATUS_CHANGED",
        ]
        assert events[-1]["data"]["to"] == "voting"

        last_id = events[-1]["id"]
        assert client.get(f"/api/clubs/{club['id']}/events", params={"after": last_id}).json() == []

    def test_club_update_in_feed(self, client):
        club, _ = create_club(client, names=())
        client.patch(f"/api/clubs/{club['id']}", json={"name": "Cinema Club"})

        events = client.get(f"/api/clubs/{club['id']}/events").json()
        assert [e["event_type"] for e in events] == ["CLUB_CREATED", "CLUB_UPDATED"]
        assert events[-1]["data"]["name"] == "Cinema Club"


class TestNotes:
    def test_note_lifecycle(self, client):
        club, (alice, _, _) = create_club(client)
        round_obj = client.post(
            f"/api/clubs/{club['id']}/rounds", json={"current_recommender_id": alice["id"]}
        ).json()

        response = client.get(f"/api/notes/rounds/{round_obj['id']}", headers=as_member(alice))
        assert response.status_code == 200
        note = response.json()
        assert note["title"] is None and note["content"] is None

        response = client.put(
            f"/api/notes/{note['id']}",
            json={"title": "Shortlist", "content": "Heat or Ran"},
            headers=as_member(alice)
        )
        assert response.status_code == 200
        assert response.json()["content"] == "Heat or Ran"

        listed = client.get("/api/notes", headers=as_member(alice)).json()
        assert [n["id"] for n in listed] == [note["id"]]

        assert client.delete(f"/api/notes/{note['id']}", headers=as_member(alice)).status_code == 204
        assert client.get("/api/notes", headers=as_member(alice)).json() == []

    def test_notes_are_private(self, client):
        club, (alice, bob, _) = create_club(client)
        round_obj = client.post(
            f"/api/clubs/{club['id']}/rounds", json={"current_recommender_id": alice["id"]}
        ).json()
        note = client.get(f"/api/notes/rounds/{round_obj['id']}", headers=as_member(alice)).json()

        response = client.put(f"/api/notes/{note['id']}", json={"title": "Mine now"}, headers=as_member(bob))
        assert response.status_code == 403
        assert response.json()["detail"]["message"] == "You can only edit your own notes"
        assert client.delete(f"/api/notes/{note['id']}", headers=ADMIN).status_code == 401

    def test_outsider_cannot_open_note(self, client):
        club, (alice,) = create_club(client, names=("Alice",))
        _, (stranger,) = create_club(client, names=("Stranger",))
        round_obj = client.post(
            f"/api/clubs/{club['id']}/rounds", json={"current_recommender_id": alice["id"]}
        ).json()

        response = client.get(f"/api/notes/rounds/{round_obj['id']}", headers=as_member(stranger))
        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "Forbidden"

    def test_requires_identity(self, client):
        assert client.get("/api/notes").status_code == 401
