import pytest

from ladder.models.match import Match
from ladder.models.rating import PlayerRating


@pytest.fixture
def players(client):
    def _create(*names):
        return [client.post("api/v1/players", json={"username": name}).json() for name in names]
    return _create


class TestLadderAPI:

    def test_create_player(self, client):
        response = client.post("api/v1/players", json={"username": "testuser"})
        assert response.status_code == 200
        data = response.json()
        assert data["username"] == "testuser"
        assert "id" in data

    def test_create_duplicate_player_returns_existing(self, client):
        first = client.post("api/v1/players", json={"username": "dup"}).json()
        second = client.post("api/v1/players", json={"username": "dup"}).json()
        assert first["id"] == second["id"]

    def test_get_missing_player(self, client):
        response = client.get("api/v1/players/9999")
        assert response.status_code == 404

    def test_game_modes(self, client):
        response = client.get("api/v1/queue/modes")
        assert response.status_code == 200
        assert "standard" in response.json()

    def test_join_and_leave(self, client, players):
        (p1,) = players("solo")
        response = client.post("api/v1/queue/join", json={"player_id": p1["id"], "game_mode": "standard"})
        assert response.status_code == 200
        assert response.json()["status"] == "waiting"

        state = client.get(f"api/v1/players/{p1['id']}/state").json()
        assert state["status"] == "queuing"

        entries = client.get("api/v1/queue/entries").json()
        assert [e["player"]["username"] for e in entries] == ["solo"]

        assert client.post("api/v1/queue/leave", json={"player_id": p1["id"]}).json() == {"left": True}
        assert client.post("api/v1/queue/leave", json={"player_id": p1["id"]}).json() == {"left": False}
        assert client.get(f"api/v1/players/{p1['id']}/state").json()["status"] == "idle"

    def test_join_invalid_mode(self, client, players):
        (p1,) = players("solo")
        response = client.post("api/v1/queue/join", json={"player_id": p1["id"], "game_mode": "blitz"})
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_join_unknown_player(self, client):
        response = client.post("api/v1/queue/join", json={"player_id": 9999, "game_mode": "standard"})
        assert response.status_code == 404
        assert response.json()["error_code"] == "PLAYER_NOT_FOUND"

    def test_full_match_flow(self, client, players):
        p1, p2 = players("alpha", "beta")
        client.post("api/v1/queue/join", json={"player_id": p1["id"], "game_mode": "standard"})
        entry = client.post("api/v1/queue/join", json={"player_id": p2["id"], "game_mode": "standard"}).json()
        assert entry["status"] == "matched"
        match_id = entry["match_id"]

        active = client.get("api/v1/queue/matches/active").json()
        assert [m["id"] for m in active] == [match_id]
        assert active[0]["player1"]["username"] == "alpha"

        state = client.get(f"api/v1/players/{p1['id']}/state").json()
        assert state["status"] == "in_game"
        assert state["current_match"]["opponent_id"] == p2["id"]

        response = client.post(f"api/v1/queue/matches/{match_id}/complete", json={"winner_id": p1["id"]})
        assert response.status_code == 200
        body = response.json()
        assert body["match"]["status"] == "completed"
        assert body["ratings"]["player1_new_rating"] == 1032
        assert body["ratings"]["player2_new_rating"] == 968

        match = client.get(f"api/v1/queue/matches/{match_id}").json()
        assert match["winner"]["username"] == "alpha"

        ratings = client.get(f"api/v1/ratings/players/{p1['id']}/standard").json()
        assert ratings["rating"] == 1032
        assert ratings["peak_rating"] == 1032

        games = client.get(f"api/v1/ratings/players/{p2['id']}/games").json()
        assert games[0]["result"] == "loss"
        assert games[0]["rating_change"] == -32

        leaderboard = client.get("api/v1/leaderboard/standard").json()
        assert leaderboard["is_stale"] is False
        assert [e["name"] for e in leaderboard["data"]] == ["alpha", "beta"]
        assert [e["rank"] for e in leaderboard["data"]] == [1, 2]

        rank = client.get(f"api/v1/leaderboard/standard/users/{p2['id']}").json()
        assert rank["data"]["rank"] == 2

        snapshots = client.get("api/v1/leaderboard/standard/snapshots").json()
        assert len(snapshots) == 1

    def test_complete_twice_conflicts(self, client, players):
        p1, p2 = players("a", "b")
        client.post("api/v1/queue/join", json={"player_id": p1["id"], "game_mode": "vanilla"})
        match_id = client.post(
            "api/v1/queue/join", json={"player_id": p2["id"], "game_mode": "vanilla"}
        ).json()["match_id"]

        assert client.post(f"api/v1/queue/matches/{match_id}/complete", json={}).status_code == 200
        response = client.post(f"api/v1/queue/matches/{match_id}/complete", json={})
        assert response.status_code == 409
        assert response.json()["error_code"] == "INVALID_MATCH_STATE"

    def test_complete_with_outsider(self, client, players, db_session):
        p1, p2, p3 = players("a", "b", "c")
        client.post("api/v1/queue/join", json={"player_id": p1["id"], "game_mode": "standard"})
        client.post("api/v1/queue/join", json={"player_id": p2["id"], "game_mode": "standard"})
        match_id = db_session.query(Match.id).scalar()

        response = client.post(f"api/v1/queue/matches/{match_id}/complete", json={"winner_id": p3["id"]})
        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_WINNER"

    def test_complete_missing_match(self, client):
        response = client.post("api/v1/queue/matches/9999/complete", json={"winner_id": None})
        assert response.status_code == 404
        assert response.json()["error_code"] == "MATCH_NOT_FOUND"

    def test_record_result_directly(self, client, players):
        p1, p2 = players("x", "y")
        response = client.post("api/v1/ratings/results", json={
            "player1_id": p1["id"], "player2_id": p2["id"], "game_mode": "badlatro", "result": 0.5
        })
        assert response.status_code == 200
        assert response.json()["player1_new_rating"] == 1000

        leaderboard = client.get("api/v1/ratings/leaderboard/badlatro").json()
        assert len(leaderboard) == 2
        assert all(r["draws"] == 1 for r in leaderboard)

    def test_record_result_for_unknown_players(self, client, players, db_session):
        (known,) = players("known")
        for p1_id, p2_id in ((998, 999), (known["id"], 999)):
            response = client.post("api/v1/ratings/results", json={
                "player1_id": p1_id, "player2_id": p2_id, "game_mode": "standard", "result": 1
            })
            assert response.status_code == 404
            assert response.json()["error_code"] == "PLAYER_NOT_FOUND"

        assert db_session.query(PlayerRating).count() == 0

    def test_record_result_rejects_bad_score(self, client, players):
        p1, p2 = players("x", "y")
        response = client.post("api/v1/ratings/results", json={
            "player1_id": p1["id"], "player2_id": p2["id"], "game_mode": "standard", "result": 0.7
        })
        assert response.status_code == 422

    def test_empty_leaderboard_is_fresh(self, client):
        response = client.get("api/v1/leaderboard/vanilla")
        assert response.status_code == 200
        assert response.json() == {"data": [], "is_stale": False}

    def test_unranked_user(self, client):
        assert client.get("api/v1/leaderboard/standard/users/404").status_code == 404

    def test_unknown_season(self, client):
        response = client.get("api/v1/leaderboard/seasons/season0/standard")
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"
