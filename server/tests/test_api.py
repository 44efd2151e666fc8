"""
Tests for the HTTP API
"""
from datetime import datetime, timedelta, timezone

from conftest import auth_header, run


def test_health_check(api):
    """Test the health check endpoint"""
    client, _ = api
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": True}


def test_protected_endpoints_require_auth(api):
    client, _ = api
    assert client.get("/api/events").status_code == 401
    assert client.get("/api/users/profile").status_code == 401
    assert client.get("/api/events", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_register_login_and_profile(api):
    client, _ = api
    response = client.post("/api/users/register", json={
        "username": "alice",
        "email": "alice@example.com",
        "password": "secret1",
        "participationType": "individual",
    })
    assert response.status_code == 201
    assert response.json()["user"]["formattedParticipationType"] == "Individual Player"

    response = client.post("/api/users/login", json={"email": "alice@example.com", "password": "secret1"})
    assert response.status_code == 200
    token = response.json()["token"]

    profile = client.get("/api/users/profile", headers={"Authorization": f"Bearer {token}"})
    assert profile.status_code == 200
    assert profile.json()["username"] == "alice"

    bad = client.post("/api/users/login", json={"email": "alice@example.com", "password": "nope"})
    assert bad.status_code == 401

    duplicate = client.post("/api/users/register", json={
        "username": "alice",
        "email": "alice@example.com",
        "password": "secret1",
        "participationType": "individual",
    })
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "conflict"


def test_only_admins_create_events(api):
    client, seed = api
    admin = run(seed.user("admin", role="admin"))
    player = run(seed.user("player"))
    start = datetime.now(timezone.utc) + timedelta(days=1)
    payload = {
        "name": "Capitals Quiz",
        "type": "online",
        "description": "Geography",
        "startDate": start.isoformat(),
        "endDate": (start + timedelta(hours=1)).isoformat(),
        "questions": [{"question": "Capital of France?", "options": ["Paris", "Lyon"], "answer": "Paris"}],
    }

    assert client.post("/api/events", json=payload, headers=auth_header(player)).status_code == 403

    response = client.post("/api/events", json=payload, headers=auth_header(admin))
    assert response.status_code == 201
    event = response.json()
    assert event["questions"][0]["points"] == 10

    invalid = client.post("/api/events", json={**payload, "questions": []}, headers=auth_header(admin))
    assert invalid.status_code == 400
    assert invalid.json()["error"] == "validation_error"


def test_answers_hidden_from_players(api):
    client, seed = api
    admin = run(seed.user("admin", role="admin"))
    player = run(seed.user("player"))
    event = run(seed.online_event())

    player_view = client.get(f"/api/events/{event.id}", headers=auth_header(player)).json()
    admin_view = client.get(f"/api/events/{event.id}", headers=auth_header(admin)).json()

    assert "answer" not in player_view["questions"][0]
    assert admin_view["questions"][0]["answer"] == "Paris"
    assert client.get("/api/events/nope", headers=auth_header(player)).status_code == 404


def test_participate_submit_and_leaderboards(api):
    client, seed = api
    player = run(seed.user("player"))
    event = run(seed.online_event())
    headers = auth_header(player)

    questions = client.post(f"/api/events/{event.id}/participate", headers=headers).json()["questions"]
    answers = [{"questionId": question["id"], "answer": question["options"][0]} for question in questions]

    malformed = client.post(f"/api/events/{event.id}/submit", json={"answers": "Paris"}, headers=headers)
    assert malformed.status_code == 400

    response = client.post(f"/api/events/{event.id}/submit", json={"answers": answers}, headers=headers)
    assert response.status_code == 200
    assert response.json() == {"score": 10, "correctAnswers": ["q1"], "perfectRun": False, "teamUpdated": False}

    again = client.post(f"/api/events/{event.id}/submit", json={"answers": answers}, headers=headers)
    assert again.status_code == 409
    assert again.json()["error"] == "conflict"

    board = client.get(f"/api/events/{event.id}/leaderboard", headers=headers).json()
    assert board["leaderboard"][0]["username"] == "player"

    history = client.get("/api/events/user/history", headers=headers).json()
    assert history[0]["status"] == "completed"

    overall = client.get("/api/leaderboard").json()
    assert overall[0]["name"] == "player"
    assert overall[0]["score"] == 10


def test_subscribe_respects_capacity(api):
    client, seed = api
    captain = run(seed.user("cap"))
    team = run(seed.team("Owls", captain))
    walk_in = run(seed.user("walkin"))
    event = run(seed.offline_event(max_participants=5, team_size=5))

    response = client.post(
        f"/api/events/{event.id}/subscribe",
        json={"type": "team", "teamId": team.id},
        headers=auth_header(captain),
    )
    assert response.status_code == 200
    assert response.json()["currentParticipants"] == 5

    full = client.post(f"/api/events/{event.id}/subscribe", json={"type": "individual"}, headers=auth_header(walk_in))
    assert full.status_code == 409

    standings = client.get(f"/api/events/{event.id}/team-standings", headers=auth_header(walk_in)).json()
    assert standings["teamStandings"][0]["teamName"] == "Owls"


def test_team_routes(api):
    client, seed = api
    captain = run(seed.user("cap"))
    mate = run(seed.user("mate"))

    created = client.post("/api/teams", json={"name": "Owls"}, headers=auth_header(captain))
    assert created.status_code == 201
    team_id = created.json()["id"]
    assert created.json()["memberCount"] == 1

    forbidden = client.put(f"/api/teams/{team_id}", json={"memberId": captain.id}, headers=auth_header(mate))
    assert forbidden.status_code == 403

    added = client.put(f"/api/teams/{team_id}", json={"memberId": mate.id}, headers=auth_header(captain))
    assert added.status_code == 200
    assert added.json()["memberCount"] == 2

    stats = client.get(f"/api/teams/{team_id}/stats", headers=auth_header(mate)).json()
    assert stats == {
        "teamName": "Owls",
        "totalScore": 0,
        "totalWins": 0,
        "averageScore": 0,
        "memberCount": 2,
        "eventsParticipated": [],
    }

    leaderboard = client.get("/api/teams/leaderboard").json()
    assert [row["name"] for row in leaderboard] == ["Owls"]


def test_invalid_endpoint_returns_404(api):
    """Test that invalid endpoints return 404"""
    client, _ = api
    response = client.get("/api/nonexistent")
    assert response.status_code == 404
