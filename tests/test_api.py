from datetime import datetime, timedelta

from conftest import PASSWORD
from models import Challenge, User


def _signup(client, email="alice@example.com", name="Alice Smith", **extra):
    r = client.post("/api/auth/signup", json={"email": email, "password": PASSWORD, "name": name, **extra})
    assert r.status_code == 201, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200 and r.json()["status"] == "ok"


# ─────────────────────────────────────────────────────────────────────────────
# Auth
# ─────────────────────────────────────────────────────────────────────────────

def test_signup_login_and_me(client):
    headers = _signup(client, email="Alice@Example.com")

    r = client.get("/api/auth/me", headers=headers)
    assert r.status_code == 200
    assert r.json()["email"] == "alice@example.com"
    assert r.json()["streakCount"] == 0

    r = client.post("/api/auth/login", json={"email": "alice@example.com", "password": PASSWORD})
    assert r.status_code == 200 and r.json()["access_token"]

    r = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "Wrong1234"})
    assert r.status_code == 401
    assert r.json()["type"] == "unauthorized"


def test_duplicate_signup_is_a_conflict(client):
    _signup(client)
    r = client.post("/api/auth/signup", json={"email": "alice@example.com", "password": PASSWORD, "name": "Alice"})
    assert r.status_code == 409


def test_weak_password_answers_400_with_field_errors(client):
    r = client.post("/api/auth/signup", json={"email": "bob@example.com", "password": "alllowercase1", "name": "Bob"})
    assert r.status_code == 400
    body = r.json()
    assert body["type"] == "validation"
    assert body["errors"][0]["field"] == "password"


def test_login_attempts_are_rate_limited(client):
    _signup(client)
    for _ in range(5):
        r = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "Wrong1234"})
        assert r.status_code == 401

    r = client.post("/api/auth/login", json={"email": "alice@example.com", "password": PASSWORD})
    assert r.status_code == 429
    assert r.json()["type"] == "rate_limited"


def test_routes_require_a_token(client):
    assert client.get("/api/tasks").status_code == 401
    assert client.get("/api/tasks", headers={"Authorization": "Bearer nope"}).status_code == 401


# ─────────────────────────────────────────────────────────────────────────────
# Embedded collections
# ─────────────────────────────────────────────────────────────────────────────

def test_task_crud_and_envelope(client):
    headers = _signup(client)
    for i in range(12):
        r = client.post("/api/tasks", json={"title": f"Task {i}"}, headers=headers)
        assert r.status_code == 201
    task_id = r.json()["task"]["id"]

    r = client.get("/api/tasks", params={"page": 2}, headers=headers)
    body = r.json()
    assert len(body["tasks"]) == 2
    assert body["pagination"]["totalPages"] == 2
    assert body["pagination"]["hasPrevPage"] is True
    assert body["summary"] == {"total": 12, "completed": 0, "pending": 12}

    r = client.put(f"/api/tasks/{task_id}", json={"completed": True}, headers=headers)
    assert r.json()["task"]["title"] == "Task 11"
    assert r.json()["task"]["completed"] is True

    r = client.patch(f"/api/tasks/{task_id}/toggle", headers=headers)
    assert r.json()["task"]["completed"] is False

    assert client.patch("/api/tasks/complete/all", headers=headers).json()["count"] == 12
    assert client.delete("/api/tasks/completed/all", headers=headers).json()["count"] == 12

    r = client.get(f"/api/tasks/{task_id}", headers=headers)
    assert r.status_code == 404
    assert r.json() == {"detail": "Task not found", "type": "not_found"}


def test_invalid_item_and_short_search_answer_400(client):
    headers = _signup(client)
    assert client.post("/api/tasks", json={"title": ""}, headers=headers).status_code == 400
    assert client.get("/api/tasks", params={"search": "a"}, headers=headers).status_code == 400
    assert client.get("/api/journals/search", params={"q": "x"}, headers=headers).status_code == 400
    assert client.get("/api/tasks", params={"limit": 500}, headers=headers).status_code == 400


def test_blank_search_lists_everything(client):
    headers = _signup(client)
    client.post("/api/tasks", json={"title": "Stretch"}, headers=headers)

    r = client.get("/api/tasks", params={"search": ""}, headers=headers)
    assert r.status_code == 200
    assert len(r.json()["tasks"]) == 1
    assert client.get("/api/journals/search", params={"q": ""}, headers=headers).status_code == 400


def test_journal_filters_by_mood(client):
    headers = _signup(client)
    client.post("/api/journals", json={"content": "Great run", "mood": "great"}, headers=headers)
    client.post("/api/journals", json={"content": "Tired legs", "mood": "bad"}, headers=headers)

    r = client.get("/api/journals", params={"mood": "great"}, headers=headers)
    assert [e["content"] for e in r.json()["entries"]] == ["Great run"]

    stats = client.get("/api/journals/stats", headers=headers).json()["stats"]
    assert stats["totalEntries"] == 2
    assert stats["moodDistribution"]["bad"] == 1


def test_food_logs_and_triggers(client):
    headers = _signup(client)
    r = client.post("/api/nutrition/logs", json={"date": "2024-05-01T12:00:00", "meals": ["Oats"]}, headers=headers)
    assert r.status_code == 201
    assert r.json()["foodLog"]["date"].startswith("2024-05-01")

    r = client.get("/api/nutrition/logs", params={"date": "2024-05-01"}, headers=headers)
    assert len(r.json()["foodLogs"]) == 1

    r = client.post("/api/triggers", json={"trigger": "Stress at work"}, headers=headers)
    assert r.status_code == 201
    assert client.get("/api/triggers/stats", headers=headers).json()["stats"]["totalTriggers"] == 1


# ─────────────────────────────────────────────────────────────────────────────
# Workouts and exercises
# ─────────────────────────────────────────────────────────────────────────────

def test_log_workout_and_history(client, exercise):
    headers = _signup(client)
    r = client.post("/api/workouts/log", json={"exerciseId": exercise.id, "notes": "felt good"}, headers=headers)
    assert r.status_code == 201
    assert r.json()["streakCount"] == 1

    r = client.get("/api/workouts/history", headers=headers)
    assert r.json()["workouts"][0]["exerciseId"] == exercise.id

    r = client.get(f"/api/exercises/{exercise.id}")
    assert r.json()["exercise"]["completionCount"] == 1
    assert r.json()["exercise"]["caloriesPerMinute"] == 7

    r = client.post("/api/workouts/log", json={"exerciseId": 999}, headers=headers)
    assert r.status_code == 404


def test_exercise_catalog(client, exercise):
    r = client.get("/api/exercises", params={"category": "Strength"})
    assert [e["name"] for e in r.json()["exercises"]] == ["Push-ups"]
    assert r.json()["pagination"]["totalItems"] == 1

    assert client.get("/api/exercises", params={"category": "Dancing"}).status_code == 400
    assert client.get("/api/exercises/random").json()["exercise"]["name"] == "Push-ups"
    assert client.get("/api/exercises/search", params={"q": "push"}).json()["count"] == 1
    assert client.get("/api/exercises/search", params={"q": "p_sh"}).json()["count"] == 0
    assert client.get("/api/exercises/stats").json()["stats"]["byCategory"] == {"Strength": 1}


# ─────────────────────────────────────────────────────────────────────────────
# Challenges
# ─────────────────────────────────────────────────────────────────────────────

def test_challenge_flow(client):
    coach = _signup(client, email="coach@example.com", name="Coach")
    athlete = _signup(client, email="athlete@example.com", name="Athlete")
    now = datetime.utcnow()

    r = client.post("/api/challenges", json={
        "type": "most-cards", "title": "Most cards this week", "description": "Draw as many as you can",
        "goal": 50, "startDate": (now - timedelta(hours=1)).isoformat(),
        "endDate": (now + timedelta(days=7)).isoformat(),
    }, headers=coach)
    assert r.status_code == 201
    challenge_id = r.json()["challenge"]["id"]
    assert r.json()["challenge"]["isOngoing"] is True

    assert client.post(f"/api/challenges/{challenge_id}/join", headers=athlete).status_code == 200
    assert client.post(f"/api/challenges/{challenge_id}/join", headers=athlete).status_code == 409

    r = client.post(f"/api/challenges/{challenge_id}/progress", json={"value": 42}, headers=athlete)
    assert r.json()["percentage"] == 84

    assert client.post(f"/api/challenges/{challenge_id}/progress", json={"value": 5}, headers=coach).status_code == 403

    board = client.get(f"/api/challenges/{challenge_id}/leaderboard").json()["leaderboard"]
    assert board[0]["user"]["name"] == "Athlete"

    listed = client.get("/api/challenges").json()
    assert listed["challenges"][0]["participantCount"] == 1

    assert client.delete(f"/api/challenges/{challenge_id}", headers=athlete).status_code == 403
    assert client.delete(f"/api/challenges/{challenge_id}", headers=coach).status_code == 200


# ─────────────────────────────────────────────────────────────────────────────
# Social and account deletion
# ─────────────────────────────────────────────────────────────────────────────

def test_friend_flow(client, db):
    alice = _signup(client, email="alice@example.com", name="Alice")
    bob = _signup(client, email="bob@example.com", name="Bob")
    alice_id = db.query(User).filter(User.email == "alice@example.com").one().id
    bob_id = db.query(User).filter(User.email == "bob@example.com").one().id

    assert client.post(f"/api/social/friend-request/{bob_id}", headers=alice).status_code == 200
    assert client.post(f"/api/social/friend-request/{alice_id}", headers=bob).status_code == 409
    assert client.get("/api/social/friend-requests", headers=bob).json()["count"] == 1

    r = client.post(f"/api/social/accept-friend/{alice_id}", headers=bob)
    assert r.json()["state"] == "friends"
    assert client.post(f"/api/social/accept-friend/{alice_id}", headers=bob).status_code == 400

    assert [f["id"] for f in client.get("/api/social/friends", headers=alice).json()["friends"]] == [bob_id]

    assert client.delete(f"/api/social/friends/{bob_id}", headers=alice).status_code == 200
    assert client.delete(f"/api/social/friends/{bob_id}", headers=alice).status_code == 400


def test_account_deletion_cascades(client, db):
    alice = _signup(client, email="alice@example.com", name="Alice")
    bob = _signup(client, email="bob@example.com", name="Bob")
    alice_id = db.query(User).filter(User.email == "alice@example.com").one().id
    bob_id = db.query(User).filter(User.email == "bob@example.com").one().id

    client.post(f"/api/social/friend-request/{bob_id}", headers=alice)
    client.post(f"/api/social/accept-friend/{alice_id}", headers=bob)

    now = datetime.utcnow()
    r = client.post("/api/challenges", json={
        "type": "daily", "title": "Daily plank", "description": "Plank every day", "goal": 10,
        "startDate": (now - timedelta(hours=1)).isoformat(), "endDate": (now + timedelta(days=3)).isoformat(),
    }, headers=alice)
    challenge_id = r.json()["challenge"]["id"]
    client.post(f"/api/challenges/{challenge_id}/join", headers=alice)

    r = client.request("DELETE", "/api/users/account", json={"password": "Wrong1234"}, headers=alice)
    assert r.status_code == 401

    r = client.request("DELETE", "/api/users/account", json={"password": PASSWORD}, headers=alice)
    assert r.status_code == 200

    db.expire_all()
    assert db.query(User).filter(User.id == alice_id).first() is None
    assert db.get(User, bob_id).friends == []
    challenge = db.get(Challenge, challenge_id)
    assert challenge.participants == [] and challenge.progress == []
    assert challenge.created_by is None


def test_non_finite_progress_answers_400(client):
    coach = _signup(client, email="coach@example.com", name="Coach")
    now = datetime.utcnow()
    r = client.post("/api/challenges", json={
        "type": "daily", "title": "Daily squats", "description": "Squat every day", "goal": 10,
        "startDate": (now - timedelta(hours=1)).isoformat(), "endDate": (now + timedelta(days=3)).isoformat(),
    }, headers=coach)
    challenge_id = r.json()["challenge"]["id"]
    client.post(f"/api/challenges/{challenge_id}/join", headers=coach)

    for body in ('{"value": 1e400}', '{"value": NaN}', '{"value": -1}'):
        r = client.post(f"/api/challenges/{challenge_id}/progress", content=body,
                        headers={**coach, "Content-Type": "application/json"})
        assert r.status_code == 400, body
        assert r.json()["type"] == "validation"

    board = client.get(f"/api/challenges/{challenge_id}/leaderboard").json()["leaderboard"]
    assert board[0]["progress"] == 0
