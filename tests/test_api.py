import base64

import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import MemoryStorage
from main import create_app


def register(client, username="alice", email="alice@example.com", password="secret1"):
    return client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "password": password, "confirmPassword": password},
    )


def login(client, email="alice@example.com", password="secret1"):
    return client.post("/api/auth/login", json={"email": email, "password": password})


# ---------- Basic ----------

def test_root_and_storage_status(client):
    assert client.get("/").json()["status"] == "ok"
    status = client.get("/test").json()
    assert status["storage_backend"] == "memory"
    assert status["storage"] == "✅ Connected"


def test_seeded_app_lists_default_questions():
    app = create_app(Settings(AI_DELAY_MIN_MS=0, AI_DELAY_MAX_MS=0), MemoryStorage())
    with TestClient(app) as c:
        questions = c.get("/api/questions").json()
    assert len(questions) == 6
    assert {"id", "title", "category", "author", "time", "chainCount", "createdAt"} <= set(questions[0])


# ---------- Questions ----------

def test_create_and_fetch_question(client):
    res = client.post("/api/questions", json={"title": "  Tabs or spaces?  ", "category": "development", "author": "alice"})
    assert res.status_code == 201
    created = res.json()
    assert created["title"] == "Tabs or spaces?"
    assert created["chainCount"] == 0

    detail = client.get(f"/api/questions/{created['id']}").json()
    assert detail["question"]["id"] == created["id"]
    assert detail["chain"] == []


def test_create_question_validation(client):
    assert client.post("/api/questions", json={"title": "x", "category": "sports", "author": "a"}).status_code == 422
    assert client.post("/api/questions", json={"title": "x" * 501, "category": "daily", "author": "a"}).status_code == 422
    assert client.post("/api/questions", json={"title": "   ", "category": "daily", "author": "a"}).status_code == 400
    # no author and nobody logged in
    assert client.post("/api/questions", json={"title": "Hi?", "category": "daily"}).status_code == 400


def test_create_question_defaults_author_to_session_user(client):
    register(client)
    login(client)
    client.put("/api/profile", json={"displayName": "Alice A."})
    created = client.post("/api/questions", json={"title": "Hi?", "category": "daily"}).json()
    assert created["author"] == "Alice A."


def test_missing_question_is_404(client):
    assert client.get("/api/questions/42").status_code == 404
    assert client.get("/api/questions/42/chain").status_code == 404
    res = client.post("/api/questions/42/chain", json={"text": "hi", "author": "bob"})
    assert res.status_code == 404
    assert res.json()["detail"] == "Question not found"


def test_list_questions_search_and_category(client):
    client.post("/api/questions", json={"title": "Python or Go?", "category": "development", "author": "alice"})
    client.post("/api/questions", json={"title": "What is time?", "category": "philosophy", "author": "bob"})

    assert [q["title"] for q in client.get("/api/questions", params={"q": "PYTHON"}).json()] == ["Python or Go?"]
    assert [q["title"] for q in client.get("/api/questions", params={"category": "philosophy"}).json()] == ["What is time?"]
    assert len(client.get("/api/questions", params={"category": "all"}).json()) == 2
    assert client.get("/api/questions", params={"q": "nothing-matches"}).json() == []
    assert client.get("/api/questions", params={"category": "sports"}).status_code == 400


# ---------- Chain ----------

def test_chain_alternates_and_updates_count(client):
    qid = client.post("/api/questions", json={"title": "Root?", "category": "daily", "author": "alice"}).json()["id"]

    first = client.post(f"/api/questions/{qid}/chain", json={"text": "An answer", "author": "bob"}).json()
    second = client.post(f"/api/questions/{qid}/chain", json={"text": "Why though?", "author": "carol"}).json()
    assert (first["type"], first["level"], first["parentId"]) == ("answer", 1, qid)
    assert (second["type"], second["level"]) == ("question", 2)

    chain = client.get(f"/api/questions/{qid}/chain").json()
    assert [c["id"] for c in chain] == [first["id"], second["id"]]

    question = client.get(f"/api/questions/{qid}").json()["question"]
    assert question["chainCount"] == 3
    assert question["lastQuestion"] == "Why though?"


def test_chain_item_validation(client):
    qid = client.post("/api/questions", json={"title": "Root?", "category": "daily", "author": "alice"}).json()["id"]
    assert client.post(f"/api/questions/{qid}/chain", json={"text": "x" * 301, "author": "bob"}).status_code == 422
    assert client.post(f"/api/questions/{qid}/chain", json={"text": "", "author": "bob"}).status_code == 422
    assert client.post(f"/api/questions/{qid}/chain", json={"text": "hello"}).status_code == 400


# ---------- Sidebar views ----------

def test_sidebar_views(client):
    for i in range(6):
        client.post("/api/questions", json={"title": f"Q{i}", "category": "politics", "author": "alice"})

    assert len(client.get("/api/trending").json()) == 4

    stats = client.get("/api/categories").json()
    assert stats["total"] == 6
    assert stats["categories"][0] == {"name": "politics", "count": 6}

    recent = client.get("/api/recent").json()
    assert len(recent) == 5
    assert set(recent[0]) == {"type", "content", "time", "author"}


# ---------- AI suggestions ----------

def test_ai_question(client):
    res = client.post("/api/ai-question", json={"category": "philosophy"})
    assert res.status_code == 200
    assert "{topic}" not in res.json()["question"]


def test_ai_question_invalid_category(client):
    res = client.post("/api/ai-question", json={"category": "sports"})
    assert res.status_code == 400
    assert res.json() == {"error": "Invalid category"}
    assert client.post("/api/ai-question", json={}).status_code == 400


def test_ai_question_bad_body_is_500(client):
    res = client.post("/api/ai-question", content=b"not json", headers={"content-type": "application/json"})
    assert res.status_code == 500
    assert res.json() == {"error": "Failed to generate question"}


# ---------- Auth ----------

def test_register_and_duplicate_reasons(client):
    res = register(client)
    assert res.status_code == 201
    assert "password" not in res.json()
    assert res.json()["displayName"] == "alice"

    dup_email = register(client, username="other")
    assert dup_email.status_code == 409
    assert dup_email.json()["detail"] == "Email already in use"

    dup_name = register(client, email="other@example.com")
    assert dup_name.status_code == 409
    assert dup_name.json()["detail"] == "Username already taken"


def test_register_validation(client):
    assert client.post("/api/auth/register", json={"username": "a"}).status_code == 400
    mismatch = {"username": "bob", "email": "b@example.com", "password": "secret1", "confirmPassword": "secret2"}
    assert client.post("/api/auth/register", json=mismatch).json()["detail"] == "Passwords do not match"
    assert register(client, username="bob", email="b@example.com", password="abc").status_code == 400


def test_login_logout_me(client):
    register(client)
    assert client.get("/api/auth/me").status_code == 401
    assert login(client, password="nope").status_code == 401

    res = login(client)
    assert res.status_code == 200
    assert client.get("/api/auth/me").json()["username"] == "alice"

    client.post("/api/auth/logout")
    assert client.get("/api/auth/me").status_code == 401


def test_check_username(client):
    assert client.get("/api/users/check-username", params={"username": "alice"}).json()["available"] is True
    register(client)
    assert client.get("/api/users/check-username", params={"username": "alice"}).json()["available"] is False
    assert client.get("/api/users/check-username", params={"username": "z"}).json()["available"] is False


# ---------- Profile ----------

def test_profile_requires_session(client):
    assert client.get("/api/profile").status_code == 401
    assert client.put("/api/profile", json={"displayName": "x"}).status_code == 401


def test_profile_update(client):
    register(client)
    login(client)

    avatar = "data:image/png;base64," + base64.b64encode(b"\x89PNG fake").decode()
    res = client.put("/api/profile", json={"displayName": " Alice ", "bio": "hello", "avatar": avatar})
    assert res.status_code == 200
    body = res.json()
    assert (body["displayName"], body["bio"], body["avatar"]) == ("Alice", "hello", avatar)
    assert client.get("/api/auth/me").json()["displayName"] == "Alice"

    assert client.put("/api/profile", json={"displayName": "   "}).status_code == 400
    assert client.put("/api/profile", json={"avatar": "ftp://example.com/a.png"}).status_code == 400
    assert client.put("/api/profile", json={"avatar": "https://example.com/a.png"}).status_code == 200

    cleared = client.put("/api/profile", json={"avatar": ""}).json()
    assert "avatar" not in cleared


def test_profile_activity(client):
    register(client)
    assert client.get("/api/profile/activity").status_code == 401
    login(client)

    mine = client.post("/api/questions", json={"title": "Mine?", "category": "daily"}).json()
    other = client.post("/api/questions", json={"title": "Theirs?", "category": "daily", "author": "bob"}).json()
    client.post(f"/api/questions/{other['id']}/chain", json={"text": "my answer"})
    client.post(f"/api/questions/{mine['id']}/chain", json={"text": "bob's answer", "author": "bob"})

    activity = client.get("/api/profile/activity").json()
    assert [q["id"] for q in activity["questions"]] == [mine["id"]]
    assert [c["text"] for c in activity["chainItems"]] == ["my answer"]


# ---------- regressions ----------

def test_ai_question_non_string_category_is_400(client):
    for category in (["philosophy"], {"name": "daily"}, 3):
        res = client.post("/api/ai-question", json={"category": category})
        assert res.status_code == 400
        assert res.json() == {"error": "Invalid category"}


def test_status_reports_database_handle(client, monkeypatch):
    import main

    assert client.get("/test").json()["database"] == "❌ Not Available"

    mongomock = pytest.importorskip("mongomock")
    shared = mongomock.MongoClient()["kkojil"]
    shared["kv"].insert_one({"_id": "kkojil_questions", "value": "[]"})
    monkeypatch.setattr(main, "db", shared)
    status = client.get("/test").json()
    assert status["database"] == "✅ Connected"
    assert status["collections"] == ["kv"]
