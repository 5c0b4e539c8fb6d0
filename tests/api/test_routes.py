"""Tests for the REST API, run in-process against a memory store"""
import pytest
import httpx

from shame_game.api.server import app
from shame_game.services.container import init_container, reset_container


@pytest.fixture
async def client(store, push_sender, clock):
    """httpx client bound to the app with a fresh container"""
    init_container(store=store, push_sender=push_sender, clock=clock)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    reset_container()


async def sign_up(client, name: str) -> dict:
    """Create an account and return {"id", "token", "headers"}"""
    response = await client.post(
        "/api/v1/auth/signup",
        json={"email": f"{name.lower()}@example.com", "password": "hunter22", "display_name": name}
    )
    assert response.status_code == 201
    data = response.json()
    return {
        "id": data["user"]["id"],
        "token": data["token"],
        "headers": {"Authorization": f"Bearer {data['token']}"},
    }


async def become_friends(client, a: dict, b: dict) -> None:
    response = await client.post(
        "/api/v1/friends/requests", json={"to_user_id": b["id"]}, headers=a["headers"]
    )
    assert response.status_code == 201
    request_id = response.json()["id"]

    response = await client.post(f"/api/v1/friends/requests/{request_id}/accept", headers=b["headers"])
    assert response.status_code == 200


# ============================================================================
# Auth & profile
# ============================================================================

@pytest.mark.asyncio
async def test_signup_signin_and_profile(client):
    alice = await sign_up(client, "Alice")

    response = await client.post(
        "/api/v1/auth/signin", json={"email": "ALICE@example.com", "password": "hunter22"}
    )
    assert response.status_code == 200
    assert response.json()["user"]["id"] == alice["id"]

    response = await client.get("/api/v1/me", headers=alice["headers"])
    assert response.status_code == 200
    data = response.json()
    assert data["display_name"] == "Alice"
    assert data["sleep_goal"] == "7:00 AM"
    assert data["push_enabled"] is False
    assert "fcm_token" not in data


@pytest.mark.asyncio
async def test_duplicate_signup_conflicts(client):
    await sign_up(client, "Alice")
    response = await client.post(
        "/api/v1/auth/signup",
        json={"email": "alice@example.com", "password": "hunter22", "display_name": "Other"}
    )
    assert response.status_code == 409
    assert response.json()["error"] == "ConflictError"


@pytest.mark.asyncio
async def test_short_password_rejected(client):
    response = await client.post(
        "/api/v1/auth/signup",
        json={"email": "alice@example.com", "password": "abc", "display_name": "Alice"}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_wrong_password_unauthorized(client):
    await sign_up(client, "Alice")
    response = await client.post(
        "/api/v1/auth/signin", json={"email": "alice@example.com", "password": "wrong-password"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_missing_token_unauthorized(client):
    response = await client.get("/api/v1/me")
    assert response.status_code == 401
    assert response.json()["error"] == "AuthenticationError"


@pytest.mark.asyncio
async def test_signout_invalidates_token(client):
    alice = await sign_up(client, "Alice")

    response = await client.post("/api/v1/auth/signout", headers=alice["headers"])
    assert response.status_code == 200

    response = await client.get("/api/v1/me", headers=alice["headers"])
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_update_profile(client):
    alice = await sign_up(client, "Alice")

    response = await client.patch(
        "/api/v1/me",
        json={"sleep_goal": "6:15 am", "timezone": "Europe/Berlin"},
        headers=alice["headers"]
    )
    assert response.status_code == 200
    data = response.json()
    assert data["sleep_goal"] == "6:15 AM"
    assert data["timezone"] == "Europe/Berlin"
    assert data["display_name"] == "Alice"


@pytest.mark.asyncio
async def test_update_profile_bad_timezone(client):
    alice = await sign_up(client, "Alice")
    response = await client.patch("/api/v1/me", json={"timezone": "Mars/Olympus"}, headers=alice["headers"])
    assert response.status_code == 400


# ============================================================================
# Wake-up challenge
# ============================================================================

@pytest.mark.asyncio
async def test_challenge_hides_answer(client):
    alice = await sign_up(client, "Alice")

    response = await client.post("/api/v1/wakeup/challenge", headers=alice["headers"])

    assert response.status_code == 200
    data = response.json()
    assert "correct_answer" not in data
    assert data["question_text"].endswith("= ?")


@pytest.mark.asyncio
async def test_wake_up_flow(client, store):
    alice = await sign_up(client, "Alice")
    await client.post("/api/v1/wakeup/challenge", headers=alice["headers"])
    problem = await store.get_pending_challenge(alice["id"])

    response = await client.post(
        "/api/v1/wakeup/answer", json={"answer": problem.correct_answer + 1}, headers=alice["headers"]
    )
    assert response.status_code == 200
    assert response.json()["correct"] is False

    response = await client.post(
        "/api/v1/wakeup/answer", json={"answer": problem.correct_answer}, headers=alice["headers"]
    )
    assert response.status_code == 200
    data = response.json()
    assert data["correct"] is True
    assert data["wake_up_log"]["actual_time"] == "6:30 AM"
    assert data["current_streak"] == 1
    assert 0 <= data["daily_score"]["score"] <= 100

    response = await client.get("/api/v1/wakeup/today", headers=alice["headers"])
    today = response.json()
    assert today["can_wake_up"] is False
    assert today["challenge"] is None

    response = await client.get("/api/v1/scores/weekly", headers=alice["headers"])
    assert len(response.json()) == 1

    response = await client.get("/api/v1/wakeup/recent", headers=alice["headers"])
    assert len(response.json()) == 1


@pytest.mark.asyncio
async def test_second_wake_up_conflicts(client, store):
    alice = await sign_up(client, "Alice")
    await client.post("/api/v1/wakeup/challenge", headers=alice["headers"])
    problem = await store.get_pending_challenge(alice["id"])
    await client.post("/api/v1/wakeup/answer", json={"answer": problem.correct_answer}, headers=alice["headers"])

    response = await client.post("/api/v1/wakeup/challenge", headers=alice["headers"])
    assert response.status_code == 409


# ============================================================================
# Friends
# ============================================================================

@pytest.mark.asyncio
async def test_friend_request_flow(client):
    alice = await sign_up(client, "Alice")
    bob = await sign_up(client, "Bob")

    response = await client.get("/api/v1/users/search", params={"q": "bo"}, headers=alice["headers"])
    assert response.status_code == 200
    results = response.json()
    assert [r["user"]["display_name"] for r in results] == ["Bob"]
    assert results[0]["status"] == "none"

    await become_friends(client, alice, bob)

    response = await client.get("/api/v1/friends", headers=alice["headers"])
    assert [f["id"] for f in response.json()] == [bob["id"]]

    response = await client.get(f"/api/v1/users/{bob['id']}/status", headers=alice["headers"])
    assert response.json()["status"] == "friends"

    response = await client.delete(f"/api/v1/friends/{bob['id']}", headers=alice["headers"])
    assert response.status_code == 200

    response = await client.get("/api/v1/friends", headers=bob["headers"])
    assert response.json() == []


@pytest.mark.asyncio
async def test_blank_search_rejected(client):
    alice = await sign_up(client, "Alice")
    response = await client.get("/api/v1/users/search", params={"q": "   "}, headers=alice["headers"])
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_cannot_befriend_self(client):
    alice = await sign_up(client, "Alice")
    response = await client.post(
        "/api/v1/friends/requests", json={"to_user_id": alice["id"]}, headers=alice["headers"]
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unknown_user_status_not_found(client):
    alice = await sign_up(client, "Alice")
    response = await client.get("/api/v1/users/ghost/status", headers=alice["headers"])
    assert response.status_code == 404


# ============================================================================
# Feed & shaming
# ============================================================================

@pytest.mark.asyncio
async def test_friend_sees_wake_up_and_reacts(client, store, push_sender):
    alice = await sign_up(client, "Alice")
    bob = await sign_up(client, "Bob")
    await become_friends(client, alice, bob)

    await client.post("/api/v1/wakeup/challenge", headers=alice["headers"])
    problem = await store.get_pending_challenge(alice["id"])
    await client.post("/api/v1/wakeup/answer", json={"answer": problem.correct_answer}, headers=alice["headers"])

    response = await client.get("/api/v1/feed", headers=bob["headers"])
    assert response.status_code == 200
    feed = response.json()
    assert feed[0]["type"] == "wake_up"
    assert feed[0]["user_id"] == alice["id"]

    item_id = feed[0]["id"]
    response = await client.post(
        f"/api/v1/feed/{item_id}/reactions", json={"type": "fire"}, headers=bob["headers"]
    )
    assert response.status_code == 200
    assert [r["type"] for r in response.json()["reactions"]] == ["fire"]

    response = await client.post(
        f"/api/v1/feed/{item_id}/comments", json={"message": "  Nice!  "}, headers=bob["headers"]
    )
    assert response.status_code == 201
    assert response.json()["comments"][0]["message"] == "Nice!"

    response = await client.get("/api/v1/notifications", headers=bob["headers"])
    types = [n["type"] for n in response.json()]
    assert "wake_up" in types


@pytest.mark.asyncio
async def test_shame_friend(client):
    alice = await sign_up(client, "Alice")
    bob = await sign_up(client, "Bob")
    await become_friends(client, alice, bob)

    response = await client.post(f"/api/v1/shame/{bob['id']}", headers=alice["headers"])

    assert response.status_code == 201
    item = response.json()
    assert item["type"] == "shame"
    assert item["user_id"] == bob["id"]
    assert item["related_user_id"] == alice["id"]
    assert item["shame_count"] == 1


@pytest.mark.asyncio
async def test_shame_requires_friendship(client):
    alice = await sign_up(client, "Alice")
    bob = await sign_up(client, "Bob")

    response = await client.post(f"/api/v1/shame/{bob['id']}", headers=alice["headers"])

    assert response.status_code == 403
    assert response.json()["error"] == "AuthorizationError"


@pytest.mark.asyncio
async def test_preset_comments(client):
    alice = await sign_up(client, "Alice")
    response = await client.get("/api/v1/feed/preset-comments", headers=alice["headers"])
    assert response.status_code == 200
    assert len(response.json()["comments"]) > 0


# ============================================================================
# Health & metrics
# ============================================================================

@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["storage"] == "connected"


@pytest.mark.asyncio
async def test_metrics_endpoint(client):
    await client.get("/health")
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "http_requests_total" in response.text


@pytest.mark.asyncio
async def test_metrics_use_route_templates(client):
    alice = await sign_up(client, "Alice")
    await client.get("/api/v1/users/some-user/status", headers=alice["headers"])

    response = await client.get("/metrics")

    assert 'endpoint="/api/v1/users/{user_id}/status"' in response.text
