"""
HTTP tests for the social endpoints.

The app runs in-process over httpx's ASGI transport; the database session
factory is swapped for the per-test SQLite one.

Run with: pytest tests/test_social_api.py -v
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from bazaar.core.deps import get_conversation_bootstrapper
from bazaar.core.token import create_access_token
from bazaar.infra.db import get_session_factory
from bazaar.main import app
from bazaar.models import Profile
from bazaar.social.conversation import ConversationBootstrapper
from bazaar.social.schema_probe import KNOWN_FOLLOW_COLUMNS


def auth_headers(user_id):
    return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_session_factory():
        return session_factory

    app.dependency_overrides[get_session_factory] = override_session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def profiles(session_factory):
    async with session_factory() as session:
        async with session.begin():
            session.add_all(
                [
                    Profile(id="u1", username="ana", first_name="Ana", last_name="Silva", city="Lisbon"),
                    Profile(id="u2", username="ben", full_name="Ben Okafor", is_verified=True),
                    Profile(id="u3", username="cato"),
                ]
            )


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestRequestContext:
    @pytest.mark.asyncio
    async def test_request_id_is_minted(self, client):
        response = await client.get("/relationships/u2")
        assert response.headers["x-request-id"]

    @pytest.mark.asyncio
    async def test_caller_request_id_is_echoed_in_errors(self, client):
        response = await client.get("/profiles/u9/card", headers={"X-Request-ID": "edge-42"})
        assert response.headers["x-request-id"] == "edge-42"
        assert response.json()["error"]["request_id"] == "edge-42"


class TestRelationshipEndpoints:
    @pytest.mark.asyncio
    async def test_guest_view(self, client):
        response = await client.get("/relationships/u2")
        assert response.status_code == 200
        assert response.json() == {"viewer_id": None, "subject_id": "u2", "status": "guest"}

    @pytest.mark.asyncio
    async def test_self_view(self, client):
        response = await client.get("/relationships/u1", headers=auth_headers("u1"))
        assert response.json()["status"] == "self"

    @pytest.mark.asyncio
    async def test_bad_token_is_rejected(self, client):
        response = await client.get("/relationships/u2", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTHENTICATION_FAILED"

    @pytest.mark.asyncio
    async def test_toggle_requires_sign_in(self, client):
        response = await client.post("/relationships/u2/toggle", json={"current_status": "none"})
        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_request_and_accept(self, client, make_follows_table):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[0])

        response = await client.post(
            "/relationships/u2/toggle", json={"current_status": "none"}, headers=auth_headers("u1")
        )
        assert response.status_code == 200
        assert response.json() == {"subject_id": "u2", "previous_status": "none", "status": "pending_sent"}

        response = await client.get("/relationships/u1", headers=auth_headers("u2"))
        assert response.json()["status"] == "pending_received"

        # No status sent: the server resolves it first
        response = await client.post("/relationships/u1/toggle", headers=auth_headers("u2"))
        assert response.json() == {
            "subject_id": "u1",
            "previous_status": "pending_received",
            "status": "following",
        }

        response = await client.get("/relationships/u1", headers=auth_headers("u2"))
        assert response.json()["status"] == "following"

    @pytest.mark.asyncio
    async def test_toggle_self_is_rejected(self, client, make_follows_table):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[0])
        response = await client.post(
            "/relationships/u1/toggle", json={"current_status": "none"}, headers=auth_headers("u1")
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_unknown_status_value(self, client):
        response = await client.post(
            "/relationships/u2/toggle", json={"current_status": "blocked"}, headers=auth_headers("u1")
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_store_failure_shape(self, client):
        # No follows table in this database
        response = await client.get("/relationships/u2", headers=auth_headers("u1"))
        assert response.status_code == 503
        error = response.json()["error"]
        assert error["code"] == "FEATURE_UNAVAILABLE"
        assert error["message"]


class TestDirectConversationEndpoint:
    @pytest.mark.asyncio
    async def test_redirect_carries_conversation(self, client):
        response = await client.post(
            "/conversations/direct", json={"target_user_id": "u2"}, headers=auth_headers("u1")
        )
        assert response.status_code == 200
        body = response.json()
        assert body["conversation_id"]
        assert body["redirect_to"] == f"/messages?conversation={body['conversation_id']}"

        response = await client.post(
            "/conversations/direct", json={"target_user_id": "u1"}, headers=auth_headers("u2")
        )
        assert response.json()["conversation_id"] == body["conversation_id"]

    @pytest.mark.asyncio
    async def test_unavailable_messaging_goes_to_inbox(self, client, execute):
        await execute("DROP TABLE conversations")

        response = await client.post(
            "/conversations/direct", json={"target_user_id": "u2"}, headers=auth_headers("u1")
        )
        assert response.status_code == 200
        assert response.json() == {"conversation_id": None, "redirect_to": "/messages"}

    @pytest.mark.asyncio
    async def test_stored_procedure_result_is_used(self, client, session_factory):
        async def rpc(viewer_id, target_id):
            return "conv-from-store"

        app.dependency_overrides[get_conversation_bootstrapper] = lambda: ConversationBootstrapper(
            session_factory, rpc=rpc
        )
        response = await client.post(
            "/conversations/direct", json={"target_user_id": "u2"}, headers=auth_headers("u1")
        )
        assert response.json()["redirect_to"] == "/messages?conversation=conv-from-store"

    @pytest.mark.asyncio
    async def test_messaging_yourself_is_rejected(self, client):
        response = await client.post(
            "/conversations/direct", json={"target_user_id": "u1"}, headers=auth_headers("u1")
        )
        assert response.status_code == 422


class TestProfileCardEndpoint:
    @pytest.mark.asyncio
    async def test_missing_profile(self, client, make_follows_table):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[0])
        response = await client.get("/profiles/nobody/card")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_card_for_guest(self, client, profiles, make_follows_table, execute):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[1])
        await execute("INSERT INTO follows (user_id, target_user_id) VALUES ('u1', 'u2'), ('u3', 'u2')")

        response = await client.get("/profiles/u2/card")

        assert response.status_code == 200
        body = response.json()
        assert body["display_name"] == "Ben Okafor"
        assert body["is_verified"] is True
        assert body["relationship"] == "guest"
        assert body["stats"] == {"followers": 2, "following": 0}
        assert body["blocked_by_owner"] is False

    @pytest.mark.asyncio
    async def test_card_for_follower(self, client, profiles, make_follows_table, execute):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[0])
        await execute("INSERT INTO follows (follower_id, following_id) VALUES ('u2', 'u1')")

        response = await client.get("/profiles/u1/card", headers=auth_headers("u2"))

        body = response.json()
        assert body["display_name"] == "Ana Silva"
        assert body["city"] == "Lisbon"
        assert body["relationship"] == "following"
        assert body["stats"] == {"followers": 1, "following": 0}

    @pytest.mark.asyncio
    async def test_blocked_viewer_is_flagged(self, client, profiles, make_follows_table, execute):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[0])
        await execute("INSERT INTO user_blocks (id, blocker_id, blocked_id, created_at) VALUES ('b1', 'u1', 'u3', CURRENT_TIMESTAMP)")

        response = await client.get("/profiles/u1/card", headers=auth_headers("u3"))
        assert response.json()["blocked_by_owner"] is True

    @pytest.mark.asyncio
    async def test_missing_block_list(self, client, profiles, make_follows_table, execute):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[0])
        await execute("DROP TABLE user_blocks")

        response = await client.get("/profiles/u1/card", headers=auth_headers("u3"))
        assert response.status_code == 200
        assert response.json()["blocked_by_owner"] is False

    @pytest.mark.asyncio
    async def test_card_by_username(self, client, profiles, make_follows_table, execute):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[0])
        await execute("INSERT INTO follows (follower_id, following_id) VALUES ('u1', 'u2')")

        response = await client.get("/profiles/ben/card", headers=auth_headers("u1"))

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == "u2"
        # Relationship and counts are keyed on the profile id, not the username
        assert body["relationship"] == "following"
        assert body["stats"] == {"followers": 1, "following": 0}

    @pytest.mark.asyncio
    async def test_own_card_by_username(self, client, profiles, make_follows_table):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[0])
        response = await client.get("/profiles/ana/card", headers=auth_headers("u1"))
        assert response.json()["relationship"] == "self"


class TestFollowListEndpoints:
    @pytest.mark.asyncio
    async def test_followers_on_legacy_columns(self, client, profiles, make_follows_table, execute):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[1])
        await execute("INSERT INTO follows (user_id, target_user_id) VALUES ('u3', 'u2'), ('u1', 'u2')")

        response = await client.get("/profiles/ben/followers")

        assert response.status_code == 200
        body = response.json()
        assert body["profile_id"] == "u2"
        assert [item["id"] for item in body["items"]] == ["u1", "u3"]
        assert body["items"][0]["display_name"] == "Ana Silva"
        assert body["has_more"] is False

    @pytest.mark.asyncio
    async def test_following_with_limit(self, client, profiles, make_follows_table, execute):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[2])
        await execute("INSERT INTO follows (user_id, followed_user_id) VALUES ('u1', 'u2'), ('u1', 'u3')")

        response = await client.get("/profiles/u1/following", params={"limit": 1})
        body = response.json()
        assert [item["id"] for item in body["items"]] == ["u2"]
        assert body["has_more"] is True

        response = await client.get("/profiles/u1/following", params={"limit": 1, "offset": 1})
        assert [item["id"] for item in response.json()["items"]] == ["u3"]

    @pytest.mark.asyncio
    async def test_list_for_missing_profile(self, client, make_follows_table):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[0])
        response = await client.get("/profiles/nobody/followers")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_list_store_failure(self, client, profiles):
        # No follows table
        response = await client.get("/profiles/u1/followers")
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "FEATURE_UNAVAILABLE"
