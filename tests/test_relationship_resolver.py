"""
Tests for relationship status resolution.

Run with: pytest tests/test_relationship_resolver.py -v
"""

import pytest

from bazaar.core.errors import FeatureUnavailableError
from bazaar.social.relationship import STATUS_PRECEDENCE, RelationshipResolver, RelationshipStatus
from bazaar.social.schema_probe import KNOWN_FOLLOW_COLUMNS, FollowColumns


@pytest.fixture
def resolver(follow_graph, ledger):
    return RelationshipResolver(follow_graph, ledger)


async def add_request(execute, requester, receiver, status="pending"):
    await execute(
        "INSERT INTO friend_requests (id, requester_id, receiver_id, status, created_at)"
        " VALUES (:id, :requester, :receiver, :status, CURRENT_TIMESTAMP)",
        id=f"{requester}-{receiver}",
        requester=requester,
        receiver=receiver,
        status=status,
    )


class TestShortCircuits:
    @pytest.mark.asyncio
    async def test_guest(self, resolver):
        # No follows table at all: a guest never reaches the store
        assert await resolver.resolve(None, "u2") == RelationshipStatus.GUEST

    @pytest.mark.asyncio
    async def test_self_ignores_stored_edges(self, resolver, make_follows_table, execute):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[0], unique=False)
        await execute("INSERT INTO follows (follower_id, following_id) VALUES ('u1', 'u1')")
        await add_request(execute, "u1", "u2")

        assert await resolver.resolve("u1", "u1") == RelationshipStatus.SELF

    def test_precedence_is_explicit(self):
        assert STATUS_PRECEDENCE == (
            RelationshipStatus.SELF,
            RelationshipStatus.GUEST,
            RelationshipStatus.FOLLOWING,
            RelationshipStatus.PENDING_SENT,
            RelationshipStatus.PENDING_RECEIVED,
            RelationshipStatus.NONE,
        )


class TestStoreBackedStatus:
    @pytest.mark.asyncio
    async def test_none(self, resolver, make_follows_table):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[0])
        assert await resolver.resolve("u1", "u2") == RelationshipStatus.NONE

    @pytest.mark.asyncio
    async def test_following_on_each_encoding(self, resolver, make_follows_table, execute):
        for columns in KNOWN_FOLLOW_COLUMNS:
            await execute("DROP TABLE IF EXISTS follows")
            await make_follows_table(columns)
            await execute(
                f"INSERT INTO follows ({columns.follower}, {columns.followee}) VALUES ('u1', 'u2')"
            )
            assert await resolver.resolve("u1", "u2") == RelationshipStatus.FOLLOWING
            assert await resolver.resolve("u2", "u1") == RelationshipStatus.NONE

    @pytest.mark.asyncio
    async def test_pending_sent(self, resolver, make_follows_table, execute):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[1])
        await add_request(execute, "u1", "u2")
        assert await resolver.resolve("u1", "u2") == RelationshipStatus.PENDING_SENT

    @pytest.mark.asyncio
    async def test_pending_received(self, resolver, make_follows_table, execute):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[1])
        await add_request(execute, "u2", "u1")
        assert await resolver.resolve("u1", "u2") == RelationshipStatus.PENDING_RECEIVED

    @pytest.mark.asyncio
    async def test_accepted_request_is_not_pending(self, resolver, make_follows_table, execute):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[0])
        await add_request(execute, "u2", "u1", status="accepted")
        assert await resolver.resolve("u1", "u2") == RelationshipStatus.NONE

    @pytest.mark.asyncio
    async def test_following_beats_pending(self, resolver, make_follows_table, execute):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[0])
        await execute("INSERT INTO follows (follower_id, following_id) VALUES ('u1', 'u2')")
        await add_request(execute, "u1", "u2")
        await add_request(execute, "u2", "u1")
        assert await resolver.resolve("u1", "u2") == RelationshipStatus.FOLLOWING

    @pytest.mark.asyncio
    async def test_pending_sent_beats_pending_received(self, resolver, make_follows_table, execute):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[0])
        await add_request(execute, "u1", "u2")
        await add_request(execute, "u2", "u1")
        assert await resolver.resolve("u1", "u2") == RelationshipStatus.PENDING_SENT


class TestProbeSemantics:
    @pytest.mark.asyncio
    async def test_empty_answer_is_authoritative(self, resolver, make_follows_table, execute):
        """An edge stored only under a later encoding is not seen once an earlier one answers."""
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[0], extra_columns=("user_id", "followed_user_id"))
        await execute("INSERT INTO follows (user_id, followed_user_id) VALUES ('u1', 'u2')")

        assert await resolver.resolve("u1", "u2") == RelationshipStatus.NONE

    @pytest.mark.asyncio
    async def test_unknown_encoding_means_not_following(self, resolver, make_follows_table, execute):
        await make_follows_table(FollowColumns("fan_id", "idol_id"))
        await add_request(execute, "u2", "u1")
        assert await resolver.resolve("u1", "u2") == RelationshipStatus.PENDING_RECEIVED

    @pytest.mark.asyncio
    async def test_missing_ledger_means_no_request(self, resolver, make_follows_table, execute):
        await make_follows_table(KNOWN_FOLLOW_COLUMNS[0])
        await execute("DROP TABLE friend_requests")
        assert await resolver.resolve("u1", "u2") == RelationshipStatus.NONE

    @pytest.mark.asyncio
    async def test_store_failure_is_reported(self, resolver):
        # No follows table: not a column mismatch, so the probe aborts
        with pytest.raises(FeatureUnavailableError):
            await resolver.resolve("u1", "u2")
