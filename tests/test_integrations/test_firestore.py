"""
Tests for Firestore Post Store

This module contains tests for the Firestore-backed store using a mocked
Firestore client.
"""

import asyncio
from datetime import datetime, timezone

import pytest
from unittest.mock import MagicMock

from conftest import settle
from feedsync.config.settings import Settings
from feedsync.integrations.firestore import FirestorePostStore, _to_datetime
from feedsync.models.post import ChangeType, NewPost, PostChange
from feedsync.utils.error_handling import StoreQueryError, StoreWriteError, SubscriptionError
from google.cloud import firestore
from google.cloud.firestore_v1 import Query

CREATED = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_document(doc_id: str, data: dict, exists: bool = True) -> MagicMock:
    """Create a mock Firestore document snapshot."""
    document = MagicMock()
    document.id = doc_id
    document.exists = exists
    document.to_dict.return_value = data
    return document


def make_change(type_name: str, doc_id: str, data: dict) -> MagicMock:
    change = MagicMock()
    change.type.name = type_name
    change.document = make_document(doc_id, data)
    return change


class TestFirestorePostStore:
    """Test Firestore store functionality."""

    @pytest.fixture
    def settings(self) -> Settings:
        return Settings(subscription_handshake_timeout_seconds=0.05)

    @pytest.fixture
    def mock_db(self) -> MagicMock:
        return MagicMock()

    @pytest.fixture
    def mock_query(self, mock_db: MagicMock) -> MagicMock:
        query = MagicMock()
        mock_db.collection.return_value.where.return_value.order_by.return_value = query
        return query

    @pytest.fixture
    def store(self, mock_db, settings) -> FirestorePostStore:
        return FirestorePostStore(mock_db, settings)

    @pytest.mark.asyncio
    async def test_query_user_posts(self, store, mock_db, mock_query):
        """Test the owner-filtered query with author join."""
        mock_query.stream.return_value = [
            make_document("post-2", {
                "user_id": "alice",
                "content": "newer",
                "image_url": "https://cdn.example.com/cat.jpg",
                "created_at": CREATED,
                "updated_at": CREATED,
            }),
            make_document("post-1", {
                "user_id": "alice",
                "content": "older",
                "image_url": None,
                "created_at": datetime(2023, 12, 31, 9, 0),
                "updated_at": None,
            }),
        ]
        mock_db.get_all.return_value = [
            make_document("alice", {"full_name": "Alice Doe", "avatar_url": None})
        ]

        posts = await store.query_user_posts("alice")

        mock_db.collection.assert_any_call("posts")
        where_filter = mock_db.collection.return_value.where.call_args.kwargs["filter"]
        assert (where_filter.field_path, where_filter.op_string, where_filter.value) == ("user_id", "==", "alice")
        mock_db.collection.return_value.where.return_value.order_by.assert_called_once_with(
            "created_at",
            direction=Query.DESCENDING
        )

        assert [post.id for post in posts] == ["post-2", "post-1"]
        assert posts[0].image_url == "https://cdn.example.com/cat.jpg"
        assert posts[0].author.full_name == "Alice Doe"
        assert posts[1].created_at.tzinfo is not None
        assert posts[1].updated_at == posts[1].created_at

    @pytest.mark.asyncio
    async def test_query_without_profile(self, store, mock_db, mock_query):
        """Test posts whose author profile is missing have no author."""
        mock_query.stream.return_value = [
            make_document("post-1", {"user_id": "alice", "content": "hi", "created_at": CREATED})
        ]
        mock_db.get_all.return_value = [make_document("alice", {}, exists=False)]

        posts = await store.query_user_posts("alice")

        assert posts[0].author is None

    @pytest.mark.asyncio
    async def test_query_failure(self, store, mock_query):
        """Test SDK errors surface as StoreQueryError."""
        mock_query.stream.side_effect = Exception("403 Missing or insufficient permissions.")

        with pytest.raises(StoreQueryError, match="insufficient permissions") as exc_info:
            await store.query_user_posts("alice")

        assert exc_info.value.context.operation == "query_user_posts"

    @pytest.mark.asyncio
    async def test_insert_post(self, store, mock_db):
        """Test inserts use server timestamps and return the stored row."""
        doc_ref = mock_db.collection.return_value.document.return_value
        doc_ref.get.return_value = make_document("new-post", {
            "user_id": "alice",
            "content": "hello",
            "image_url": None,
            "created_at": CREATED,
            "updated_at": CREATED,
        })
        mock_db.get_all.return_value = []

        post = await store.insert_post(NewPost(user_id="alice", content="hello"))

        written = doc_ref.set.call_args.args[0]
        assert written["user_id"] == "alice"
        assert written["content"] == "hello"
        assert written["image_url"] is None
        assert written["created_at"] is firestore.SERVER_TIMESTAMP
        assert post.id == "new-post"
        assert post.created_at == CREATED

    @pytest.mark.asyncio
    async def test_insert_failure(self, store, mock_db):
        """Test write errors carry a human-readable message."""
        mock_db.collection.return_value.document.return_value.set.side_effect = Exception("Deadline exceeded")

        with pytest.raises(StoreWriteError) as exc_info:
            await store.insert_post(NewPost(user_id="alice", content="hello"))

        assert exc_info.value.message == "Deadline exceeded"


class TestFirestoreSubscription:
    """Test snapshot listener subscriptions."""

    @pytest.fixture
    def settings(self) -> Settings:
        return Settings(subscription_handshake_timeout_seconds=0.05)

    @pytest.fixture
    def mock_db(self) -> MagicMock:
        return MagicMock()

    @pytest.fixture
    def mock_query(self, mock_db: MagicMock) -> MagicMock:
        query = MagicMock()
        mock_db.collection.return_value.where.return_value.order_by.return_value = query
        return query

    @pytest.fixture
    def store(self, mock_db, settings) -> FirestorePostStore:
        return FirestorePostStore(mock_db, settings)

    @pytest.fixture
    def listener(self, mock_query: MagicMock) -> dict:
        """Capture the snapshot callback and deliver the initial snapshot."""
        captured = {"watch": MagicMock()}

        def on_snapshot(callback):
            captured["callback"] = callback
            callback([], [], None)
            return captured["watch"]

        mock_query.on_snapshot.side_effect = on_snapshot
        return captured

    @pytest.mark.asyncio
    async def test_changes_after_handshake_are_delivered(self, store, listener):
        on_change = MagicMock()
        subscription = await store.subscribe_user_posts("alice", on_change)
        await settle()

        # The initial snapshot is the handshake, not a change
        on_change.assert_not_called()
        assert subscription.active is True

        listener["callback"]([], [
            make_change("ADDED", "p1", {"user_id": "alice"}),
            make_change("MODIFIED", "p1", {"user_id": "alice"}),
            make_change("REMOVED", "p2", None),
        ], None)
        await settle()

        changes = [call.args[0] for call in on_change.call_args_list]
        assert all(isinstance(change, PostChange) for change in changes)
        assert [change.change_type for change in changes] == [
            ChangeType.INSERT,
            ChangeType.UPDATE,
            ChangeType.DELETE,
        ]
        assert changes[2].user_id is None

    @pytest.mark.asyncio
    async def test_cancel_unsubscribes_once(self, store, listener):
        on_change = MagicMock()
        subscription = await store.subscribe_user_posts("alice", on_change)

        subscription.cancel()
        subscription.cancel()
        listener["callback"]([], [make_change("ADDED", "p1", {"user_id": "alice"})], None)
        await settle()

        listener["watch"].unsubscribe.assert_called_once()
        on_change.assert_not_called()
        assert subscription.active is False

    @pytest.mark.asyncio
    async def test_stopped_watch_is_inactive(self, store, listener):
        """Test a watch that stopped streaming after an error reports inactive."""
        listener["watch"].is_active = True
        subscription = await store.subscribe_user_posts("alice", MagicMock())
        assert subscription.active is True

        listener["watch"].is_active = False

        assert subscription.active is False
        subscription.cancel()
        listener["watch"].unsubscribe.assert_called_once()

    @pytest.mark.asyncio
    async def test_cancelled_handshake_releases_watch(self, mock_db, mock_query):
        """Test a caller cancelled during the handshake does not leak the listener."""
        store = FirestorePostStore(mock_db, Settings(subscription_handshake_timeout_seconds=5))
        watch = MagicMock()
        mock_query.on_snapshot.return_value = watch

        pending = asyncio.ensure_future(store.subscribe_user_posts("alice", MagicMock()))
        await settle()
        pending.cancel()

        with pytest.raises(asyncio.CancelledError):
            await pending
        watch.unsubscribe.assert_called_once()

    @pytest.mark.asyncio
    async def test_handshake_timeout(self, store, mock_query):
        """Test a listener that never delivers its first snapshot fails the handshake."""
        watch = MagicMock()
        mock_query.on_snapshot.return_value = watch

        with pytest.raises(SubscriptionError, match="did not start"):
            await store.subscribe_user_posts("alice", MagicMock())

        watch.unsubscribe.assert_called_once()

    @pytest.mark.asyncio
    async def test_listener_creation_failure(self, store, mock_query):
        mock_query.on_snapshot.side_effect = Exception("503 Service Unavailable")

        with pytest.raises(SubscriptionError, match="Service Unavailable"):
            await store.subscribe_user_posts("alice", MagicMock())


class TestTimestampConversion:
    """Test Firestore timestamp normalization."""

    def test_naive_datetime_is_utc(self):
        assert _to_datetime(datetime(2024, 1, 1)).tzinfo == timezone.utc

    def test_seconds_timestamp(self):
        timestamp = MagicMock(spec=["seconds"])
        timestamp.seconds = 1704110400

        assert _to_datetime(timestamp) == CREATED

    def test_iso_string(self):
        assert _to_datetime("2024-01-01T12:00:00+00:00") == CREATED
