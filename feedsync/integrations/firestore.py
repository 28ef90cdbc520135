"""
Firestore Remote Store

This module provides the production PostStore backed by Firestore: the
owner-filtered post query with the author profile joined, post inserts with
server timestamps, and live change subscriptions via snapshot listeners.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import structlog
from google.cloud import firestore
from google.cloud.firestore_v1 import FieldFilter, Query

from feedsync.config.settings import Settings, get_settings
from feedsync.integrations.store import (
    ChangeCallback,
    ErrorCallback,
    PostStore,
    StoreSubscription,
)
from feedsync.models.post import ChangeType, NewPost, Post, PostChange, Profile
from feedsync.utils.error_handling import (
    ErrorContext,
    StoreQueryError,
    StoreWriteError,
    SubscriptionError,
    error_message,
)
from feedsync.utils.logger import log_store_call

# Firestore document change names mapped to store change types
_CHANGE_TYPES = {
    "ADDED": ChangeType.INSERT,
    "MODIFIED": ChangeType.UPDATE,
    "REMOVED": ChangeType.DELETE,
}


class FirestoreSubscription(StoreSubscription):
    """Handle wrapping a Firestore snapshot listener."""
    
    def __init__(self, user_id: str):
        self.user_id = user_id
        self.watch = None
        self._active = True
        self.logger = structlog.get_logger(__name__)
    
    @property
    def active(self) -> bool:
        # The watch stops streaming on its own after an unrecoverable error
        return self._active and (self.watch is None or bool(self.watch.is_active))
    
    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        if self.watch is not None:
            self.watch.unsubscribe()
        self.logger.info("Firestore subscription closed", user_id=self.user_id)


class FirestorePostStore(PostStore):
    """Firestore-backed post store."""
    
    def __init__(self, db: Any, settings: Optional[Settings] = None):
        """Initialize with a Firestore client."""
        self.db = db
        self.settings = settings or get_settings()
        self.logger = structlog.get_logger(__name__)
        
        # Collection names
        self.posts_collection = self.settings.posts_collection
        self.profiles_collection = self.settings.profiles_collection
    
    # Post Operations
    async def query_user_posts(self, user_id: str) -> List[Post]:
        """Get a user's posts, newest first, with author profiles joined."""
        start_time = time.monotonic()
        try:
            posts = await asyncio.to_thread(self._fetch_user_posts, user_id)
        except Exception as e:
            log_store_call(
                "firestore",
                "query_user_posts",
                success=False,
                duration_ms=(time.monotonic() - start_time) * 1000,
                user_id=user_id,
                error=str(e)
            )
            raise StoreQueryError(
                error_message(e, "Failed to load posts"),
                context=ErrorContext(service="firestore", operation="query_user_posts", user_id=user_id),
                original_error=e
            ) from e
        
        log_store_call(
            "firestore",
            "query_user_posts",
            success=True,
            duration_ms=(time.monotonic() - start_time) * 1000,
            user_id=user_id,
            count=len(posts)
        )
        return posts
    
    async def insert_post(self, new_post: NewPost) -> Post:
        """Insert a post with server-assigned ID and timestamps."""
        start_time = time.monotonic()
        try:
            post = await asyncio.to_thread(self._write_post, new_post)
        except Exception as e:
            log_store_call(
                "firestore",
                "insert_post",
                success=False,
                duration_ms=(time.monotonic() - start_time) * 1000,
                user_id=new_post.user_id,
                error=str(e)
            )
            raise StoreWriteError(
                error_message(e, "Failed to create post"),
                context=ErrorContext(service="firestore", operation="insert_post", user_id=new_post.user_id),
                original_error=e
            ) from e
        
        log_store_call(
            "firestore",
            "insert_post",
            success=True,
            duration_ms=(time.monotonic() - start_time) * 1000,
            user_id=new_post.user_id,
            post_id=post.id
        )
        return post
    
    # Subscription Operations
    async def subscribe_user_posts(
        self,
        user_id: str,
        on_change: ChangeCallback,
        on_error: Optional[ErrorCallback] = None
    ) -> StoreSubscription:
        """
        Attach a snapshot listener to the user's posts.
        
        The listener's first callback carries the initial result set and
        completes the handshake; only later callbacks are reported as changes.
        Callbacks arrive on a Firestore worker thread and are handed to the
        event loop that opened the subscription.
        """
        loop = asyncio.get_running_loop()
        handshake = loop.create_future()
        subscription = FirestoreSubscription(user_id)
        initial_snapshot = True
        
        def complete_handshake() -> None:
            if not handshake.done():
                handshake.set_result(None)
        
        def dispatch(change: PostChange) -> None:
            if subscription.active:
                on_change(change)
        
        def dispatch_error(error: Exception) -> None:
            if subscription.active and on_error is not None:
                on_error(error)
        
        def on_snapshot(col_snapshot, changes, read_time) -> None:
            nonlocal initial_snapshot
            if initial_snapshot:
                initial_snapshot = False
                loop.call_soon_threadsafe(complete_handshake)
                return
            try:
                for change in changes:
                    loop.call_soon_threadsafe(dispatch, self._to_change(change))
            except Exception as e:
                self.logger.error("Failed to read post changes", user_id=user_id, error=str(e))
                loop.call_soon_threadsafe(dispatch_error, e)
        
        try:
            subscription.watch = self._user_posts_query(user_id).on_snapshot(on_snapshot)
        except Exception as e:
            self.logger.error("Failed to open Firestore subscription", user_id=user_id, error=str(e))
            raise SubscriptionError(
                error_message(e, "Live updates are unavailable"),
                context=ErrorContext(service="firestore", operation="subscribe_user_posts", user_id=user_id),
                original_error=e
            ) from e
        
        try:
            await asyncio.wait_for(
                handshake,
                timeout=self.settings.subscription_handshake_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            subscription.cancel()
            raise SubscriptionError(
                "Live updates did not start in time",
                context=ErrorContext(service="firestore", operation="subscribe_user_posts", user_id=user_id),
                original_error=e
            ) from e
        except BaseException:
            # Caller cancelled during the handshake
            subscription.cancel()
            raise
        
        self.logger.info("Firestore subscription opened", user_id=user_id)
        return subscription
    
    # Helpers
    def _user_posts_query(self, user_id: str):
        return self.db.collection(self.posts_collection).where(
            filter=FieldFilter("user_id", "==", user_id)
        ).order_by("created_at", direction=Query.DESCENDING)
    
    def _fetch_user_posts(self, user_id: str) -> List[Post]:
        documents = [(doc.id, doc.to_dict()) for doc in self._user_posts_query(user_id).stream()]
        profiles = self._fetch_profiles(data.get("user_id") for _, data in documents)
        return [self._to_post(doc_id, data, profiles) for doc_id, data in documents]
    
    def _write_post(self, new_post: NewPost) -> Post:
        post_dict = new_post.to_row()
        post_dict["created_at"] = firestore.SERVER_TIMESTAMP
        post_dict["updated_at"] = firestore.SERVER_TIMESTAMP
        
        doc_ref = self.db.collection(self.posts_collection).document()
        doc_ref.set(post_dict)
        
        # Read back for the server-resolved timestamps
        snapshot = doc_ref.get()
        profiles = self._fetch_profiles([new_post.user_id])
        return self._to_post(snapshot.id, snapshot.to_dict(), profiles)
    
    def _fetch_profiles(self, user_ids: Iterable[Optional[str]]) -> Dict[str, Profile]:
        """Join step: load the author profile of each distinct owner."""
        refs = [
            self.db.collection(self.profiles_collection).document(user_id)
            for user_id in sorted({user_id for user_id in user_ids if user_id})
        ]
        if not refs:
            return {}
        
        profiles = {}
        for snapshot in self.db.get_all(refs):
            if not snapshot.exists:
                continue
            profile_data = snapshot.to_dict()
            profile_data["id"] = snapshot.id
            for field in ("created_at", "updated_at"):
                if field in profile_data:
                    profile_data[field] = _to_datetime(profile_data[field])
            profiles[snapshot.id] = Profile(**profile_data)
        return profiles
    
    def _to_post(self, doc_id: str, data: Dict[str, Any], profiles: Dict[str, Profile]) -> Post:
        post_data = dict(data)
        post_data["id"] = doc_id
        post_data["created_at"] = _to_datetime(post_data.get("created_at"))
        post_data["updated_at"] = _to_datetime(post_data.get("updated_at") or post_data["created_at"])
        post_data["author"] = profiles.get(post_data.get("user_id"))
        return Post(**post_data)
    
    def _to_change(self, change: Any) -> PostChange:
        document = change.document
        data = document.to_dict() or {}
        return PostChange(
            change_type=_CHANGE_TYPES.get(change.type.name, ChangeType.UPDATE),
            post_id=document.id,
            user_id=data.get("user_id")
        )


def _to_datetime(value: Any) -> datetime:
    """Convert Firestore timestamp representations to an aware datetime."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if hasattr(value, "seconds"):
        return datetime.fromtimestamp(value.seconds, tz=timezone.utc)
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    # Pending server timestamp on a locally cached write
    return datetime.now(timezone.utc)
