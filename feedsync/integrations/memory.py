"""
In-Memory Remote Store

This module provides a process-local PostStore used in development mode and
in tests. It mirrors the Firestore backend's semantics, including pushing
change notifications to filtered subscriptions asynchronously.
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import structlog

from feedsync.integrations.store import (
    ChangeCallback,
    ErrorCallback,
    PostStore,
    StoreSubscription,
)
from feedsync.models.post import ChangeType, NewPost, Post, PostChange, Profile
from feedsync.utils.error_handling import StoreWriteError


class InMemorySubscription(StoreSubscription):
    """Subscription handle registered with an InMemoryPostStore."""
    
    def __init__(
        self,
        store: "InMemoryPostStore",
        user_id: str,
        on_change: ChangeCallback,
        on_error: Optional[ErrorCallback],
        loop: asyncio.AbstractEventLoop
    ):
        self.store = store
        self.user_id = user_id
        self.on_change = on_change
        self.on_error = on_error
        self.loop = loop
        self._active = True
    
    @property
    def active(self) -> bool:
        return self._active
    
    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self.store._remove_subscription(self)
    
    def deliver(self, change: PostChange) -> None:
        # Push semantics: never call back inside the writer's frame
        self.loop.call_soon(self._dispatch, change)
    
    def fail(self, error: Exception) -> None:
        self.loop.call_soon(self._dispatch_error, error)
    
    def _dispatch(self, change: PostChange) -> None:
        if self._active:
            self.on_change(change)
    
    def _dispatch_error(self, error: Exception) -> None:
        if self._active and self.on_error is not None:
            self.on_error(error)


class InMemoryPostStore(PostStore):
    """Dictionary-backed post store with live change notifications."""
    
    def __init__(self):
        """Initialize empty storage."""
        self.logger = structlog.get_logger(__name__)
        self._posts: Dict[str, Dict[str, Any]] = {}
        self._profiles: Dict[str, Profile] = {}
        self._subscriptions: List[InMemorySubscription] = []
    
    # Profile Operations
    def upsert_profile(self, profile: Profile) -> Profile:
        """Create or replace an author profile."""
        self._profiles[profile.id] = profile
        return profile
    
    # Post Operations
    async def query_user_posts(self, user_id: str) -> List[Post]:
        """Get a user's posts, newest first, with author joined."""
        rows = [row for row in self._posts.values() if row["user_id"] == user_id]
        rows.sort(key=lambda row: row["created_at"], reverse=True)
        return [self._to_post(row) for row in rows]
    
    async def insert_post(self, new_post: NewPost) -> Post:
        """Insert a post, assigning its ID and timestamps."""
        if not new_post.user_id:
            raise StoreWriteError("Post owner is required")
        
        now = self._now()
        row = new_post.to_row()
        row["id"] = str(uuid.uuid4())
        row["created_at"] = now
        row["updated_at"] = now
        self._posts[row["id"]] = row
        
        self.logger.info("Post created in memory store", post_id=row["id"], user_id=row["user_id"])
        self._publish(ChangeType.INSERT, row)
        return self._to_post(row)
    
    async def update_post(self, post_id: str, updates: Dict[str, Any]) -> Optional[Post]:
        """Update a post server-side, as another session would."""
        row = self._posts.get(post_id)
        if row is None:
            return None
        
        allowed = {key: value for key, value in updates.items() if key in ("content", "image_url")}
        row.update(allowed)
        row["updated_at"] = datetime.now(timezone.utc)
        
        self._publish(ChangeType.UPDATE, row)
        return self._to_post(row)
    
    async def delete_post(self, post_id: str) -> bool:
        """Delete a post server-side."""
        row = self._posts.pop(post_id, None)
        if row is None:
            return False
        
        self.logger.info("Post deleted from memory store", post_id=post_id)
        self._publish(ChangeType.DELETE, row)
        return True
    
    # Subscription Operations
    async def subscribe_user_posts(
        self,
        user_id: str,
        on_change: ChangeCallback,
        on_error: Optional[ErrorCallback] = None
    ) -> StoreSubscription:
        """Register a subscription filtered on the post owner."""
        subscription = InMemorySubscription(
            store=self,
            user_id=user_id,
            on_change=on_change,
            on_error=on_error,
            loop=asyncio.get_running_loop()
        )
        self._subscriptions.append(subscription)
        self.logger.info("Subscription opened", user_id=user_id)
        return subscription
    
    def drop_subscriptions(self, error: Exception) -> None:
        """Simulate the live channel dropping for every open subscription."""
        for subscription in list(self._subscriptions):
            subscription.fail(error)
    
    @property
    def subscription_count(self) -> int:
        """Number of open subscriptions."""
        return len(self._subscriptions)
    
    def _remove_subscription(self, subscription: InMemorySubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            self.logger.info("Subscription closed", user_id=subscription.user_id)
    
    def _publish(self, change_type: ChangeType, row: Dict[str, Any]) -> None:
        change = PostChange(change_type=change_type, post_id=row["id"], user_id=row["user_id"])
        for subscription in list(self._subscriptions):
            if subscription.user_id == row["user_id"]:
                subscription.deliver(change)
    
    def _to_post(self, row: Dict[str, Any]) -> Post:
        return Post(**row, author=self._profiles.get(row["user_id"]))
    
    def _now(self) -> datetime:
        # Creation order stays strict even when the clock does not advance
        now = datetime.now(timezone.utc)
        latest = max((row["created_at"] for row in self._posts.values()), default=None)
        if latest is not None and now <= latest:
            now = latest + timedelta(microseconds=1)
        return now
