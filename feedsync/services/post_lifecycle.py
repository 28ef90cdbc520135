"""
Post Lifecycle Service

This service keeps a locally cached, eventually-consistent view of one
user's posts:
- Full-snapshot loads (replace, never merge)
- A single live subscription that triggers reconciliation on any change
- A serialized refresh queue coalescing overlapping requests
- Disposal that discards late store responses
"""

import asyncio
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

import structlog

from feedsync.integrations.store import PostStore, StoreSubscription
from feedsync.models.post import Post, PostChange
from feedsync.models.state import FeedState, FeedStatus
from feedsync.services.observable import StateObservable
from feedsync.utils.error_handling import error_message


class PostLifecycleManager(StateObservable[FeedState]):
    """Owns the ordered post collection of a single user."""

    def __init__(self, store: PostStore, user_id: str):
        """
        Initialize the manager for one user.

        Args:
            store: Remote post store
            user_id: User whose posts are managed; fixed for the manager's lifetime
        """
        super().__init__()
        if not user_id:
            raise ValueError("user_id is required")

        self.logger = structlog.get_logger(__name__).bind(user_id=user_id)
        self.store = store
        self.user_id = user_id

        self._posts: Tuple[Post, ...] = ()
        self._status = FeedStatus.IDLE
        self._error: Optional[str] = None
        self._subscription_error: Optional[str] = None
        self._has_loaded = False
        self._last_loaded_at: Optional[datetime] = None

        # Refresh queue: one query in flight plus at most one pending follow-up
        self._refresh_task: Optional[asyncio.Task] = None
        self._refresh_pending = False

        self._subscription: Optional[StoreSubscription] = None
        self._subscribe_lock = asyncio.Lock()

    @property
    def state(self) -> FeedState:
        """Current snapshot of the collection."""
        return FeedState(
            user_id=self.user_id,
            status=self._status,
            posts=list(self._posts),
            error=self._error,
            subscription_error=self._subscription_error,
            live=self._subscription is not None and self._subscription.active,
            has_loaded=self._has_loaded,
            last_loaded_at=self._last_loaded_at,
        )

    @property
    def posts(self) -> List[Post]:
        return list(self._posts)

    @property
    def status(self) -> FeedStatus:
        return self._status

    @property
    def disposed(self) -> bool:
        return self._status == FeedStatus.DISPOSED

    # Loading
    async def load(self) -> FeedState:
        """Load the user's posts, replacing the whole collection."""
        return await self.refresh()

    async def refresh(self) -> FeedState:
        """
        Reconcile with the store and wait until the collection has converged.

        Failures never propagate: they are reported through ``state.error``
        with the previous collection left in place.
        """
        task = self.request_refresh()
        if task is not None:
            # Shielded: a cancelled caller must not cancel a refresh others wait on
            await asyncio.shield(task)
        return self.state

    def request_refresh(self) -> Optional[asyncio.Task]:
        """
        Enqueue a reconciliation without waiting for it.

        Requests arriving while a query is in flight coalesce into a single
        follow-up query, so the collection always converges to the newest
        snapshot and responses are applied in issue order.

        Returns:
            The task draining the refresh queue, or None once disposed
        """
        if self.disposed:
            return None

        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_pending = True
            self.logger.debug("Refresh coalesced into pending follow-up")
            return self._refresh_task

        self._refresh_task = asyncio.ensure_future(self._drain_refresh_queue())
        return self._refresh_task

    async def wait_until_settled(self) -> FeedState:
        """Wait for any queued reconciliation to finish."""
        task = self._refresh_task
        if task is not None and not task.done():
            await asyncio.shield(task)
        return self.state

    async def _drain_refresh_queue(self) -> None:
        # Disposal may land between scheduling and the first turn of this task
        while not self.disposed:
            self._refresh_pending = False
            await self._load_snapshot()
            if not self._refresh_pending:
                return

    async def _load_snapshot(self) -> None:
        self._check_subscription()
        self._set_status(FeedStatus.LOADING)

        try:
            snapshot = await self.store.query_user_posts(self.user_id)
        except Exception as e:
            if self.disposed:
                self.logger.info("Discarding late load failure after disposal", error=str(e))
                return
            self._error = error_message(e, "Failed to load posts")
            self.logger.error("Failed to load posts", error=str(e))
            self._set_status(FeedStatus.FAILED)
            return

        if self.disposed:
            self.logger.info("Discarding late snapshot after disposal", count=len(snapshot))
            return

        self._posts = _normalize_snapshot(snapshot)
        self._error = None
        self._has_loaded = True
        self._last_loaded_at = datetime.now(timezone.utc)
        self.logger.info("Posts loaded", count=len(self._posts))
        self._set_status(FeedStatus.READY)

    # Live updates
    async def subscribe(self) -> Optional[StoreSubscription]:
        """
        Open the live subscription for this user's posts.

        Only one subscription is ever open; repeated calls return the open
        handle. A failed handshake degrades freshness (``subscription_error``)
        and returns None, leaving manual refresh available.
        """
        async with self._subscribe_lock:
            if self.disposed:
                return None
            if self._subscription is not None and self._subscription.active:
                return self._subscription

            try:
                subscription = await self.store.subscribe_user_posts(
                    self.user_id,
                    self._on_change,
                    self._on_subscription_error
                )
            except Exception as e:
                if self.disposed:
                    return None
                self._subscription_error = error_message(e, "Live updates are unavailable")
                self.logger.warning("Failed to open live subscription", error=str(e))
                self._notify()
                return None

            if self.disposed:
                # Disposed during the handshake
                subscription.cancel()
                return None

            self._subscription = subscription
            self._subscription_error = None
            self.logger.info("Live subscription opened")
            self._notify()
            return subscription

    def _on_change(self, change: PostChange) -> None:
        if self.disposed:
            return
        if change.user_id is not None and change.user_id != self.user_id:
            self.logger.debug("Ignoring change for another user", post_id=change.post_id)
            return

        self.logger.debug(
            "Change notification received",
            change_type=change.change_type.value,
            post_id=change.post_id
        )
        self.request_refresh()

    def _on_subscription_error(self, error: Exception) -> None:
        if self.disposed:
            return
        self._subscription_error = error_message(error, "Live updates were interrupted")
        self.logger.warning("Live subscription dropped", error=str(error))
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        self._notify()

    def _check_subscription(self) -> None:
        """Detect a live channel that stopped without reporting an error."""
        if self._subscription is None or self._subscription.active:
            return
        if self._subscription_error is None:
            self._subscription_error = "Live updates were interrupted"
            self.logger.warning("Live subscription no longer active")
        self._subscription.cancel()
        self._subscription = None

    # Teardown
    def dispose(self) -> None:
        """
        Release the subscription and stop all further state transitions.

        Idempotent, and safe when ``subscribe`` never succeeded.
        """
        if self.disposed:
            return

        if self._subscription is not None:
            self._subscription.cancel()

        self._status = FeedStatus.DISPOSED
        self._refresh_pending = False
        self.logger.info("Post lifecycle manager disposed")
        self._notify()
        self._listeners.clear()

    def _set_status(self, status: FeedStatus) -> None:
        self._status = status
        self._notify()


def _normalize_snapshot(posts: Iterable[Post]) -> Tuple[Post, ...]:
    """Unique by ID, newest first."""
    unique = {}
    for post in posts:
        unique.setdefault(post.id, post)
    return tuple(sorted(unique.values(), key=lambda post: post.created_at, reverse=True))
