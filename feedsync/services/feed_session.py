"""
Feed Session Service

A FeedSession is one mounted feed screen: it wires a post lifecycle manager
and a draft controller for the signed-in user, so that a successful submit
refreshes the feed. The SessionRegistry keeps one session per user for the
HTTP/WebSocket rendering-surface bridge.
"""

import asyncio
from typing import Dict, Optional

import structlog

from feedsync.integrations.image_picker import ImagePicker
from feedsync.integrations.store import PostStore
from feedsync.services.post_draft import PostDraftController
from feedsync.services.post_lifecycle import PostLifecycleManager


class FeedSession:
    """Post components of one mounted feed screen."""

    def __init__(
        self,
        store: PostStore,
        user_id: str,
        image_picker: Optional[ImagePicker] = None
    ):
        self.logger = structlog.get_logger(__name__)
        self.store = store
        self.image_picker = image_picker
        self.mounted = False
        self._build(user_id)

    def _build(self, user_id: str) -> None:
        self.user_id = user_id
        self.feed = PostLifecycleManager(self.store, user_id)
        self.draft = PostDraftController(
            self.store,
            user_id,
            on_post_created=self.feed.request_refresh,
            image_picker=self.image_picker
        )
        self._mount_task: Optional[asyncio.Task] = None

    async def mount(self) -> None:
        """
        Open the live subscription, then perform the initial load.

        Concurrent callers share one mount and all return once it completes.
        """
        if self._mount_task is None:
            self.mounted = True
            self.logger.info("Feed session mounted", user_id=self.user_id)
            self._mount_task = asyncio.ensure_future(self._open())
        await asyncio.shield(self._mount_task)

    async def _open(self) -> None:
        # Subscribing first means no change between load and subscribe is missed
        await self.feed.subscribe()
        await self.feed.load()

    async def unmount(self) -> None:
        """Tear down both components; late store responses are discarded."""
        self.draft.dispose()
        self.feed.dispose()
        if self.mounted:
            self.mounted = False
            self.logger.info("Feed session unmounted", user_id=self.user_id)

    async def switch_user(self, user_id: str) -> None:
        """Show another user's feed, releasing the previous subscription."""
        if user_id == self.user_id and self.mounted:
            return
        was_mounted = self.mounted
        await self.unmount()
        self._build(user_id)
        if was_mounted:
            await self.mount()

    async def sign_out(self) -> None:
        """Leave the feed because the user signed out."""
        self.logger.info("User signed out of feed session", user_id=self.user_id)
        await self.unmount()

    def snapshot(self) -> Dict[str, object]:
        return {"feed": self.feed.state, "draft": self.draft.state}


class SessionRegistry:
    """One mounted FeedSession per user."""

    def __init__(self, store: PostStore, image_picker: Optional[ImagePicker] = None):
        self.logger = structlog.get_logger(__name__)
        self.store = store
        self.image_picker = image_picker
        self._sessions: Dict[str, FeedSession] = {}

    def get(self, user_id: str) -> Optional[FeedSession]:
        return self._sessions.get(user_id)

    async def get_or_mount(self, user_id: str) -> FeedSession:
        """
        Get the user's session, mounting a new one if needed.

        Only callers for the same user wait on a mount in progress.
        """
        session = self._sessions.get(user_id)
        if session is None:
            session = FeedSession(self.store, user_id, self.image_picker)
            self._sessions[user_id] = session
        await session.mount()
        return session

    async def unmount(self, user_id: str) -> bool:
        session = self._sessions.pop(user_id, None)
        if session is None:
            return False
        await session.unmount()
        return True

    async def close_all(self) -> None:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            await session.unmount()
        self.logger.info("All feed sessions closed", count=len(sessions))

    def __len__(self) -> int:
        return len(self._sessions)
