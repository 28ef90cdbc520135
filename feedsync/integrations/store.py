"""
Remote Store Client Contract

This module defines the interface the post components consume from a remote
data store: an ordered, author-joined query of one user's posts, an insert,
and a filtered live change subscription.
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from feedsync.models.post import NewPost, Post, PostChange

ChangeCallback = Callable[[PostChange], None]
ErrorCallback = Callable[[Exception], None]


class StoreSubscription(ABC):
    """Cancellation handle for a live change subscription."""
    
    @property
    @abstractmethod
    def active(self) -> bool:
        """Whether the subscription still delivers notifications."""
    
    @abstractmethod
    def cancel(self) -> None:
        """Stop delivering notifications. Safe to call more than once."""


class PostStore(ABC):
    """Remote store operations used by the post components."""
    
    @abstractmethod
    async def query_user_posts(self, user_id: str) -> List[Post]:
        """
        Get all posts owned by a user.
        
        Args:
            user_id: Owner to filter on
            
        Returns:
            Posts ordered by creation time, newest first, with author joined
            
        Raises:
            StoreQueryError: If the query fails
        """
    
    @abstractmethod
    async def insert_post(self, new_post: NewPost) -> Post:
        """
        Insert a new post row.
        
        Raises:
            StoreWriteError: If the insert fails; the message is human-readable
        """
    
    @abstractmethod
    async def subscribe_user_posts(
        self,
        user_id: str,
        on_change: ChangeCallback,
        on_error: Optional[ErrorCallback] = None
    ) -> StoreSubscription:
        """
        Open a live subscription to insert/update/delete events on a user's posts.
        
        Callbacks are invoked on the event loop that opened the subscription.
        
        Raises:
            SubscriptionError: If the subscription handshake fails
        """
