"""
Observable State Snapshots

Immutable snapshots published by the post lifecycle manager and the draft
controller. Rendering surfaces receive these instead of sharing the
components' mutable state.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from feedsync.models.post import Post


class FeedStatus(str, Enum):
    """Lifecycle manager state machine."""
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"
    DISPOSED = "disposed"


class FeedState(BaseModel):
    """Snapshot of a user's post collection and its freshness."""
    
    model_config = ConfigDict(frozen=True)
    
    user_id: str = Field(..., description="User whose posts are shown")
    status: FeedStatus = Field(default=FeedStatus.IDLE, description="Manager state")
    posts: List[Post] = Field(default_factory=list, description="Posts, newest first")
    error: Optional[str] = Field(None, description="Last load error message")
    subscription_error: Optional[str] = Field(
        None,
        description="Live channel error; set while freshness is degraded"
    )
    live: bool = Field(default=False, description="Whether a live subscription is open")
    has_loaded: bool = Field(default=False, description="Whether any snapshot has been applied")
    last_loaded_at: Optional[datetime] = Field(None, description="When the last snapshot was applied")
    
    @computed_field
    @property
    def loading(self) -> bool:
        """Check whether a load is in flight."""
        return self.status == FeedStatus.LOADING
    
    @computed_field
    @property
    def is_empty(self) -> bool:
        """Loaded and holding no posts, as opposed to not loaded yet."""
        return self.has_loaded and not self.posts
    
    @computed_field
    @property
    def post_count(self) -> int:
        """Number of posts in the collection."""
        return len(self.posts)


class DraftState(BaseModel):
    """Snapshot of the unsent post being composed."""
    
    model_config = ConfigDict(frozen=True)
    
    text: str = Field(default="", description="Text buffer")
    image_uri: Optional[str] = Field(None, description="Attached local image reference")
    error: Optional[str] = Field(None, description="Validation or submission error")
    submitting: bool = Field(default=False, description="Whether an insert is in flight")
    image_picker_available: bool = Field(
        default=True,
        description="Whether image selection is offered on this platform"
    )
    
    @computed_field
    @property
    def can_submit(self) -> bool:
        """Check whether submit would reach the store."""
        return not self.submitting and (bool(self.text.strip()) or bool(self.image_uri))
