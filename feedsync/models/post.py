"""
Post Data Models

This module contains the post-related data models shared by the remote
store adapters and the post components: author snapshots, stored posts,
rows to insert and change notifications.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class Profile(BaseModel):
    """Author snapshot joined onto a post at read time."""
    
    model_config = ConfigDict(frozen=True)
    
    id: str = Field(..., description="Profile ID (same as the owning user ID)")
    full_name: str = Field(default="", description="Display name")
    avatar_url: Optional[str] = Field(None, description="Avatar image reference")
    email: Optional[str] = Field(None, description="Account email")
    created_at: Optional[datetime] = Field(None, description="Profile creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Profile last update timestamp")


class Post(BaseModel):
    """A stored post as returned by the remote store."""
    
    model_config = ConfigDict(frozen=True)
    
    id: str = Field(..., description="Server-assigned post ID")
    user_id: str = Field(..., description="Owning user ID")
    content: str = Field(default="", description="Text content, possibly empty")
    image_url: Optional[str] = Field(None, description="Attached image reference")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")
    author: Optional[Profile] = Field(None, description="Author snapshot joined at read time")
    
    @property
    def has_image(self) -> bool:
        """Check whether the post carries an image."""
        return bool(self.image_url)


class NewPost(BaseModel):
    """Row submitted to the remote store when a draft is published."""
    
    user_id: str = Field(..., min_length=1, description="Owning user ID")
    content: str = Field(default="", description="Trimmed text content")
    image_url: Optional[str] = Field(None, description="Local image reference, forwarded verbatim")
    
    def to_row(self) -> Dict[str, Any]:
        """Convert to the store's column layout."""
        return {
            "user_id": self.user_id,
            "content": self.content,
            "image_url": self.image_url,
        }


class ChangeType(str, Enum):
    """Kinds of change delivered by a live subscription."""
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class PostChange(BaseModel):
    """A change notification for a single post row.
    
    The payload is deliberately partial: consumers reload the full snapshot
    rather than patching from it.
    """
    
    change_type: ChangeType = Field(..., description="Kind of change")
    post_id: str = Field(..., description="ID of the changed post")
    user_id: Optional[str] = Field(None, description="Owner of the changed post, when known")
    received_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the notification was received"
    )
