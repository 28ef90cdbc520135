"""
Feed Schemas

Request and response schemas for the rendering-surface bridge endpoints.
"""

from typing import Optional

from pydantic import BaseModel, Field

from feedsync.models.state import DraftState, FeedState


class DraftUpdateRequest(BaseModel):
    """Request schema for editing the draft."""
    
    text: Optional[str] = Field(None, description="Replacement text buffer")
    image_uri: Optional[str] = Field(None, description="Image reference to attach")
    clear_image: bool = Field(default=False, description="Remove the attached image")


class SessionSnapshotResponse(BaseModel):
    """Response schema carrying both component snapshots."""
    
    feed: FeedState = Field(..., description="Post collection state")
    draft: DraftState = Field(..., description="Draft state")


class SubmitResponse(SessionSnapshotResponse):
    """Response schema for a submit attempt."""
    
    accepted: bool = Field(..., description="Whether the post was inserted")
