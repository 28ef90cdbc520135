"""
Image Selection Collaborators

The draft controller obtains image attachments from an ImagePicker. The
returned reference is opaque: it is forwarded verbatim to the insert call.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field


class SelectionStatus(str, Enum):
    """Outcome of an image selection request."""
    SELECTED = "selected"
    CANCELLED = "cancelled"
    UNAVAILABLE = "unavailable"


class ImageSelection(BaseModel):
    """Result of asking the platform for an image."""
    
    status: SelectionStatus = Field(..., description="Selection outcome")
    uri: Optional[str] = Field(None, description="Local image reference when selected")
    
    @classmethod
    def selected(cls, uri: str) -> "ImageSelection":
        return cls(status=SelectionStatus.SELECTED, uri=uri)
    
    @classmethod
    def cancelled(cls) -> "ImageSelection":
        return cls(status=SelectionStatus.CANCELLED)
    
    @classmethod
    def unavailable(cls) -> "ImageSelection":
        return cls(status=SelectionStatus.UNAVAILABLE)


class ImagePicker(ABC):
    """Platform image selection."""
    
    @property
    def available(self) -> bool:
        """Whether the platform can select images at all."""
        return True
    
    @abstractmethod
    async def pick_image(self) -> ImageSelection:
        """Ask the user for an image."""


class UnavailableImagePicker(ImagePicker):
    """Picker for platforms where image selection is structurally unavailable."""
    
    @property
    def available(self) -> bool:
        return False
    
    async def pick_image(self) -> ImageSelection:
        return ImageSelection.unavailable()


class StaticImagePicker(ImagePicker):
    """Picker that replays preconfigured selections, for scripted surfaces.
    
    Once the queue is exhausted every request is treated as cancelled.
    """
    
    def __init__(self, selections: Iterable[ImageSelection] = ()):
        self._selections: List[ImageSelection] = list(selections)
    
    def queue(self, selection: ImageSelection) -> None:
        self._selections.append(selection)
    
    async def pick_image(self) -> ImageSelection:
        if not self._selections:
            return ImageSelection.cancelled()
        return self._selections.pop(0)
