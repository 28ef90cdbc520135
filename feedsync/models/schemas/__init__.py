"""
API Schemas

Request and response bodies of the rendering-surface bridge.
"""

from .common import *
from .feed import *

__all__ = [
    "ErrorResponse",
    "SuccessResponse",
    "HealthCheckResponse",
    "DraftUpdateRequest",
    "SessionSnapshotResponse",
    "SubmitResponse",
]
