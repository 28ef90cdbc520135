"""Presentation helpers shared by post rendering surfaces."""

from datetime import datetime, timezone
from typing import Optional

from feedsync.models.post import Profile


def format_relative_time(timestamp: datetime, now: Optional[datetime] = None) -> str:
    """
    Format a timestamp as a short age such as ``3d ago``.
    
    Args:
        timestamp: Moment to describe; naive values are taken as UTC
        now: Reference time, defaults to the current time
        
    Returns:
        ``"{n}d ago"``, ``"{n}h ago"``, ``"{n}m ago"`` or ``"just now"``
    """
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    
    seconds = (now - timestamp).total_seconds()
    hours = int(seconds // 3600)
    days = hours // 24
    
    if days > 0:
        return f"{days}d ago"
    if hours > 0:
        return f"{hours}h ago"
    minutes = int(seconds // 60)
    if minutes > 0:
        return f"{minutes}m ago"
    return "just now"


def author_initial(profile: Optional[Profile]) -> str:
    """Upper-cased first letter of the author's name, or ``?``."""
    if profile is None:
        return "?"
    name = profile.full_name.strip()
    return name[0].upper() if name else "?"
