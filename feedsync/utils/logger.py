"""
Logging Configuration

Structured logging for FeedSync built on structlog. Development runs get a
colored console renderer; every other environment emits one JSON object per
event, tagged with the application context.
"""

import logging
import sys
from typing import Any, Dict, List, Optional

import structlog
from structlog.types import Processor

from feedsync import __version__
from feedsync.config.settings import get_settings

# Google client libraries are chatty at INFO
NOISY_LOGGERS = ("google.api_core", "google.auth", "grpc", "urllib3")


def setup_logging() -> None:
    """Set up structured logging for the application."""
    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors: List[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.is_development:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.extend([
            add_app_context,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def add_app_context(logger: Any, name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Tag entries with the service identity and active store backend."""
    settings = get_settings()
    event_dict.setdefault("app", "feedsync")
    event_dict.setdefault("version", __version__)
    event_dict.setdefault("environment", settings.environment)
    event_dict.setdefault("store_backend", settings.store_backend)
    return event_dict


def log_store_call(
    backend: str,
    operation: str,
    success: bool,
    duration_ms: Optional[float] = None,
    **kwargs
) -> None:
    """Record one round trip to the remote post store."""
    logger = structlog.get_logger("remote_store")
    fields = {"backend": backend, "operation": operation, **kwargs}
    if duration_ms is not None:
        fields["duration_ms"] = round(duration_ms, 2)

    if success:
        logger.info("Store call succeeded", **fields)
    else:
        logger.error("Store call failed", **fields)


def log_user_action(user_id: str, action: str, post_id: Optional[str] = None, **kwargs) -> None:
    """Audit trail for user-initiated post actions."""
    structlog.get_logger("user_action").info(
        "User action",
        user_id=user_id,
        action=action,
        post_id=post_id,
        **kwargs
    )
