"""
Test Configuration and Fixtures

This module contains pytest fixtures and configuration for the test suite.
"""

import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import Any, List
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["STORE_BACKEND"] = "memory"
os.environ["LOG_LEVEL"] = "WARNING"

from feedsync.integrations.memory import InMemoryPostStore
from feedsync.integrations.store import StoreSubscription
from feedsync.models.post import NewPost, Post, Profile

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeSubscription(StoreSubscription):
    """Subscription handle that counts cancellations."""
    
    def __init__(self):
        self.cancel_count = 0
        self.streaming = True
    
    @property
    def active(self) -> bool:
        return self.cancel_count == 0 and self.streaming
    
    def cancel(self) -> None:
        self.cancel_count += 1


class PendingCalls:
    """Async side effect whose calls stay in flight until resolved by the test."""
    
    def __init__(self):
        self.pending: List[asyncio.Future] = []
    
    async def call(self, *args, **kwargs) -> Any:
        future = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        return await future
    
    def resolve(self, index: int, value: Any) -> None:
        self.pending[index].set_result(value)
    
    def fail(self, index: int, error: Exception) -> None:
        self.pending[index].set_exception(error)


async def settle(rounds: int = 20) -> None:
    """Let scheduled callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def mock_user_id() -> str:
    return "test-user-123"


@pytest.fixture
def mock_profile(mock_user_id: str) -> Profile:
    """Create a mock author profile for testing."""
    return Profile(
        id=mock_user_id,
        full_name="Test User",
        email="test@example.com",
        avatar_url=None
    )


@pytest.fixture
def mock_subscription() -> FakeSubscription:
    return FakeSubscription()


@pytest.fixture
def mock_post_store(mock_subscription: FakeSubscription) -> MagicMock:
    """Create a mock remote post store."""
    mock_store = MagicMock()
    
    async def insert(new_post: NewPost) -> Post:
        return test_factory.create_post(
            id="inserted-post",
            user_id=new_post.user_id,
            content=new_post.content,
            image_url=new_post.image_url
        )
    
    mock_store.query_user_posts = AsyncMock(return_value=[])
    mock_store.insert_post = AsyncMock(side_effect=insert)
    mock_store.subscribe_user_posts = AsyncMock(return_value=mock_subscription)
    
    return mock_store


@pytest.fixture
def pending_calls() -> PendingCalls:
    return PendingCalls()


@pytest.fixture
def memory_store() -> InMemoryPostStore:
    return InMemoryPostStore()


# Test data factories
class TestDataFactory:
    """Factory for creating test data objects."""
    
    @staticmethod
    def create_profile(**kwargs) -> Profile:
        """Create a test profile with optional overrides."""
        defaults = {
            "id": "test-user-123",
            "full_name": "Test User",
            "email": "test@example.com",
        }
        defaults.update(kwargs)
        return Profile(**defaults)
    
    @staticmethod
    def create_post(minutes_ago: int = 0, **kwargs) -> Post:
        """Create a test post with optional overrides."""
        created_at = BASE_TIME - timedelta(minutes=minutes_ago)
        defaults = {
            "id": f"post-{minutes_ago}",
            "user_id": "test-user-123",
            "content": "Test post content",
            "image_url": None,
            "created_at": created_at,
            "updated_at": created_at,
        }
        defaults.update(kwargs)
        return Post(**defaults)


# Export test factory for easy importing
test_factory = TestDataFactory()
