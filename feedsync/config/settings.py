"""
Application Settings and Configuration

This module contains all configuration settings for FeedSync, including:
- Environment variables management
- Remote store (Firestore) credentials and collection names
- Live subscription tuning
"""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )
    
    # Application Settings
    environment: str = Field(default="development", description="Application environment")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    allowed_origins: List[str] = Field(
        default=["http://localhost:8081", "http://localhost:19006"],
        description="CORS allowed origins for rendering surfaces"
    )
    
    # Google Cloud Configuration
    google_cloud_project: str = Field(default="", description="Google Cloud Project ID")
    google_application_credentials: str = Field(
        default="",
        description="Path to Google Cloud service account credentials"
    )
    firestore_database_id: str = Field(
        default="(default)",
        description="Firestore database ID"
    )
    
    # Remote Store Configuration
    store_backend: str = Field(
        default="firestore",
        pattern="^(firestore|memory)$",
        description="Remote store backend (firestore or memory)"
    )
    posts_collection: str = Field(default="posts", description="Posts collection name")
    profiles_collection: str = Field(default="profiles", description="Profiles collection name")
    subscription_handshake_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Maximum wait for a live subscription to deliver its initial snapshot"
    )
    
    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
