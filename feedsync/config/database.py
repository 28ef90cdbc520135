"""
Database Configuration and Connection Management

This module handles Firestore database connections and selects the remote
post store used by the application.
"""

from functools import lru_cache
from typing import Optional

import firebase_admin
import structlog
from firebase_admin import credentials, firestore
from google.cloud import firestore as firestore_client

from feedsync.config.settings import get_settings
from feedsync.integrations.store import PostStore


class DatabaseManager:
    """Singleton database manager for Firestore connections."""
    
    _instance: Optional["DatabaseManager"] = None
    _db: Optional[firestore_client.Client] = None
    _initialized: bool = False
    
    def __new__(cls) -> "DatabaseManager":
        """Create singleton instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance
    
    def __init__(self):
        """Initialize database manager."""
        self.logger = structlog.get_logger(__name__)
    
    def _initialize_firestore(self) -> None:
        """Initialize Firestore database connection."""
        settings = get_settings()
        self._initialized = True
        
        try:
            # Check if Firebase app is already initialized
            firebase_admin.get_app()
        except ValueError:
            options = {"projectId": settings.google_cloud_project} if settings.google_cloud_project else None
            try:
                if settings.google_application_credentials:
                    cred = credentials.Certificate(settings.google_application_credentials)
                    firebase_admin.initialize_app(cred, options)
                else:
                    firebase_admin.initialize_app(options=options)
            except Exception as e:
                self.logger.warning("Firebase initialization failed", error=str(e))
                self._db = None
                return
        
        try:
            self._db = firestore.client(database_id=settings.firestore_database_id)
        except Exception as e:
            # Without Firestore the application runs on the in-memory store
            self.logger.warning(
                "Firestore initialization failed, running without Firestore",
                error=str(e)
            )
            self._db = None
    
    @property
    def db(self) -> Optional[firestore_client.Client]:
        """Get Firestore database client, connecting on first use."""
        if not self._initialized:
            self._initialize_firestore()
        return self._db


def get_database() -> Optional[firestore_client.Client]:
    """Get the Firestore database client, or None when unavailable."""
    return DatabaseManager().db


@lru_cache
def get_post_store() -> PostStore:
    """Get the application's remote post store."""
    from feedsync.integrations.firestore import FirestorePostStore
    from feedsync.integrations.memory import InMemoryPostStore
    
    settings = get_settings()
    logger = structlog.get_logger(__name__)
    
    if settings.store_backend == "memory":
        logger.info("Using in-memory post store")
        return InMemoryPostStore()
    
    db = get_database()
    if db is None:
        logger.warning("Firestore unavailable, falling back to in-memory post store")
        return InMemoryPostStore()
    
    return FirestorePostStore(db, settings)
