"""
FeedSync - post synchronization core for a social feed client.

This package contains the client-side post lifecycle logic, including:
- Live, snapshot-consistent loading of a user's posts
- Draft composition, validation and submission
- Remote store integrations (Firestore and in-memory)
- An HTTP/WebSocket bridge for remote rendering surfaces

Version: 1.0.0
Author: FeedSync Team
"""

__version__ = "1.0.0"
__author__ = "FeedSync Team"
__description__ = "Post synchronization and lifecycle manager for social feed clients"
