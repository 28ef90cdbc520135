"""
Post Draft Service

This service owns the transient state of an unsent post and drives the
submit workflow: validation, optional image attachment, a single in-flight
insert, and reconciliation of the outcome.
"""

from typing import Callable, Optional

import structlog

from feedsync.integrations.image_picker import ImagePicker, SelectionStatus, UnavailableImagePicker
from feedsync.integrations.store import PostStore
from feedsync.models.post import NewPost
from feedsync.models.state import DraftState
from feedsync.services.observable import StateObservable
from feedsync.utils.error_handling import ValidationError, error_message
from feedsync.utils.logger import log_user_action

EMPTY_DRAFT_MESSAGE = "Please add some content or an image"
SUBMIT_FAILED_MESSAGE = "Failed to create post"
IMAGE_UNAVAILABLE_MESSAGE = "Image upload is not available on this platform"


class PostDraftController(StateObservable[DraftState]):
    """Composes and submits exactly one new post at a time."""

    def __init__(
        self,
        store: PostStore,
        user_id: str,
        on_post_created: Optional[Callable[[], object]] = None,
        image_picker: Optional[ImagePicker] = None
    ):
        """
        Initialize an empty draft.

        Args:
            store: Remote post store
            user_id: Author of the post being composed
            on_post_created: Called after a successful insert, typically a
                feed refresh request
            image_picker: Platform image selection; absent means unavailable
        """
        super().__init__()
        if not user_id:
            raise ValueError("user_id is required")

        self.logger = structlog.get_logger(__name__).bind(user_id=user_id)
        self.store = store
        self.user_id = user_id
        self.on_post_created = on_post_created
        self.image_picker = image_picker or UnavailableImagePicker()

        self._text = ""
        self._image_uri: Optional[str] = None
        self._error: Optional[str] = None
        self._submitting = False
        self._disposed = False

    @property
    def state(self) -> DraftState:
        return DraftState(
            text=self._text,
            image_uri=self._image_uri,
            error=self._error,
            submitting=self._submitting,
            image_picker_available=self.image_picker.available,
        )

    @property
    def submitting(self) -> bool:
        return self._submitting

    # Mutations
    def set_text(self, text: str) -> None:
        if self._disposed:
            return
        self._text = text or ""
        self._error = None
        self._notify()

    def set_image(self, image_uri: Optional[str]) -> None:
        """Attach an image reference, or remove the attachment with None."""
        if self._disposed:
            return
        self._image_uri = image_uri or None
        self._error = None
        self._notify()

    async def pick_image(self) -> None:
        """Ask the image picker for an attachment."""
        if self._disposed or self._submitting:
            return

        selection = await self.image_picker.pick_image()
        if self._disposed:
            return

        if selection.status == SelectionStatus.SELECTED and selection.uri:
            self.set_image(selection.uri)
        elif selection.status == SelectionStatus.UNAVAILABLE:
            self._error = IMAGE_UNAVAILABLE_MESSAGE
            self._notify()

    # Submission
    async def submit(self) -> bool:
        """
        Validate and insert the draft as a new post.

        Calls made while a submission is in flight are rejected, not queued.
        Failures never propagate: validation and store errors are recorded in
        ``state.error`` and the typed content is kept for a retry.

        Returns:
            True if the post was inserted by this call
        """
        if self._disposed:
            return False
        if self._submitting:
            self.logger.info("Submit rejected, submission already in flight")
            return False

        try:
            new_post = self._validated_post()
        except ValidationError as e:
            self._error = e.message
            self._notify()
            return False

        self._submitting = True
        self._error = None
        self._notify()

        try:
            post = await self.store.insert_post(new_post)
        except Exception as e:
            if self._disposed:
                self.logger.info("Discarding late submit failure after disposal", error=str(e))
                return False
            self._submitting = False
            self._error = error_message(e, SUBMIT_FAILED_MESSAGE)
            self.logger.error("Failed to create post", error=str(e))
            self._notify()
            return False

        if self._disposed:
            self.logger.info("Discarding late submit result after disposal", post_id=post.id)
            return True

        self._text = ""
        self._image_uri = None
        self._error = None
        self._submitting = False
        log_user_action(self.user_id, "create_post", post_id=post.id, has_image=post.has_image)
        self._notify()

        if self.on_post_created is not None:
            self.on_post_created()
        return True

    def _validated_post(self) -> NewPost:
        content = self._text.strip()
        if not content and not self._image_uri:
            raise ValidationError(EMPTY_DRAFT_MESSAGE, field="content")
        return NewPost(user_id=self.user_id, content=content, image_url=self._image_uri)

    def cancel(self) -> bool:
        """
        Discard the draft.

        Returns:
            False if a submission is in flight and the draft was kept
        """
        if self._disposed:
            return False
        if self._submitting:
            self.logger.info("Cancel rejected, submission in flight")
            return False

        self._text = ""
        self._image_uri = None
        self._error = None
        log_user_action(self.user_id, "cancel_draft")
        self._notify()
        return True

    def dispose(self) -> None:
        """Stop reacting to input and to late store responses."""
        if self._disposed:
            return
        self._disposed = True
        self._listeners.clear()
        self.logger.info("Post draft controller disposed")
