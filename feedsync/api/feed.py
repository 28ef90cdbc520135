"""
Feed API Endpoints

This module bridges remote rendering surfaces to the post components:
- Feed snapshots and manual refresh
- Draft editing, image selection, submit and cancel
- A WebSocket stream of state transitions
"""

import asyncio
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket, WebSocketDisconnect, status

from feedsync.models.schemas.common import SuccessResponse
from feedsync.models.schemas.feed import DraftUpdateRequest, SessionSnapshotResponse, SubmitResponse
from feedsync.models.state import FeedState, FeedStatus
from feedsync.services.feed_session import FeedSession, SessionRegistry

# Initialize router
router = APIRouter()
logger = structlog.get_logger(__name__)


def get_session_registry(request: Request) -> SessionRegistry:
    """Get the application's session registry."""
    return request.app.state.sessions


def _snapshot(session: FeedSession) -> SessionSnapshotResponse:
    return SessionSnapshotResponse(feed=session.feed.state, draft=session.draft.state)


def _snapshot_payload(session: FeedSession) -> Dict[str, Any]:
    return _snapshot(session).model_dump(mode="json")


@router.get("/{user_id}", response_model=SessionSnapshotResponse)
async def get_feed(
    user_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionSnapshotResponse:
    """
    Get the user's feed and draft.

    Mounts a session on first access: opens the live subscription and
    performs the initial load.
    """
    session = await registry.get_or_mount(user_id)
    return _snapshot(session)


@router.post("/{user_id}/refresh", response_model=SessionSnapshotResponse)
async def refresh_feed(
    user_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionSnapshotResponse:
    """Reconcile the feed with the store."""
    session = await registry.get_or_mount(user_id)
    await session.feed.refresh()
    return _snapshot(session)


@router.put("/{user_id}/draft", response_model=SessionSnapshotResponse)
async def update_draft(
    user_id: str,
    update: DraftUpdateRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionSnapshotResponse:
    """Edit the draft text and image attachment."""
    session = await registry.get_or_mount(user_id)

    if update.text is not None:
        session.draft.set_text(update.text)
    if update.clear_image:
        session.draft.set_image(None)
    elif update.image_uri is not None:
        session.draft.set_image(update.image_uri)

    return _snapshot(session)


@router.post("/{user_id}/draft/image", response_model=SessionSnapshotResponse)
async def pick_draft_image(
    user_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionSnapshotResponse:
    """Attach an image through the platform image picker."""
    session = await registry.get_or_mount(user_id)
    await session.draft.pick_image()
    return _snapshot(session)


@router.post("/{user_id}/draft/submit", response_model=SubmitResponse)
async def submit_draft(
    user_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SubmitResponse:
    """
    Submit the draft as a new post.

    Validation and store failures are reported in ``draft.error`` with
    ``accepted`` false; the draft is kept for a retry.
    """
    session = await registry.get_or_mount(user_id)
    accepted = await session.draft.submit()
    if accepted:
        await session.feed.wait_until_settled()

    logger.info("Draft submit handled", user_id=user_id, accepted=accepted)
    return SubmitResponse(accepted=accepted, feed=session.feed.state, draft=session.draft.state)


@router.delete("/{user_id}/draft", response_model=SessionSnapshotResponse)
async def cancel_draft(
    user_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionSnapshotResponse:
    """Discard the draft."""
    session = await registry.get_or_mount(user_id)
    if not session.draft.cancel():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A post is being submitted. Please wait for it to finish."
        )
    return _snapshot(session)


@router.delete("/{user_id}", response_model=SuccessResponse)
async def close_feed(
    user_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SuccessResponse:
    """Unmount the user's session, releasing its live subscription."""
    closed = await registry.unmount(user_id)
    if not closed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No open feed session for this user"
        )
    return SuccessResponse(message="Feed session closed", user_id=user_id)


@router.websocket("/{user_id}/stream")
async def stream_feed(websocket: WebSocket, user_id: str):
    """Send the current snapshot, then one snapshot per state transition."""
    registry: SessionRegistry = websocket.app.state.sessions
    session = await registry.get_or_mount(user_id)
    await websocket.accept()

    updates: "asyncio.Queue[Optional[Dict[str, Any]]]" = asyncio.Queue()

    def on_state(state: object) -> None:
        updates.put_nowait(_snapshot_payload(session))
        if isinstance(state, FeedState) and state.status == FeedStatus.DISPOSED:
            updates.put_nowait(None)

    remove_listeners = [
        session.feed.add_listener(on_state),
        session.draft.add_listener(on_state),
    ]
    receiver = asyncio.ensure_future(websocket.receive_text())

    try:
        await websocket.send_json(_snapshot_payload(session))
        while True:
            next_update = asyncio.ensure_future(updates.get())
            done, _ = await asyncio.wait(
                {next_update, receiver},
                return_when=asyncio.FIRST_COMPLETED
            )
            if receiver in done:
                # Clients only send keep-alives; a closed socket raises here
                receiver.result()
                receiver = asyncio.ensure_future(websocket.receive_text())

            if next_update not in done:
                next_update.cancel()
                continue

            payload = next_update.result()
            if payload is None:
                await websocket.close()
                break
            await websocket.send_json(payload)

    except WebSocketDisconnect:
        logger.info("Feed stream disconnected", user_id=user_id)

    finally:
        receiver.cancel()
        for remove in remove_listeners:
            remove()
