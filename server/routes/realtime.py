"""
WebSocket endpoints for real-time application updates using Redis Pub/Sub.

Dashboards re-fetch when a status-change message arrives.
"""
import asyncio
import logging
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from typing import Optional, Set

from services.auth_svc import authenticate_websocket
from services.pubsub import pubsub, RedisPubSub

router = APIRouter()
logger = logging.getLogger(__name__)

# Track active WebSocket connections
active_connections: Set[WebSocket] = set()


async def _relay(websocket: WebSocket, channel: str):
    await websocket.accept()
    active_connections.add(websocket)

    async def forward():
        async for message in pubsub.listen(channel):
            await websocket.send_json(message)

    async def drain():
        # Returns when the client disconnects
        while True:
            await websocket.receive_text()

    forward_task = asyncio.create_task(forward())
    drain_task = asyncio.create_task(drain())
    try:
        done, _ = await asyncio.wait({forward_task, drain_task}, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc and not isinstance(exc, WebSocketDisconnect):
                logger.error(f"WebSocket error on channel {channel}: {exc}")
    finally:
        for task in (forward_task, drain_task):
            task.cancel()
        await asyncio.gather(forward_task, drain_task, return_exceptions=True)
        active_connections.discard(websocket)
        logger.info(f"Client disconnected from channel: {channel}")


@router.websocket("/ws/applications/{uid}")
async def application_updates(websocket: WebSocket, uid: str, token: Optional[str] = Query(None)):
    """
    Status changes of one applicant's applications. Only that applicant (or an
    admin) may subscribe.

    Example:
        ws://localhost:8000/api/v1/realtime/ws/applications/{uid}?token={firebase_id_token}
    """
    user = await authenticate_websocket(websocket, token)
    if user is None:
        return
    if user.uid != uid and not user.is_admin:
        logger.warning(f"🚫 {user.uid} tried to subscribe to {uid}'s updates")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await _relay(websocket, RedisPubSub.channel_user_notifications(uid))


@router.websocket("/ws/admin/applications")
async def admin_application_updates(websocket: WebSocket, token: Optional[str] = Query(None)):
    """New submissions, for the admin review queue."""
    user = await authenticate_websocket(websocket, token)
    if user is None:
        return
    if not user.is_admin:
        logger.warning(f"🚫 {user.uid} tried to subscribe to the admin queue")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await _relay(websocket, RedisPubSub.channel_admin_reviews())


@router.get("/channels")
async def list_channels():
    """List available pub/sub channels."""
    return {
        "channels": [
            "user.{user_id}.notifications",
            RedisPubSub.channel_admin_reviews(),
        ],
        "active_connections": len(active_connections)
    }
