import logging
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.middlewares.auth_middleware import authenticate_token
from app.models.user import User
from app.realtime.hub import hub
from app.schemas.realtime_schemas import AuthFrame, PingFrame, client_frame_adapter
from app.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

AUTH_FAILED_CLOSE_CODE = 4401


async def _authenticate(websocket: WebSocket, db: AsyncSession) -> User:
    """The first frame must be an auth frame whose token belongs to the claimed user."""
    frame = client_frame_adapter.validate_json(await websocket.receive_text())
    if not isinstance(frame, AuthFrame):
        raise ValueError("First frame must be an auth frame")
    user = await authenticate_token(db, frame.token)
    if str(user.id) != frame.user_id:
        raise ValueError("Token does not belong to this user")
    return user


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, db: AsyncSession = Depends(get_db)):
    await websocket.accept()

    try:
        user = await _authenticate(websocket, db)
    except WebSocketDisconnect:
        return
    except (HTTPException, ValidationError, ValueError) as e:
        reason = getattr(e, "detail", None) or "Authentication failed"
        logger.warning(f"[WS] Authentication failed: {reason}")
        await websocket.send_json({"type": "auth_error", "message": str(reason)})
        await websocket.close(code=AUTH_FAILED_CLOSE_CODE)
        return

    user_id = str(user.id)
    if await hub.register(user_id, websocket):
        await UserService.set_online(db, user.id, True)
    await websocket.send_json({"type": "auth_success", "userId": user_id})
    logger.info(f"[WS] User {user_id} connected")

    try:
        while True:
            data = await websocket.receive_text()
            try:
                frame = client_frame_adapter.validate_json(data)
            except ValidationError:
                await websocket.send_json({"type": "error", "message": "Unsupported frame"})
                continue
            if isinstance(frame, PingFrame):
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.info(f"[WS] User {user_id} disconnected")
    finally:
        if await hub.unregister(user_id, websocket):
            await UserService.set_online(db, user.id, False)
