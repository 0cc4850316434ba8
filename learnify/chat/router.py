import asyncio
import json
import logging
import random
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnify.ai.auth_utils import verify_token_ws
from learnify.chat.assistant import assistant
from learnify.chat.manager import manager
from learnify.config import CHAT_MIN_DELAY_SECONDS, CHAT_MAX_DELAY_SECONDS
from learnify.courses.dependencies import UserContext
from learnify.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["AI Chat"])


def _token_from(websocket: WebSocket):
    token = websocket.query_params.get("token")
    if token:
        return token
    auth_header = websocket.headers.get("authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1]
    return websocket.headers.get("x-auth-token")


def typing_delay() -> float:
    return random.uniform(CHAT_MIN_DELAY_SECONDS, CHAT_MAX_DELAY_SECONDS)


async def handle_message(websocket: WebSocket, user: UserContext, data: dict, db: AsyncIOMotorDatabase):
    message = (data.get("message") or "").strip()
    context = data.get("context") or {}

    if not message:
        await manager.send(websocket, "ai:error", {"error": "Message cannot be empty"})
        return

    logger.info("AI request from %s: %r", user.user_id, message[:50])

    await manager.send(websocket, "ai:typing", {"is_typing": True})
    await asyncio.sleep(typing_delay())

    try:
        reply = await assistant.reply(message, user, context, db)
    except Exception:
        logger.exception("Assistant failed for %s", user.user_id)
        await manager.send(websocket, "ai:error", {"error": "Sorry, something went wrong. Please try again."})
        await manager.send(websocket, "ai:typing", {"is_typing": False})
        return

    await manager.send(websocket, "ai:response", {
        "message": reply,
        "timestamp": datetime.utcnow().isoformat(),
        "context": context
    })
    await manager.send(websocket, "ai:typing", {"is_typing": False})


@router.websocket("/chat")
async def chat_endpoint(websocket: WebSocket, db: AsyncIOMotorDatabase = Depends(get_db)):
    # 🔐 Token from query (?token=), Authorization: Bearer or x-auth-token
    token = _token_from(websocket)
    try:
        payload = verify_token_ws(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user = UserContext.from_payload(payload)
    await manager.connect(websocket, user.user_id)

    try:
        # Messages of one socket are handled strictly in arrival order
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except ValueError:
                await manager.send(websocket, "ai:error", {"error": "Invalid message format"})
                continue
            if not isinstance(data, dict):
                await manager.send(websocket, "ai:error", {"error": "Invalid message format"})
                continue

            if data.get("type") == "ping":
                await manager.send(websocket, "pong", {"timestamp": datetime.utcnow().isoformat()})
            elif data.get("type") == "ai:message":
                await handle_message(websocket, user, data, db)
            else:
                await manager.send(websocket, "ai:error", {"error": "Unknown message type"})

    except WebSocketDisconnect:
        logger.debug("Chat socket closed by client %s", user.user_id)
    finally:
        manager.disconnect(websocket, user.user_id)
