from fastapi import WebSocket
from typing import Dict, List
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


class ChatManager:
    """One assistant session per socket; sockets grouped by user for stats"""

    def __init__(self):
        self.sessions: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, user_id: str):
        await websocket.accept()
        self.sessions.setdefault(user_id, []).append(websocket)
        logger.info("Chat connected: %s (%d sockets)", user_id, len(self.sessions[user_id]))

        await self.send(websocket, "ai:connected", {
            "message": "Connected to AI Assistant",
            "timestamp": datetime.utcnow().isoformat()
        })

    def disconnect(self, websocket: WebSocket, user_id: str):
        sockets = self.sessions.get(user_id, [])
        if websocket in sockets:
            sockets.remove(websocket)
        # Drop the user entry once their last socket is gone
        if not sockets:
            self.sessions.pop(user_id, None)
        logger.info("Chat disconnected: %s", user_id)

    async def send(self, websocket: WebSocket, event: str, payload: dict):
        await websocket.send_json({"type": event, **payload})

    @property
    def active_connections(self) -> int:
        return sum(len(sockets) for sockets in self.sessions.values())


manager = ChatManager()
