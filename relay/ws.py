import logging
from typing import Any, Dict, List, Set
from uuid import UUID
from fastapi import WebSocket

logger = logging.getLogger(__name__)

# manages active WebSocket connections for presence + push delivery;
# a user may be connected from several devices at once
class Presence:
    def __init__(self):
        self._sockets: Dict[UUID, Set[WebSocket]] = {}

    async def connect(self, user_id: UUID, ws: WebSocket):
        await ws.accept()
        self._sockets.setdefault(user_id, set()).add(ws)

    def disconnect(self, user_id: UUID, ws: WebSocket):
        sockets = self._sockets.get(user_id)
        if sockets is None:
            return
        sockets.discard(ws)
        if not sockets:
            del self._sockets[user_id]

    def get(self, user_id: UUID) -> List[WebSocket]:
        return list(self._sockets.get(user_id, ()))

    def is_online(self, user_id: UUID) -> bool:
        return user_id in self._sockets

    async def push(self, user_id: UUID, payload: Dict[str, Any]) -> bool:
        delivered = False
        for ws in self.get(user_id):
            try:
                await ws.send_json(payload)
            except (RuntimeError, OSError) as exc:
                # socket went away between lookup and send; the record is already stored
                logger.info("Dropping stale socket for %s: %s", user_id, exc)
                self.disconnect(user_id, ws)
                continue
            delivered = True
        return delivered

presence = Presence()
