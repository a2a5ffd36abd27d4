"""Async in-memory session store implementing SessionStore"""
from typing import Dict, Optional

from relay_service.core.interfaces import SessionStore
from relay_service.core.session import SessionState


class MemoryStore(SessionStore):
    def __init__(self):
        self.sessions: Dict[str, dict] = {}

    async def get(self, conversation_id: str) -> Optional[SessionState]:
        data = self.sessions.get(conversation_id)
        return SessionState.from_dict(data) if data else None

    async def save(self, conversation_id: str, state: SessionState) -> None:
        self.sessions[conversation_id] = state.to_dict()

    async def delete(self, conversation_id: str) -> bool:
        return self.sessions.pop(conversation_id, None) is not None
