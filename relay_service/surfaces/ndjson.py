"""Display surface that streams display directives to an HTTP client as NDJSON."""
import asyncio
import datetime
import json
import uuid
from typing import Any, AsyncGenerator, Dict, List, Optional

from relay_service.core.errors import DisplayUpdateUnsupported
from relay_service.core.interfaces import DisplaySurface


class NdjsonEmitter:
    """Emitter producing NDJSON bytes for the directive envelope"""

    def emit(self, event: Dict[str, Any]) -> bytes:
        out = {
            "type": event.get("type", ""),
            "conversation_id": event.get("conversation_id", ""),
            "data": event.get("data", {}),
            "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        }
        return (json.dumps(out, ensure_ascii=False) + "\n").encode("utf-8")


class NdjsonSurface(DisplaySurface):
    """Queues directives (create, update, notice, typing, done) for one turn.

    Message handles are generated message ids; clients apply `update`
    directives to the message with the same id.
    """

    def __init__(self, conversation_id: str, supports_update: bool = True):
        self.conversation_id = conversation_id
        self.supports_update = supports_update
        self.emitter = NdjsonEmitter()
        self.directives: List[Dict[str, Any]] = []
        self._queue: asyncio.Queue[Optional[bytes]] = asyncio.Queue()
        self._closed = False

    def _push(self, kind: str, data: Optional[Dict[str, Any]] = None) -> None:
        if self._closed:
            raise RuntimeError("surface is closed")
        event = {"type": kind, "conversation_id": self.conversation_id, "data": data or {}}
        self.directives.append(event)
        self._queue.put_nowait(self.emitter.emit(event))

    async def create_message(self, text: str) -> str:
        message_id = str(uuid.uuid4())
        self._push("create", {"message_id": message_id, "text": text})
        return message_id

    async def update_message(self, handle: Any, text: str) -> None:
        if not self.supports_update:
            raise DisplayUpdateUnsupported("this client cannot edit messages")
        self._push("update", {"message_id": handle, "text": text})

    async def send_notice(self, text: str) -> None:
        self._push("notice", {"text": text})

    async def send_typing(self) -> None:
        self._push("typing")

    def close(self, error: Optional[str] = None) -> None:
        if self._closed:
            return
        self._push("done", {"error": error} if error else {})
        self._closed = True
        self._queue.put_nowait(None)

    async def stream(self) -> AsyncGenerator[bytes, None]:
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                break
            yield chunk
