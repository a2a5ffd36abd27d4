"""Scripted in-process agent for local runs and readiness checks"""
import asyncio
import uuid
from typing import AsyncIterator, List, Optional

from relay_service.core.errors import SessionAuthExpired
from relay_service.core.interfaces import AgentConnector, AgentSession
from relay_service.core.types import (
    AgentCard,
    AgentEvent,
    AgentResult,
    AgentSkill,
    Artifact,
    ArtifactUpdate,
    Message,
    StatusUpdate,
    Task,
    TaskState,
    TaskStatus,
    TextPart,
)


class DummySession(AgentSession):
    """Echoes the prompt back word by word as artifact updates of one task."""

    def __init__(self, delay: float = 0.05):
        self.delay = delay
        self._card = AgentCard(
            name="Echo Agent",
            description="Repeats your message back",
            version="0.1.0",
            protocolVersion="0.3.0",
            skills=[AgentSkill(id="echo", name="echo", description="Echo the prompt")],
        )

    @property
    def card(self) -> AgentCard:
        return self._card

    async def send_stream(self, text: str) -> AsyncIterator[AgentEvent]:
        task_id = str(uuid.uuid4())
        yield Task(id=task_id, status=TaskStatus(state=TaskState.WORKING))
        for word in self._chunks(text):
            await asyncio.sleep(self.delay)
            yield ArtifactUpdate(
                taskId=task_id,
                artifact=Artifact(artifactId="echo", name="echo", parts=[TextPart(text=word)]),
            )
        yield StatusUpdate(taskId=task_id, status=TaskStatus(state=TaskState.COMPLETED), final=True)

    async def send(self, text: str) -> AgentResult:
        return Message(messageId=str(uuid.uuid4()), parts=[TextPart(text=text)])

    @staticmethod
    def _chunks(text: str) -> List[str]:
        words = text.split(" ")
        return [w + " " for w in words[:-1]] + words[-1:]


class DummyConnector(AgentConnector):
    def __init__(self, delay: float = 0.05, rejected_token: Optional[str] = None):
        self.delay = delay
        self.rejected_token = rejected_token

    async def open_session(self, server_url: str, token: str) -> AgentSession:
        if self.rejected_token is not None and token == self.rejected_token:
            raise SessionAuthExpired()
        return DummySession(delay=self.delay)
