"""Stream reconciliation: turns an agent's event stream into one chat reply.

A single reconcile() call owns its ReconciliationState. Text from messages
and artifact updates is concatenated into one display message that is
created on the first contribution and then edited in place every
`update_interval` contributions, on terminal task status and at the end of
the stream.
"""
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, List, Optional, assert_never

from relay_service.core.errors import DisplayUpdateUnsupported, StreamFailure
from relay_service.core.interfaces import DisplaySurface
from relay_service.core.logging import logger
from relay_service.core.types import (
    AgentEvent,
    Artifact,
    ArtifactUpdate,
    Message,
    StatusUpdate,
    Task,
    TextPart,
)
from relay_service.protocol import rendering
from relay_service.protocol.liveness import TypingHeartbeat

DEFAULT_UPDATE_INTERVAL = 5
DEFAULT_TYPING_INTERVAL = 2.0


@dataclass
class ReconciliationState:
    accumulated_text: str = ""
    current_task: Optional[Task] = None
    artifacts: List[Artifact] = field(default_factory=list)
    update_count: int = 0
    display_handle: Optional[Any] = None
    completed: bool = False
    events_received: int = 0
    # Last text pushed to the surface, to skip redundant final updates
    rendered_text: str = ""
    messages_created: int = 0
    updates_issued: int = 0


@dataclass
class ReconciliationOutcome:
    text: str
    task: Optional[Task]
    artifacts: List[Artifact]
    display_handle: Optional[Any]
    events_received: int
    messages_created: int
    updates_issued: int

    @classmethod
    def from_state(cls, state: ReconciliationState) -> "ReconciliationOutcome":
        return cls(
            text=state.accumulated_text,
            task=state.current_task,
            artifacts=list(state.artifacts),
            display_handle=state.display_handle,
            events_received=state.events_received,
            messages_created=state.messages_created,
            updates_issued=state.updates_issued,
        )


class StreamReconciler:
    def __init__(
        self,
        surface: DisplaySurface,
        update_interval: int = DEFAULT_UPDATE_INTERVAL,
        typing_interval: float = DEFAULT_TYPING_INTERVAL,
        prefix: str = rendering.REPLY_PREFIX,
    ):
        if update_interval < 1:
            raise ValueError("update_interval must be at least 1")
        self.surface = surface
        self.update_interval = update_interval
        self.typing_interval = typing_interval
        self.prefix = prefix

    async def reconcile(self, events: AsyncIterator[AgentEvent]) -> ReconciliationOutcome:
        """Consume `events` and render the reply.

        Raises StreamFailure if the stream (or applying one of its events)
        fails; whatever was rendered up to that point stays on the surface.
        """
        state = ReconciliationState()
        heartbeat = TypingHeartbeat(self.surface, self.typing_interval)
        try:
            async with heartbeat:
                async for event in events:
                    state.events_received += 1
                    logger.debug(f"Received event: {event.kind}")
                    await self._apply(state, event, heartbeat)
        except Exception as e:
            logger.exception(f"Streaming error after {state.events_received} events: {e}")
            raise StreamFailure(e) from e
        finally:
            state.completed = True
            await self._close_stream(events)

        logger.info(f"Stream complete: events={state.events_received}, text_length={len(state.accumulated_text)}")
        await self._finalize(state)
        return ReconciliationOutcome.from_state(state)

    async def _close_stream(self, events: AsyncIterator[AgentEvent]) -> None:
        aclose = getattr(events, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception as e:
            logger.warning(f"Closing the event stream failed: {e}")

    async def _apply(self, state: ReconciliationState, event: AgentEvent, heartbeat: TypingHeartbeat) -> None:
        if isinstance(event, Message):
            for part in event.parts:
                if isinstance(part, TextPart) and part.text:
                    await self._contribute(state, part.text)

        elif isinstance(event, Task):
            state.current_task = event
            logger.info(f"Task {event.id} created with status: {event.status.state}")
            if event.artifacts:
                state.artifacts.extend(event.artifacts)

        elif isinstance(event, StatusUpdate):
            logger.info(f"Task status update: {event.status.state}")
            if state.current_task is not None:
                state.current_task.status = event.status
            if event.status.is_terminal:
                state.completed = True
                await heartbeat.stop()
                if state.display_handle is not None and state.accumulated_text != state.rendered_text:
                    await self._render(state, substitute_on_error=False)

        elif isinstance(event, ArtifactUpdate):
            for part in event.artifact.parts:
                if isinstance(part, TextPart) and part.text:
                    await self._contribute(state, part.text)
            state.artifacts.append(event.artifact)

        else:
            assert_never(event)

    async def _contribute(self, state: ReconciliationState, text: str) -> None:
        state.accumulated_text += text
        state.update_count += 1
        if state.display_handle is None:
            state.display_handle = await self.surface.create_message(
                rendering.reply(state.accumulated_text, self.prefix)
            )
            state.messages_created += 1
            state.rendered_text = state.accumulated_text
        elif state.update_count % self.update_interval == 0:
            await self._render(state, substitute_on_error=False)
        else:
            logger.debug(f"Deferring update: update_count={state.update_count}")

    async def _render(self, state: ReconciliationState, substitute_on_error: bool) -> None:
        """Edit the display message in place with the full accumulated text."""
        text = rendering.reply(state.accumulated_text, self.prefix)
        try:
            await self.surface.update_message(state.display_handle, text)
            state.updates_issued += 1
        except DisplayUpdateUnsupported:
            logger.info("Message update not supported, sending as new message")
            await self.surface.create_message(text)
            state.messages_created += 1
        except Exception as e:
            if not substitute_on_error:
                logger.warning(f"Message update failed, continuing: {e}")
                return
            logger.warning(f"Final update failed, sending as new message: {e}")
            await self.surface.create_message(text)
            state.messages_created += 1
        state.rendered_text = state.accumulated_text

    async def _finalize(self, state: ReconciliationState) -> None:
        if state.accumulated_text:
            if state.display_handle is None:
                await self.surface.create_message(rendering.reply(state.accumulated_text, self.prefix))
                state.messages_created += 1
            elif state.accumulated_text != state.rendered_text:
                await self._render(state, substitute_on_error=True)
        elif state.current_task is not None:
            for line in rendering.streamed_task_lines(state.current_task, state.artifacts):
                await self.surface.send_notice(line)
        elif not state.events_received:
            await self.surface.send_notice(rendering.NO_RESPONSE)
