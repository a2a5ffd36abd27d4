"""Per-turn routing between the remote agent and the sign-in flow."""
from enum import StrEnum
from typing import Callable, Optional

from relay_service.core.errors import (
    SessionAuthExpired,
    StreamFailure,
    TransportError,
    is_auth_rejection,
)
from relay_service.core.interfaces import AgentSession, AuthFlow, DisplaySurface
from relay_service.core.logging import logger
from relay_service.core.session import SessionContext, Turn
from relay_service.core.types import Message, Task
from relay_service.protocol import rendering
from relay_service.protocol.reconciler import StreamReconciler

CONTROL_WORDS = frozenset({"login", "logout", "exit"})


class RouteOutcome(StrEnum):
    STREAMED = "streamed"
    FALLBACK = "fallback"
    AUTH_FLOW = "auth_flow"
    ERROR = "error"


def is_control_word(text: Optional[str]) -> bool:
    return (text or "").strip().lower() in CONTROL_WORDS


async def send_once(
    session: AgentSession,
    text: str,
    surface: DisplaySurface,
    prefix: str = rendering.REPLY_PREFIX,
) -> None:
    """Issue one non-streaming request and render its result.

    Raises TransportError or SessionAuthExpired from the transport.
    """
    try:
        await surface.send_typing()
    except Exception as e:
        logger.info(f"Typing indicator failed: {e}")
    result = await session.send(text)
    if isinstance(result, Message):
        await surface.create_message(rendering.message_result_text(result.parts, prefix))
    elif isinstance(result, Task):
        for line in rendering.task_result_lines(result):
            await surface.send_notice(line)


class ConversationRouter:
    def __init__(
        self,
        auth_flow: AuthFlow,
        reconciler_factory: Optional[Callable[[DisplaySurface], StreamReconciler]] = None,
        prefix: str = rendering.REPLY_PREFIX,
    ):
        self.auth_flow = auth_flow
        self.reconciler_factory = reconciler_factory or (lambda surface: StreamReconciler(surface, prefix=prefix))
        self.prefix = prefix

    async def handle(self, turn: Turn, ctx: SessionContext, surface: DisplaySurface) -> RouteOutcome:
        if is_control_word(turn.text):
            logger.info(f"Control word '{turn.command}', running sign-in flow")
            await self.auth_flow.run(turn, ctx, surface)
            return RouteOutcome.AUTH_FLOW

        session = ctx.session
        if not ctx.is_authenticated or session is None:
            await self.auth_flow.run(turn, ctx, surface)
            return RouteOutcome.AUTH_FLOW

        try:
            return await self._forward(turn, session, surface)
        except (SessionAuthExpired, TransportError, StreamFailure) as e:
            if is_auth_rejection(e):
                logger.info("Authentication failed, triggering login flow...")
                if ctx.session is not None:
                    await ctx.session.close()
                ctx.invalidate()
                await self.auth_flow.run(turn, ctx, surface, expired=True)
                return RouteOutcome.AUTH_FLOW
            logger.error(f"Error routing to agent: {e}")
            await surface.send_notice(f"⚠️ Error communicating with agent: {e}")
            return RouteOutcome.ERROR

    async def _forward(self, turn: Turn, session: AgentSession, surface: DisplaySurface) -> RouteOutcome:
        reconciler = self.reconciler_factory(surface)
        try:
            await reconciler.reconcile(session.send_stream(turn.text))
            return RouteOutcome.STREAMED
        except StreamFailure as e:
            if e.is_auth:
                raise
            logger.info(f"Streaming failed ({e}), falling back to a single request")
        await send_once(session, turn.text, surface, self.prefix)
        return RouteOutcome.FALLBACK
