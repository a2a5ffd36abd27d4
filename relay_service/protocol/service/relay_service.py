import asyncio
from typing import Any, Dict, Optional

from relay_service.core.errors import AgentUnavailable, SessionAuthExpired
from relay_service.core.interfaces import AgentConnector, DisplaySurface, SessionStore
from relay_service.core.logging import logger
from relay_service.core.session import SessionContext, Turn
from relay_service.protocol.router import ConversationRouter, RouteOutcome


class RelayService:
    def __init__(
        self,
        connector: AgentConnector,
        session_store: SessionStore,
        router: ConversationRouter,
    ):
        """Initialize with agent connector, session store and router"""
        self.connector = connector
        self.store = session_store
        self.router = router
        # turns of one conversation never overlap; a lock lives while turns hold or await it
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    async def handle_turn(self, turn: Turn, surface: DisplaySurface) -> RouteOutcome:
        """Restore the conversation's session, route the message, persist the result"""
        cid = turn.conversation_id
        lock = self._locks.setdefault(cid, asyncio.Lock())
        self._lock_users[cid] = self._lock_users.get(cid, 0) + 1
        try:
            async with lock:
                return await self._run_turn(turn, surface)
        finally:
            self._lock_users[cid] -= 1
            if not self._lock_users[cid]:
                del self._lock_users[cid]
                del self._locks[cid]

    async def _run_turn(self, turn: Turn, surface: DisplaySurface) -> RouteOutcome:
        ctx = await self._restore(turn.conversation_id)
        try:
            logger.info(f"Turn started: conversation_id={turn.conversation_id}, authenticated={ctx.is_authenticated}")
            outcome = await self.router.handle(turn, ctx, surface)
            logger.info(f"Turn routed: conversation_id={turn.conversation_id}, outcome={outcome}")
            return outcome
        except Exception as e:
            logger.exception(f"Unhandled error in turn: conversation_id={turn.conversation_id}")
            await surface.send_notice(f"⚠️ Error communicating with agent: {e}")
            return RouteOutcome.ERROR
        finally:
            await self._persist(ctx)
            if ctx.session is not None:
                await ctx.session.close()

    async def _restore(self, conversation_id: str) -> SessionContext:
        state = await self.store.get(conversation_id)
        ctx = SessionContext.from_state(conversation_id, state)
        if state is None or not state.remote_agent_url:
            return ctx
        try:
            session = await self.connector.open_session(state.remote_agent_url, state.access_token)
            ctx.attach(session, state.remote_agent_url)
        except SessionAuthExpired:
            logger.info(f"Stored token rejected on restore: conversation_id={conversation_id}")
            ctx.invalidate()
        except AgentUnavailable as e:
            # continue without a session; the sign-in flow reconnects
            logger.error(f"Error restoring A2A state: {e}")
        return ctx

    async def _persist(self, ctx: SessionContext) -> None:
        state = ctx.to_state()
        if state is not None:
            await self.store.save(ctx.conversation_id, state)
        elif ctx.invalidated:
            await self.store.delete(ctx.conversation_id)

    # --- Session Management ---

    async def get_session(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        state = await self.store.get(conversation_id)
        if state is None:
            return None
        return {
            "conversation_id": conversation_id,
            "authenticated": True,
            "remote_agent_url": state.remote_agent_url,
        }

    async def delete_session(self, conversation_id: str) -> bool:
        return await self.store.delete(conversation_id)
