"""Default sign-in flow.

Tokens are handed over on the inbound turn by the hosting platform; this
flow only decides what to do with them and opens the agent session.
"""
from typing import Optional

from relay_service.core.errors import AgentUnavailable, AuthError, SessionAuthExpired
from relay_service.core.interfaces import AgentConnector, AuthFlow, DisplaySurface
from relay_service.core.logging import logger
from relay_service.core.session import SessionContext, Turn
from relay_service.protocol import rendering

SIGN_IN_PROMPT = "Please sign in to continue."
LOGIN_FAILED = "Login was not successful please try again."
LOGGED_IN = "You are now logged in."
SIGNED_OUT = "You have been signed out."
GOODBYE = "👋 Goodbye! A2A session ended."
TOKEN_EXPIRED = "Authentication failed. Token may have expired. Please login again."
READY = "💬 Enter your message for the A2A agent (or type \"exit\" to end):"


class SignInFlow(AuthFlow):
    def __init__(self, connector: AgentConnector, agent_url: str):
        self.connector = connector
        self.agent_url = agent_url

    async def run(
        self,
        turn: Turn,
        ctx: SessionContext,
        surface: DisplaySurface,
        expired: bool = False,
    ) -> None:
        command = turn.command
        if expired:
            await surface.send_notice(TOKEN_EXPIRED)
            return

        if command == "logout":
            if ctx.session is not None:
                await ctx.session.close()
            ctx.invalidate()
            await surface.send_notice(SIGNED_OUT)
            return

        if command == "exit":
            if ctx.session is not None:
                await ctx.session.close()
            ctx.end_agent_session()
            await surface.send_notice(GOODBYE)
            return

        try:
            token = self._token_for(turn, ctx, fresh=(command == "login"))
        except AuthError as e:
            await surface.send_notice(str(e))
            return

        if token != ctx.access_token:
            ctx.sign_in(token)
            await surface.send_notice(LOGGED_IN)
        await self.connect(ctx, token, surface)

    def _token_for(self, turn: Turn, ctx: SessionContext, fresh: bool) -> str:
        token: Optional[str] = turn.token
        if not token and not fresh:
            token = ctx.access_token
        if token:
            return token
        raise AuthError(LOGIN_FAILED if fresh else SIGN_IN_PROMPT)

    async def connect(self, ctx: SessionContext, token: str, surface: DisplaySurface) -> bool:
        """Open the agent session for the signed-in user."""
        url = ctx.remote_agent_url or self.agent_url
        logger.info(f"Configuring A2A client for: {url}")
        try:
            session = await self.connector.open_session(url, token)
        except SessionAuthExpired:
            ctx.invalidate()
            await surface.send_notice(TOKEN_EXPIRED)
            return False
        except AgentUnavailable as e:
            logger.error(f"Error creating A2A client: {e}")
            await surface.send_notice(
                f"❌ Error configuring A2A client: {e}. "
                "Please ensure the A2A server is running and accessible."
            )
            return False

        previous = ctx.session
        ctx.attach(session, url)
        if previous is not None and previous is not session:
            await previous.close()
        for line in rendering.agent_card_lines(session.card):
            await surface.send_notice(line)
        await surface.send_notice(f"✅ A2A client configured with authentication for: {url}")
        await surface.send_notice(READY)
        return True
