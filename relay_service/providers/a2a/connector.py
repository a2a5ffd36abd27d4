from typing import AsyncIterator, Optional

import httpx

from relay_service.core.interfaces import AgentConnector, AgentSession
from relay_service.core.types import AgentCard, AgentEvent, AgentResult
from relay_service.providers.a2a.client import DEFAULT_CARD_PATH, A2AClient


class A2ASession(AgentSession):
    def __init__(self, client: A2AClient):
        self.client = client

    @property
    def card(self) -> AgentCard:
        return self.client.card

    def send_stream(self, text: str) -> AsyncIterator[AgentEvent]:
        return self.client.send_message_stream(text)

    async def send(self, text: str) -> AgentResult:
        return await self.client.send_message(text)

    async def close(self) -> None:
        await self.client.aclose()


class A2AConnector(AgentConnector):
    """Opens A2A sessions by fetching the agent card with the user's token"""

    def __init__(
        self,
        card_path: str = DEFAULT_CARD_PATH,
        connect_timeout: float = 5.0,
        read_timeout: float = 60.0,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.card_path = card_path
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.http = http

    async def open_session(self, server_url: str, token: str) -> AgentSession:
        client = await A2AClient.from_card_url(
            server_url,
            token,
            card_path=self.card_path,
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
            http=self.http,
        )
        return A2ASession(client)
