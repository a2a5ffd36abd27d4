"""
client.py - JSON-RPC client for A2A agents over httpx.

This module provides an async client for an A2A agent with:
- Bearer token auth on every request
- Agent card discovery
- `message/send` for a single result
- `message/stream` consumed as Server-Sent Events, one AgentEvent per event
- 401 surfaced as SessionAuthExpired, other failures as TransportError
- Security: tokens are never logged
"""

import json
import logging
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
from pydantic import ValidationError

from relay_service.core.errors import AgentUnavailable, SessionAuthExpired, TransportError
from relay_service.core.types import AgentCard, AgentEvent, AgentResult, parse_event, parse_result


logger = logging.getLogger(__name__)

DEFAULT_CARD_PATH = "/.well-known/agent-card.json"


def build_message(text: str) -> Dict[str, Any]:
    """Build the outbound user message envelope."""
    return {
        "messageId": str(uuid.uuid4()),
        "role": "user",
        "parts": [{"kind": "text", "text": text}],
        "kind": "message",
    }


def card_url_for(server_url: str, card_path: str = DEFAULT_CARD_PATH) -> str:
    """Accept either an agent card URL or an agent base URL."""
    if server_url.endswith(".json"):
        return server_url
    return server_url.rstrip("/") + card_path


class A2AClient:
    """
    Async JSON-RPC client for one A2A agent endpoint.

    The caller owns the token; the client only attaches it. Pass `http` to
    share or mock the underlying httpx.AsyncClient.
    """

    def __init__(
        self,
        endpoint: str,
        token: str,
        card: Optional[AgentCard] = None,
        connect_timeout: float = 5.0,
        read_timeout: float = 60.0,
        http: Optional[httpx.AsyncClient] = None,
    ):
        if not token:
            raise ValueError("Token cannot be empty")
        self.endpoint = endpoint
        self.token = token
        self.card = card or AgentCard()
        self.timeout = httpx.Timeout(connect=connect_timeout, read=read_timeout, write=10.0, pool=5.0)
        self._http = http
        self._owns_http = http is None

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.timeout)
        return self._http

    def _headers(self, accept: str = "application/json") -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
            "Accept": accept,
        }

    def _rpc(self, method: str, text: str) -> Dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": {"message": build_message(text)},
        }

    @classmethod
    async def from_card_url(
        cls,
        server_url: str,
        token: str,
        card_path: str = DEFAULT_CARD_PATH,
        connect_timeout: float = 5.0,
        read_timeout: float = 60.0,
        http: Optional[httpx.AsyncClient] = None,
    ) -> "A2AClient":
        """
        Fetch the agent card and build a client for the endpoint it names.

        Raises:
            SessionAuthExpired: the card request was rejected with 401
            AgentUnavailable: the agent could not be reached or sent a bad card
        """
        url = card_url_for(server_url, card_path)
        client = cls(url, token, connect_timeout=connect_timeout, read_timeout=read_timeout, http=http)
        try:
            response = await client.http.get(url, headers=client._headers())
        except httpx.HTTPError as e:
            await client.aclose()
            raise AgentUnavailable(f"Could not reach agent at {url}: {e}") from e

        logger.info(f"Agent card response: status={response.status_code}, url={url}")
        if response.status_code == 401:
            await client.aclose()
            raise SessionAuthExpired()
        if response.status_code != 200:
            await client.aclose()
            raise AgentUnavailable(f"Agent card request failed with status {response.status_code}")

        try:
            card = AgentCard.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            await client.aclose()
            raise AgentUnavailable(f"Invalid agent card at {url}: {e}") from e

        client.card = card
        if card.url:
            client.endpoint = card.url
        elif url.endswith(card_path):
            client.endpoint = url[: -len(card_path)]
        return client

    async def send_message(self, text: str) -> AgentResult:
        """
        Send a message and return the agent's Message or Task.

        Raises:
            SessionAuthExpired: on HTTP 401
            TransportError: for any other HTTP, network or JSON-RPC failure
        """
        try:
            response = await self.http.post(
                self.endpoint, json=self._rpc("message/send", text), headers=self._headers()
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Request to agent failed: {e}") from e

        logger.info(f"message/send response: status={response.status_code}")
        self._check_status(response)
        try:
            payload = response.json()
        except ValueError as e:
            raise TransportError(f"Agent returned invalid JSON: {e}") from e
        return self._unwrap(payload, parse_result)

    async def send_message_stream(self, text: str) -> AsyncIterator[AgentEvent]:
        """
        Send a message and yield the agent's events as they arrive.

        Raises the same errors as send_message, at the point they occur.
        """
        async with self.http.stream(
            "POST",
            self.endpoint,
            json=self._rpc("message/stream", text),
            headers=self._headers(accept="text/event-stream"),
        ) as response:
            logger.info(f"message/stream response: status={response.status_code}")
            if response.status_code >= 400:
                await response.aread()
            self._check_status(response)

            data_lines: List[str] = []
            async for line in response.aiter_lines():
                if line.startswith("data:"):
                    data_lines.append(line[5:].lstrip())
                elif not line.strip() and data_lines:
                    yield self._decode_sse("\n".join(data_lines))
                    data_lines = []
            if data_lines:
                yield self._decode_sse("\n".join(data_lines))

    def _decode_sse(self, data: str) -> AgentEvent:
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            raise TransportError(f"Malformed stream event: {e}") from e
        return self._unwrap(payload, parse_event)

    def _check_status(self, response: httpx.Response) -> None:
        if response.status_code == 401:
            raise SessionAuthExpired()
        if response.status_code >= 400:
            raise TransportError(
                f"Agent request failed with status {response.status_code}: {response.text[:100]}",
                status_code=response.status_code,
            )

    def _unwrap(self, payload: Dict[str, Any], parse) -> Any:
        if "error" in payload and payload["error"]:
            error = payload["error"]
            message = error.get("message", "Unknown error") if isinstance(error, dict) else str(error)
            raise TransportError(message)
        try:
            return parse(payload.get("result", payload))
        except ValidationError as e:
            raise TransportError(f"Unrecognised agent payload: {e}") from e

    async def aclose(self) -> None:
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None
