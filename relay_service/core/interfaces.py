from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Optional

from relay_service.core.session import SessionContext, SessionState, Turn
from relay_service.core.types import AgentCard, AgentEvent, AgentResult


class AgentSession(ABC):
    """An authenticated session with one remote agent."""

    @property
    @abstractmethod
    def card(self) -> AgentCard:
        ...

    @abstractmethod
    def send_stream(self, text: str) -> AsyncIterator[AgentEvent]:
        """Send a user message and stream the agent's events in order"""
        ...

    @abstractmethod
    async def send(self, text: str) -> AgentResult:
        """Send a user message and wait for a single result"""
        ...

    async def close(self) -> None:
        return None


class AgentConnector(ABC):
    @abstractmethod
    async def open_session(self, server_url: str, token: str) -> AgentSession:
        """Open a session; raises AgentUnavailable or SessionAuthExpired"""
        ...


class DisplaySurface(ABC):
    """The chat surface replies are rendered onto."""

    @abstractmethod
    async def create_message(self, text: str) -> Any:
        """Send a new message and return a handle usable for updates"""
        ...

    @abstractmethod
    async def update_message(self, handle: Any, text: str) -> None:
        """Replace a sent message's text; raises DisplayUpdateUnsupported"""
        ...

    @abstractmethod
    async def send_notice(self, text: str) -> None:
        ...

    @abstractmethod
    async def send_typing(self) -> None:
        ...


class SessionStore(ABC):
    @abstractmethod
    async def get(self, conversation_id: str) -> Optional[SessionState]:
        ...

    @abstractmethod
    async def save(self, conversation_id: str, state: SessionState) -> None:
        ...

    @abstractmethod
    async def delete(self, conversation_id: str) -> bool:
        """Delete stored state. Returns True if deleted, False if not found."""
        ...


class AuthFlow(ABC):
    """Sign-in/sign-out dialog the router hands turns to."""

    @abstractmethod
    async def run(
        self,
        turn: Turn,
        ctx: SessionContext,
        surface: DisplaySurface,
        expired: bool = False,
    ) -> None:
        ...
