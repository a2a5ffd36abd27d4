"""Per-conversation session state, passed explicitly through each turn."""
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from relay_service.core.interfaces import AgentSession


@dataclass
class SessionState:
    """What is persisted between turns, keyed by conversation id."""

    access_token: str
    remote_agent_url: Optional[str] = None

    def to_dict(self) -> dict:
        return {"accessToken": self.access_token, "remoteAgentUrl": self.remote_agent_url}

    @classmethod
    def from_dict(cls, data: dict) -> "SessionState":
        return cls(access_token=data["accessToken"], remote_agent_url=data.get("remoteAgentUrl"))


@dataclass
class Turn:
    """One inbound user message."""

    conversation_id: str
    text: str
    # Token handed over by the platform's sign-in, if any
    token: Optional[str] = None

    @property
    def command(self) -> str:
        return (self.text or "").strip().lower()


@dataclass
class SessionContext:
    conversation_id: str
    access_token: Optional[str] = None
    remote_agent_url: Optional[str] = None
    session: Optional["AgentSession"] = None
    invalidated: bool = False

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token) and self.session is not None

    def sign_in(self, token: str) -> None:
        self.access_token = token
        self.invalidated = False

    def attach(self, session: "AgentSession", remote_agent_url: str) -> None:
        self.session = session
        self.remote_agent_url = remote_agent_url

    def end_agent_session(self) -> None:
        """Drop the remote-agent session but stay signed in."""
        self.session = None
        self.remote_agent_url = None

    def invalidate(self) -> None:
        self.access_token = None
        self.remote_agent_url = None
        self.session = None
        self.invalidated = True

    def to_state(self) -> Optional[SessionState]:
        if not self.access_token:
            return None
        return SessionState(access_token=self.access_token, remote_agent_url=self.remote_agent_url)

    @classmethod
    def from_state(cls, conversation_id: str, state: Optional[SessionState]) -> "SessionContext":
        if state is None:
            return cls(conversation_id=conversation_id)
        return cls(
            conversation_id=conversation_id,
            access_token=state.access_token,
            remote_agent_url=state.remote_agent_url,
        )
