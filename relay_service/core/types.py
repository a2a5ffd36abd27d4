"""Wire models for the agent protocol.

Events and parts are closed tagged unions discriminated on `kind`, matching
the JSON the remote agent sends.
"""
from enum import StrEnum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class TaskState(StrEnum):
    SUBMITTED = "submitted"
    WORKING = "working"
    INPUT_REQUIRED = "input-required"
    AUTH_REQUIRED = "auth-required"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"
    REJECTED = "rejected"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {TaskState.COMPLETED, TaskState.FAILED, TaskState.CANCELED, TaskState.REJECTED}
)


class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TextPart(_Wire):
    kind: Literal["text"] = "text"
    text: str = ""


class FilePart(_Wire):
    kind: Literal["file"] = "file"
    filename: Optional[str] = None
    file: Optional[Dict[str, Any]] = None

    @property
    def display_name(self) -> Optional[str]:
        if self.filename:
            return self.filename
        return (self.file or {}).get("name") or None


class DataPart(_Wire):
    kind: Literal["data"] = "data"
    data: Dict[str, Any] = Field(default_factory=dict)


Part = Annotated[Union[TextPart, FilePart, DataPart], Field(discriminator="kind")]


def text_of(parts: List[Any]) -> str:
    """Concatenate the content of the text parts, in order."""
    return "".join(p.text for p in parts if isinstance(p, TextPart))


class Message(_Wire):
    kind: Literal["message"] = "message"
    message_id: Optional[str] = Field(default=None, alias="messageId")
    role: str = "agent"
    parts: List[Part] = Field(default_factory=list)


class TaskStatus(_Wire):
    state: TaskState = TaskState.UNKNOWN
    message: Optional[str] = None

    @field_validator("message", mode="before")
    @classmethod
    def _message_text(cls, v: Any) -> Any:
        # agents may send the status message as a full Message object
        if isinstance(v, dict):
            return text_of(Message.model_validate(v).parts) or None
        return v

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal


class Artifact(_Wire):
    id: str = Field(default="", alias="artifactId")
    name: Optional[str] = None
    parts: List[Part] = Field(default_factory=list)


class Task(_Wire):
    kind: Literal["task"] = "task"
    id: str
    context_id: Optional[str] = Field(default=None, alias="contextId")
    status: TaskStatus = Field(default_factory=TaskStatus)
    artifacts: List[Artifact] = Field(default_factory=list)

    @field_validator("artifacts", mode="before")
    @classmethod
    def _none_artifacts(cls, v: Any) -> Any:
        return v or []


class StatusUpdate(_Wire):
    kind: Literal["status-update"] = "status-update"
    task_id: Optional[str] = Field(default=None, alias="taskId")
    status: TaskStatus
    final: bool = False


class ArtifactUpdate(_Wire):
    kind: Literal["artifact-update"] = "artifact-update"
    task_id: Optional[str] = Field(default=None, alias="taskId")
    artifact: Artifact
    append: bool = False
    last_chunk: bool = Field(default=False, alias="lastChunk")


AgentEvent = Annotated[
    Union[Message, Task, StatusUpdate, ArtifactUpdate],
    Field(discriminator="kind"),
]

# Result of a non-streaming send
AgentResult = Annotated[Union[Message, Task], Field(discriminator="kind")]

_event_adapter: TypeAdapter = TypeAdapter(AgentEvent)
_result_adapter: TypeAdapter = TypeAdapter(AgentResult)


def parse_event(payload: Dict[str, Any]) -> Union[Message, Task, StatusUpdate, ArtifactUpdate]:
    return _event_adapter.validate_python(payload)


def parse_result(payload: Dict[str, Any]) -> Union[Message, Task]:
    return _result_adapter.validate_python(payload)


class AgentSkill(_Wire):
    id: Optional[str] = None
    name: str = ""
    description: str = ""


class AgentCard(_Wire):
    name: Optional[str] = None
    description: Optional[str] = None
    version: Optional[str] = None
    protocol_version: Optional[str] = Field(default=None, alias="protocolVersion")
    url: Optional[str] = None
    skills: List[AgentSkill] = Field(default_factory=list)
