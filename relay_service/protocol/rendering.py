"""Text rendering of agent replies for the chat surface."""
from typing import Iterable, List

from relay_service.core.types import (
    AgentCard,
    Artifact,
    DataPart,
    FilePart,
    Task,
    TextPart,
    text_of,
)

REPLY_PREFIX = "🤖 "
FILE_PLACEHOLDER = "unnamed"
NO_RESPONSE = "⚠️ No response received from agent."
NO_TEXT_CONTENT = "No text content"


def reply(text: str, prefix: str = REPLY_PREFIX) -> str:
    return f"{prefix}{text}"


def artifact_lines(artifacts: Iterable[Artifact]) -> List[str]:
    """One header line per artifact, then one line per renderable part."""
    lines: List[str] = []
    for artifact in artifacts:
        lines.append(f"📎 {artifact.name or artifact.id}")
        for part in artifact.parts:
            if isinstance(part, TextPart):
                lines.append(f"📄 {part.text}")
            elif isinstance(part, FilePart):
                lines.append(f"🗂️ File: {part.display_name or FILE_PLACEHOLDER}")
            elif isinstance(part, DataPart):
                continue
    return lines


def streamed_task_lines(task: Task, artifacts: Iterable[Artifact]) -> List[str]:
    lines = [f"🎯 Task {task.id}: {task.status.state}"]
    lines.extend(artifact_lines(artifacts))
    if task.status.message:
        lines.append(f"ℹ️ {task.status.message}")
    return lines


def task_result_lines(task: Task) -> List[str]:
    lines = [f"🎯 Task: {task.id} ({task.status.state})"]
    lines.extend(artifact_lines(task.artifacts))
    if task.status.message:
        lines.append(f"ℹ️ {task.status.message}")
    # No polling: the transport cannot re-read a request body
    if not task.status.is_terminal:
        lines.append(f"⏳ Task is {task.status.state}. The agent will notify when complete.")
    return lines


def message_result_text(parts: list, prefix: str = REPLY_PREFIX) -> str:
    return reply(text_of(parts) or NO_TEXT_CONTENT, prefix)


def agent_card_lines(card: AgentCard) -> List[str]:
    lines = [
        "🤖 A2A Agent Details",
        f"Name: {card.name or 'Unknown Agent'}",
        f"Description: {card.description or 'No description available'}",
        f"Version: {card.version or 'Unknown'}",
        f"Protocol: {card.protocol_version or 'Unknown'}",
        "Skills:",
    ]
    if card.skills:
        lines.extend(f"• {skill.name}: {skill.description}" for skill in card.skills)
    else:
        lines.append("No skills information available")
    return lines
