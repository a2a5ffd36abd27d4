import pytest

from relay_service.core.errors import SessionAuthExpired, TransportError
from relay_service.core.session import SessionContext, Turn
from relay_service.core.types import (
    Artifact,
    Message,
    Task,
    TaskState,
    TaskStatus,
    TextPart,
)
from relay_service.protocol.router import (
    ConversationRouter,
    RouteOutcome,
    is_control_word,
    send_once,
)
from tests.fakes import RecordingAuthFlow, ScriptedSession


def authenticated(session):
    ctx = SessionContext(conversation_id="c1", access_token="tok")
    ctx.attach(session, "http://agent")
    return ctx


@pytest.fixture
def auth_flow():
    return RecordingAuthFlow()


@pytest.mark.parametrize("text", ["login", " LOGOUT ", "Exit", "exit\n"])
def test_control_words(text):
    assert is_control_word(text)


@pytest.mark.parametrize("text", ["log in", "exit now", "", None, "hello"])
def test_not_control_words(text):
    assert not is_control_word(text)


@pytest.mark.asyncio
@pytest.mark.parametrize("word", ["login", "logout", "exit"])
async def test_control_words_go_to_auth_flow_even_when_authenticated(surface, auth_flow, word):
    session = ScriptedSession(events=[Message(parts=[TextPart(text="hi")])])
    ctx = authenticated(session)

    outcome = await ConversationRouter(auth_flow).handle(Turn("c1", word), ctx, surface)

    assert outcome == RouteOutcome.AUTH_FLOW
    assert auth_flow.runs == [(word, False)]
    assert session.sent == []


@pytest.mark.asyncio
async def test_unauthenticated_goes_to_auth_flow(surface, auth_flow):
    ctx = SessionContext(conversation_id="c1")
    outcome = await ConversationRouter(auth_flow).handle(Turn("c1", "hello"), ctx, surface)

    assert outcome == RouteOutcome.AUTH_FLOW
    assert auth_flow.runs == [("hello", False)]


@pytest.mark.asyncio
async def test_token_without_session_is_not_authenticated(surface, auth_flow):
    ctx = SessionContext(conversation_id="c1", access_token="tok")
    outcome = await ConversationRouter(auth_flow).handle(Turn("c1", "hello"), ctx, surface)
    assert outcome == RouteOutcome.AUTH_FLOW


@pytest.mark.asyncio
async def test_authenticated_message_is_streamed(surface, auth_flow):
    session = ScriptedSession(events=[Message(parts=[TextPart(text="hi there")])])
    ctx = authenticated(session)

    outcome = await ConversationRouter(auth_flow).handle(Turn("c1", "hello"), ctx, surface)

    assert outcome == RouteOutcome.STREAMED
    assert session.sent == [("stream", "hello")]
    assert surface.of("create") == [("create", "msg-1", "🤖 hi there")]
    assert auth_flow.runs == []


@pytest.mark.asyncio
async def test_stream_failure_falls_back_to_single_request(surface, auth_flow):
    session = ScriptedSession(
        events=[Message(parts=[TextPart(text="partial")])],
        stream_error=ConnectionError("stream dropped"),
        result=Message(parts=[TextPart(text="full answer")]),
    )
    ctx = authenticated(session)

    outcome = await ConversationRouter(auth_flow).handle(Turn("c1", "hello"), ctx, surface)

    assert outcome == RouteOutcome.FALLBACK
    assert session.sent == [("stream", "hello"), ("send", "hello")]
    assert [c[2] for c in surface.of("create")] == ["🤖 partial", "🤖 full answer"]
    assert ctx.is_authenticated


@pytest.mark.asyncio
async def test_auth_rejection_mid_stream_invalidates_and_reenters_auth(surface, auth_flow):
    session = ScriptedSession(stream_error=SessionAuthExpired())
    ctx = authenticated(session)

    outcome = await ConversationRouter(auth_flow).handle(Turn("c1", "hello"), ctx, surface)

    assert outcome == RouteOutcome.AUTH_FLOW
    assert auth_flow.runs == [("hello", True)]
    assert ctx.access_token is None
    assert ctx.session is None
    assert ctx.invalidated
    # no synchronous retry with a rejected token
    assert session.sent == [("stream", "hello")]


@pytest.mark.asyncio
async def test_auth_rejection_on_fallback_invalidates(surface, auth_flow):
    session = ScriptedSession(
        stream_error=ValueError("malformed event"),
        send_error=TransportError("Unauthorized", status_code=401),
    )
    ctx = authenticated(session)

    outcome = await ConversationRouter(auth_flow).handle(Turn("c1", "hello"), ctx, surface)

    assert outcome == RouteOutcome.AUTH_FLOW
    assert auth_flow.runs == [("hello", True)]
    assert not ctx.is_authenticated


@pytest.mark.asyncio
async def test_fallback_failure_is_reported_and_session_kept(surface, auth_flow):
    session = ScriptedSession(
        stream_error=ValueError("malformed event"),
        send_error=TransportError("Agent request failed with status 500", status_code=500),
    )
    ctx = authenticated(session)

    outcome = await ConversationRouter(auth_flow).handle(Turn("c1", "hello"), ctx, surface)

    assert outcome == RouteOutcome.ERROR
    assert surface.notices[-1] == "⚠️ Error communicating with agent: Agent request failed with status 500"
    assert ctx.is_authenticated
    assert auth_flow.runs == []


@pytest.mark.asyncio
async def test_send_once_renders_task(surface):
    task = Task(
        id="t1",
        status=TaskStatus(state=TaskState.WORKING, message="Crunching"),
        artifacts=[Artifact(artifactId="a1", name="draft", parts=[TextPart(text="v1")])],
    )
    await send_once(ScriptedSession(result=task), "hello", surface)

    assert surface.calls[0] == ("typing",)
    assert surface.notices == [
        "🎯 Task: t1 (working)",
        "📎 draft",
        "📄 v1",
        "ℹ️ Crunching",
        "⏳ Task is working. The agent will notify when complete.",
    ]


@pytest.mark.asyncio
async def test_send_once_completed_task_has_no_pending_notice(surface):
    task = Task(id="t1", status=TaskStatus(state=TaskState.COMPLETED))
    await send_once(ScriptedSession(result=task), "hello", surface)
    assert surface.notices == ["🎯 Task: t1 (completed)"]


@pytest.mark.asyncio
async def test_send_once_message_without_text(surface):
    await send_once(ScriptedSession(result=Message(parts=[])), "hello", surface)
    assert surface.of("create") == [("create", "msg-1", "🤖 No text content")]


@pytest.mark.asyncio
async def test_agent_error_mentioning_401_keeps_session(surface, auth_flow):
    session = ScriptedSession(
        stream_error=TransportError("Task 7a401bc2 not found"),
        send_error=TransportError("Task 7a401bc2 not found"),
    )
    ctx = authenticated(session)

    outcome = await ConversationRouter(auth_flow).handle(Turn("c1", "hello"), ctx, surface)

    assert outcome == RouteOutcome.ERROR
    assert surface.notices[-1] == "⚠️ Error communicating with agent: Task 7a401bc2 not found"
    assert ctx.is_authenticated
    assert not ctx.invalidated
    assert auth_flow.runs == []
