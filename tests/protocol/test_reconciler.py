import asyncio
import math

import pytest

from relay_service.core.errors import DisplayUpdateUnsupported, StreamFailure
from relay_service.core.types import (
    Artifact,
    ArtifactUpdate,
    FilePart,
    Message,
    StatusUpdate,
    Task,
    TaskState,
    TaskStatus,
    TextPart,
)
from relay_service.protocol.reconciler import StreamReconciler
from relay_service.protocol.rendering import NO_RESPONSE
from tests.fakes import RecordingSurface, events_from


def text_message(*chunks):
    return Message(parts=[TextPart(text=c) for c in chunks])


def artifact_update(artifact_id, *chunks, name=None):
    return ArtifactUpdate(artifact=Artifact(artifactId=artifact_id, name=name, parts=[TextPart(text=c) for c in chunks]))


def status(state, message=None):
    return StatusUpdate(status=TaskStatus(state=state, message=message))


@pytest.mark.asyncio
async def test_task_with_streamed_artifacts(surface):
    events = [
        Task(id="t1", status=TaskStatus(state=TaskState.WORKING)),
        artifact_update("a1", "Hello "),
        artifact_update("a1", "World"),
        status(TaskState.COMPLETED),
    ]
    outcome = await StreamReconciler(surface).reconcile(events_from(events))

    assert surface.of("create") == [("create", "msg-1", "🤖 Hello ")]
    assert surface.of("update") == [("update", "msg-1", "🤖 Hello World")]
    assert outcome.text == "Hello World"
    assert outcome.task.status.state == TaskState.COMPLETED
    assert [a.id for a in outcome.artifacts] == ["a1", "a1"]
    # liveness only fired before any output
    assert surface.calls[0] == ("typing",)
    assert ("typing",) not in surface.calls[1:]


@pytest.mark.asyncio
async def test_empty_stream_sends_no_response_notice(surface):
    outcome = await StreamReconciler(surface).reconcile(events_from([]))

    assert surface.notices == [NO_RESPONSE]
    assert surface.of("create") == []
    assert outcome.events_received == 0


@pytest.mark.asyncio
async def test_stream_error_after_partial_text(surface):
    stream = events_from([text_message("partial")], fail_with=ConnectionError("reset by peer"))

    with pytest.raises(StreamFailure) as exc_info:
        await StreamReconciler(surface).reconcile(stream)

    assert isinstance(exc_info.value.cause, ConnectionError)
    assert not exc_info.value.is_auth
    assert surface.of("create") == [("create", "msg-1", "🤖 partial")]
    assert surface.notices == []


@pytest.mark.asyncio
async def test_auth_error_mid_stream_is_flagged(surface):
    stream = events_from([], fail_with=RuntimeError("HTTP 401 Unauthorized"))

    with pytest.raises(StreamFailure) as exc_info:
        await StreamReconciler(surface).reconcile(stream)
    assert exc_info.value.is_auth


@pytest.mark.asyncio
async def test_updates_are_throttled(surface):
    events = [text_message(str(i)) for i in range(12)]
    outcome = await StreamReconciler(surface).reconcile(events_from(events))

    assert len(surface.of("create")) == 1
    updates = surface.of("update")
    # every 5th contribution, then once at the end of the stream
    assert [u[2] for u in updates] == ["🤖 01234", "🤖 0123456789", "🤖 01234567891011"]
    assert all(u[1] == "msg-1" for u in updates)
    assert outcome.updates_issued <= math.ceil(12 / 5) + 1


@pytest.mark.asyncio
async def test_each_text_part_is_a_contribution(surface):
    events = [text_message("a", "b", "c", "d", "e"), Message(parts=[FilePart(filename="x.txt")])]
    await StreamReconciler(surface).reconcile(events_from(events))

    assert surface.of("create") == [("create", "msg-1", "🤖 a")]
    assert surface.of("update") == [("update", "msg-1", "🤖 abcde")]


@pytest.mark.asyncio
async def test_no_final_update_when_nothing_changed(surface):
    events = [text_message(c) for c in "abcde"]
    outcome = await StreamReconciler(surface).reconcile(events_from(events))

    assert surface.of("update") == [("update", "msg-1", "🤖 abcde")]
    assert outcome.updates_issued == 1


@pytest.mark.asyncio
async def test_unsupported_update_sends_substitute_message():
    surface = RecordingSurface(update_error=DisplayUpdateUnsupported("no edits"))
    events = [text_message(c) for c in "abcdef"]
    outcome = await StreamReconciler(surface).reconcile(events_from(events))

    creates = surface.of("create")
    assert [c[2] for c in creates] == ["🤖 a", "🤖 abcde", "🤖 abcdef"]
    assert len(surface.of("update_failed")) == 2
    assert outcome.messages_created == 3


@pytest.mark.asyncio
async def test_failed_periodic_update_is_swallowed_and_final_update_substituted():
    surface = RecordingSurface(update_error=RuntimeError("rate limited"))
    events = [text_message(c) for c in "abcdef"]
    await StreamReconciler(surface).reconcile(events_from(events))

    # the periodic update is dropped, the final one falls back to a new message
    assert [c[2] for c in surface.of("create")] == ["🤖 a", "🤖 abcdef"]


@pytest.mark.asyncio
async def test_failed_terminal_update_takes_no_further_action():
    surface = RecordingSurface(update_error=RuntimeError("rate limited"))
    events = [
        Task(id="t1", status=TaskStatus(state=TaskState.WORKING)),
        text_message("a"),
        text_message("b"),
        status(TaskState.COMPLETED),
    ]
    await StreamReconciler(surface).reconcile(events_from(events))

    # terminal update failed silently; finalization retried and substituted
    assert len(surface.of("update_failed")) == 2
    assert [c[2] for c in surface.of("create")] == ["🤖 a", "🤖 ab"]


@pytest.mark.asyncio
async def test_task_without_text_renders_summary(surface):
    task = Task(
        id="t9",
        status=TaskStatus(state=TaskState.SUBMITTED),
        artifacts=[
            Artifact(artifactId="a1", name="report", parts=[TextPart(text="body"), FilePart(filename=None)]),
        ],
    )
    events = [
        task,
        ArtifactUpdate(artifact=Artifact(artifactId="a2", parts=[FilePart(filename="chart.png")])),
        status(TaskState.COMPLETED, message="All done"),
    ]
    await StreamReconciler(surface).reconcile(events_from(events))

    assert surface.of("create") == []
    assert surface.notices == [
        "🎯 Task t9: completed",
        "📎 report",
        "📄 body",
        "🗂️ File: unnamed",
        "📎 a2",
        "🗂️ File: chart.png",
        "ℹ️ All done",
    ]


@pytest.mark.asyncio
async def test_status_update_without_task_is_tolerated(surface):
    outcome = await StreamReconciler(surface).reconcile(events_from([status(TaskState.COMPLETED)]))

    assert outcome.task is None
    assert surface.notices == []
    assert surface.of("create") == []


@pytest.mark.asyncio
async def test_typing_failures_never_abort():
    surface = RecordingSurface(typing_error=RuntimeError("typing not allowed"))
    outcome = await StreamReconciler(surface).reconcile(events_from([text_message("hi")]))

    assert outcome.text == "hi"
    assert surface.of("create") == [("create", "msg-1", "🤖 hi")]


@pytest.mark.asyncio
async def test_typing_repeats_until_terminal_status(surface):
    async def slow_stream():
        yield Task(id="t1", status=TaskStatus(state=TaskState.WORKING))
        await asyncio.sleep(0.1)
        yield status(TaskState.COMPLETED)
        await asyncio.sleep(0.1)

    reconciler = StreamReconciler(surface, typing_interval=0.02)
    await reconciler.reconcile(slow_stream())

    typing_before = len(surface.of("typing"))
    assert typing_before >= 3
    await asyncio.sleep(0.05)
    assert len(surface.of("typing")) == typing_before


@pytest.mark.asyncio
async def test_custom_interval_and_prefix(surface):
    reconciler = StreamReconciler(surface, update_interval=2, prefix="> ")
    await reconciler.reconcile(events_from([text_message(c) for c in "abc"]))

    assert surface.of("create") == [("create", "msg-1", "> a")]
    assert [u[2] for u in surface.of("update")] == ["> ab", "> abc"]


def test_update_interval_must_be_positive(surface):
    with pytest.raises(ValueError):
        StreamReconciler(surface, update_interval=0)


@pytest.mark.asyncio
async def test_repeated_terminal_status_issues_no_extra_updates(surface):
    events = [text_message(c) for c in "abcde"] + [status(TaskState.COMPLETED)] * 2
    outcome = await StreamReconciler(surface).reconcile(events_from(events))

    assert surface.of("update") == [("update", "msg-1", "🤖 abcde")]
    assert outcome.updates_issued <= math.ceil(5 / 5) + 1


@pytest.mark.asyncio
async def test_terminal_status_renders_pending_text_once(surface):
    events = [text_message("a"), text_message("b")] + [status(TaskState.COMPLETED)] * 3
    outcome = await StreamReconciler(surface).reconcile(events_from(events))

    assert surface.of("update") == [("update", "msg-1", "🤖 ab")]
    assert outcome.updates_issued == 1


class FailingCloseStream:
    """Event stream whose aclose() raises."""

    def __init__(self, events, fail_with=None):
        self.events = list(events)
        self.fail_with = fail_with

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.events:
            return self.events.pop(0)
        if self.fail_with is not None:
            raise self.fail_with
        raise StopAsyncIteration

    async def aclose(self):
        raise RuntimeError("close failed")


@pytest.mark.asyncio
async def test_close_failure_does_not_mask_result(surface):
    outcome = await StreamReconciler(surface).reconcile(FailingCloseStream([text_message("hi")]))

    assert outcome.text == "hi"
    assert surface.of("create") == [("create", "msg-1", "🤖 hi")]


@pytest.mark.asyncio
async def test_close_failure_does_not_mask_stream_failure(surface):
    stream = FailingCloseStream([], fail_with=ConnectionError("reset by peer"))

    with pytest.raises(StreamFailure) as exc_info:
        await StreamReconciler(surface).reconcile(stream)
    assert isinstance(exc_info.value.cause, ConnectionError)
