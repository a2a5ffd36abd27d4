import asyncio

import pytest

from relay_service.protocol.liveness import TypingHeartbeat
from tests.fakes import RecordingSurface


@pytest.mark.asyncio
async def test_pulses_immediately_and_on_interval(surface):
    async with TypingHeartbeat(surface, interval=0.01) as heartbeat:
        assert surface.of("typing") == [("typing",)]
        assert heartbeat.running
        await asyncio.sleep(0.05)
    assert len(surface.of("typing")) >= 2
    assert not heartbeat.running


@pytest.mark.asyncio
async def test_stop_is_idempotent_and_final(surface):
    heartbeat = TypingHeartbeat(surface, interval=0.01)
    await heartbeat.start()
    await heartbeat.stop()
    count = len(surface.of("typing"))
    await heartbeat.stop()
    await asyncio.sleep(0.03)
    assert len(surface.of("typing")) == count


@pytest.mark.asyncio
async def test_stops_when_block_raises(surface):
    heartbeat = TypingHeartbeat(surface, interval=0.01)
    with pytest.raises(RuntimeError):
        async with heartbeat:
            raise RuntimeError("boom")
    assert not heartbeat.running


@pytest.mark.asyncio
async def test_send_failures_are_swallowed():
    surface = RecordingSurface(typing_error=ConnectionError("offline"))
    async with TypingHeartbeat(surface, interval=0.01):
        await asyncio.sleep(0.03)
    assert len(surface.of("typing")) >= 2
