import asyncio

import pytest

from confluence_scraper.gate import ConcurrencyGate


def test_gate_rejects_non_positive_capacity():
    with pytest.raises(ValueError):
        ConcurrencyGate(0)


@pytest.mark.asyncio
@pytest.mark.parametrize("capacity", [1, 2, 3])
async def test_gate_bounds_concurrent_holders(capacity):
    gate = ConcurrencyGate(capacity)
    current = 0
    peak = 0

    async def worker():
        nonlocal current, peak
        async with gate.slot():
            current += 1
            peak = max(peak, current)
            await asyncio.sleep(0.01)
            current -= 1

    await asyncio.gather(*(worker() for _ in range(capacity * 3 + 1)))

    assert peak <= capacity
    assert gate.peak_in_flight == peak
    assert gate.in_flight == 0


@pytest.mark.asyncio
async def test_slot_released_when_block_raises():
    gate = ConcurrencyGate(1)
    with pytest.raises(RuntimeError):
        async with gate.slot():
            raise RuntimeError("boom")
    assert gate.in_flight == 0
    await asyncio.wait_for(gate.acquire(), timeout=0.1)


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_take_a_slot():
    gate = ConcurrencyGate(1)
    await gate.acquire()

    waiter = asyncio.create_task(gate.acquire())
    await asyncio.sleep(0)
    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter

    assert gate.in_flight == 1
    gate.release()
    await asyncio.wait_for(gate.acquire(), timeout=0.1)
    assert gate.in_flight == 1


@pytest.mark.asyncio
async def test_wait_for_timeout_while_gate_full():
    gate = ConcurrencyGate(1)
    await gate.acquire()
    with pytest.raises(TimeoutError):
        await asyncio.wait_for(gate.acquire(), timeout=0.01)
    assert gate.in_flight == 1
    assert gate.capacity == 1
