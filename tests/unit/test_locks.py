import asyncio

import pytest

from barberflow.features.negotiation.services.locks import AppointmentLocks


@pytest.mark.asyncio
async def test_same_appointment_is_serialized():
    locks = AppointmentLocks()
    order: list[str] = []

    async def worker(name: str):
        async with locks.hold("a1"):
            order.append(f"{name}-start")
            await asyncio.sleep(0.01)
            order.append(f"{name}-end")

    await asyncio.gather(worker("first"), worker("second"))

    assert order == ["first-start", "first-end", "second-start", "second-end"]
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_different_appointments_do_not_block_each_other():
    locks = AppointmentLocks()
    entered = asyncio.Event()

    async def holder():
        async with locks.hold("a1"):
            await entered.wait()

    task = asyncio.create_task(holder())
    await asyncio.sleep(0)
    assert locks.is_locked("a1")

    async with locks.hold("a2"):
        assert locks.is_locked("a2")
        entered.set()

    await task
    assert not locks.is_locked("a1")
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_lock_released_on_error():
    locks = AppointmentLocks()

    with pytest.raises(RuntimeError):
        async with locks.hold("a1"):
            raise RuntimeError("boom")

    assert len(locks) == 0
