"""
Unit tests for the Connection Throttle.
"""

import pytest
import asyncio

from service_connector.app.adapters.throttle import ConnectionThrottle


class TestConnectionThrottle:
    """Test cases for ConnectionThrottle."""

    def test_rejects_non_positive_capacity(self):
        """Test that a throttle needs at least one permit."""
        with pytest.raises(ValueError):
            ConnectionThrottle(capacity=0)

    @pytest.mark.asyncio
    async def test_slot_accounting(self):
        """Test in_use/available while a slot is held."""
        throttle = ConnectionThrottle(capacity=2)

        async with throttle.slot():
            assert throttle.in_use == 1
            assert throttle.available == 1

        assert throttle.in_use == 0
        assert throttle.available == 2

    @pytest.mark.asyncio
    async def test_extra_acquisition_waits_for_release(self):
        """Test that acquisition N+1 stays pending until a permit is released."""
        throttle = ConnectionThrottle(capacity=3)
        entered = []
        gates = [asyncio.Event() for _ in range(4)]

        async def worker(index: int):
            async with throttle.slot():
                entered.append(index)
                await gates[index].wait()

        tasks = [asyncio.create_task(worker(i)) for i in range(4)]
        await asyncio.sleep(0.01)

        assert entered == [0, 1, 2]
        assert throttle.available == 0

        gates[0].set()
        await asyncio.sleep(0.01)

        assert entered == [0, 1, 2, 3]
        assert throttle.in_use == 3

        for gate in gates:
            gate.set()
        await asyncio.gather(*tasks)

        assert throttle.available == 3

    @pytest.mark.asyncio
    async def test_slot_released_when_block_raises(self):
        """Test that an exception inside the block still returns the permit."""
        throttle = ConnectionThrottle(capacity=1)

        with pytest.raises(RuntimeError):
            async with throttle.slot():
                raise RuntimeError("boom")

        assert throttle.available == 1
        async with throttle.slot():
            assert throttle.in_use == 1

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_leak(self):
        """Test that cancelling a pending acquisition leaves capacity intact."""
        throttle = ConnectionThrottle(capacity=1)
        release = asyncio.Event()

        async def holder():
            async with throttle.slot():
                await release.wait()

        async def waiter():
            async with throttle.slot():
                pass

        holding = asyncio.create_task(holder())
        await asyncio.sleep(0)
        waiting = asyncio.create_task(waiter())
        await asyncio.sleep(0.01)

        waiting.cancel()
        await asyncio.gather(waiting, return_exceptions=True)
        release.set()
        await holding

        assert throttle.available == 1
        assert throttle.in_use == 0
