"""Tests for the bounded worker pool."""

import asyncio

import pytest

from clip_stitch.pool import BoundedPool


class TestBoundedPool:
    """Tests for BoundedPool.map()."""

    def test_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            BoundedPool(0)

    def test_bound_respected(self):
        """Never more than ``limit`` units in flight."""
        in_flight = 0
        peak = 0

        async def work(item):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return item

        asyncio.run(BoundedPool(2).map(work, range(8)))

        assert peak == 2

    def test_limit_one_serialises(self):
        """With a bound of 1, units run strictly one after another."""
        events = []

        async def work(item):
            events.append(("start", item))
            await asyncio.sleep(0)
            events.append(("end", item))

        asyncio.run(BoundedPool(1).map(work, [1, 2, 3]))

        assert events == [
            ("start", 1), ("end", 1),
            ("start", 2), ("end", 2),
            ("start", 3), ("end", 3),
        ]

    def test_failures_isolated(self):
        """One failing unit does not stop the others."""
        async def work(item):
            if item == 2:
                raise RuntimeError("bad item")
            return item * 10

        outcomes = asyncio.run(BoundedPool(3).map(work, [1, 2, 3]))

        assert [o.item for o in outcomes] == [1, 2, 3]
        assert [o.ok for o in outcomes] == [True, False, True]
        assert outcomes[0].result == 10
        assert outcomes[2].result == 30
        assert isinstance(outcomes[1].error, RuntimeError)

    def test_order_preserved(self):
        """Outcomes follow item order even when completion order differs."""
        async def work(item):
            await asyncio.sleep(0.001 * (5 - item))
            return item

        outcomes = asyncio.run(BoundedPool(5).map(work, [1, 2, 3, 4]))

        assert [o.result for o in outcomes] == [1, 2, 3, 4]

    def test_empty(self):
        async def work(item):
            return item

        assert asyncio.run(BoundedPool(1).map(work, [])) == []
