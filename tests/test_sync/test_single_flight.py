"""Tests for the per-key single-flight guard."""
import asyncio

import pytest

from app.services.sync.single_flight import NoFlight, SingleFlight


class TestSingleFlight:
    """Test suite for SingleFlight.do()."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_call(self):
        """Should run the coroutine once for concurrent callers of the same key."""
        flight = SingleFlight()
        calls = []
        release = asyncio.Event()

        async def fetch():
            calls.append(1)
            await release.wait()
            return {"matches": [1]}

        tasks = [asyncio.create_task(flight.do("match:42", fetch)) for _ in range(3)]
        await asyncio.sleep(0)
        assert len(flight) == 1
        release.set()
        results = await asyncio.gather(*tasks)

        assert calls == [1]
        assert results == [{"matches": [1]}] * 3
        assert len(flight) == 0

    @pytest.mark.asyncio
    async def test_different_keys_run_separately(self):
        """Should not share calls across keys."""
        flight = SingleFlight()
        calls = []

        async def fetch(key):
            calls.append(key)
            await asyncio.sleep(0)
            return key

        results = await asyncio.gather(
            flight.do("a", lambda: fetch("a")),
            flight.do("b", lambda: fetch("b")),
        )
        assert results == ["a", "b"]
        assert sorted(calls) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_errors_propagate_to_joiners(self):
        """Should raise the leader's exception in every waiting caller."""
        flight = SingleFlight()
        release = asyncio.Event()

        async def fetch():
            await release.wait()
            raise RuntimeError("provider down")

        tasks = [asyncio.create_task(flight.do("k", fetch)) for _ in range(2)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(r, RuntimeError) for r in results)
        assert len(flight) == 0

    @pytest.mark.asyncio
    async def test_nothing_cached_after_completion(self):
        """Should call again once the previous call finished."""
        flight = SingleFlight()
        calls = []

        async def fetch():
            calls.append(1)
            return len(calls)

        assert await flight.do("k", fetch) == 1
        assert await flight.do("k", fetch) == 2

    @pytest.mark.asyncio
    async def test_no_flight_passes_through(self):
        """Should simply await the coroutine."""

        async def fetch():
            return "x"

        assert await NoFlight().do("k", fetch) == "x"
        assert len(NoFlight()) == 0
