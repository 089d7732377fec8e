"""Tests for Deferred -- the shared, externally settled batch result."""

import asyncio

import pytest

from batchfetch.batching.deferred import Deferred
from batchfetch.exceptions import DeferredStateError


class TestDeferredState:
    """Tests for settling and state reporting."""

    def test_unbound_deferred_is_not_settled(self) -> None:
        deferred = Deferred()
        assert deferred.settled is False
        assert repr(deferred) == "<Deferred unbound>"

    async def test_resolve_sets_future_result(self) -> None:
        deferred = Deferred()
        deferred.resolve([1, 2])
        assert deferred.settled is True
        assert await deferred.future == [1, 2]
        assert repr(deferred) == "<Deferred resolved>"

    async def test_reject_sets_future_exception(self) -> None:
        deferred = Deferred()
        error = RuntimeError("boom")
        deferred.reject(error)
        assert deferred.settled is True
        with pytest.raises(RuntimeError) as exc_info:
            await deferred.future
        assert exc_info.value is error

    async def test_resolve_twice_raises(self) -> None:
        deferred = Deferred()
        deferred.resolve(1)
        with pytest.raises(DeferredStateError, match="already settled"):
            deferred.resolve(2)
        assert await deferred.future == 1

    async def test_reject_after_resolve_raises(self) -> None:
        deferred = Deferred()
        deferred.resolve(1)
        with pytest.raises(DeferredStateError):
            deferred.reject(RuntimeError("late"))

    async def test_cancel_settles_and_cancels_chained(self) -> None:
        deferred = Deferred()
        chained = deferred.then(lambda value: value)
        deferred.cancel()
        await asyncio.sleep(0)

        assert deferred.settled is True
        assert chained.cancelled()
        with pytest.raises(DeferredStateError):
            deferred.cancel()

    async def test_future_is_created_once(self) -> None:
        deferred = Deferred()
        assert deferred.future is deferred.future

    def test_future_requires_running_loop(self) -> None:
        deferred = Deferred()
        with pytest.raises(RuntimeError):
            deferred.future


class TestDeferredThen:
    """Tests for chained per-caller futures."""

    async def test_then_projects_value(self) -> None:
        deferred = Deferred()
        first = deferred.then(lambda items: items[0])
        last = deferred.then(lambda items: items[-1])
        deferred.resolve(["a", "b", "c"])
        assert await first == "a"
        assert await last == "c"

    async def test_then_propagates_same_exception(self) -> None:
        deferred = Deferred()
        one = deferred.then(lambda v: v)
        two = deferred.then(lambda v: v)
        error = ValueError("fetch failed")
        deferred.reject(error)

        results = await asyncio.gather(one, two, return_exceptions=True)
        assert results[0] is error
        assert results[1] is error

    async def test_projection_error_only_fails_that_future(self) -> None:
        deferred = Deferred()
        broken = deferred.then(lambda v: v["missing"])
        healthy = deferred.then(lambda v: v["present"])
        deferred.resolve({"present": 1})

        with pytest.raises(KeyError):
            await broken
        assert await healthy == 1

    async def test_cancelled_caller_does_not_block_others(self) -> None:
        deferred = Deferred()
        cancelled = deferred.then(lambda v: v)
        kept = deferred.then(lambda v: v * 2)
        cancelled.cancel()
        deferred.resolve(21)

        assert await kept == 42
        assert cancelled.cancelled()

    async def test_cancelling_shared_future_cancels_chained(self) -> None:
        deferred = Deferred()
        chained = deferred.then(lambda v: v)
        deferred.future.cancel()
        with pytest.raises(asyncio.CancelledError):
            await chained
        assert repr(deferred) == "<Deferred cancelled>"
