"""Tests for EventRecorder -- per-batcher event history."""

import asyncio
from typing import List

import pytest

from batchfetch.batching.engine import create
from batchfetch.observability.devtools import EventRecorder
from batchfetch.observability.events import BatcherCreated, QueryQueued
from tests.test_fixtures import users_by_ids


class TestEventRecorder:
    @pytest.fixture
    def recorder(self) -> EventRecorder:
        return EventRecorder(max_events=100)

    def test_empty_recorder(self, recorder: EventRecorder) -> None:
        assert recorder.names() == []
        assert recorder.events("missing") == []
        assert recorder.batches("missing") == []

    def test_history_is_bounded(self) -> None:
        recorder = EventRecorder(max_events=3)
        for i in range(5):
            recorder.queued(QueryQueued(name="b", seq=0, query=i, batch=list(range(i + 1))))

        events = recorder.events("b")
        assert len(events) == 3
        assert [e.query for e in events] == [2, 3, 4]

    def test_default_size_from_settings(self) -> None:
        assert EventRecorder()._max_events == 1000

    def test_clear_one_and_all(self, recorder: EventRecorder) -> None:
        recorder.created(BatcherCreated(name="a", seq=0))
        recorder.created(BatcherCreated(name="b", seq=0))

        recorder.clear("a")
        assert recorder.names() == ["b"]

        recorder.clear()
        assert recorder.names() == []

    async def test_batches_fold_lifecycle(self, recorder: EventRecorder) -> None:
        calls: List[List[int]] = []

        async def fetcher(ids):
            calls.append(list(ids))
            if len(calls) == 2:
                raise RuntimeError("flaky backend")
            return users_by_ids(ids)

        batcher = create(fetcher=fetcher, resolver="id", name="users", observer=recorder)

        await asyncio.gather(batcher.fetch(1), batcher.fetch(2), batcher.fetch(1))
        with pytest.raises(RuntimeError):
            await batcher.fetch(3)

        records = recorder.batches("users")
        assert [r.seq for r in records] == [0, 1]

        first, second = records
        assert first.status == "resolved"
        assert first.queries == [1, 2]
        assert first.data == users_by_ids([1, 2])
        assert first.duration_ms is not None
        assert first.scheduled_ms is not None

        assert second.status == "failed"
        assert second.queries == [3]
        assert second.error == "RuntimeError: flaky backend"

    async def test_in_flight_batch_is_fetching(self, recorder: EventRecorder) -> None:
        gate = asyncio.Event()

        async def fetcher(ids):
            await gate.wait()
            return users_by_ids(ids)

        batcher = create(fetcher=fetcher, resolver="id", name="slow", observer=recorder)
        pending = batcher.fetch(5)
        batcher.flush()

        assert recorder.batches("slow")[0].status == "fetching"

        gate.set()
        assert await pending == {"id": 5, "name": "Tim"}
        assert recorder.batches("slow")[0].status == "resolved"
