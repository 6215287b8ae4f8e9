"""Tests for label mutation planning and the FIFO serializer."""

from __future__ import annotations

import asyncio

import pytest

from unitorrent.adapter.transmission.tags import (
    SerializerClosedError,
    TagMutationSerializer,
    apply_mode,
    plan_label_updates,
)
from unitorrent.models import TagMode

pytestmark = [pytest.mark.unit, pytest.mark.adapter]


class TestApplyMode:
    def test_set_replaces(self):
        assert apply_mode(["a", "b"], [" c ", "c", ""], TagMode.SET) == ["c"]

    def test_add_keeps_order_and_skips_duplicates(self):
        assert apply_mode(["a", "b"], ["b", "c"], TagMode.ADD) == ["a", "b", "c"]

    def test_remove(self):
        assert apply_mode(["a", "b", "c"], ["b", "x"], TagMode.REMOVE) == ["a", "c"]


class TestPlanLabelUpdates:
    def test_groups_by_resulting_label_set(self):
        current = {
            "h1": ["a"],
            "h2": ["a"],
            "h3": ["b"],
            "h4": ["a", "x"],
        }
        plan = plan_label_updates(current, ["x"], TagMode.ADD)

        assert sorted((sorted(labels), ids) for labels, ids in plan) == [
            (["a", "x"], ["h1", "h2"]),
            (["b", "x"], ["h3"]),
        ]

    def test_unchanged_torrents_are_skipped(self):
        plan = plan_label_updates({"h1": ["a"], "h2": []}, ["z"], TagMode.REMOVE)
        assert plan == []

    def test_chunks_large_groups(self):
        current = {f"h{i}": [] for i in range(250)}
        plan = plan_label_updates(current, ["t"], TagMode.ADD, chunk_size=100)

        assert [len(ids) for _labels, ids in plan] == [100, 100, 50]
        assert all(labels == ["t"] for labels, _ids in plan)
        assert [i for _labels, ids in plan for i in ids] == list(current)

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError, match="chunk_size"):
            plan_label_updates({"h": []}, ["t"], TagMode.ADD, chunk_size=0)


class TestTagMutationSerializer:
    @pytest.mark.asyncio
    async def test_jobs_run_one_at_a_time_in_order(self):
        serializer = TagMutationSerializer()
        events: list[str] = []

        def job(name: str, delay: float):
            async def run():
                events.append(f"start {name}")
                await asyncio.sleep(delay)
                events.append(f"end {name}")
                return name

            return run

        try:
            results = await asyncio.gather(
                serializer.submit(job("first", 0.05)),
                serializer.submit(job("second", 0.0)),
                serializer.submit(job("third", 0.01)),
            )
        finally:
            await serializer.aclose()

        assert results == ["first", "second", "third"]
        assert events == [
            "start first",
            "end first",
            "start second",
            "end second",
            "start third",
            "end third",
        ]

    @pytest.mark.asyncio
    async def test_failure_does_not_block_later_jobs(self):
        serializer = TagMutationSerializer()

        async def failing():
            raise RuntimeError("boom")

        async def succeeding():
            return "ok"

        try:
            first = asyncio.ensure_future(serializer.submit(failing))
            second = asyncio.ensure_future(serializer.submit(succeeding))
            with pytest.raises(RuntimeError, match="boom"):
                await first
            assert await second == "ok"
        finally:
            await serializer.aclose()

    @pytest.mark.asyncio
    async def test_closed_serializer_rejects_jobs(self):
        serializer = TagMutationSerializer()
        await serializer.aclose()

        async def job():
            return None

        with pytest.raises(SerializerClosedError):
            await serializer.submit(job)

    @pytest.mark.asyncio
    async def test_close_cancels_pending_jobs(self):
        serializer = TagMutationSerializer()
        started = asyncio.Event()
        release = asyncio.Event()

        async def blocker():
            started.set()
            await release.wait()

        async def queued():
            return "never"

        running = asyncio.ensure_future(serializer.submit(blocker))
        waiting = asyncio.ensure_future(serializer.submit(queued))
        await started.wait()
        assert serializer.pending == 1

        await serializer.aclose()

        with pytest.raises(asyncio.CancelledError):
            await running
        with pytest.raises(asyncio.CancelledError):
            await waiting
        assert serializer.closed

    @pytest.mark.asyncio
    async def test_job_cancelled_from_inside_does_not_stop_worker(self):
        serializer = TagMutationSerializer()

        async def cancelled():
            raise asyncio.CancelledError

        async def succeeding():
            return "ok"

        try:
            first = asyncio.ensure_future(serializer.submit(cancelled))
            second = asyncio.ensure_future(serializer.submit(succeeding))
            with pytest.raises(asyncio.CancelledError):
                await first
            assert await asyncio.wait_for(second, timeout=1.0) == "ok"
        finally:
            await serializer.aclose()
