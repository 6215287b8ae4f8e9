"""Serialized label mutations.

Transmission has no atomic "add label" call: adding or removing a label is
read-modify-write over ``torrent-get``/``torrent-set``. Two such sequences
racing on one daemon can lose updates, so every label write of an adapter
runs through one :class:`TagMutationSerializer` worker, strictly in
submission order.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, Mapping, TypeVar

from unitorrent.models import TagMode, normalize_tags

logger = logging.getLogger(__name__)

T = TypeVar("T")

Job = Callable[[], Awaitable[Any]]

DEFAULT_CHUNK_SIZE = 100


class SerializerClosedError(RuntimeError):
    """Raised when submitting to a closed serializer."""


class TagMutationSerializer:
    """Single-consumer FIFO queue for label-mutating jobs.

    Each job is a zero-argument coroutine factory. :meth:`submit` resolves
    with the job's own result or exception; a failing job never affects
    the jobs queued behind it.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[tuple[Job, asyncio.Future[Any]]] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def pending(self) -> int:
        """Jobs waiting behind the one currently running."""
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def submit(self, job: Callable[[], Awaitable[T]]) -> T:
        """Queue *job* and wait for its outcome."""
        if self._closed:
            msg = "Tag mutation serializer is closed"
            raise SerializerClosedError(msg)
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._ensure_worker().put_nowait((job, future))
        return await future

    def _ensure_worker(self) -> asyncio.Queue[tuple[Job, asyncio.Future[Any]]]:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(
                self._run(self._queue), name="unitorrent-tag-mutations"
            )
        return self._queue

    async def _run(self, queue: asyncio.Queue[tuple[Job, asyncio.Future[Any]]]) -> None:
        while True:
            job, future = await queue.get()
            try:
                if future.done():
                    # Caller gave up before the job started
                    continue
                try:
                    task = asyncio.ensure_future(job())
                except Exception as e:
                    logger.debug("Tag mutation failed to start: %s", e)
                    future.set_exception(e)
                    continue
                try:
                    # Raises only when the worker itself is cancelled
                    await asyncio.wait({task})
                except asyncio.CancelledError:
                    task.cancel()
                    future.cancel()
                    raise
                self._settle(task, future)
            finally:
                queue.task_done()

    @staticmethod
    def _settle(task: asyncio.Future[Any], future: asyncio.Future[Any]) -> None:
        if future.done():
            return
        if task.cancelled():
            logger.debug("Tag mutation was cancelled")
            future.cancel()
            return
        error = task.exception()
        if error is not None:
            logger.debug("Tag mutation failed: %s", error)
            future.set_exception(error)
            return
        future.set_result(task.result())

    async def aclose(self) -> None:
        """Stop the worker and cancel every job that has not started."""
        self._closed = True
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
        if self._queue is not None:
            while not self._queue.empty():
                _job, future = self._queue.get_nowait()
                if not future.done():
                    future.cancel()
                self._queue.task_done()


def apply_mode(current: Iterable[str], tags: Iterable[str], mode: TagMode) -> list[str]:
    """Compute a torrent's new label list for *mode*."""
    wanted = normalize_tags(list(tags))
    if mode is TagMode.SET:
        return wanted
    existing = normalize_tags(list(current))
    if mode is TagMode.ADD:
        return existing + [t for t in wanted if t not in existing]
    return [t for t in existing if t not in wanted]


def plan_label_updates(
    current: Mapping[str, Iterable[str]],
    tags: Iterable[str],
    mode: TagMode,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> list[tuple[list[str], list[str]]]:
    """Plan the ``torrent-set`` calls for an add/remove label mutation.

    Args:
        current: Torrent id -> its labels as last read from the daemon
        tags: Labels to add or remove
        mode: ``TagMode.ADD`` or ``TagMode.REMOVE``
        chunk_size: Maximum number of ids per request

    Returns:
        ``(labels, ids)`` pairs, one per request. Torrents whose label set
        would not change are left out; torrents ending with the same label
        set share requests.

    """
    if chunk_size < 1:
        msg = "chunk_size must be positive"
        raise ValueError(msg)
    wanted = list(tags)
    groups: dict[frozenset[str], tuple[list[str], list[str]]] = {}
    for torrent_id, labels in current.items():
        before = normalize_tags(list(labels or ()))
        after = apply_mode(before, wanted, mode)
        if set(after) == set(before):
            continue
        key = frozenset(after)
        groups.setdefault(key, (after, []))[1].append(torrent_id)

    plan: list[tuple[list[str], list[str]]] = []
    for labels, ids in groups.values():
        for start in range(0, len(ids), chunk_size):
            plan.append((labels, ids[start:start + chunk_size]))
    return plan
