"""Prefetch queue and the background worker that warms the OS file cache."""

from __future__ import annotations

import asyncio
from collections import deque
from pathlib import Path
from typing import Iterable

from src.common.logging import get_logger
from src.common.metrics import JOB_DURATION, PREFETCH_QUEUE_DEPTH, PREFETCH_TRACKS

from .library import TrackLibrary

logger = get_logger(__name__)

SERVICE = "music_stream"


class PrefetchQueue:
    """Bounded FIFO of track ids shared by request handlers and the worker."""

    __slots__ = ("_items", "_lock", "capacity")

    def __init__(self, capacity: int = 1024) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._items: deque[str] = deque()
        self._lock = asyncio.Lock()
        self.capacity = capacity

    def __len__(self) -> int:
        return len(self._items)

    async def push(self, track_id: str) -> bool:
        """Append ``track_id``; return ``False`` if the queue is full."""

        async with self._lock:
            return self._append(track_id)

    async def push_many(self, track_ids: Iterable[str]) -> tuple[list[str], list[str]]:
        """Append ids in order under one lock; return ``(queued, dropped)``."""

        queued: list[str] = []
        dropped: list[str] = []
        async with self._lock:
            for track_id in track_ids:
                (queued if self._append(track_id) else dropped).append(track_id)
        return queued, dropped

    async def pop(self) -> str | None:
        async with self._lock:
            if not self._items:
                return None
            track_id = self._items.popleft()
            PREFETCH_QUEUE_DEPTH.labels(SERVICE).set(len(self._items))
            return track_id

    def _append(self, track_id: str) -> bool:
        if len(self._items) >= self.capacity:
            return False
        self._items.append(track_id)
        PREFETCH_QUEUE_DEPTH.labels(SERVICE).set(len(self._items))
        return True


def read_through(path: Path, chunk_size: int) -> int:
    """Read ``path`` start to end, discarding the data; return bytes read."""

    total = 0
    with path.open("rb") as handle:
        while True:
            chunk = handle.read(chunk_size)
            if not chunk:
                return total
            total += len(chunk)


class PrefetchWorker:
    """Drains a :class:`PrefetchQueue`, reading each track once.

    Reading is only there to pull the bytes through the page cache, so a
    missing file or a read error just moves on to the next item.
    """

    def __init__(
        self,
        queue: PrefetchQueue,
        library: TrackLibrary,
        *,
        interval: float = 0.1,
        chunk_size: int = 32 * 1024,
    ) -> None:
        self.queue = queue
        self.library = library
        self.interval = interval
        self.chunk_size = chunk_size
        self._stopping = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def warm(self, track_id: str) -> int:
        path = self.library.path_for(track_id)
        if path is None or not path.is_file():
            PREFETCH_TRACKS.labels(SERVICE, "missing").inc()
            return 0
        start = asyncio.get_running_loop().time()
        try:
            size = await asyncio.to_thread(read_through, path, self.chunk_size)
        except OSError as exc:
            PREFETCH_TRACKS.labels(SERVICE, "failed").inc()
            logger.debug("prefetch_read_failed", track_id=track_id, error=str(exc))
            return 0
        PREFETCH_TRACKS.labels(SERVICE, "warmed").inc()
        duration = asyncio.get_running_loop().time() - start
        JOB_DURATION.labels(SERVICE, "prefetch_warm").observe(duration)
        logger.debug("prefetch_warmed", track_id=track_id, bytes=size)
        return size

    async def run_once(self) -> str | None:
        """Consume and warm at most one queued track; return its id."""

        track_id = await self.queue.pop()
        if track_id is not None:
            await self.warm(track_id)
        return track_id

    async def run(self) -> None:
        logger.info("prefetch_worker_started", interval=self.interval)
        while not self._stopping.is_set():
            try:
                await self.run_once()
            except Exception:  # noqa: BLE001
                logger.exception("prefetch_iteration_failed")
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
        logger.info("prefetch_worker_stopped")

    def start(self) -> None:
        if self.running:
            return
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None
