from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable

import structlog

from skill_console.config import settings
from skill_console.schemas.skill import RegistrySnapshot

log = structlog.get_logger()

SnapshotFetcher = Callable[[], Awaitable[RegistrySnapshot | None]]


class ReindexPoller:
    """Re-fetch the registry on a fixed interval while a re-index is running.

    There is at most one polling task. It ends on its own once a fetch reports
    ``is_re_indexing == False``; ``stop()`` cancels it early and ``aclose()``
    also prevents it from being started again.
    """

    def __init__(self, fetch: SnapshotFetcher, interval: float | None = None) -> None:
        self._fetch = fetch
        self._interval = settings.reindex_poll_interval if interval is None else interval
        self._task: asyncio.Task[None] | None = None
        self._closed = False
        self.polls = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def ensure_running(self) -> None:
        if self._closed or self.running:
            return
        self._task = asyncio.create_task(self._poll(), name="skills-reindex-poll")
        log.info("reindex.polling_started", interval=self._interval)

    async def stop(self) -> None:
        task = self._task
        if task is None or task.done():
            return
        # The loop itself observed the end of the re-index and is about to return
        if task is asyncio.current_task():
            return
        self._task = None
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        log.info("reindex.polling_stopped")

    async def wait(self) -> None:
        """Block until the current polling task (if any) finishes.

        A task cancelled by ``stop()`` counts as finished; the caller's own
        cancellation still propagates.
        """
        task = self._task
        if task is None:
            return
        await asyncio.wait([task])
        if not task.cancelled():
            task.result()

    async def aclose(self) -> None:
        self._closed = True
        await self.stop()

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            snapshot = await self._fetch()
            self.polls += 1
            if snapshot is None:
                # Fetch failed; the previous snapshot stays and we try again
                continue
            if not snapshot.is_re_indexing:
                log.info(
                    "reindex.converged",
                    polls=self.polls,
                    error=snapshot.re_index_error or None,
                )
                return
            if snapshot.re_index_error:
                log.warning("reindex.advisory", error=snapshot.re_index_error)
