
# PipelineMonitor: the top-level polling coordinator.

# Responsibilities:
#   - On every timer tick (or explicit refresh) poll all pipelines concurrently
#   - Merge each result back into the PipelineList by identity
#   - Guarantee at most one poll in flight per pipeline
#   - Cancel polls for removed pipelines and on shutdown
#
# Concurrency model:
#   One asyncio task per pipeline per round, all on one event loop and one
#   aiohttp connection pool. A refresh that arrives while a pipeline's poll is
#   still running joins that poll instead of starting another one. Each task
#   merges its own result as soon as it finishes; a canceled task never
#   reaches the merge, so its result is simply dropped.

import asyncio
import logging
import time
from typing import Callable, Protocol

from pipeline_monitor.config import POLL_INTERVAL_SECONDS
from pipeline_monitor.credentials import CredentialStore
from pipeline_monitor.feed_reader import poll_pipeline
from pipeline_monitor.http_client import Transport
from pipeline_monitor.models import Pipeline
from pipeline_monitor.pipeline_list import PipelineList

log = logging.getLogger(__name__)


class StatusHandler(Protocol):
    async def handle(self, previous: Pipeline, current: Pipeline) -> None: ...


class PipelineMonitor:

    def __init__(
        self,
        pipelines: PipelineList,
        session: Transport,
        credentials: CredentialStore | None = None,
        handler: StatusHandler | None = None,
        interval: float = POLL_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.pipelines = pipelines
        self._session = session
        self._credentials = credentials
        self._handler = handler
        self._interval = interval
        self._clock = clock
        self._in_flight: dict[str, asyncio.Task] = {}
        self._timer: asyncio.Task | None = None

    @property
    def in_flight(self) -> set[str]:
        return {identity for identity, task in self._in_flight.items() if not task.done()}

    async def update_all(self) -> None:
        """Poll every pipeline once and wait until all polls have finished or been canceled."""
        tasks = {self._dispatch(p) for p in self.pipelines.snapshot()}
        if tasks:
            await asyncio.wait(tasks)

    async def update(self, identity: str) -> Pipeline | None:
        """Poll a single pipeline, e.g. right after it was added."""
        pipeline = self.pipelines.get(identity)
        if pipeline is None:
            return None
        await asyncio.wait({self._dispatch(pipeline)})
        return self.pipelines.get(identity)

    def cancel(self, identity: str) -> None:
        task = self._in_flight.get(identity)
        if task is not None and not task.done():
            task.cancel()

    def remove(self, identity: str) -> Pipeline | None:
        """Remove a pipeline from the list and cancel its poll, if one is running."""
        self.cancel(identity)
        return self.pipelines.remove(identity)

    def _dispatch(self, pipeline: Pipeline) -> asyncio.Task:
        task = self._in_flight.get(pipeline.identity)
        if task is not None and not task.done():
            log.debug("Poll for %s still running, joining it", pipeline.name)
            return task

        task = asyncio.create_task(
            self._poll_and_merge(pipeline),
            name=f"poll-{pipeline.identity}",
        )
        self._in_flight[pipeline.identity] = task
        task.add_done_callback(lambda t, identity=pipeline.identity: self._forget(identity, t))
        return task

    def _forget(self, identity: str, task: asyncio.Task) -> None:
        if self._in_flight.get(identity) is task:
            del self._in_flight[identity]

    async def _poll_and_merge(self, pipeline: Pipeline) -> None:
        try:
            result = await poll_pipeline(pipeline, self._session, self._credentials, self._clock())
        except asyncio.CancelledError:
            log.debug("Poll for %s cancelled.", pipeline.name)
            raise
        except Exception as exc:
            log.exception("Unexpected error polling %s: %s", pipeline.name, exc)
            return

        previous = self.pipelines.get(pipeline.identity)
        merged = self.pipelines.apply_poll_result(pipeline, result)
        if merged is None or previous is None or self._handler is None:
            return
        try:
            await self._handler.handle(previous, merged)
        except Exception as exc:
            log.exception("Status handler failed for %s: %s", merged.name, exc)

    async def run_forever(self) -> None:
        log.info(
            "PipelineMonitor running, watching %d pipeline(s) every %ss.",
            len(self.pipelines), self._interval,
        )
        while True:
            try:
                await self.update_all()
            except asyncio.CancelledError:
                log.info("Monitor cancelled.")
                raise
            await asyncio.sleep(self._interval)

    async def run(self) -> None:
        """Run the timer loop until stop() is called."""
        self._timer = asyncio.create_task(self.run_forever(), name="pipeline-monitor")
        try:
            await self._timer
        finally:
            await self._drain()

    def stop(self) -> None:
        """Cancel the timer and every poll in flight."""
        if self._timer is not None:
            self._timer.cancel()
        for task in list(self._in_flight.values()):
            task.cancel()

    async def _drain(self) -> None:
        tasks = [t for t in self._in_flight.values() if not t.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
