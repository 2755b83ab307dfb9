import logging
from dataclasses import replace
from typing import Iterable, Iterator

from pipeline_monitor.models import Pipeline

log = logging.getLogger(__name__)


class PipelineList:
    """
    Ordered collection of monitored pipelines, keyed by identity.

    This is the only shared mutable state. Poll results are merged back with
    apply_poll_result(), which only ever touches status, connection error and
    pause state. Names, order and feeds belong to whoever manages the list.
    """

    def __init__(self, pipelines: Iterable[Pipeline] = ()) -> None:
        self._pipelines: list[Pipeline] = []
        for pipeline in pipelines:
            self.add(pipeline)

    def __len__(self) -> int:
        return len(self._pipelines)

    def __iter__(self) -> Iterator[Pipeline]:
        return iter(self.snapshot())

    def snapshot(self) -> list[Pipeline]:
        return list(self._pipelines)

    def _index(self, identity: str) -> int | None:
        for i, pipeline in enumerate(self._pipelines):
            if pipeline.identity == identity:
                return i
        return None

    def get(self, identity: str) -> Pipeline | None:
        i = self._index(identity)
        return self._pipelines[i] if i is not None else None

    def add(self, pipeline: Pipeline) -> None:
        if self._index(pipeline.identity) is not None:
            raise ValueError(f"duplicate pipeline identity {pipeline.identity!r}")
        self._pipelines.append(pipeline)

    def remove(self, identity: str) -> Pipeline | None:
        i = self._index(identity)
        if i is None:
            return None
        return self._pipelines.pop(i)

    def update(self, pipeline: Pipeline) -> None:
        """Replace the pipeline with the same identity, e.g. after the user edited it."""
        i = self._index(pipeline.identity)
        if i is None:
            raise KeyError(pipeline.identity)
        self._pipelines[i] = pipeline

    def move(self, identity: str, position: int) -> None:
        i = self._index(identity)
        if i is None:
            raise KeyError(identity)
        self._pipelines.insert(position, self._pipelines.pop(i))

    def apply_poll_result(self, polled: Pipeline, result: Pipeline) -> Pipeline | None:
        """
        Merge the result of polling `polled` into the list.

        Returns the merged pipeline, or None when the result is stale: the
        pipeline was removed, or its feed was changed, while the poll was in
        flight.
        """
        i = self._index(result.identity)
        if i is None:
            log.debug("Dropping result for removed pipeline %s", result.name)
            return None

        current = self._pipelines[i]
        if current.feed != polled.feed:
            log.debug("Dropping result for %s, feed changed during poll", current.name)
            return None

        merged = replace(
            current,
            status=result.status,
            connection_error=result.connection_error,
            feed=replace(current.feed, pause_until=result.feed.pause_until),
        )
        self._pipelines[i] = merged
        return merged
