"""Run pipeline recomputations off the caller's thread.

Every submission supersedes the previous one. Work that has not started is
cancelled; work already running finishes but its result is discarded, since
the pipeline keeps no partial state worth resuming.
"""
from __future__ import annotations

import threading
import time
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Optional, Sequence

from ..data.models import FilterSpec, RawEdge
from ..graph.communities import DEFAULT_MAX_PASSES
from ..utils.logging import get_logger
from .analyze import PipelineResult, analyze_communications

LOGGER = get_logger(__name__)

PipelineFn = Callable[[Sequence[RawEdge], FilterSpec, int], PipelineResult]


def _default_pipeline(raw_edges: Sequence[RawEdge], filters: FilterSpec, max_passes: int) -> PipelineResult:
    return analyze_communications(raw_edges, filters, max_passes=max_passes)


class RecomputeWorker:
    """Debounced, supersedable recomputation on a single background thread."""

    def __init__(
        self,
        debounce_seconds: float = 0.25,
        max_passes: int = DEFAULT_MAX_PASSES,
        pipeline: Optional[PipelineFn] = None,
    ) -> None:
        self.debounce_seconds = debounce_seconds
        self.max_passes = max_passes
        self._pipeline = pipeline or _default_pipeline
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="commgraph-recompute")
        self._lock = threading.Lock()
        self._generation = 0
        self._future: Optional[Future] = None
        self._latest: Optional[PipelineResult] = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def latest(self) -> Optional[PipelineResult]:
        """Result of the most recent submission that completed while still current."""
        return self._latest

    def submit(self, raw_edges: Sequence[RawEdge], filters: Optional[FilterSpec] = None) -> Future:
        """Schedule a full recomputation and supersede any earlier one."""
        edges = list(raw_edges)
        spec = filters or FilterSpec()
        with self._lock:
            self._generation += 1
            generation = self._generation
            if self._future is not None and self._future.cancel():
                LOGGER.debug("Cancelled pending recomputation before it started")
            future = self._executor.submit(self._run, generation, edges, spec)
            self._future = future
        return future

    def result(self, timeout: Optional[float] = None) -> Optional[PipelineResult]:
        """Wait for the current submission.

        Returns ``None`` when the computation is skipped: it timed out, was
        superseded, or nothing was submitted.
        """
        with self._lock:
            future = self._future
        if future is None:
            return None
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            LOGGER.warning("Recomputation exceeded %ss; computation skipped", timeout)
            return None
        except CancelledError:
            LOGGER.info("Recomputation was superseded; computation skipped")
            return None

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._generation += 1
            if self._future is not None:
                self._future.cancel()
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "RecomputeWorker":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def _run(
        self,
        generation: int,
        raw_edges: Sequence[RawEdge],
        filters: FilterSpec,
    ) -> Optional[PipelineResult]:
        if self.debounce_seconds > 0:
            time.sleep(self.debounce_seconds)
        if not self._is_current(generation):
            LOGGER.debug("Dropping superseded recomputation %s before it ran", generation)
            return None
        result = self._pipeline(raw_edges, filters, self.max_passes)
        # Check and publish are atomic with respect to submit().
        with self._lock:
            if generation != self._generation:
                LOGGER.debug("Discarding result of superseded recomputation %s", generation)
                return None
            self._latest = result
        return result
