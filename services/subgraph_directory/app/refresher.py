"""
Timer-driven refresh of the subgraph directory.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime
from enum import Enum
from typing import List, Optional

import structlog

from shared.framework.metrics import MetricsCollector
from shared.utils.errors import (
    DirectoryError,
    EmptyResultError,
    ParseError,
    TransportError,
    create_error_context,
)
from shared.utils.tracing import set_span_attribute, trace_async_function

from .config import DEFAULT_PAGE_SIZE, DEFAULT_POLL_INTERVAL_SECONDS
from .directory import build_snapshot
from .models import DirectorySnapshot
from .sink import SnapshotSink
from .upstream import PageFetcher, drain_pages

logger = structlog.get_logger(__name__)


class RefresherState(Enum):
    """Whether a poll cycle is currently running."""
    IDLE = "idle"
    POLL_IN_FLIGHT = "poll_in_flight"


def _cycle_status(error: Exception) -> str:
    if isinstance(error, EmptyResultError):
        return "empty"
    if isinstance(error, TransportError):
        return "transport_error"
    if isinstance(error, ParseError):
        return "parse_error"
    return "unexpected_error"


class DirectoryRefresher:
    """
    Periodically rebuilds the directory and publishes it to a sink.

    At most one poll cycle runs at a time. A timer tick that arrives
    while a cycle is in flight is dropped, not queued. A failed or empty
    cycle leaves the previous snapshot current; the next tick retries.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        sink: SnapshotSink,
        *,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        page_size: int = DEFAULT_PAGE_SIZE,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        if page_size <= 0:
            raise ValueError("page_size must be positive")

        self.fetcher = fetcher
        self.sink = sink
        self.poll_interval_seconds = poll_interval_seconds
        self.page_size = page_size

        self._lock = asyncio.Lock()
        self._timer_task: Optional[asyncio.Task] = None
        self._cycle_task: Optional[asyncio.Task] = None

        self.dropped_ticks = 0
        self.last_error: Optional[Exception] = None
        self.last_success_at: Optional[datetime] = None

        metrics = metrics or MetricsCollector("subgraph_directory")
        self.metrics = metrics
        self.metrics_cycles = metrics.create_counter(
            "poll_cycles_total",
            "Directory poll cycles by outcome",
            labels=["status"],
        )
        self.metrics_dropped_ticks = metrics.create_counter(
            "poll_ticks_dropped_total",
            "Timer ticks skipped because a poll cycle was in flight",
        )
        self.metrics_duplicates = metrics.create_counter(
            "duplicate_subgraph_ids_total",
            "Subgraph ids seen more than once within one page set",
        )
        self.metrics_pages = metrics.create_counter(
            "pages_fetched_total",
            "Network subgraph pages fetched",
        )
        self.metrics_duration = metrics.create_histogram(
            "poll_duration_seconds",
            "Duration of directory poll cycles",
            labels=["status"],
        )
        self.metrics_deployments = metrics.create_gauge(
            "deployments",
            "Deployments in the published snapshot",
        )
        self.metrics_subgraphs = metrics.create_gauge(
            "subgraphs",
            "Subgraphs in the published snapshot",
        )
        self.metrics_last_success = metrics.create_gauge(
            "last_success_timestamp_seconds",
            "Unix time of the last published snapshot",
        )

    @property
    def state(self) -> RefresherState:
        if self._lock.locked() or (self._cycle_task is not None and not self._cycle_task.done()):
            return RefresherState.POLL_IN_FLIGHT
        return RefresherState.IDLE

    @property
    def is_running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def start(self) -> None:
        """Start the timer; the first tick fires immediately."""
        if self.is_running:
            logger.warning("Directory refresher already running")
            return
        self._timer_task = asyncio.create_task(self._run_timer())
        logger.info(
            "Directory refresher started",
            poll_interval_seconds=self.poll_interval_seconds,
            page_size=self.page_size,
        )

    async def stop(self) -> None:
        """Cancel the timer and any in-flight cycle."""
        for task in (self._timer_task, self._cycle_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._timer_task = None
        self._cycle_task = None
        logger.info("Directory refresher stopped")

    async def _run_timer(self) -> None:
        while True:
            self.tick()
            await asyncio.sleep(self.poll_interval_seconds)

    def tick(self) -> bool:
        """
        Start a poll cycle in the background unless one is in flight.

        Returns True if a cycle was started, False if the tick was dropped.
        """
        if self.state is RefresherState.POLL_IN_FLIGHT:
            self.dropped_ticks += 1
            self.metrics_dropped_ticks.inc()
            logger.debug("Poll cycle in flight, dropping tick", dropped_ticks=self.dropped_ticks)
            return False

        self._cycle_task = asyncio.create_task(self._run_cycle())
        return True

    async def wait_for_cycle(self) -> None:
        """Wait for the background cycle started by the last tick, if any."""
        if self._cycle_task is not None:
            await asyncio.shield(self._cycle_task)

    async def _run_cycle(self) -> None:
        try:
            await self.poll_once()
        except EmptyResultError as exc:
            logger.warning(str(exc), error_code=exc.error_code)
        except DirectoryError as exc:
            logger.error(
                "Directory poll cycle failed",
                error=str(exc),
                error_code=exc.error_code,
                details=exc.details,
            )
        except Exception as exc:
            logger.error("Unexpected error in directory poll cycle", error=str(exc), exc_info=True)

    async def poll_once(self) -> DirectorySnapshot:
        """
        Run one full poll cycle and publish its snapshot.

        Raises:
            TransportError: If a page could not be fetched.
            ParseError: If a record is malformed.
            EmptyResultError: If upstream returned no records.
        """
        async with self._lock:
            started = time.perf_counter()
            try:
                snapshot = await self._poll()
            except Exception as exc:
                status = _cycle_status(exc)
                if isinstance(exc, DirectoryError) and exc.context is None:
                    exc.context = create_error_context(
                        service="subgraph-directory",
                        operation="poll",
                        metadata={"page_size": self.page_size, "status": status},
                    )
                self.last_error = exc
                self.metrics_cycles.labels(status=status).inc()
                self.metrics_duration.labels(status=status).observe(time.perf_counter() - started)
                self.metrics.record_error(error_type=status, component="refresher")
                raise

            self.last_error = None
            self.last_success_at = snapshot.created_at
            self.metrics_cycles.labels(status="success").inc()
            self.metrics_duration.labels(status="success").observe(time.perf_counter() - started)
            self.metrics_deployments.set(snapshot.deployment_count)
            self.metrics_subgraphs.set(snapshot.subgraph_count)
            self.metrics_last_success.set(snapshot.created_at.timestamp())
            return snapshot

    async def _poll(self) -> DirectorySnapshot:
        async with trace_async_function(
            "subgraph_directory.poll",
            attributes={"directory.page_size": self.page_size},
        ):
            records, pages, block = await drain_pages(self.fetcher, self.page_size)
            block_number = block.number if block is not None else None
            self.metrics_pages.inc(pages)
            set_span_attribute("directory.pages", pages)
            set_span_attribute("directory.records", len(records))
            if block_number is not None:
                set_span_attribute("directory.block_number", block_number)

            duplicates: List[str] = []
            snapshot = build_snapshot(records, duplicates, block_number=block_number)
            if duplicates:
                self.metrics_duplicates.inc(len(duplicates))

            self.sink.publish(snapshot)
            logger.info(
                "Directory snapshot published",
                pages=pages,
                block_number=block_number,
                records=snapshot.record_count,
                deployments=snapshot.deployment_count,
                subgraphs=snapshot.subgraph_count,
                duplicate_subgraph_ids=len(duplicates),
            )
            return snapshot
