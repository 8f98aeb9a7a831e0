"""
Single-slot holder for the latest published directory snapshot.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Optional

import structlog

from .models import DirectorySnapshot

logger = structlog.get_logger(__name__)


class SnapshotSink:
    """
    Latest-value cell with one writer and many readers.

    Publishing is a single reference swap, so readers always see a whole
    snapshot. Before the first publish, ``current()`` suspends async
    readers and ``wait()`` blocks reader threads; both are woken by the
    first ``publish()``. Publishing happens on the event loop that owns
    the async waiters.
    """

    def __init__(self) -> None:
        self._snapshot: Optional[DirectorySnapshot] = None
        self._condition = threading.Condition()
        self._ready = asyncio.Event()
        self._publish_count = 0

    @property
    def is_ready(self) -> bool:
        return self._snapshot is not None

    @property
    def publish_count(self) -> int:
        return self._publish_count

    def publish(self, snapshot: DirectorySnapshot) -> None:
        """Make ``snapshot`` the current value and wake every waiting reader."""
        with self._condition:
            self._snapshot = snapshot
            self._publish_count += 1
            self._condition.notify_all()
        self._ready.set()
        logger.debug(
            "Snapshot published",
            publish_count=self._publish_count,
            deployments=snapshot.deployment_count,
            subgraphs=snapshot.subgraph_count,
        )

    def latest(self) -> Optional[DirectorySnapshot]:
        """Return the current snapshot without waiting, or None before the first publish."""
        return self._snapshot

    async def current(self) -> DirectorySnapshot:
        """Return the current snapshot, waiting for the first publish if needed."""
        snapshot = self._snapshot
        if snapshot is not None:
            return snapshot
        await self._ready.wait()
        return self._snapshot

    def wait(self, timeout: Optional[float] = None) -> Optional[DirectorySnapshot]:
        """Blocking variant of ``current()`` for reader threads.

        Returns None if ``timeout`` elapses before the first publish.
        """
        with self._condition:
            self._condition.wait_for(lambda: self._snapshot is not None, timeout=timeout)
            return self._snapshot
