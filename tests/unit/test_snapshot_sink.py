"""Tests for the latest-snapshot sink."""

import asyncio
import threading

import pytest

from services.subgraph_directory.app.directory import build_snapshot
from services.subgraph_directory.app.sink import SnapshotSink
from tests.fixtures.sample_deployments import generate_deployments


def _snapshot(count: int = 3):
    return build_snapshot(generate_deployments(count))


class TestSnapshotSink:
    """SnapshotSink publish/read contract."""

    def test_empty_sink(self):
        sink = SnapshotSink()

        assert sink.latest() is None
        assert not sink.is_ready
        assert sink.publish_count == 0

    def test_publish_replaces_current(self):
        sink = SnapshotSink()
        first, second = _snapshot(1), _snapshot(2)

        sink.publish(first)
        sink.publish(second)

        assert sink.latest() is second
        assert sink.publish_count == 2
        # The superseded snapshot is untouched.
        assert first.deployment_count == 1

    @pytest.mark.asyncio
    async def test_current_returns_immediately_when_ready(self):
        sink = SnapshotSink()
        snapshot = _snapshot()
        sink.publish(snapshot)

        assert await asyncio.wait_for(sink.current(), timeout=1) is snapshot

    @pytest.mark.asyncio
    async def test_current_waits_for_first_publish(self):
        sink = SnapshotSink()
        readers = [asyncio.create_task(sink.current()) for _ in range(3)]
        await asyncio.sleep(0.01)

        assert not any(reader.done() for reader in readers)

        snapshot = _snapshot()
        sink.publish(snapshot)
        results = await asyncio.wait_for(asyncio.gather(*readers), timeout=1)

        assert all(result is snapshot for result in results)

    def test_wait_times_out_before_first_publish(self):
        sink = SnapshotSink()

        assert sink.wait(timeout=0.01) is None

    def test_thread_readers_are_woken_by_publish(self):
        sink = SnapshotSink()
        results = []

        def reader():
            results.append(sink.wait(timeout=5))

        threads = [threading.Thread(target=reader) for _ in range(4)]
        for thread in threads:
            thread.start()

        snapshot = _snapshot()
        sink.publish(snapshot)
        for thread in threads:
            thread.join(timeout=5)

        assert len(results) == 4
        assert all(result is snapshot for result in results)

    def test_thread_readers_never_see_mixed_snapshots(self):
        """Readers always get one whole snapshot whose maps agree."""
        sink = SnapshotSink()
        sink.publish(_snapshot(1))
        stop = threading.Event()
        mismatches = []

        def reader():
            while not stop.is_set():
                snapshot = sink.wait()
                listed = sum(len(v) for v in snapshot.deployment_to_subgraphs.values())
                if listed != snapshot.subgraph_count or snapshot.record_count != snapshot.deployment_count:
                    mismatches.append(snapshot)

        threads = [threading.Thread(target=reader) for _ in range(3)]
        for thread in threads:
            thread.start()
        for count in range(2, 30):
            sink.publish(_snapshot(count))
        stop.set()
        for thread in threads:
            thread.join(timeout=5)

        assert mismatches == []
        assert sink.latest().deployment_count == 29
