"""Pytest configuration and fixtures."""

import copy

import pytest
from prometheus_client import CollectorRegistry

from shared.framework.metrics import MetricsCollector
from services.subgraph_directory.app.sink import SnapshotSink
from tests.fixtures.sample_deployments import EXAMPLE_RECORD, StubPageFetcher, generate_deployments


@pytest.fixture
def example_record():
    """Single raw deployment record as served by the network subgraph."""
    return copy.deepcopy(EXAMPLE_RECORD)


@pytest.fixture
def sample_records():
    """Twenty-five raw deployment records with distinct ids."""
    return generate_deployments(25)


@pytest.fixture
def stub_fetcher(sample_records):
    """Page source backed by the sample records."""
    return StubPageFetcher(sample_records)


@pytest.fixture
def sink():
    """Empty snapshot sink."""
    return SnapshotSink()


@pytest.fixture
def metrics():
    """Metrics collector with an isolated registry."""
    return MetricsCollector("subgraph_directory_test", registry=CollectorRegistry())
