"""
Merge of raw network subgraph pages into directory snapshots.

A DeploymentId is the content hash of a subgraph manifest, so distinct
accounts publishing identical manifests share one DeploymentId. One
deployment may therefore map to several subgraphs, while each SubgraphId
maps to exactly one subgraph.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import structlog
from pydantic import ValidationError

from shared.utils.errors import EmptyResultError, ParseError

from .models import DirectorySnapshot, Subgraph, SubgraphDeployment
from .sink import SnapshotSink

logger = structlog.get_logger(__name__)


def parse_deployments(raw_records: Sequence[Mapping[str, Any]]) -> List[SubgraphDeployment]:
    """
    Validate raw page records.

    Raises:
        ParseError: If any record does not match the expected shape.
    """
    deployments = []
    for index, record in enumerate(raw_records):
        try:
            deployments.append(SubgraphDeployment.model_validate(record))
        except ValidationError as exc:
            raise ParseError(
                f"Malformed subgraph deployment record at index {index}",
                record_index=index,
                errors=exc.errors(include_url=False, include_context=False, include_input=False),
            ) from exc
    return deployments


def parse_deployment_subgraphs(
    deployments: Iterable[SubgraphDeployment],
) -> Dict[str, List[Subgraph]]:
    """Map each DeploymentId to its subgraphs, keeping upstream version order."""
    return {
        deployment.ipfs_hash: [version.subgraph for version in deployment.versions]
        for deployment in deployments
    }


def parse_subgraphs(
    deployments: Iterable[SubgraphDeployment],
    duplicates: Optional[List[str]] = None,
) -> Dict[str, Subgraph]:
    """
    Index every subgraph in the page set by its SubgraphId.

    A SubgraphId seen more than once keeps the last record in iteration
    order. Each repeat is logged and, when ``duplicates`` is given,
    appended to it.
    """
    subgraphs: Dict[str, Subgraph] = {}
    for deployment in deployments:
        for version in deployment.versions:
            subgraph = version.subgraph
            previous = subgraphs.get(subgraph.id)
            if previous is not None:
                logger.warning(
                    "Duplicate subgraph id in page set, keeping last",
                    subgraph_id=subgraph.id,
                    deployment_id=deployment.ipfs_hash,
                    replaced_display_name=previous.display_name,
                )
                if duplicates is not None:
                    duplicates.append(subgraph.id)
            subgraphs[subgraph.id] = subgraph
    return subgraphs


def build_snapshot(
    raw_records: Sequence[Mapping[str, Any]],
    duplicates: Optional[List[str]] = None,
    block_number: Optional[int] = None,
) -> DirectorySnapshot:
    """
    Build a snapshot from one complete page set read at ``block_number``.

    Raises:
        EmptyResultError: If the page set holds no records.
        ParseError: If a record is malformed.
    """
    if not raw_records:
        raise EmptyResultError()

    deployments = parse_deployments(raw_records)
    return DirectorySnapshot(
        deployment_to_subgraphs=parse_deployment_subgraphs(deployments),
        subgraph_id_to_subgraph=parse_subgraphs(deployments, duplicates),
        record_count=len(deployments),
        block_number=block_number,
    )


class SubgraphDeployments:
    """Read-only view over the latest snapshot in a sink.

    Lookups wait for the first snapshot and never raise; unknown ids
    resolve to an empty list or None.
    """

    def __init__(self, sink: SnapshotSink) -> None:
        self._sink = sink

    async def deployment_subgraphs(self, deployment_id: str) -> List[Subgraph]:
        snapshot = await self._sink.current()
        return snapshot.deployment_subgraphs(deployment_id)

    async def subgraph(self, subgraph_id: str) -> Optional[Subgraph]:
        snapshot = await self._sink.current()
        return snapshot.subgraph(subgraph_id)
