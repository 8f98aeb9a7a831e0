"""
Data models used by the subgraph directory service.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Annotated, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, StringConstraints
from pydantic.alias_generators import to_camel

# Manifest content hash in IPFS CIDv0 form.
DeploymentId = Annotated[
    str, StringConstraints(strip_whitespace=True, pattern=r"^Qm[1-9A-HJ-NP-Za-km-z]{44}$")
]
# Registry-assigned, base58 encoded.
SubgraphId = Annotated[
    str, StringConstraints(strip_whitespace=True, pattern=r"^[1-9A-HJ-NP-Za-km-z]+$")
]
Address = Annotated[
    str,
    StringConstraints(strip_whitespace=True, to_lower=True, pattern=r"^0x[0-9a-fA-F]{40}$"),
]


class _WireModel(BaseModel):
    """Immutable model that reads and writes camelCase GraphQL field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class GraphAccount(_WireModel):
    """A publishing identity on the registry."""

    id: Address
    image: Optional[str] = None
    default_display_name: Optional[str] = None


class Subgraph(_WireModel):
    """A named, owned pointer at an active deployment version."""

    id: SubgraphId
    owner: GraphAccount
    display_name: Optional[str] = None
    image: Optional[str] = None


class SubgraphVersion(_WireModel):
    """One version entry of a raw deployment record."""

    subgraph: Subgraph


class SubgraphDeployment(_WireModel):
    """Raw deployment record as returned by the network subgraph.

    ``id`` is the upstream entity id the pages are ordered and paginated
    by; ``ipfs_hash`` is the DeploymentId the directory is keyed on.
    """

    id: str
    ipfs_hash: DeploymentId
    versions: List[SubgraphVersion]


@dataclass(frozen=True)
class DirectorySnapshot:
    """Immutable directory state produced by one successful poll cycle."""

    deployment_to_subgraphs: Mapping[str, Tuple[Subgraph, ...]]
    subgraph_id_to_subgraph: Mapping[str, Subgraph]
    record_count: int = 0
    block_number: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        # Freeze the working copies handed in by the builder.
        object.__setattr__(
            self,
            "deployment_to_subgraphs",
            MappingProxyType(
                {key: tuple(value) for key, value in self.deployment_to_subgraphs.items()}
            ),
        )
        object.__setattr__(
            self,
            "subgraph_id_to_subgraph",
            MappingProxyType(dict(self.subgraph_id_to_subgraph)),
        )

    @property
    def deployment_count(self) -> int:
        return len(self.deployment_to_subgraphs)

    @property
    def subgraph_count(self) -> int:
        return len(self.subgraph_id_to_subgraph)

    def deployment_subgraphs(self, deployment_id: str) -> List[Subgraph]:
        """Subgraphs pointing at the deployment, in upstream version order."""
        return list(self.deployment_to_subgraphs.get(deployment_id, ()))

    def subgraph(self, subgraph_id: str) -> Optional[Subgraph]:
        return self.subgraph_id_to_subgraph.get(subgraph_id)
