"""
Subgraph Directory Service package.

Keeps an in-memory directory of deployments and the subgraphs that
reference them, refreshed from the network subgraph on a timer.

Modules:
- models: Wire models and the immutable directory snapshot
- sink: Latest-snapshot holder shared by the refresher and readers
- directory: Merge of raw pages into snapshots and the read facade
- upstream: Paginated GraphQL transport
- refresher: Timer, busy guard and poll cycle
- tiers: Subscription tier lookup by payment rate
- main: Service process and HTTP endpoints
"""

from .directory import SubgraphDeployments, build_snapshot
from .models import DirectorySnapshot, GraphAccount, Subgraph
from .refresher import DirectoryRefresher, RefresherState
from .sink import SnapshotSink
from .tiers import SubscriptionTier, SubscriptionTiers
from .upstream import BlockPointer, DeploymentPage, NetworkSubgraphClient, PageFetcher

__all__ = [
    "BlockPointer",
    "DeploymentPage",
    "DirectoryRefresher",
    "DirectorySnapshot",
    "GraphAccount",
    "NetworkSubgraphClient",
    "PageFetcher",
    "RefresherState",
    "SnapshotSink",
    "Subgraph",
    "SubgraphDeployments",
    "SubscriptionTier",
    "SubscriptionTiers",
    "build_snapshot",
]
