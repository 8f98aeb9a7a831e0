"""Sample network subgraph records and upstream doubles for testing."""

import asyncio
from typing import Any, Dict, List, Optional

from services.subgraph_directory.app.upstream import BlockPointer, DeploymentPage

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"

EXAMPLE_DEPLOYMENT_ID = "QmNgmaip92JYzB7RAntXRox3ZcdSjPLHtwYbt94hKeuMxU"
EXAMPLE_SUBGRAPH_ID = "BvSx64tyYGgFY5deaiMVz2sPJrBoo63Bb8htVvqo2GbD"
EXAMPLE_OWNER = "0x8fbbc98259a4ed6e6d6e413c553cc47530e79be8"
EXAMPLE_IMAGE = (
    "https://api.thegraph.com/ipfs/api/v0/cat?arg=QmdSeSQ3APFjLktQY3aNVu3M5QXPfE9ZRK5LqgghRgB7L9"
)

EXAMPLE_BLOCK = BlockPointer(
    number=18_000_000,
    hash="0x3d9b7c1f2a6e4b8d0c5f9e1a7b3d6c2e8f4a0b9c1d5e7f3a2b6c8d0e4f1a9b3c",
)

EXAMPLE_RECORD: Dict[str, Any] = {
    "id": "0x0527631b847f976a3566651d595f5c27c9a13ca464cc8dbcf645bd19365b5b91",
    "ipfsHash": EXAMPLE_DEPLOYMENT_ID,
    "versions": [
        {
            "subgraph": {
                "id": EXAMPLE_SUBGRAPH_ID,
                "owner": {
                    "id": EXAMPLE_OWNER,
                    "image": None,
                    "defaultDisplayName": None,
                },
                "displayName": "Numero Uno",
                "image": EXAMPLE_IMAGE,
            }
        }
    ],
}


def _base58(number: int, width: int) -> str:
    digits = []
    while number:
        number, remainder = divmod(number, 58)
        digits.append(BASE58_ALPHABET[remainder])
    encoded = "".join(reversed(digits))
    return encoded.rjust(width, BASE58_ALPHABET[0])


def deployment_id(n: int) -> str:
    return "Qm" + _base58(n, 44)


def subgraph_id(n: int) -> str:
    return _base58(n, 44)


def account_address(n: int) -> str:
    return f"0x{n:040x}"


def entity_id(n: int) -> str:
    return f"0x{n:064x}"


def raw_subgraph(
    n: int,
    owner: int = 1,
    display_name: Optional[str] = None,
    image: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "id": subgraph_id(n),
        "owner": {
            "id": account_address(owner),
            "image": None,
            "defaultDisplayName": f"account-{owner}",
        },
        "displayName": display_name if display_name is not None else f"Subgraph {n}",
        "image": image,
    }


def raw_deployment(n: int, subgraphs: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "id": entity_id(n),
        "ipfsHash": deployment_id(n),
        "versions": [{"subgraph": subgraph} for subgraph in subgraphs],
    }


def generate_deployments(count: int) -> List[Dict[str, Any]]:
    """One deployment per index, each referenced by one subgraph."""
    return [raw_deployment(n, [raw_subgraph(n, owner=n % 7 + 1)]) for n in range(1, count + 1)]


class StubPageFetcher:
    """In-memory page source that paginates like the network subgraph.

    ``errors`` are raised, in order, by the next calls to ``fetch_page``.
    When ``gate`` is set, every call waits on it before answering. Pages
    read without a pinned block report ``head`` as their block.
    """

    def __init__(
        self,
        records: Optional[List[Dict[str, Any]]] = None,
        errors: Optional[List[Exception]] = None,
        gate: Optional[asyncio.Event] = None,
        head: Optional[BlockPointer] = EXAMPLE_BLOCK,
    ):
        self.records = sorted(records or [], key=lambda record: record["id"])
        self.errors = list(errors or [])
        self.gate = gate
        self.head = head
        self.calls: List[Dict[str, Any]] = []

    async def fetch_page(
        self, cursor: str, first: int, block: Optional[BlockPointer] = None
    ) -> DeploymentPage:
        self.calls.append({"cursor": cursor, "first": first, "block": block})
        if self.gate is not None:
            await self.gate.wait()
        if self.errors:
            raise self.errors.pop(0)
        records = [record for record in self.records if record["id"] > cursor][:first]
        return DeploymentPage(records=records, block=block or self.head)
