"""
Paginated GraphQL transport for the network subgraph.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple

import aiohttp
import structlog

from shared.utils.errors import ParseError, TransportError
from shared.utils.tracing import add_span_event

logger = structlog.get_logger(__name__)

SUBGRAPH_DEPLOYMENTS_QUERY = """
query SubgraphDeployments($block: Block_height, $first: Int!, $last: String!) {
  _meta(block: $block) {
    block {
      number
      hash
    }
  }
  subgraphDeployments(
    block: $block
    orderBy: id
    orderDirection: asc
    first: $first
    where: { id_gt: $last }
  ) {
    id
    ipfsHash
    versions(
      orderBy: version
      orderDirection: asc
      where: { subgraph_: { active: true, entityVersion: 2 } }
    ) {
      subgraph {
        id
        owner {
          id
          image
          defaultDisplayName
        }
        displayName
        image
      }
    }
  }
}
"""


@dataclass(frozen=True)
class BlockPointer:
    """Indexed block a page was served from."""

    number: int
    hash: str

    def as_variable(self) -> Dict[str, str]:
        return {"hash": self.hash}


@dataclass(frozen=True)
class DeploymentPage:
    """One page of raw deployment records and the block it reflects."""

    records: List[Dict[str, Any]]
    block: Optional[BlockPointer] = None


class PageFetcher(Protocol):
    """Source of raw deployment records, one page per call."""

    async def fetch_page(
        self, cursor: str, first: int, block: Optional[BlockPointer] = None
    ) -> DeploymentPage:
        """Return up to ``first`` records whose id sorts after ``cursor``.

        When ``block`` is given the page is read at that block, otherwise at
        the latest indexed block.
        """


def _parse_block(meta: Any) -> Optional[BlockPointer]:
    if meta is None:
        return None
    block = meta.get("block") if isinstance(meta, dict) else None
    if not isinstance(block, dict):
        raise ParseError("Network subgraph _meta is missing the block pointer")
    number, block_hash = block.get("number"), block.get("hash")
    if isinstance(number, bool) or not isinstance(number, int) or not isinstance(block_hash, str):
        raise ParseError(
            "Network subgraph returned a malformed block pointer",
            details={"block": block},
        )
    return BlockPointer(number=number, hash=block_hash)


class NetworkSubgraphClient:
    """Fetches subgraph deployment pages over HTTP.

    Uses the caller's ``aiohttp.ClientSession`` when given one, otherwise
    opens its own on first use and closes it in ``close()``.
    """

    def __init__(
        self,
        url: str,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        auth_token: Optional[str] = None,
        timeout_seconds: float = 30.0,
        query: str = SUBGRAPH_DEPLOYMENTS_QUERY,
    ) -> None:
        self.url = url
        self.query = query
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._headers = {"Content-Type": "application/json"}
        if auth_token:
            self._headers["Authorization"] = f"Bearer {auth_token}"

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def fetch_page(
        self, cursor: str, first: int, block: Optional[BlockPointer] = None
    ) -> DeploymentPage:
        """
        Fetch one page of subgraph deployments, pinned to ``block`` if given.

        Raises:
            TransportError: On connection failures, timeouts, non-2xx
                responses, undecodable bodies or GraphQL errors.
            ParseError: If the response lacks the deployments list or
                carries a malformed block pointer.
        """
        session = await self._get_session()
        variables = {
            "block": block.as_variable() if block is not None else None,
            "first": first,
            "last": cursor,
        }
        body = {"query": self.query, "variables": variables}

        try:
            async with session.post(
                self.url, json=body, headers=self._headers, timeout=self._timeout
            ) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise TransportError(
                        f"Network subgraph responded with HTTP {response.status}",
                        url=self.url,
                        status=response.status,
                        cursor=cursor,
                        details={"body": text[:512]},
                    )
                payload = await response.json(content_type=None)
        except TransportError:
            raise
        except asyncio.TimeoutError as exc:
            raise TransportError(
                "Timed out fetching network subgraph page", url=self.url, cursor=cursor
            ) from exc
        except aiohttp.ClientError as exc:
            raise TransportError(
                f"Failed to fetch network subgraph page: {exc}", url=self.url, cursor=cursor
            ) from exc
        except ValueError as exc:
            raise TransportError(
                "Network subgraph returned a non-JSON body", url=self.url, cursor=cursor
            ) from exc

        if not isinstance(payload, dict):
            raise ParseError("Network subgraph response is not a JSON object")

        errors = payload.get("errors")
        if errors:
            messages = [
                error.get("message", str(error)) if isinstance(error, dict) else str(error)
                for error in errors
            ]
            raise TransportError(
                f"Network subgraph query failed: {'; '.join(messages)}",
                url=self.url,
                cursor=cursor,
                details={"graphql_errors": messages},
            )

        data = payload.get("data") or {}
        records = data.get("subgraphDeployments") if isinstance(data, dict) else None
        if not isinstance(records, list):
            raise ParseError("Network subgraph response is missing data.subgraphDeployments")
        return DeploymentPage(records=records, block=_parse_block(data.get("_meta")))


async def drain_pages(
    fetcher: PageFetcher, page_size: int
) -> Tuple[List[Dict[str, Any]], int, Optional[BlockPointer]]:
    """
    Pull every page from ``fetcher`` in ascending id order.

    Returns the aggregated records, the number of pages requested and the
    block the sweep was read at. The first page is read at the latest
    indexed block and every later page is pinned to that block, so the
    whole page set reflects one upstream state. The cursor for each page
    is the id of the last record of the previous one; a short page ends
    the sweep.
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")

    records: List[Dict[str, Any]] = []
    cursor = ""
    block: Optional[BlockPointer] = None
    pages = 0
    while True:
        page = await fetcher.fetch_page(cursor, page_size, block)
        pages += 1
        if block is None:
            block = page.block
        elif page.block is not None and page.block.hash != block.hash:
            raise ParseError(
                "Network subgraph page was served from a different block",
                details={"expected_block": block.hash, "actual_block": page.block.hash},
            )
        records.extend(page.records)
        add_span_event(
            "network_subgraph.page",
            {"page": pages, "records": len(page.records), "cursor": cursor},
        )
        logger.debug(
            "Fetched network subgraph page",
            page=pages,
            cursor=cursor,
            records=len(page.records),
            block_number=block.number if block else None,
        )

        if len(page.records) < page_size:
            break

        last = page.records[-1]
        next_cursor = last.get("id") if isinstance(last, dict) else None
        if not isinstance(next_cursor, str) or not next_cursor:
            raise ParseError(
                "Page record is missing the id used as pagination cursor",
                record_index=len(records) - 1,
            )
        if next_cursor <= cursor:
            raise ParseError(
                "Pagination cursor did not advance",
                details={"cursor": cursor, "next_cursor": next_cursor},
            )
        cursor = next_cursor

    return records, pages, block
