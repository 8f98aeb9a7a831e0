"""
Entry point for the subgraph directory service.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import structlog
from aiohttp import web

from shared.framework.health import HealthCheck
from shared.framework.service import AsyncService
from shared.utils.logging import setup_logging
from shared.utils.tracing import setup_tracing

from .config import SubgraphDirectoryConfig
from .directory import SubgraphDeployments
from .refresher import DirectoryRefresher
from .sink import SnapshotSink
from .tiers import SubscriptionTiers
from .upstream import NetworkSubgraphClient, PageFetcher

logger = structlog.get_logger(__name__)


class SubgraphDirectoryService(AsyncService):
    """Keeps the deployment directory fresh and serves lookups over HTTP."""

    def __init__(
        self,
        config: Optional[SubgraphDirectoryConfig] = None,
        *,
        fetcher: Optional[PageFetcher] = None,
        tiers: Optional[SubscriptionTiers] = None,
    ) -> None:
        config = config or SubgraphDirectoryConfig()
        super().__init__(config)
        self.config = config

        self.sink = SnapshotSink()
        self.directory = SubgraphDeployments(self.sink)
        self.fetcher = fetcher
        self.refresher: Optional[DirectoryRefresher] = None
        if fetcher is not None:
            self.refresher = self._build_refresher(fetcher)

        if tiers is None and config.tiers_path:
            tiers = SubscriptionTiers.from_file(config.tiers_path)
        self.tiers = tiers or SubscriptionTiers()

        self.health_checker.add_check(
            HealthCheck(
                name="directory_snapshot",
                check_func=lambda: self.sink.is_ready,
                critical=False,
                gates_readiness=True,
                description="A directory snapshot has been published",
            )
        )

    def _build_refresher(self, fetcher: PageFetcher) -> DirectoryRefresher:
        return DirectoryRefresher(
            fetcher,
            self.sink,
            poll_interval_seconds=self.config.poll_interval_seconds,
            page_size=self.config.page_size,
            metrics=self.metrics,
        )

    async def _startup_hook(self) -> None:
        """Create the upstream client and start polling."""
        if self.refresher is None:
            self.fetcher = NetworkSubgraphClient(
                self.config.network_subgraph_url,
                session=self.session,
                auth_token=self.config.network_subgraph_auth_token,
                timeout_seconds=self.config.request_timeout_seconds,
            )
            self.refresher = self._build_refresher(self.fetcher)

        self.refresher.start()
        logger.info(
            "Subgraph directory service started",
            network_subgraph_url=self.config.network_subgraph_url,
            poll_interval_seconds=self.config.poll_interval_seconds,
            tiers=len(self.tiers),
        )

    async def _shutdown_hook(self) -> None:
        """Stop polling and release the upstream client."""
        if self.refresher is not None:
            await self.refresher.stop()
        if isinstance(self.fetcher, NetworkSubgraphClient):
            await self.fetcher.close()
        logger.info("Subgraph directory service stopped")

    def _setup_service_routes(self) -> None:
        self.app.router.add_get("/status", self._status_handler)
        self.app.router.add_get(
            "/deployments/{deployment_id}/subgraphs", self._deployment_subgraphs_handler
        )
        self.app.router.add_get("/subgraphs/{subgraph_id}", self._subgraph_handler)
        self.app.router.add_get("/tiers/{rate}", self._tier_handler)

    def _not_ready(self) -> web.Response:
        return web.json_response(
            {"error": "directory_not_ready", "message": "No directory snapshot published yet"},
            status=503,
        )

    async def _status_handler(self, request: web.Request) -> web.Response:
        """Return refresher and snapshot state."""
        snapshot = self.sink.latest()
        refresher = self.refresher
        data: Dict[str, Any] = {
            "service": self.config.service_slug,
            "network_subgraph_url": self.config.network_subgraph_url,
            "poll_interval_seconds": self.config.poll_interval_seconds,
            "page_size": self.config.page_size,
            "ready": snapshot is not None,
            "publish_count": self.sink.publish_count,
            "snapshot": None,
            "refresher": None,
        }
        if snapshot is not None:
            data["snapshot"] = {
                "created_at": snapshot.created_at.isoformat(),
                "records": snapshot.record_count,
                "block_number": snapshot.block_number,
                "deployments": snapshot.deployment_count,
                "subgraphs": snapshot.subgraph_count,
            }
        if refresher is not None:
            last_error = refresher.last_error
            data["refresher"] = {
                "state": refresher.state.value,
                "dropped_ticks": refresher.dropped_ticks,
                "last_success_at": (
                    refresher.last_success_at.isoformat() if refresher.last_success_at else None
                ),
                "last_error": (
                    last_error.to_dict() if hasattr(last_error, "to_dict")
                    else (str(last_error) if last_error else None)
                ),
            }
        return web.json_response(data)

    async def _deployment_subgraphs_handler(self, request: web.Request) -> web.Response:
        if not self.sink.is_ready:
            return self._not_ready()
        deployment_id = request.match_info["deployment_id"]
        subgraphs = await self.directory.deployment_subgraphs(deployment_id)
        self.metrics.record_request("GET", "/deployments/{deployment_id}/subgraphs", "200")
        return web.json_response(
            {
                "deployment_id": deployment_id,
                "subgraphs": [subgraph.model_dump(mode="json", by_alias=True) for subgraph in subgraphs],
            }
        )

    async def _subgraph_handler(self, request: web.Request) -> web.Response:
        if not self.sink.is_ready:
            return self._not_ready()
        subgraph_id = request.match_info["subgraph_id"]
        subgraph = await self.directory.subgraph(subgraph_id)
        if subgraph is None:
            self.metrics.record_request("GET", "/subgraphs/{subgraph_id}", "404")
            return web.json_response(
                {"error": "subgraph_not_found", "subgraph_id": subgraph_id}, status=404
            )
        self.metrics.record_request("GET", "/subgraphs/{subgraph_id}", "200")
        return web.json_response(subgraph.model_dump(mode="json", by_alias=True))

    async def _tier_handler(self, request: web.Request) -> web.Response:
        raw_rate = request.match_info["rate"]
        try:
            rate = int(raw_rate) if raw_rate.isascii() and raw_rate.isdigit() else None
        except ValueError:
            rate = None
        if rate is None:
            self.metrics.record_request("GET", "/tiers/{rate}", "400")
            return web.json_response(
                {"error": "invalid_rate", "message": f"Rate must be a non-negative integer: {raw_rate}"},
                status=400,
            )
        next_tier = self.tiers.find_next_tier(rate)
        self.metrics.record_request("GET", "/tiers/{rate}", "200")
        return web.json_response(
            {
                "rate": str(rate),
                "tier": self.tiers.tier_for_rate(rate).model_dump(mode="json"),
                "next_tier": next_tier.model_dump(mode="json") if next_tier else None,
            }
        )


async def main() -> None:
    """Service entrypoint."""
    config = SubgraphDirectoryConfig()
    setup_logging(
        config.service_slug,
        log_level=config.observability.log_level,
        format_type=config.observability.log_format,
    )
    setup_tracing(
        config.service_slug,
        endpoint=config.otel_endpoint,
        enabled=config.observability.trace_enabled,
    )

    service = SubgraphDirectoryService(config=config)
    await service.run()


def run() -> None:
    """Console script entrypoint."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
