"""
Configuration for the subgraph directory service.
"""

from __future__ import annotations

import os
from typing import Optional

from shared.framework.config import ServiceConfig
from shared.utils.errors import ConfigurationError

DEFAULT_POLL_INTERVAL_SECONDS = 30.0
DEFAULT_PAGE_SIZE = 200
DEFAULT_NETWORK_SUBGRAPH_URL = (
    "https://api.thegraph.com/subgraphs/name/graphprotocol/graph-network-arbitrum"
)


class SubgraphDirectoryConfig(ServiceConfig):
    """Service configuration loaded from environment variables."""

    def __init__(self) -> None:
        super().__init__(
            service_name=os.getenv("SUBGRAPH_DIRECTORY_SERVICE_NAME", "subgraph_directory")
        )

        self.service_slug = "subgraph-directory"

        # Upstream
        self.network_subgraph_url = os.getenv(
            "SUBGRAPH_DIRECTORY_NETWORK_SUBGRAPH_URL",
            DEFAULT_NETWORK_SUBGRAPH_URL,
        )
        self.network_subgraph_auth_token: Optional[str] = os.getenv(
            "SUBGRAPH_DIRECTORY_NETWORK_SUBGRAPH_AUTH_TOKEN"
        )
        self.request_timeout_seconds = float(
            os.getenv("SUBGRAPH_DIRECTORY_REQUEST_TIMEOUT_SECONDS", "30")
        )

        # Refresh cadence
        self.poll_interval_seconds = float(
            os.getenv("SUBGRAPH_DIRECTORY_POLL_INTERVAL_SECONDS", str(DEFAULT_POLL_INTERVAL_SECONDS))
        )
        self.page_size = int(
            os.getenv("SUBGRAPH_DIRECTORY_PAGE_SIZE", str(DEFAULT_PAGE_SIZE))
        )

        # Optional subscription tier table
        self.tiers_path: Optional[str] = os.getenv("SUBGRAPH_DIRECTORY_TIERS_PATH") or None

        self.otel_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")

        self._validate()

    def _validate(self) -> None:
        if self.poll_interval_seconds <= 0:
            raise ConfigurationError(
                "Poll interval must be positive",
                config_key="poll_interval_seconds",
                config_value=self.poll_interval_seconds,
            )
        if self.page_size <= 0:
            raise ConfigurationError(
                "Page size must be positive",
                config_key="page_size",
                config_value=self.page_size,
            )
        if self.request_timeout_seconds <= 0:
            raise ConfigurationError(
                "Request timeout must be positive",
                config_key="request_timeout_seconds",
                config_value=self.request_timeout_seconds,
            )
        if not self.network_subgraph_url:
            raise ConfigurationError(
                "Network subgraph URL is required",
                config_key="network_subgraph_url",
            )

    def to_dict(self):
        data = super().to_dict()
        data.update(
            {
                "network_subgraph_url": self.network_subgraph_url,
                "request_timeout_seconds": self.request_timeout_seconds,
                "poll_interval_seconds": self.poll_interval_seconds,
                "page_size": self.page_size,
                "tiers_path": self.tiers_path,
            }
        )
        return data
