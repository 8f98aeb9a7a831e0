"""
Subscription tier lookup keyed by payment rate.
"""

from __future__ import annotations

import json
from bisect import bisect_left, bisect_right
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Sequence, Union

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator

from shared.utils.errors import ConfigurationError

logger = structlog.get_logger(__name__)

MAX_PAYMENT_RATE = 2**128 - 1


class SubscriptionTier(BaseModel):
    """Capabilities granted at a given subscription payment rate."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Serialized as a decimal string; JSON numbers lose precision past 2**53.
    payment_rate: int = Field(default=0, ge=0, le=MAX_PAYMENT_RATE)
    queries_per_minute: int = Field(default=0, ge=0)
    monthly_query_limit: Optional[int] = Field(default=None, ge=0)

    @field_validator("payment_rate", mode="before")
    @classmethod
    def _parse_payment_rate(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("payment_rate must be an integer or decimal string")
        if isinstance(value, str):
            text = value.strip()
            if not (text.isascii() and text.isdigit()):
                raise ValueError(f"payment_rate is not a non-negative integer: {value!r}")
            return int(text)
        return value

    @field_serializer("payment_rate")
    def _serialize_payment_rate(self, value: int) -> str:
        return str(value)


DEFAULT_TIER = SubscriptionTier()


class SubscriptionTiers:
    """
    Tiers sorted by payment rate.

    Sorting is stable, so among tiers sharing a payment rate the one
    listed first wins in both lookups.
    """

    def __init__(self, tiers: Iterable[SubscriptionTier] = ()) -> None:
        self._tiers: List[SubscriptionTier] = sorted(tiers, key=lambda tier: tier.payment_rate)
        self._rates: List[int] = [tier.payment_rate for tier in self._tiers]

    @classmethod
    def from_records(cls, records: Sequence[Mapping[str, Any]]) -> "SubscriptionTiers":
        """Build tiers from serialized definitions."""
        tiers = []
        for index, record in enumerate(records):
            try:
                tiers.append(SubscriptionTier.model_validate(record))
            except ValidationError as exc:
                raise ConfigurationError(
                    f"Invalid subscription tier at index {index}",
                    config_key="tiers",
                    details={"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
                ) from exc
        return cls(tiers)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "SubscriptionTiers":
        """
        Load tiers from a YAML or JSON file.

        The file holds either a list of tier definitions or a mapping with
        the list under ``tiers``.
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(
                f"Cannot read subscription tiers file: {exc}",
                config_key="tiers_path",
                config_value=str(path),
            ) from exc

        try:
            if path.suffix == ".json":
                document = json.loads(text)
            else:
                document = yaml.safe_load(text)
        except (ValueError, yaml.YAMLError) as exc:
            raise ConfigurationError(
                f"Cannot parse subscription tiers file: {exc}",
                config_key="tiers_path",
                config_value=str(path),
            ) from exc

        if isinstance(document, Mapping):
            document = document.get("tiers")
        if document is None:
            document = []
        if not isinstance(document, list):
            raise ConfigurationError(
                "Subscription tiers file must contain a list of tiers",
                config_key="tiers_path",
                config_value=str(path),
            )

        tiers = cls.from_records(document)
        logger.info("Loaded subscription tiers", path=str(path), tiers=len(tiers))
        return tiers

    def tier_for_rate(self, sub_rate: int) -> SubscriptionTier:
        """Highest tier whose payment rate is at most ``sub_rate``, else the default tier."""
        index = bisect_right(self._rates, sub_rate)
        if index == 0:
            return DEFAULT_TIER
        return self._tiers[bisect_left(self._rates, self._rates[index - 1])]

    def find_next_tier(self, sub_rate: int) -> Optional[SubscriptionTier]:
        """Lowest tier whose payment rate is above ``sub_rate``, or None at the top."""
        index = bisect_right(self._rates, sub_rate)
        if index == len(self._tiers):
            return None
        return self._tiers[index]

    def __iter__(self) -> Iterator[SubscriptionTier]:
        return iter(self._tiers)

    def __len__(self) -> int:
        return len(self._tiers)

    def __repr__(self) -> str:
        return f"SubscriptionTiers({self._tiers!r})"
