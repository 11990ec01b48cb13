"""Detector configuration.

All rule thresholds live in one frozen ``DetectorSettings`` model so that a
process builds its detectors from a single validated object. Values can be
overridden through ``CHAINSENTRY_<FIELD>`` environment variables (a ``.env``
file is honoured via python-dotenv).
"""

from __future__ import annotations

import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

ENV_PREFIX = "CHAINSENTRY_"

GWEI = 10**9
ETHER = 10**18


class DetectorSettings(BaseModel):
    """Thresholds and connection settings shared by all detectors."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Chain data gateway
    rpc_url: str = Field(default="", description="JSON-RPC endpoint of the chain data gateway")
    rpc_timeout: float = Field(default=30.0, gt=0)
    rpc_max_retries: int = Field(default=3, ge=0)

    # Shared "recent" predicates
    recent_contract_max_tx_count: int = Field(default=5, ge=1)
    recent_address_max_tx_count: int = Field(default=3, ge=1)

    # Phishing
    frontrunning_gas_price_wei: int = Field(default=500 * GWEI, gt=0)
    multicall_data_threshold_bytes: int = Field(default=5000, gt=0)

    # MEV / sandwich
    swap_window_blocks: int = Field(default=100, ge=0)
    high_gas_multiplier: int = Field(default=5, ge=1)
    low_slippage_threshold: Decimal = Field(default=Decimal("0.001"), ge=0, le=1)
    max_route_length: int = Field(default=4, ge=2)

    # Multisig
    revocation_limit: int = Field(default=2, ge=0)
    large_owner_count: int = Field(default=10, ge=1)

    # Approvals
    high_value_approval_wei: int = Field(default=10**24, gt=0)
    multiple_approvals_threshold: int = Field(default=4, ge=2)
    complex_call_threshold: int = Field(default=3, ge=0)

    # Two-factor authentication
    reauthentication_window_seconds: int = Field(default=1800, ge=0)
    high_risk_value_wei: int = Field(default=ETHER, gt=0)
    two_factor_users: tuple[str, ...] = Field(default_factory=tuple)
    two_factor_default_threshold_wei: int = Field(default=ETHER // 10, ge=0)

    @field_validator("two_factor_users", mode="before")
    @classmethod
    def split_users(cls, v: Any) -> Any:
        """Accept a comma separated string of addresses."""
        if isinstance(v, str):
            return tuple(part.strip().lower() for part in v.split(",") if part.strip())
        return v

    @field_validator("two_factor_users")
    @classmethod
    def lower_users(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(address.lower() for address in v)


def load_settings(env_file: str | Path | None = None, **overrides: Any) -> DetectorSettings:
    """Build settings from the environment.

    Args:
        env_file: Optional path to a ``.env`` file. When None, python-dotenv
            searches for one from the current directory upwards.
        **overrides: Explicit values that win over the environment.

    Returns:
        Validated DetectorSettings.

    Raises:
        ValidationError: If any environment value is invalid.
    """
    load_dotenv(dotenv_path=env_file)

    values: dict[str, Any] = {}
    for name in DetectorSettings.model_fields:
        raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if raw is not None and raw.strip() != "":
            values[name] = raw.strip()
    values.update(overrides)

    settings = DetectorSettings(**values)
    logger.debug("Loaded detector settings with %d environment override(s)", len(values))
    return settings


__all__ = [
    "DetectorSettings",
    "load_settings",
    "ENV_PREFIX",
    "GWEI",
    "ETHER",
]
