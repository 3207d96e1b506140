# Configuration and settings for the Safe transaction analyst
#
# A small dataclass and a cached factory function that reads values from
# environment variables, no pydantic-settings.

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Dict, Optional, TypeVar


_def_true = {"1", "true", "yes", "y", "on"}
_def_false = {"0", "false", "no", "n", "off"}

N = TypeVar("N", int, float)


@dataclass(frozen=True)
class NetworkConfig:
    network_id: str
    chain_id: int
    rpc_url: str
    safe_tx_service_url: str
    explorer_api_url: str


NETWORKS: Dict[str, NetworkConfig] = {
    "ethereum-sepolia": NetworkConfig(
        network_id="ethereum-sepolia",
        chain_id=11155111,
        rpc_url="https://rpc.sepolia.org",
        safe_tx_service_url="https://safe-transaction-sepolia.safe.global",
        explorer_api_url="https://api-sepolia.etherscan.io/api",
    ),
    "base-sepolia": NetworkConfig(
        network_id="base-sepolia",
        chain_id=84532,
        rpc_url="https://sepolia.base.org",
        safe_tx_service_url="https://safe-transaction-base-sepolia.safe.global",
        explorer_api_url="https://api-sepolia.basescan.org/api",
    ),
    "base-mainnet": NetworkConfig(
        network_id="base-mainnet",
        chain_id=8453,
        rpc_url="https://mainnet.base.org",
        safe_tx_service_url="https://safe-transaction-base.safe.global",
        explorer_api_url="https://api.basescan.org/api",
    ),
}

DEFAULT_NETWORK_ID = "base-sepolia"

# Flagging thresholds, overridable through the environment.
HIGH_VALUE_RATIO = 0.5
LOW_REPUTATION_THRESHOLD = 20
COMPLEX_CALL_PARAMETER_COUNT = 3


def _get_env_any(keys: list[str], default: Optional[str] = None) -> Optional[str]:
    for k in keys:
        v = os.getenv(k)
        if v is not None:
            return v
    return default


def _get_bool(keys: list[str], default: bool) -> bool:
    raw = _get_env_any(keys)
    if raw is None:
        return default
    lower = raw.strip().lower()
    if lower in _def_true:
        return True
    if lower in _def_false:
        return False
    return bool(lower)


def _get_number(keys: list[str], default: N, cast: Callable[[str], N]) -> N:
    # Unparseable values fall back to the default rather than failing startup.
    raw = _get_env_any(keys)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except (TypeError, ValueError):
        return default


def _get_ratio(keys: list[str], default: float) -> float:
    # only finite, positive ratios; anything else falls back to the default
    value = _get_number(keys, default, float)
    return value if math.isfinite(value) and value > 0 else default


def _get_str(keys: list[str]) -> Optional[str]:
    # Empty strings count as unset so that `ETHERSCAN_API_KEY=` disables a check.
    raw = _get_env_any(keys)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


@dataclass
class Settings:
    """Runtime configuration for the analyst.

    Environment variables (case-insensitive aliases shown):
    - ENVIRONMENT / environment
    - NETWORK_ID / network_id
    - RPC_URL / rpc_url
    - SAFE_TX_SERVICE_URL / safe_tx_service_url
    - EXPLORER_API_URL / explorer_api_url
    - ETHERSCAN_API_KEY / etherscan_api_key
    - REPUTATION_API_URL / reputation_api_url
    - REPUTATION_API_KEY / reputation_api_key
    - BACKEND_API_KEY / backend_api_key
    - REQUEST_TIMEOUT_SECONDS / request_timeout_seconds
    - REQUEST_VERIFY_TLS / request_verify_tls
    - HIGH_VALUE_RATIO / high_value_ratio
    - LOW_REPUTATION_THRESHOLD / low_reputation_threshold
    - COMPLEX_CALL_PARAMETER_COUNT / complex_call_parameter_count
    - LOOKUP_WORKERS / lookup_workers
    - LOG_LEVEL / log_level
    """

    # General
    environment: str = "development"
    log_level: str = "INFO"

    # Network
    network_id: str = DEFAULT_NETWORK_ID
    chain_id: int = NETWORKS[DEFAULT_NETWORK_ID].chain_id
    rpc_url: str = NETWORKS[DEFAULT_NETWORK_ID].rpc_url
    safe_tx_service_url: str = NETWORKS[DEFAULT_NETWORK_ID].safe_tx_service_url
    explorer_api_url: str = NETWORKS[DEFAULT_NETWORK_ID].explorer_api_url

    # External services; a missing key disables the matching check
    etherscan_api_key: Optional[str] = None
    reputation_api_url: Optional[str] = None
    reputation_api_key: Optional[str] = None

    # Optional API key to guard the HTTP endpoints
    backend_api_key: Optional[str] = None

    # HTTP behavior
    request_timeout_seconds: int = 10
    request_verify_tls: bool = True
    lookup_workers: int = 4

    # Analysis thresholds
    high_value_ratio: float = HIGH_VALUE_RATIO
    low_reputation_threshold: int = LOW_REPUTATION_THRESHOLD
    complex_call_parameter_count: int = COMPLEX_CALL_PARAMETER_COUNT

    @property
    def verification_enabled(self) -> bool:
        return bool(self.etherscan_api_key)

    @property
    def reputation_enabled(self) -> bool:
        return bool(self.reputation_api_url)


def resolve_network(network_id: Optional[str]) -> NetworkConfig:
    key = (network_id or DEFAULT_NETWORK_ID).strip().lower()
    try:
        return NETWORKS[key]
    except KeyError:
        supported = ", ".join(sorted(NETWORKS))
        raise ValueError(f"Unsupported network: {network_id} (supported: {supported})") from None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment with sensible defaults.

    Values are cached for the process lifetime. Clear the cache if you need to
    pick up changes (get_settings.cache_clear()).
    """
    network = resolve_network(_get_env_any(["NETWORK_ID", "network_id"]))
    return Settings(
        environment=_get_env_any(["ENVIRONMENT", "environment"], "development") or "development",
        log_level=_get_env_any(["LOG_LEVEL", "log_level"], "INFO") or "INFO",
        network_id=network.network_id,
        chain_id=network.chain_id,
        rpc_url=_get_str(["RPC_URL", "rpc_url"]) or network.rpc_url,
        safe_tx_service_url=_get_str(["SAFE_TX_SERVICE_URL", "safe_tx_service_url"])
        or network.safe_tx_service_url,
        explorer_api_url=_get_str(["EXPLORER_API_URL", "explorer_api_url"]) or network.explorer_api_url,
        etherscan_api_key=_get_str(["ETHERSCAN_API_KEY", "etherscan_api_key"]),
        reputation_api_url=_get_str(["REPUTATION_API_URL", "reputation_api_url"]),
        reputation_api_key=_get_str(["REPUTATION_API_KEY", "reputation_api_key"]),
        backend_api_key=_get_str(["BACKEND_API_KEY", "backend_api_key"]),
        request_timeout_seconds=_get_number(["REQUEST_TIMEOUT_SECONDS", "request_timeout_seconds"], 10, int),
        request_verify_tls=_get_bool(["REQUEST_VERIFY_TLS", "request_verify_tls"], True),
        lookup_workers=max(1, _get_number(["LOOKUP_WORKERS", "lookup_workers"], 4, int)),
        high_value_ratio=_get_ratio(["HIGH_VALUE_RATIO", "high_value_ratio"], HIGH_VALUE_RATIO),
        low_reputation_threshold=_get_number(
            ["LOW_REPUTATION_THRESHOLD", "low_reputation_threshold"], LOW_REPUTATION_THRESHOLD, int
        ),
        complex_call_parameter_count=_get_number(
            ["COMPLEX_CALL_PARAMETER_COUNT", "complex_call_parameter_count"], COMPLEX_CALL_PARAMETER_COUNT, int
        ),
    )
