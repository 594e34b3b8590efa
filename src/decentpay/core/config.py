"""
DecentPay client configuration

Supports testnet, mainnet and a local standalone network. Every value can be
overridden from the environment; nothing here is a secret; signing keys never
pass through this layer.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from decentpay.core.ledger_exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class NetworkType(Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"
    LOCAL = "local"


@dataclass(frozen=True)
class NetworkConfig:
    """Static per-network constants."""

    network_type: NetworkType
    passphrase: str
    rpc_url: str


NETWORKS = {
    NetworkType.TESTNET: NetworkConfig(
        network_type=NetworkType.TESTNET,
        passphrase="Test SDF Network ; September 2015",
        rpc_url="https://soroban-testnet.stellar.org:443",
    ),
    NetworkType.MAINNET: NetworkConfig(
        network_type=NetworkType.MAINNET,
        passphrase="Public Global Stellar Network ; September 2015",
        rpc_url="https://soroban-mainnet.stellar.org:443",
    ),
    NetworkType.LOCAL: NetworkConfig(
        network_type=NetworkType.LOCAL,
        passphrase="Standalone Network ; February 2017",
        rpc_url="http://localhost:8000/soroban/rpc",
    ),
}

DEFAULT_CONTRACT_ID = "CCNFKRIZIJQWLWEMD5U6YEJ32P4IZUK6OLRHIR437FBZJ5DN6ILDFEB2"

# All-zero ed25519 account; any valid account works as the source of a
# read-only simulation.
READ_SOURCE_ACCOUNT = "GAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAWHF"

BASE_FEE = 100  # stroops
TX_TIMEOUT_SECONDS = 30
POLL_INTERVAL_SECONDS = 1.0
MAX_POLL_ATTEMPTS = 30
RPC_TIMEOUT_SECONDS = 30
RPC_MAX_RETRIES = 3
DISCOVERY_UPPER_BOUND = 50
DISCOVERY_VERIFY_WINDOW = 5
DISCOVERY_PROBE_RETRIES = 2
MAX_APPLICATIONS_PER_JOB = 50
TOKEN_DECIMALS = 7


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative, got {value}")
    return value


def get_network_config(name: Optional[str] = None) -> NetworkConfig:
    """Resolve a network by name, defaulting to ``DECENTPAY_NETWORK``."""
    name = (name or os.getenv("DECENTPAY_NETWORK", "testnet")).strip().lower()
    try:
        return NETWORKS[NetworkType(name)]
    except ValueError as exc:
        raise ConfigurationError(
            f"Unknown network {name!r}; expected one of "
            f"{', '.join(t.value for t in NetworkType)}"
        ) from exc


@dataclass(frozen=True)
class ClientSettings:
    """Settings for one contract client instance."""

    network: NetworkConfig
    rpc_url: str
    contract_id: str = DEFAULT_CONTRACT_ID
    base_fee: int = BASE_FEE
    tx_timeout: int = TX_TIMEOUT_SECONDS
    poll_interval: float = POLL_INTERVAL_SECONDS
    max_poll_attempts: int = MAX_POLL_ATTEMPTS
    rpc_timeout: int = RPC_TIMEOUT_SECONDS
    rpc_max_retries: int = RPC_MAX_RETRIES
    discovery_upper_bound: int = DISCOVERY_UPPER_BOUND
    read_source: str = READ_SOURCE_ACCOUNT

    @property
    def passphrase(self) -> str:
        return self.network.passphrase

    @classmethod
    def for_network(cls, name: str = "testnet", **overrides) -> "ClientSettings":
        network = get_network_config(name)
        overrides.setdefault("rpc_url", network.rpc_url)
        return cls(network=network, **overrides)

    @classmethod
    def from_env(cls) -> "ClientSettings":
        network = get_network_config()
        rpc_url = os.getenv("DECENTPAY_RPC_URL", "").strip() or network.rpc_url
        contract_id = os.getenv("DECENTPAY_CONTRACT_ID", "").strip() or DEFAULT_CONTRACT_ID
        if contract_id == DEFAULT_CONTRACT_ID and network.network_type is not NetworkType.TESTNET:
            logger.warning(
                "DECENTPAY_CONTRACT_ID not set, using the testnet deployment on %s",
                network.network_type.value,
                extra={"event": "config.default_contract", "network": network.network_type.value},
            )
        return cls(
            network=network,
            rpc_url=rpc_url,
            contract_id=contract_id,
            base_fee=_env_int("DECENTPAY_BASE_FEE", BASE_FEE, minimum=100),
            tx_timeout=_env_int("DECENTPAY_TX_TIMEOUT", TX_TIMEOUT_SECONDS, minimum=1),
            poll_interval=_env_float("DECENTPAY_POLL_INTERVAL", POLL_INTERVAL_SECONDS),
            max_poll_attempts=_env_int("DECENTPAY_MAX_POLL_ATTEMPTS", MAX_POLL_ATTEMPTS, minimum=1),
            rpc_timeout=_env_int("DECENTPAY_RPC_TIMEOUT", RPC_TIMEOUT_SECONDS, minimum=1),
            rpc_max_retries=_env_int("DECENTPAY_RPC_MAX_RETRIES", RPC_MAX_RETRIES),
            discovery_upper_bound=_env_int(
                "DECENTPAY_DISCOVERY_UPPER_BOUND", DISCOVERY_UPPER_BOUND, minimum=1
            ),
        )
