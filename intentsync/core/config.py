"""
Monitor settings loaded from the environment.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from beeprint import pp
from dotenv import load_dotenv

from intentsync.core.evm_chain_config import EvmChainConfig, get_chains_for_network
from intentsync.utils.error_utils import check_for_missing_env_vars
from intentsync.utils.log import get_default_logger

_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)

DEFAULT_NETWORK = "CORAL"
DEFAULT_POLL_INTERVAL_SECONDS = 10


@dataclass(frozen=True)
class NetworkEndpoints:
    """
    Ledger gateway and transaction search endpoints of one network.
    """

    grpc_url: str
    tx_search_url: str


NETWORKS: Dict[str, NetworkEndpoints] = {
    "CORAL": NetworkEndpoints(
        grpc_url="https://grpcproxy-testnet.arcana.network",
        tx_search_url="https://cosmos01-testnet.arcana.network:26650",
    ),
    "FOLLY": NetworkEndpoints(
        grpc_url="https://grpc-folly.arcana.network",
        tx_search_url="https://cosmos04-dev.arcana.network:26650",
    ),
    "CERISE": NetworkEndpoints(
        grpc_url="https://mimosa-dash-grpc.arcana.network",
        tx_search_url="https://cosmos01-dev.arcana.network:26650",
    ),
}


def _get_bool_env_var(var_name: str, default: bool = False) -> bool:
    """
    Worker function to get a bool environment variable.

    :param var_name: The environment variable name.
    :param default: The default value to return.
    :return: The environment variable value.
    """
    val = os.environ.get(var_name)
    if val is None or val == "":
        return default
    return val.lower() in ["true", "1", "t", "y", "yes"]


def _get_int_env_var(var_name: str, default: Optional[int] = None) -> Optional[int]:
    val = os.environ.get(var_name)
    if val is None or val == "":
        return default
    try:
        return int(val)
    except ValueError as e:
        raise EnvironmentError(f"{var_name} must be an integer, got {val!r}") from e


@dataclass
class MonitorSettings:
    """
    Everything needed to run the monitor for one network.
    """

    network: str
    database_url: str
    grpc_url: str
    tx_search_url: str
    poll_interval_seconds: int = DEFAULT_POLL_INTERVAL_SECONDS
    evm_sync_enabled: bool = True
    evm_chains: List[EvmChainConfig] = field(default_factory=list)

    @staticmethod
    def create_instance_from_env(
        dotenv_path: Union[str, None] = ".env"
    ) -> "MonitorSettings":
        """
        Build settings from environment variables, loading a .env file first if present.

        :param dotenv_path: Path to the .env file.
        :return: The settings.
        """
        if dotenv_path and os.path.exists(dotenv_path):
            load_dotenv(dotenv_path, verbose=True, override=True)

        network = (os.getenv("NETWORK") or DEFAULT_NETWORK).upper()
        if network not in NETWORKS:
            raise EnvironmentError(
                f"Unknown NETWORK {network!r}; expected one of {', '.join(NETWORKS)}"
            )
        endpoints = NETWORKS[network]

        init_args = {
            "DATABASE_URL": os.getenv("DATABASE_URL"),
        }
        # Missing settings are unrecoverable.
        check_for_missing_env_vars(init_args)

        settings = MonitorSettings(
            network=network,
            database_url=init_args["DATABASE_URL"],
            grpc_url=os.getenv("LEDGER_GRPC_URL") or endpoints.grpc_url,
            tx_search_url=os.getenv("TX_SEARCH_URL") or endpoints.tx_search_url,
            poll_interval_seconds=_get_int_env_var(
                "POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS
            ),
            evm_sync_enabled=_get_bool_env_var("EVM_SYNC_ENABLED", True),
            evm_chains=[
                MonitorSettings._chain_from_env(chain)
                for chain in get_chains_for_network(network)
            ],
        )
        if settings.poll_interval_seconds <= 0:
            raise EnvironmentError("POLL_INTERVAL_SECONDS must be positive")
        _LOG.debug(
            "MonitorSettings.create_instance_from_env(): network = %s, chains =\n%s",
            network,
            pp([c.name for c in settings.evm_chains], output=False),
        )
        return settings

    @staticmethod
    def _chain_from_env(chain: EvmChainConfig) -> EvmChainConfig:
        batch_size = _get_int_env_var(f"{chain.env_prefix}_BATCH_SIZE")
        if batch_size is not None and batch_size <= 0:
            raise EnvironmentError(f"{chain.env_prefix}_BATCH_SIZE must be positive")
        return chain.with_overrides(
            rpc_url=os.getenv(f"{chain.env_prefix}_RPC_URL"),
            batch_size=batch_size,
            deployment_block=_get_int_env_var(f"{chain.env_prefix}_DEPLOYMENT_BLOCK"),
        )
