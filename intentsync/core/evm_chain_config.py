"""
Settlement contract deployments per monitored network.
"""

import dataclasses
from dataclasses import dataclass
from typing import Dict, List, Optional

CORAL_CONTRACT_ADDRESS = "0xbada557252d286e45a1ad73f32479062d4e2e86b"
FOLLY_CONTRACT_ADDRESS = "0xf0111ede031a4377c34a4ad900f1e633e41055dc"


@dataclass(frozen=True)
class EvmChainConfig:
    """
    One settlement contract deployment.
    `env_prefix` names the <PREFIX>_RPC_URL / _BATCH_SIZE / _DEPLOYMENT_BLOCK overrides.
    """

    chain_id: int
    name: str
    rpc_url: str
    contract_address: str
    deployment_block: int
    batch_size: int
    env_prefix: str

    def with_overrides(
        self,
        rpc_url: Optional[str] = None,
        batch_size: Optional[int] = None,
        deployment_block: Optional[int] = None,
    ) -> "EvmChainConfig":
        changes = {}
        if rpc_url:
            changes["rpc_url"] = rpc_url
        if batch_size is not None:
            changes["batch_size"] = batch_size
        if deployment_block is not None:
            changes["deployment_block"] = deployment_block
        return dataclasses.replace(self, **changes)


def _coral(chain_id, name, rpc_url, deployment_block, batch_size, env_prefix, address=None):
    return EvmChainConfig(
        chain_id=chain_id,
        name=name,
        rpc_url=rpc_url,
        contract_address=address or CORAL_CONTRACT_ADDRESS,
        deployment_block=deployment_block,
        batch_size=batch_size,
        env_prefix=env_prefix,
    )


def _folly(chain_id, name, rpc_url, deployment_block, batch_size, env_prefix):
    return EvmChainConfig(
        chain_id=chain_id,
        name=name,
        rpc_url=rpc_url,
        contract_address=FOLLY_CONTRACT_ADDRESS,
        deployment_block=deployment_block,
        batch_size=batch_size,
        env_prefix=env_prefix,
    )


CHAIN_CONFIGS: Dict[str, List[EvmChainConfig]] = {
    "CORAL": [
        _coral(1, "Ethereum", "https://eth.merkle.io", 22638037, 1000, "ETH"),
        _coral(10, "Optimism", "https://mainnet.optimism.io", 136761101, 2000, "OP"),
        _coral(137, "Polygon", "https://polygon.drpc.org", 72390505, 1000, "POLYGON"),
        _coral(42161, "Arbitrum", "https://arb1.arbitrum.io/rpc", 344140700, 2000, "ARB"),
        _coral(
            43114,
            "Avalanche",
            "https://api.avax.network/ext/bc/C/rpc",
            63342869,
            1000,
            "AVAX",
        ),
        _coral(8453, "Base", "https://mainnet.base.org", 31165948, 2000, "BASE"),
        _coral(534352, "Scroll", "https://rpc.scroll.io", 16240320, 1000, "SCROLL"),
        _coral(8217, "Kaia", "https://public-en.node.kaia.io", 187763965, 1000, "KAIA"),
        _coral(56, "BNB Chain", "https://bsc-dataseed.binance.org", 54212157, 2000, "BNB"),
        _coral(
            999, "HyperEVM", "https://rpc.hyperliquid.xyz/evm", 5046389, 500, "HYPEREVM"
        ),
        _coral(
            50104,
            "Sophon",
            "https://rpc.sophon.xyz",
            14035974,
            1000,
            "SOPHON",
            address="0xB61fAdeBccCb15823b64bf47829d32eeb4A08930",
        ),
    ],
    "FOLLY": [
        _folly(11155111, "Sepolia", "https://rpc.sepolia.org", 8693649, 10000, "SEPOLIA"),
        _folly(
            11155420,
            "Optimism Sepolia",
            "https://sepolia.optimism.io",
            29173735,
            10000,
            "OP_SEPOLIA",
        ),
        _folly(
            80002,
            "Polygon Amoy",
            "https://rpc-amoy.polygon.technology",
            22952669,
            2000,
            "POLYGON_AMOY",
        ),
        _folly(
            421614,
            "Arbitrum Sepolia",
            "https://sepolia-rollup.arbitrum.io/rpc",
            164399754,
            10000,
            "ARB_SEPOLIA",
        ),
        _folly(
            84532,
            "Base Sepolia",
            "https://sepolia.base.org",
            27190885,
            10000,
            "BASE_SEPOLIA",
        ),
        _folly(
            10143,
            "Monad Testnet",
            "https://testnet.monad.xyz/rpc",
            33387114,
            1000,
            "MONAD_TESTNET",
        ),
    ],
    "CERISE": [],
}


def get_chains_for_network(network: str) -> List[EvmChainConfig]:
    """
    :param network: Network name (CORAL, FOLLY or CERISE).
    :return: The built-in chain configurations; empty for unknown networks.
    """
    return list(CHAIN_CONFIGS.get(network.upper(), []))


def get_chain_config(network: str, chain_id: int) -> Optional[EvmChainConfig]:
    for config in get_chains_for_network(network):
        if config.chain_id == chain_id:
            return config
    return None
