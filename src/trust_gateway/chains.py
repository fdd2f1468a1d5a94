"""
trust_gateway.chains — Chain selectors and ERC-8004 registry address tables.

Unknown selectors resolve to the configured default chain instead of failing.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from trust_gateway.config import GatewayConfig

# ERC-8004 registries are deployed at the same address on every mainnet / testnet
IDENTITY_REGISTRY_MAINNET = "0x8004A169FB4a3325136EB29fA0ceB6D2e539a432"
REPUTATION_REGISTRY_MAINNET = "0x8004BAa17C55a88189AE136b182e5fdA19dE9b63"
IDENTITY_REGISTRY_TESTNET = "0x8004A818BFB912233c491871b3d84c89A494BD9e"
REPUTATION_REGISTRY_TESTNET = "0x8004B663056A597Dffe9eCcC1965A193B7388713"


class Chain(str, Enum):
    BASE = "base"
    BASE_SEPOLIA = "base-sepolia"
    ETHEREUM = "ethereum"
    SEPOLIA = "sepolia"


@dataclass(frozen=True)
class ChainConfig:
    name: str
    chain_id: int
    rpc_url: str
    identity_registry: str
    reputation_registry: str


_BUILTIN = {
    Chain.BASE: ChainConfig(
        "base", 8453, "https://mainnet.base.org",
        IDENTITY_REGISTRY_MAINNET, REPUTATION_REGISTRY_MAINNET,
    ),
    Chain.BASE_SEPOLIA: ChainConfig(
        "base-sepolia", 84532, "https://sepolia.base.org",
        IDENTITY_REGISTRY_TESTNET, REPUTATION_REGISTRY_TESTNET,
    ),
    Chain.ETHEREUM: ChainConfig(
        "ethereum", 1, "https://eth.llamarpc.com",
        IDENTITY_REGISTRY_MAINNET, REPUTATION_REGISTRY_MAINNET,
    ),
    Chain.SEPOLIA: ChainConfig(
        "sepolia", 11155111, "https://rpc.sepolia.org",
        IDENTITY_REGISTRY_TESTNET, REPUTATION_REGISTRY_TESTNET,
    ),
}


class ChainTable:
    """Read-only selector -> ChainConfig mapping with a default fallback."""

    def __init__(self, chains: Mapping[str, ChainConfig], default: str):
        if default not in chains:
            raise ValueError(f"Default chain {default!r} is not configured")
        self._chains = MappingProxyType(dict(chains))
        self._default = default

    @classmethod
    def from_config(cls, config: GatewayConfig) -> "ChainTable":
        chains = {}
        for chain, builtin in _BUILTIN.items():
            rpc = config.rpc_urls.get(chain.value, builtin.rpc_url)
            chains[chain.value] = ChainConfig(
                builtin.name, builtin.chain_id, rpc,
                builtin.identity_registry, builtin.reputation_registry,
            )
        default = config.default_chain if config.default_chain in chains else Chain.BASE.value
        return cls(chains, default)

    @property
    def default(self) -> str:
        return self._default

    @property
    def names(self) -> list[str]:
        return list(self._chains)

    def resolve(self, selector: Optional[str]) -> ChainConfig:
        """Return the config for ``selector``, or the default chain's."""
        if selector and selector in self._chains:
            return self._chains[selector]
        return self._chains[self._default]
