"""
trust_gateway.config — Process configuration, loaded once at startup.

Every component receives the config explicitly; nothing reads the
environment after ``GatewayConfig.from_env()`` returns.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

DEFAULT_IPFS_GATEWAYS = (
    "https://ipfs.io/ipfs/",
    "https://dweb.link/ipfs/",
    "https://gateway.pinata.cloud/ipfs/",
    "https://w3s.link/ipfs/",
)

_TRUTHY = {"1", "true", "yes", "on"}


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUTHY


def _csv(value: Optional[str]) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(v.strip() for v in value.split(",") if v.strip())


@dataclass(frozen=True)
class GatewayConfig:
    """Immutable gateway settings."""
    wallet_address: str = ""
    network: str = "eip155:84532"
    facilitator_url: str = "https://x402.org/facilitator"
    agent_name: str = "Agent Trust Gateway"
    agent_description: str = (
        "Paid trust evaluation for ERC-8004 agents: identity profiles, "
        "reputation-based trust scores and deep validation."
    )
    agent_url: str = "http://localhost:3000"
    agent_version: str = "0.1.0"
    port: int = 3000
    bypass_payments: bool = False
    default_chain: str = "base"
    rpc_urls: Mapping[str, str] = field(default_factory=dict)
    ipfs_gateways: tuple[str, ...] = DEFAULT_IPFS_GATEWAYS
    probe_timeout: float = 5.0
    fetch_timeout: float = 10.0
    allowed_origins: tuple[str, ...] = ()
    log_level: str = "INFO"

    @property
    def public_base_url(self) -> str:
        return self.agent_url.rstrip("/")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GatewayConfig":
        env = os.environ if environ is None else environ
        rpc_urls = {
            chain: env[var]
            for chain, var in (
                ("base", "BASE_RPC_URL"),
                ("base-sepolia", "BASE_SEPOLIA_RPC_URL"),
                ("ethereum", "ETH_RPC_URL"),
                ("sepolia", "SEPOLIA_RPC_URL"),
            )
            if env.get(var)
        }
        defaults = cls()
        return cls(
            wallet_address=env.get("WALLET_ADDRESS", defaults.wallet_address),
            network=env.get("NETWORK", defaults.network),
            facilitator_url=env.get("FACILITATOR_URL", defaults.facilitator_url),
            agent_name=env.get("AGENT_NAME", defaults.agent_name),
            agent_description=env.get("AGENT_DESCRIPTION", defaults.agent_description),
            agent_url=env.get("AGENT_URL", defaults.agent_url),
            port=int(env.get("PORT", defaults.port)),
            bypass_payments=_flag(env.get("BYPASS_PAYMENTS")),
            default_chain=env.get("DEFAULT_CHAIN", defaults.default_chain),
            rpc_urls=rpc_urls,
            ipfs_gateways=_csv(env.get("IPFS_GATEWAYS")) or defaults.ipfs_gateways,
            probe_timeout=float(env.get("PROBE_TIMEOUT_SECONDS", defaults.probe_timeout)),
            fetch_timeout=float(env.get("FETCH_TIMEOUT_SECONDS", defaults.fetch_timeout)),
            allowed_origins=_csv(env.get("ALLOWED_ORIGINS")),
            log_level=env.get("LOG_LEVEL", defaults.log_level),
        )
