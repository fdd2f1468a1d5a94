"""
trust_gateway.registry — Read-only access to the ERC-8004 registries.

The gateway only ever reads: token URI, owner, metadata and reputation
feedback. ``Web3RegistryClient`` talks to a chain through web3.py;
``InMemoryRegistryClient`` backs tests and local demos.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import ContractLogicError

from trust_gateway.chains import ChainConfig
from trust_gateway.models import FeedbackSample

logger = logging.getLogger(__name__)

AGENT_WALLET_KEY = "agentWallet"


class RegistryError(Exception):
    """A registry read failed (RPC transport, decoding, ...)."""


class AgentNotRegistered(RegistryError):
    """The identity registry has no token for this agent id."""

    def __init__(self, agent_id: int):
        self.agent_id = agent_id
        super().__init__(f"Agent {agent_id} is not registered")


class RegistryClient(ABC):
    """Identity + reputation reads for one chain."""

    @abstractmethod
    async def token_uri(self, agent_id: int) -> str:
        ...

    @abstractmethod
    async def owner_of(self, agent_id: int) -> str:
        ...

    @abstractmethod
    async def get_metadata(self, agent_id: int, key: str) -> str:
        """Return the metadata value for ``key``; raises if unset or unreadable."""
        ...

    @abstractmethod
    async def read_all_feedback(self, agent_id: int) -> list[FeedbackSample]:
        ...

    async def agent_wallet(self, agent_id: int, owner: str) -> str:
        """Effective wallet: the ``agentWallet`` metadata, else the owner."""
        try:
            wallet = await self.get_metadata(agent_id, AGENT_WALLET_KEY)
        except RegistryError as e:
            logger.debug("agentWallet lookup failed for %s: %s", agent_id, e)
            return owner
        return wallet or owner

    async def aclose(self) -> None:
        """Release transport resources; clients that hold none keep this no-op."""


# ---------------------------------------------------------------------------
# web3.py implementation
# ---------------------------------------------------------------------------

IDENTITY_ABI = [
    {
        "name": "tokenURI", "type": "function", "stateMutability": "view",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [{"name": "", "type": "string"}],
    },
    {
        "name": "ownerOf", "type": "function", "stateMutability": "view",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "name": "getMetadata", "type": "function", "stateMutability": "view",
        "inputs": [
            {"name": "agentId", "type": "uint256"},
            {"name": "key", "type": "string"},
        ],
        "outputs": [{"name": "", "type": "bytes"}],
    },
]

REPUTATION_ABI = [
    {
        "name": "readAllFeedback", "type": "function", "stateMutability": "view",
        "inputs": [
            {"name": "agentId", "type": "uint256"},
            {"name": "clientAddresses", "type": "address[]"},
            {"name": "tag1", "type": "bytes32"},
            {"name": "tag2", "type": "bytes32"},
            {"name": "includeRevoked", "type": "bool"},
        ],
        "outputs": [
            {"name": "clients", "type": "address[]"},
            {"name": "scores", "type": "uint8[]"},
            {"name": "tag1s", "type": "bytes32[]"},
            {"name": "tag2s", "type": "bytes32[]"},
            {"name": "revokedStatuses", "type": "bool[]"},
        ],
    },
]

_ZERO_TAG = b"\x00" * 32


def decode_metadata(raw: bytes) -> str:
    """Metadata values are raw bytes: a 20-byte address, a padded address, or UTF-8."""
    if len(raw) == 20:
        return AsyncWeb3.to_checksum_address("0x" + raw.hex())
    if len(raw) == 32 and raw[:12] == b"\x00" * 12:
        return AsyncWeb3.to_checksum_address("0x" + raw[12:].hex())
    return raw.decode("utf-8", errors="replace").strip("\x00").strip()


class Web3RegistryClient(RegistryClient):
    """ERC-8004 reads over JSON-RPC ``eth_call``."""

    def __init__(self, chain: ChainConfig, timeout: float = 10.0, w3: Optional[AsyncWeb3] = None):
        self.chain = chain
        self._w3 = w3 or AsyncWeb3(AsyncHTTPProvider(chain.rpc_url, request_kwargs={"timeout": timeout}))
        self._identity = self._w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(chain.identity_registry), abi=IDENTITY_ABI,
        )
        self._reputation = self._w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(chain.reputation_registry), abi=REPUTATION_ABI,
        )

    async def _call(self, agent_id: int, label: str, fn):
        try:
            return await fn.call()
        except ContractLogicError as e:
            logger.info("%s reverted for agent %s on %s: %s", label, agent_id, self.chain.name, e)
            raise AgentNotRegistered(agent_id) from e
        except Exception as e:
            logger.warning("%s failed for agent %s on %s: %s", label, agent_id, self.chain.name,
                           type(e).__name__)
            raise RegistryError(f"{label} failed on {self.chain.name}") from e

    async def token_uri(self, agent_id: int) -> str:
        return await self._call(agent_id, "tokenURI", self._identity.functions.tokenURI(agent_id))

    async def owner_of(self, agent_id: int) -> str:
        return await self._call(agent_id, "ownerOf", self._identity.functions.ownerOf(agent_id))

    async def get_metadata(self, agent_id: int, key: str) -> str:
        raw = await self._call(agent_id, "getMetadata", self._identity.functions.getMetadata(agent_id, key))
        return decode_metadata(bytes(raw))

    async def read_all_feedback(self, agent_id: int) -> list[FeedbackSample]:
        fn = self._reputation.functions.readAllFeedback(agent_id, [], _ZERO_TAG, _ZERO_TAG, False)
        clients, scores, _tag1s, _tag2s, _revoked = await self._call(agent_id, "readAllFeedback", fn)
        return [FeedbackSample(score=float(s), client_address=c) for c, s in zip(clients, scores)]

    async def aclose(self) -> None:
        # the provider caches its aiohttp session until disconnected
        await self._w3.provider.disconnect()


def web3_registry_factory(timeout: float = 10.0):
    """Build a per-chain Web3RegistryClient factory for TrustService."""
    def factory(chain: ChainConfig) -> RegistryClient:
        return Web3RegistryClient(chain, timeout=timeout)
    return factory


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------

class InMemoryRegistryClient(RegistryClient):
    """In-memory registry for testing/development."""

    def __init__(self):
        self._uris: dict[int, str] = {}
        self._owners: dict[int, str] = {}
        self._metadata: dict[int, dict[str, str]] = {}
        self._feedback: dict[int, list[FeedbackSample]] = {}
        self.calls: list[str] = []

    def register(self, agent_id: int, uri: str, owner: str, **metadata: str) -> None:
        self._uris[agent_id] = uri
        self._owners[agent_id] = owner
        self._metadata[agent_id] = dict(metadata)

    def give_feedback(self, agent_id: int, score: float, client_address: str) -> None:
        self._feedback.setdefault(agent_id, []).append(FeedbackSample(score, client_address))

    def _require(self, agent_id: int) -> None:
        if agent_id not in self._uris:
            raise AgentNotRegistered(agent_id)

    async def token_uri(self, agent_id: int) -> str:
        self.calls.append("tokenURI")
        self._require(agent_id)
        return self._uris[agent_id]

    async def owner_of(self, agent_id: int) -> str:
        self.calls.append("ownerOf")
        self._require(agent_id)
        return self._owners[agent_id]

    async def get_metadata(self, agent_id: int, key: str) -> str:
        self.calls.append("getMetadata")
        self._require(agent_id)
        try:
            return self._metadata[agent_id][key]
        except KeyError:
            raise RegistryError(f"Metadata {key!r} not set for agent {agent_id}") from None

    async def read_all_feedback(self, agent_id: int) -> list[FeedbackSample]:
        self.calls.append("readAllFeedback")
        return list(self._feedback.get(agent_id, []))
