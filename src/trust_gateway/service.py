"""
trust_gateway.service — Profile, score and validate operations.

One TrustService instance is shared by the REST handlers, the A2A executor
and the CLI. Each call selects a chain, builds a registry client for it,
resolves the registration file and returns a JSON-ready dict. Resolution
and registry failures surface as NotFoundError / UpstreamError with
generic messages; raw upstream errors only reach the logs.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

import httpx

from trust_gateway.chains import ChainConfig, ChainTable
from trust_gateway.config import GatewayConfig
from trust_gateway.errors import NotFoundError, UpstreamError
from trust_gateway.models import FeedbackSample, RegistrationFile
from trust_gateway.registry import AgentNotRegistered, RegistryClient, RegistryError, web3_registry_factory
from trust_gateway.resolver import FailureKind, RegistrationResolver, ResolutionError
from trust_gateway.scoring import compute_trust_score, summarize_feedback
from trust_gateway.validation import ValidationPipeline

logger = logging.getLogger(__name__)

RegistryFactory = Callable[[ChainConfig], RegistryClient]

FEEDBACK_UNAVAILABLE_WARNING = "Reputation registry unavailable; score computed without feedback"


def _as_gateway_error(exc: Exception, agent_id: int, chain: str) -> Exception:
    if isinstance(exc, ResolutionError):
        logger.info("Resolution failed", extra={
            "agent_id": str(agent_id), "chain": chain, "kind": exc.kind.value, "status": exc.status,
        })
        if exc.kind is FailureKind.NOT_FOUND:
            return NotFoundError()
        return UpstreamError()
    if isinstance(exc, AgentNotRegistered):
        return NotFoundError()
    logger.warning("Registry read failed for agent %s on %s: %s", agent_id, chain, exc)
    return UpstreamError()


class TrustService:
    def __init__(
        self,
        config: GatewayConfig,
        http_client: httpx.AsyncClient,
        chains: Optional[ChainTable] = None,
        registry_factory: Optional[RegistryFactory] = None,
        resolver: Optional[RegistrationResolver] = None,
    ):
        self.config = config
        self.chains = chains or ChainTable.from_config(config)
        self.registry_factory = registry_factory or web3_registry_factory(config.fetch_timeout)
        self.resolver = resolver or RegistrationResolver(
            http_client, gateways=config.ipfs_gateways, timeout=config.fetch_timeout,
        )
        self.pipeline = ValidationPipeline(http_client, probe_timeout=config.probe_timeout)
        self._registries: dict[str, RegistryClient] = {}

    def registry_for(self, chain: ChainConfig) -> RegistryClient:
        """One registry client per chain, reused for the life of the service."""
        registry = self._registries.get(chain.name)
        if registry is None:
            registry = self._registries[chain.name] = self.registry_factory(chain)
        return registry

    async def aclose(self) -> None:
        """Close every registry client this service has built."""
        registries, self._registries = list(self._registries.values()), {}
        for registry in registries:
            await registry.aclose()

    async def _load(self, agent_id: int, selector: Optional[str]) -> tuple[ChainConfig, RegistryClient, RegistrationFile, str]:
        chain = self.chains.resolve(selector)
        registry = self.registry_for(chain)
        try:
            registration = await self.resolver.resolve(registry, agent_id)
            owner = await registry.owner_of(agent_id)
        except (ResolutionError, RegistryError) as e:
            raise _as_gateway_error(e, agent_id, chain.name) from e
        return chain, registry, registration, owner

    async def get_profile(self, agent_id: int, chain: Optional[str] = None) -> dict:
        """Identity profile: registration file plus owner and effective wallet."""
        chain_cfg, registry, registration, owner = await self._load(agent_id, chain)
        wallet = await registry.agent_wallet(agent_id, owner)
        return {
            "agentId": str(agent_id),
            "chain": chain_cfg.name,
            "owner": owner,
            "wallet": wallet,
            "name": registration.name,
            "description": registration.description,
            "image": registration.image,
            "endpoints": [e.model_dump(exclude_none=True) for e in registration.endpoints],
            "supportedTrust": list(registration.supportedTrust),
            "active": registration.active,
            "registrations": [r.model_dump() for r in registration.registrations],
        }

    async def get_score(self, agent_id: int, chain: Optional[str] = None) -> dict:
        chain_cfg, registry, registration, _owner = await self._load(agent_id, chain)
        warnings = []
        try:
            feedback: list[FeedbackSample] = await registry.read_all_feedback(agent_id)
        except RegistryError as e:
            logger.warning("Feedback read failed for agent %s on %s: %s", agent_id, chain_cfg.name, e)
            feedback = []
            warnings.append(FEEDBACK_UNAVAILABLE_WARNING)

        result = compute_trust_score(registration, feedback)
        return {
            "agentId": str(agent_id),
            "chain": chain_cfg.name,
            "trustScore": result.score,
            "verdict": result.verdict.value,
            "breakdown": result.breakdown.to_dict(),
            "feedbackSummary": summarize_feedback(feedback),
            "agentName": registration.name,
            "warnings": warnings,
        }

    async def validate(self, agent_id: int, chain: Optional[str] = None,
                       checks: Optional[Iterable[str]] = None) -> dict:
        chain_cfg, registry, registration, owner = await self._load(agent_id, chain)
        report = await self.pipeline.run(registry, agent_id, registration, owner, checks)
        return {
            "agentId": str(agent_id),
            "chain": chain_cfg.name,
            "agentName": registration.name,
            **report.to_dict(),
        }
