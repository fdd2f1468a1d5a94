"""
trust_gateway.validation — Multi-check agent validation.

Checks: endpoint reachability (HEAD probes with a per-probe deadline),
wallet address format / ownership, and classification of the agent's
self-declared trust methods. The report stays ``pending`` until every
requested check has finished; ``finalize()`` is the only place the verdict
is assigned.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

import httpx

from trust_gateway.models import RegistrationEndpoint, RegistrationFile
from trust_gateway.registry import RegistryClient, RegistryError
from trust_gateway.scoring import round_half_up

logger = logging.getLogger(__name__)

WALLET_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
DEFAULT_CHECKS = ("endpoints", "wallet")


class Check(str, Enum):
    ENDPOINTS = "endpoints"
    WALLET = "wallet"
    ATTESTATIONS = "attestations"


class EndpointState(str, Enum):
    REACHABLE = "reachable"
    UNREACHABLE = "unreachable"
    ERROR = "error"


class TrustMethod(str, Enum):
    REPUTATION = "reputation"
    TEE_ATTESTATION = "tee-attestation"
    CRYPTO_ECONOMIC = "crypto-economic"
    UNKNOWN = "unknown"

    @classmethod
    def classify(cls, name: str) -> "TrustMethod":
        try:
            method = cls(name)
        except ValueError:
            return cls.UNKNOWN
        return method


class ValidationVerdict(str, Enum):
    PENDING = "pending"
    VALIDATED = "validated"
    VALIDATED_WITH_WARNINGS = "validated-with-warnings"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class EndpointStatus:
    name: str
    endpoint: str
    status: EndpointState
    latency_ms: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        d = {"name": self.name, "endpoint": self.endpoint, "status": self.status.value}
        if self.latency_ms is not None:
            d["latencyMs"] = self.latency_ms
        if self.error is not None:
            d["error"] = self.error
        return d


@dataclass
class WalletStatus:
    address: str
    valid: bool
    is_owner: bool

    def to_dict(self) -> dict:
        return {"address": self.address, "valid": self.valid, "isOwner": self.is_owner}


@dataclass
class AttestationStatus:
    type: str
    status: str
    details: Optional[str] = None

    def to_dict(self) -> dict:
        d = {"type": self.type, "status": self.status}
        if self.details is not None:
            d["details"] = self.details
        return d


@dataclass
class ValidationReport:
    checks: tuple[Check, ...]
    endpoint_status: Optional[list[EndpointStatus]] = None
    wallet_status: Optional[WalletStatus] = None
    attestations: Optional[list[AttestationStatus]] = None
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    overall_verdict: ValidationVerdict = ValidationVerdict.PENDING

    def finalize(self) -> ValidationVerdict:
        """Assign the overall verdict. Unrequested checks are neutral."""
        endpoints = self.endpoint_status or []
        reachable = sum(1 for e in endpoints if e.status is EndpointState.REACHABLE)
        all_reachable = reachable == len(endpoints)
        wallet_requested = self.wallet_status is not None
        wallet_valid = wallet_requested and self.wallet_status.valid

        if not self.issues:
            verdict = ValidationVerdict.VALIDATED
        elif all_reachable and (wallet_valid or not wallet_requested):
            verdict = ValidationVerdict.VALIDATED_WITH_WARNINGS
        elif reachable > 0 or wallet_valid:
            verdict = ValidationVerdict.PARTIAL
        else:
            verdict = ValidationVerdict.FAILED
        self.overall_verdict = verdict
        return verdict

    def to_dict(self) -> dict:
        if self.overall_verdict is ValidationVerdict.PENDING:
            raise RuntimeError("ValidationReport serialized before finalize()")
        d: dict = {"checks": [c.value for c in self.checks]}
        # unrequested checks are left out entirely
        if self.endpoint_status is not None:
            d["endpointStatus"] = [e.to_dict() for e in self.endpoint_status]
        if self.wallet_status is not None:
            d["walletStatus"] = self.wallet_status.to_dict()
        if self.attestations is not None:
            d["attestations"] = [a.to_dict() for a in self.attestations]
        d["issues"] = list(self.issues)
        d["warnings"] = list(self.warnings)
        d["overallVerdict"] = self.overall_verdict.value
        return d


# ---------------------------------------------------------------------------
# Endpoint probes
# ---------------------------------------------------------------------------

async def probe_endpoint(
    client: httpx.AsyncClient, endpoint: RegistrationEndpoint, timeout: float = 5.0,
) -> EndpointStatus:
    """HEAD ``endpoint`` within ``timeout`` seconds.

    ``asyncio.wait_for`` cancels the request on timeout, which closes the
    underlying stream; ``client.head`` reads no body, so nothing is left open
    on success either.
    """
    t0 = time.monotonic()
    try:
        resp = await asyncio.wait_for(client.head(endpoint.endpoint, follow_redirects=True), timeout)
    except asyncio.TimeoutError:
        return EndpointStatus(endpoint.name, endpoint.endpoint, EndpointState.UNREACHABLE,
                              error=f"Timed out after {timeout:g}s")
    except httpx.TransportError:
        return EndpointStatus(endpoint.name, endpoint.endpoint, EndpointState.UNREACHABLE,
                              error="Connection failed")
    except Exception as e:
        logger.debug("Probe of %s raised %r", endpoint.endpoint, e)
        return EndpointStatus(endpoint.name, endpoint.endpoint, EndpointState.ERROR,
                              error=type(e).__name__)

    if resp.is_success:
        latency = int((time.monotonic() - t0) * 1000)
        return EndpointStatus(endpoint.name, endpoint.endpoint, EndpointState.REACHABLE, latency_ms=latency)
    return EndpointStatus(endpoint.name, endpoint.endpoint, EndpointState.UNREACHABLE,
                          error=f"HTTP {resp.status_code}")


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def normalize_checks(checks: Optional[Iterable[str]]) -> tuple[Check, ...]:
    requested = DEFAULT_CHECKS if checks is None else checks
    seen: list[Check] = []
    for name in requested:
        check = Check(name)
        if check not in seen:
            seen.append(check)
    return tuple(seen)


class ValidationPipeline:
    """Runs the requested checks for one agent and returns a final report."""

    def __init__(self, http_client: httpx.AsyncClient, probe_timeout: float = 5.0):
        self._http = http_client
        self._probe_timeout = probe_timeout

    async def run(
        self,
        registry: RegistryClient,
        agent_id: int,
        registration: RegistrationFile,
        owner: str,
        checks: Optional[Iterable[str]] = None,
    ) -> ValidationReport:
        report = ValidationReport(checks=normalize_checks(checks))

        if Check.ENDPOINTS in report.checks:
            await self._check_endpoints(report, registration)
        if Check.WALLET in report.checks:
            await self._check_wallet(report, registry, agent_id, owner)
        if Check.ATTESTATIONS in report.checks:
            await self._check_attestations(report, registry, agent_id, registration)

        report.finalize()
        return report

    async def _check_endpoints(self, report: ValidationReport, registration: RegistrationFile) -> None:
        results = await asyncio.gather(*(
            probe_endpoint(self._http, ep, self._probe_timeout) for ep in registration.endpoints
        ))
        report.endpoint_status = list(results)
        for status in results:
            if status.status is EndpointState.UNREACHABLE:
                report.issues.append(f"Endpoint {status.name} is unreachable")
            elif status.status is EndpointState.ERROR:
                report.issues.append(f"Endpoint {status.name} probe failed")

    async def _check_wallet(self, report: ValidationReport, registry: RegistryClient,
                            agent_id: int, owner: str) -> None:
        wallet = await registry.agent_wallet(agent_id, owner)
        valid = bool(WALLET_RE.match(wallet or ""))
        report.wallet_status = WalletStatus(
            address=wallet,
            valid=valid,
            is_owner=(wallet or "").lower() == (owner or "").lower(),
        )
        if not valid:
            report.issues.append("Invalid wallet address format")

    async def _check_attestations(self, report: ValidationReport, registry: RegistryClient,
                                  agent_id: int, registration: RegistrationFile) -> None:
        report.attestations = []
        for declared in registration.supportedTrust:
            method = TrustMethod.classify(declared)
            if method is TrustMethod.REPUTATION:
                report.attestations.append(await self._reputation_attestation(report, registry, agent_id))
            elif method is TrustMethod.TEE_ATTESTATION:
                report.attestations.append(AttestationStatus(
                    declared, "declared", "TEE attestation verification not yet implemented"))
            elif method is TrustMethod.CRYPTO_ECONOMIC:
                report.attestations.append(AttestationStatus(
                    declared, "declared", "Crypto-economic validation not yet implemented"))
            else:
                report.attestations.append(AttestationStatus(declared, "unknown"))

    async def _reputation_attestation(self, report: ValidationReport, registry: RegistryClient,
                                      agent_id: int) -> AttestationStatus:
        try:
            feedback = await registry.read_all_feedback(agent_id)
        except RegistryError as e:
            logger.warning("Feedback read failed during validation of %s: %s", agent_id, e)
            report.warnings.append("Reputation registry unavailable; reputation attestation unverified")
            return AttestationStatus(TrustMethod.REPUTATION.value, "unavailable",
                                     "Feedback could not be read")
        count = len(feedback)
        average = sum(f.score for f in feedback) / count if count else 0
        return AttestationStatus(
            TrustMethod.REPUTATION.value,
            "active" if count > 0 else "no-feedback",
            f"{count} feedbacks, avg score: {round_half_up(average)}",
        )
