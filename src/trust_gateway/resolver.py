"""
trust_gateway.resolver — Resolve an agent's token URI to its registration file.

Registries store only a pointer. The document may be inlined as a
``data:`` URI, hosted at a plain URL, or content-addressed on IPFS, where
it can be unevenly replicated across public gateways. Candidates are tried
strictly in order, each once:

    RESOLVED        2xx with a valid document   -> stop, return it
    SKIP_NOT_FOUND  404 (not propagated yet)    -> record 404, next
    SKIP_FAILED     transport error / other     -> record status, next

When every candidate is exhausted the *last* recorded status decides the
failure class: 404 -> NOT_FOUND, anything else -> UPSTREAM.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

import httpx
from pydantic import ValidationError

from trust_gateway.config import DEFAULT_IPFS_GATEWAYS
from trust_gateway.models import RegistrationFile
from trust_gateway.registry import AgentNotRegistered, RegistryClient, RegistryError

logger = logging.getLogger(__name__)

_DATA_URI_RE = re.compile(r"^data:application/json(?:;charset=[\w-]+)?;base64,(.+)$", re.IGNORECASE | re.DOTALL)

STATUS_UPSTREAM_UNAVAILABLE = 502


class FailureKind(Enum):
    NOT_FOUND = "not_found"
    UPSTREAM = "upstream"


class ResolutionError(Exception):
    """Registration file could not be resolved."""

    def __init__(self, kind: FailureKind, status: int, message: str = "",
                 attempts: Sequence["Attempt"] = ()):
        self.kind = kind
        self.status = status
        self.attempts = list(attempts)
        super().__init__(message or f"Registration file unresolved ({kind.value}, status {status})")

    @property
    def http_status(self) -> int:
        return 404 if self.kind is FailureKind.NOT_FOUND else 502


class AttemptOutcome(Enum):
    RESOLVED = "resolved"
    SKIP_NOT_FOUND = "skip_not_found"
    SKIP_FAILED = "skip_failed"


@dataclass
class Attempt:
    url: str
    outcome: AttemptOutcome
    status: Optional[int] = None
    detail: str = ""
    document: Optional[RegistrationFile] = field(default=None, repr=False)


# ---------------------------------------------------------------------------
# URI handling
# ---------------------------------------------------------------------------

def parse_data_uri(uri: str) -> Optional[dict]:
    """Decode an inline ``data:application/json;base64,`` document.

    Returns None when ``uri`` is not an inline document at all; raises
    ResolutionError(NOT_FOUND) when it is one but cannot be decoded.
    """
    match = _DATA_URI_RE.match(uri.strip())
    if not match:
        return None
    try:
        decoded = base64.b64decode(match.group(1), validate=False).decode("utf-8")
        data = json.loads(decoded)
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise ResolutionError(FailureKind.NOT_FOUND, 404, "Inline registration file is malformed") from e
    if not isinstance(data, dict):
        raise ResolutionError(FailureKind.NOT_FOUND, 404, "Inline registration file is not an object")
    return data


def ipfs_path(uri: str) -> Optional[str]:
    """``ipfs://<cid>[/path]`` (or ``ipfs://ipfs/<cid>``) -> ``<cid>[/path]``."""
    if not uri.lower().startswith("ipfs://"):
        return None
    path = uri[len("ipfs://"):]
    if path.startswith("ipfs/"):
        path = path[len("ipfs/"):]
    return path.lstrip("/") or None


def candidate_urls(uri: str, gateways: Sequence[str] = DEFAULT_IPFS_GATEWAYS) -> list[str]:
    """Ordered fetch candidates for a non-inline URI."""
    path = ipfs_path(uri)
    if path is None:
        return [uri]
    return [g.rstrip("/") + "/" + path for g in gateways]


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

class RegistrationResolver:
    """Turns an on-chain token URI into a complete RegistrationFile."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        gateways: Sequence[str] = DEFAULT_IPFS_GATEWAYS,
        timeout: float = 10.0,
    ):
        self._http = http_client
        self._gateways = tuple(gateways)
        self._timeout = timeout

    async def resolve(self, registry: RegistryClient, agent_id: int) -> RegistrationFile:
        try:
            uri = await registry.token_uri(agent_id)
        except AgentNotRegistered as e:
            raise ResolutionError(FailureKind.NOT_FOUND, 404, str(e)) from e
        except RegistryError as e:
            raise ResolutionError(FailureKind.UPSTREAM, STATUS_UPSTREAM_UNAVAILABLE, str(e)) from e
        return await self.resolve_uri(uri)

    async def resolve_uri(self, uri: str) -> RegistrationFile:
        if not uri or not uri.strip():
            raise ResolutionError(FailureKind.NOT_FOUND, 404, "Agent has no registration URI")

        inline = parse_data_uri(uri)
        if inline is not None:
            try:
                return RegistrationFile.model_validate(inline)
            except ValidationError as e:
                raise ResolutionError(FailureKind.NOT_FOUND, 404, "Inline registration file is invalid") from e

        attempts: list[Attempt] = []
        for url in candidate_urls(uri.strip(), self._gateways):
            attempt = await self._attempt(url)
            attempts.append(attempt)
            if attempt.outcome is AttemptOutcome.RESOLVED:
                return attempt.document
            logger.info("Registration candidate skipped", extra={
                "url": url, "outcome": attempt.outcome.value, "status": attempt.status,
            })

        last = attempts[-1]
        kind = FailureKind.NOT_FOUND if last.status == 404 else FailureKind.UPSTREAM
        raise ResolutionError(kind, last.status or STATUS_UPSTREAM_UNAVAILABLE,
                              f"No candidate resolved ({len(attempts)} tried)", attempts)

    async def _attempt(self, url: str) -> Attempt:
        try:
            resp = await self._http.get(url, timeout=self._timeout, follow_redirects=True)
        except httpx.HTTPError as e:
            return Attempt(url, AttemptOutcome.SKIP_FAILED, STATUS_UPSTREAM_UNAVAILABLE, type(e).__name__)

        if resp.status_code == 404:
            return Attempt(url, AttemptOutcome.SKIP_NOT_FOUND, 404)
        if not resp.is_success:
            return Attempt(url, AttemptOutcome.SKIP_FAILED, resp.status_code, f"HTTP {resp.status_code}")

        try:
            document = RegistrationFile.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            return Attempt(url, AttemptOutcome.SKIP_FAILED, STATUS_UPSTREAM_UNAVAILABLE,
                           f"invalid document: {type(e).__name__}")
        return Attempt(url, AttemptOutcome.RESOLVED, resp.status_code, document=document)
