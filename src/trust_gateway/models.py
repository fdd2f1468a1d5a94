"""
trust_gateway.models — Wire and domain models.

AgentId handling is strict: ``"42"`` and ``42`` are accepted, ``"0x2a"``,
``"-1"``, ``"4.2"``, ``True`` and friends are rejected rather than coerced.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from trust_gateway.errors import InputValidationError

_AGENT_ID_RE = re.compile(r"^\d+$")
MAX_AGENT_ID = 2**256 - 1


def _check_agent_id(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("agentId must be a decimal token id")
    if isinstance(value, int):
        agent_id = value
    elif isinstance(value, str) and _AGENT_ID_RE.match(value):
        agent_id = int(value)
    else:
        raise ValueError("agentId must match ^\\d+$")
    if agent_id < 0 or agent_id > MAX_AGENT_ID:
        raise ValueError("agentId is out of range")
    return agent_id


def parse_agent_id(value: Any, field: str = "agentId") -> int:
    """Parse an AgentId or raise InputValidationError with field detail."""
    try:
        return _check_agent_id(value)
    except ValueError as e:
        raise InputValidationError(
            details=[{"field": field, "message": str(e)}],
            error="Invalid agent id",
        ) from e


def field_errors(exc: ValidationError) -> list[dict]:
    """Flatten a pydantic ValidationError into JSON-safe field errors."""
    out = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "body"
        msg = err.get("msg", "invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        out.append({"field": loc, "message": msg})
    return out


# ---------------------------------------------------------------------------
# Registration file (ERC-8004)
# ---------------------------------------------------------------------------

class RegistrationEndpoint(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    endpoint: str
    version: Optional[str] = None


class RegistrationEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    agentId: Optional[int] = None
    agentRegistry: str = ""


class RegistrationFile(BaseModel):
    """Document referenced by an agent's on-chain token URI."""
    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    name: str
    description: str = ""
    image: Optional[str] = None
    endpoints: list[RegistrationEndpoint] = []
    supportedTrust: list[str] = []
    active: bool = True
    registrations: list[RegistrationEntry] = []
    x402Support: Optional[bool] = None

    @field_validator("endpoints", "supportedTrust", "registrations", mode="before")
    @classmethod
    def null_as_empty(cls, v):
        return [] if v is None else v

    @field_validator("description", mode="before")
    @classmethod
    def null_as_blank(cls, v):
        return "" if v is None else v

    @field_validator("active", mode="before")
    @classmethod
    def null_as_active(cls, v):
        return True if v is None else v


@dataclass(frozen=True)
class FeedbackSample:
    """One reputation score submitted by a client for an agent."""
    score: float
    client_address: str


# ---------------------------------------------------------------------------
# Invoke envelopes
# ---------------------------------------------------------------------------

CHECK_NAMES = ("endpoints", "wallet", "attestations")


class ProfileInput(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    agent_id: int = Field(alias="agentId")
    chain: Optional[str] = None

    @field_validator("agent_id", mode="before")
    @classmethod
    def strict_agent_id(cls, v):
        return _check_agent_id(v)


class ScoreInput(ProfileInput):
    pass


class ValidateInput(ProfileInput):
    checks: list[str] = Field(default_factory=lambda: ["endpoints", "wallet"])

    @field_validator("checks")
    @classmethod
    def known_checks(cls, v: list[str]) -> list[str]:
        unknown = [c for c in v if c not in CHECK_NAMES]
        if unknown:
            raise ValueError(f"Unknown checks: {', '.join(unknown)}")
        return v


class InvokeEnvelope(BaseModel):
    input: Union[dict, None] = None


def parse_invoke(body: Any, model: type[BaseModel]) -> BaseModel:
    """Validate an ``{"input": {...}}`` envelope into ``model``."""
    if not isinstance(body, dict) or "input" not in body:
        raise InputValidationError(
            details=[{"field": "input", "message": "Field required"}],
            error="Invalid request body",
        )
    try:
        envelope = InvokeEnvelope.model_validate(body)
    except ValidationError as e:
        raise InputValidationError(details=field_errors(e), error="Invalid request body") from e
    try:
        return model.model_validate(envelope.input)
    except ValidationError as e:
        raise InputValidationError(details=field_errors(e)) from e
