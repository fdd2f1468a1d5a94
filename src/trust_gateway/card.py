"""
trust_gateway.card — A2A agent card and structured entrypoints.

The card describes conversational skills; ``entrypoints`` complements it
with JSON Schemas and per-call prices for programmatic callers. Prices are
read from the same PriceTable the payment gate enforces.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from trust_gateway.chains import Chain
from trust_gateway.config import GatewayConfig
from trust_gateway.x402 import PriceTable

A2A_PROTOCOL_VERSION = "0.3.0"
JSON_SCHEMA_DIALECT = "https://json-schema.org/draft/2020-12/schema"
CHAIN_DESCRIPTION = (
    "Target chain for registry lookup. Options: " + ", ".join(c.value for c in Chain)
)

_A2A_SUFFIX_RE = re.compile(r"/a2a/?$")


@dataclass(frozen=True)
class Skill:
    id: str
    name: str
    description: str
    tags: tuple[str, ...]
    examples: tuple[str, ...]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "tags": list(self.tags),
            "examples": list(self.examples),
        }


SKILLS = (
    Skill(
        "agent-profile", "Agent Profile",
        "Fetch an agent's identity and registration file from the ERC-8004 Identity Registry. "
        "Returns name, description, endpoints, supported trust methods, and wallet address.",
        ("erc-8004", "identity", "profile", "discovery", "x402"),
        ("Get the profile for agent 42", "Show me agent 100's identity",
         "Fetch agent details for ID 15 on Base", "What endpoints does agent 7 have?"),
    ),
    Skill(
        "trust-score", "Trust Score",
        "Compute a trust score (0-100) for an agent based on reputation data from the ERC-8004 "
        "Reputation Registry. Analyzes feedback volume, average ratings, identity maturity, and consistency.",
        ("erc-8004", "reputation", "trust", "scoring", "x402"),
        ("What's the trust score for agent 42?", "Score agent 100 on Base Sepolia",
         "Is agent 15 trustworthy?", "Get reputation summary for agent 7"),
    ),
    Skill(
        "validate-agent", "Validate Agent",
        "Deep validation of an agent including endpoint reachability, wallet verification, and "
        "attestation checks. Returns a detailed validation report with issues.",
        ("erc-8004", "validation", "endpoints", "health", "x402"),
        ("Validate agent 42's endpoints", "Check if agent 100 is healthy",
         "Run validation on agent 15", "Are agent 7's services reachable?"),
    ),
)


def _input_schema(with_checks: bool = False) -> dict:
    properties: dict = {
        "agentId": {"type": ["string", "number"], "description": "ERC-8004 token ID"},
        "chain": {"type": "string", "default": Chain.BASE.value, "description": CHAIN_DESCRIPTION},
    }
    if with_checks:
        properties["checks"] = {
            "type": "array",
            "items": {"type": "string", "enum": ["endpoints", "wallet", "attestations"]},
            "default": ["endpoints", "wallet"],
            "description": "Checks to run. Defaults to endpoints + wallet if omitted.",
        }
    return {
        "$schema": JSON_SCHEMA_DIALECT,
        "type": "object",
        "properties": properties,
        "required": ["agentId"],
        "additionalProperties": False,
    }


@dataclass(frozen=True)
class EntrypointTemplate:
    key: str
    path: str
    description: str
    method: str = "POST"
    input_schema: dict = field(default_factory=_input_schema)

    @property
    def route(self) -> str:
        return f"{self.method} {self.path}"


ENTRYPOINTS = (
    EntrypointTemplate(
        "profile", "/api/agent/profile/invoke",
        "Fetch agent identity from the ERC-8004 Identity Registry. Returns name, description, "
        "owner, wallet, endpoints, and supported trust methods.",
    ),
    EntrypointTemplate(
        "score", "/api/agent/score/invoke",
        "Compute trust score (0-100) from ERC-8004 reputation data. Returns verdict, scoring "
        "breakdown, and feedback summary.",
    ),
    EntrypointTemplate(
        "validate", "/api/agent/validate/invoke",
        "Deep validation of agent endpoints, wallet, and attestations. Returns per-check "
        "results and overall verdict.",
        input_schema=_input_schema(with_checks=True),
    ),
)


def strip_a2a_suffix(card_url: str) -> str:
    return _A2A_SUFFIX_RE.sub("", card_url).rstrip("/")


def build_entrypoints(base_url: str, price_table: Optional[PriceTable] = None) -> dict:
    """Resolve entrypoint templates into absolute URLs with pricing."""
    origin = base_url.rstrip("/")
    result = {}
    for template in ENTRYPOINTS:
        entry = {
            "url": origin + template.path,
            "method": template.method,
            "description": template.description,
            "streaming": False,
            "input_schema": template.input_schema,
        }
        price = price_table.by_route(template.route) if price_table is not None else None
        if price is not None:
            entry["pricing"] = {"invoke": format(price.amount, "f")}
        result[template.key] = entry
    return result


def build_agent_card(config: GatewayConfig) -> dict:
    return {
        "name": config.agent_name,
        "description": config.agent_description,
        "url": config.public_base_url + "/a2a",
        "version": config.agent_version,
        "protocolVersion": A2A_PROTOCOL_VERSION,
        "preferredTransport": "JSONRPC",
        "capabilities": {"streaming": False, "pushNotifications": False},
        "defaultInputModes": ["text/plain"],
        "defaultOutputModes": ["text/plain"],
        "skills": [s.to_dict() for s in SKILLS],
    }


def discovery_document(config: GatewayConfig, price_table: PriceTable) -> dict:
    """Agent card merged with ``entrypoints`` derived from the card URL."""
    card = build_agent_card(config)
    card["entrypoints"] = build_entrypoints(strip_a2a_suffix(card["url"]), price_table)
    return card
