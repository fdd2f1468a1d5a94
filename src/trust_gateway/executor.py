"""
trust_gateway.executor — Answers conversational A2A requests.

Free text such as "What's the trust score for agent 42?" is mapped to one of
the three operations by keyword and answered in Markdown.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Optional

from trust_gateway.errors import GatewayError
from trust_gateway.models import parse_agent_id
from trust_gateway.service import TrustService

logger = logging.getLogger(__name__)

AGENT_ID_RE = re.compile(r"agent\s*(?:#?\s*)?(\d+)", re.IGNORECASE)

USAGE_HINT = (
    "Please specify an agent ID. Example: 'Get trust score for agent 42' "
    "or 'Validate agent #100'"
)


class Intent(str, Enum):
    PROFILE = "profile"
    SCORE = "score"
    VALIDATE = "validate"


_KEYWORDS = (
    (Intent.PROFILE, ("profile", "identity", "details")),
    (Intent.SCORE, ("score", "trust", "reputation")),
    (Intent.VALIDATE, ("validate", "check", "health")),
)


def parse_intent(text: str) -> tuple[Optional[str], Intent]:
    """Extract the agent id (as written) and the requested operation."""
    match = AGENT_ID_RE.search(text or "")
    lowered = (text or "").lower()
    intent = Intent.PROFILE
    for candidate, words in _KEYWORDS:
        if any(w in lowered for w in words):
            intent = candidate
            break
    return (match.group(1) if match else None), intent


def _or(value, fallback: str) -> str:
    return value if value else fallback


def render_profile(profile: dict) -> str:
    endpoints = ", ".join(f"{e['name']} ({e['endpoint']})" for e in profile["endpoints"])
    return "\n".join([
        f"**Agent #{profile['agentId']} Profile**",
        "",
        f"**Name:** {profile['name']}",
        f"**Description:** {profile['description']}",
        f"**Owner:** {profile['owner']}",
        f"**Wallet:** {profile['wallet']}",
        f"**Active:** {str(profile['active']).lower()}",
        f"**Endpoints:** {_or(endpoints, 'None')}",
        f"**Supported Trust:** {_or(', '.join(profile['supportedTrust']), 'None specified')}",
    ])


def render_score(score: dict) -> str:
    breakdown = score["breakdown"]
    summary = score["feedbackSummary"]
    lines = [
        f"**Agent #{score['agentId']} Trust Score**",
        "",
        f"**Name:** {score['agentName']}",
        f"**Trust Score:** {score['trustScore']}/100",
        f"**Verdict:** {score['verdict']}",
        "",
        "**Breakdown:**",
        f"- Feedback Score: {breakdown['feedbackScore']}",
        f"- Identity Maturity: {breakdown['identityMaturity']}",
        f"- Reputation Confidence: {breakdown['reputationConfidence']}",
        "",
        "**Feedback Summary:**",
        f"- Total Feedback: {summary['count']}",
        f"- Average Score: {summary['averageScore']}",
        f"- Unique Clients: {summary['uniqueClients']}",
    ]
    for warning in score.get("warnings", []):
        lines.append(f"\n> {warning}")
    return "\n".join(lines)


def render_validation(report: dict) -> str:
    lines = [
        f"**Agent #{report['agentId']} Validation Report**",
        "",
        f"**Name:** {report['agentName']}",
        f"**Overall:** {report['overallVerdict']}",
    ]
    if "endpointStatus" in report:
        lines += ["", "**Endpoints:**"]
        if not report["endpointStatus"]:
            lines.append("No endpoints declared")
        for ep in report["endpointStatus"]:
            mark = "✅" if ep["status"] == "reachable" else "❌"
            lines.append(f"{mark} {ep['name']}: {ep['status']}")
    if "walletStatus" in report:
        wallet = report["walletStatus"]
        lines += ["", f"**Wallet:** {wallet['address']} {'✅' if wallet['valid'] else '❌'}"]
    if report.get("attestations"):
        lines += ["", "**Attestations:**"]
        for att in report["attestations"]:
            detail = f" ({att['details']})" if att.get("details") else ""
            lines.append(f"- {att['type']}: {att['status']}{detail}")
    if report["issues"]:
        lines += ["", "**Issues:**"] + [f"- {i}" for i in report["issues"]]
    return "\n".join(lines)


class TrustGatewayExecutor:
    """Turns one user message into one Markdown reply."""

    def __init__(self, service: TrustService):
        self.service = service

    async def execute(self, text: str) -> str:
        raw_id, intent = parse_intent(text)
        if raw_id is None:
            return USAGE_HINT
        try:
            agent_id = parse_agent_id(raw_id)
            if intent is Intent.SCORE:
                return render_score(await self.service.get_score(agent_id))
            if intent is Intent.VALIDATE:
                return render_validation(await self.service.validate(agent_id))
            return render_profile(await self.service.get_profile(agent_id))
        except GatewayError as e:
            return f"Error: {e.error}"
        except Exception:
            logger.exception("Executor failed for intent %s", intent.value)
            return "Error: Unknown error occurred"
