"""
Trust scoring — blends reputation feedback with identity completeness.

    identityMaturity      = endpoints 30 + supportedTrust 20 + description>50 chars 10
    volumeScore           = min(30, feedbackCount * 3)
    consistencyScore      = min(20, (100 - stddev(scores)) / 5)     (0 without feedback)
    reputationConfidence  = volumeScore + consistencyScore
    effectiveBaseScore    = mean(scores), or 50 without feedback
    score = round(clamp(effectiveBaseScore + maturity * 0.3 + confidence * 0.2, 0, 100))

Pure functions, no I/O. Weights are fixed.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from trust_gateway.models import FeedbackSample, RegistrationFile

NEUTRAL_BASE_SCORE = 50.0
MATURITY_WEIGHT = 0.3
CONFIDENCE_WEIGHT = 0.2
FORMULA = "score = feedbackAvg + (identityMaturity * 0.3) + (reputationConfidence * 0.2)"


class TrustVerdict(str, Enum):
    UNTRUSTED = "untrusted"
    LOW_TRUST = "low-trust"
    NEUTRAL = "neutral"
    TRUSTED = "trusted"
    HIGHLY_TRUSTED = "highly-trusted"


def score_to_verdict(score: float) -> TrustVerdict:
    if score >= 80:
        return TrustVerdict.HIGHLY_TRUSTED
    if score >= 60:
        return TrustVerdict.TRUSTED
    if score >= 40:
        return TrustVerdict.NEUTRAL
    if score >= 20:
        return TrustVerdict.LOW_TRUST
    return TrustVerdict.UNTRUSTED


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def population_stddev(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


def identity_maturity(has_endpoints: bool, has_supported_trust: bool, description: str) -> int:
    return (30 if has_endpoints else 0) + (20 if has_supported_trust else 0) + (10 if len(description or "") > 50 else 0)


def reputation_confidence(scores: Sequence[float]) -> float:
    volume = min(30, len(scores) * 3)
    consistency = min(20.0, (100 - population_stddev(scores)) / 5) if scores else 0.0
    return volume + consistency


def effective_base_score(scores: Sequence[float]) -> float:
    if not scores:
        return NEUTRAL_BASE_SCORE
    return sum(scores) / len(scores)


@dataclass(frozen=True)
class ScoreBreakdown:
    feedback_score: int
    identity_maturity: int
    reputation_confidence: float

    def to_dict(self) -> dict:
        return {
            "feedbackScore": self.feedback_score,
            "identityMaturity": self.identity_maturity,
            "reputationConfidence": round(self.reputation_confidence, 2),
            "formula": FORMULA,
        }


@dataclass(frozen=True)
class TrustScoreResult:
    score: int
    verdict: TrustVerdict
    breakdown: ScoreBreakdown


def score_signals(
    has_endpoints: bool,
    has_supported_trust: bool,
    description: str,
    scores: Sequence[float],
) -> TrustScoreResult:
    """Score from raw signals. Always returns a fully populated result."""
    maturity = identity_maturity(has_endpoints, has_supported_trust, description)
    confidence = reputation_confidence(scores)
    base = effective_base_score(scores)
    raw = base + maturity * MATURITY_WEIGHT + confidence * CONFIDENCE_WEIGHT
    score = round_half_up(clamp(raw))
    return TrustScoreResult(
        score=score,
        verdict=score_to_verdict(score),
        breakdown=ScoreBreakdown(
            feedback_score=round_half_up(base),
            identity_maturity=maturity,
            reputation_confidence=confidence,
        ),
    )


def compute_trust_score(registration: RegistrationFile, feedback: Sequence[FeedbackSample]) -> TrustScoreResult:
    return score_signals(
        has_endpoints=len(registration.endpoints) > 0,
        has_supported_trust=len(registration.supportedTrust) > 0,
        description=registration.description,
        scores=[f.score for f in feedback],
    )


def summarize_feedback(feedback: Sequence[FeedbackSample]) -> dict:
    scores = [f.score for f in feedback]
    average = sum(scores) / len(scores) if scores else 0.0
    return {
        "count": len(scores),
        "averageScore": round_half_up(average * 10) / 10,
        "uniqueClients": len({f.client_address.lower() for f in feedback}),
    }
