"""Tests for trust_gateway.scoring — formula, clamping and verdict thresholds."""

import pytest

from trust_gateway.models import FeedbackSample, RegistrationFile
from trust_gateway.scoring import (
    TrustVerdict,
    compute_trust_score,
    identity_maturity,
    population_stddev,
    reputation_confidence,
    round_half_up,
    score_signals,
    score_to_verdict,
    summarize_feedback,
)

LONG_DESCRIPTION = "x" * 51


class TestVerdict:
    @pytest.mark.parametrize("score,verdict", [
        (100, TrustVerdict.HIGHLY_TRUSTED),
        (80, TrustVerdict.HIGHLY_TRUSTED),
        (79, TrustVerdict.TRUSTED),
        (60, TrustVerdict.TRUSTED),
        (59, TrustVerdict.NEUTRAL),
        (40, TrustVerdict.NEUTRAL),
        (39, TrustVerdict.LOW_TRUST),
        (20, TrustVerdict.LOW_TRUST),
        (19, TrustVerdict.UNTRUSTED),
        (0, TrustVerdict.UNTRUSTED),
    ])
    def test_thresholds_are_inclusive(self, score, verdict):
        assert score_to_verdict(score) is verdict


class TestComponents:
    def test_identity_maturity_all_signals(self):
        assert identity_maturity(True, True, LONG_DESCRIPTION) == 60

    def test_description_must_exceed_50_chars(self):
        assert identity_maturity(False, False, "x" * 50) == 0
        assert identity_maturity(False, False, LONG_DESCRIPTION) == 10

    def test_population_stddev(self):
        assert population_stddev([80, 80, 80]) == 0
        assert population_stddev([0, 100]) == 50

    def test_confidence_without_feedback_is_zero(self):
        assert reputation_confidence([]) == 0

    def test_confidence_caps(self):
        # 10 identical scores: volume 30, consistency min(20, 100/5) = 20
        assert reputation_confidence([90] * 10) == 50
        assert reputation_confidence([90] * 50) == 50

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(64.5) == 65
        assert round_half_up(64.49) == 64


class TestScore:
    def test_no_feedback_no_identity_is_neutral_50(self):
        result = score_signals(False, False, "", [])
        assert result.score == 50
        assert result.verdict is TrustVerdict.NEUTRAL
        assert result.breakdown.feedback_score == 50
        assert result.breakdown.identity_maturity == 0
        assert result.breakdown.reputation_confidence == 0

    def test_no_feedback_full_identity(self):
        # 50 + 60 * 0.3 = 68
        result = score_signals(True, True, LONG_DESCRIPTION, [])
        assert result.score == 68
        assert result.verdict is TrustVerdict.TRUSTED

    def test_feedback_example(self):
        # mean 80, stddev 10 -> consistency 18, volume 6 -> confidence 24
        # 80 + 50 * 0.3 + 24 * 0.2 = 99.8 -> 100
        result = score_signals(True, True, "short", [70, 90])
        assert result.breakdown.identity_maturity == 50
        assert result.breakdown.reputation_confidence == pytest.approx(24)
        assert result.score == 100
        assert result.verdict is TrustVerdict.HIGHLY_TRUSTED

    def test_clamped_to_100(self):
        result = score_signals(True, True, LONG_DESCRIPTION, [100] * 10000)
        assert result.score == 100

    def test_low_feedback_stays_in_range(self):
        result = score_signals(False, False, "", [0] * 5)
        # 0 + 0 + (15 + 20) * 0.2 = 7
        assert result.score == 7
        assert result.verdict is TrustVerdict.UNTRUSTED

    def test_breakdown_to_dict(self):
        d = score_signals(True, False, "", [55, 60, 65]).breakdown.to_dict()
        assert set(d) == {"feedbackScore", "identityMaturity", "reputationConfidence", "formula"}
        assert d["feedbackScore"] == 60
        assert d["formula"].startswith("score = feedbackAvg")

    def test_compute_from_registration(self):
        reg = RegistrationFile.model_validate({
            "name": "A", "description": LONG_DESCRIPTION,
            "endpoints": [{"name": "web", "endpoint": "https://a.example"}],
            "supportedTrust": ["reputation"],
        })
        result = compute_trust_score(reg, [])
        assert result.score == 68


class TestFeedbackSummary:
    def test_summary(self):
        samples = [
            FeedbackSample(80, "0xAbC0000000000000000000000000000000000001"),
            FeedbackSample(85, "0xabc0000000000000000000000000000000000001"),
            FeedbackSample(90, "0x0000000000000000000000000000000000000002"),
        ]
        summary = summarize_feedback(samples)
        assert summary == {"count": 3, "averageScore": 85.0, "uniqueClients": 2}

    def test_empty(self):
        assert summarize_feedback([]) == {"count": 0, "averageScore": 0.0, "uniqueClients": 0}
