"""
Tests for score bands and generated-result parsing.
"""

import json

import pytest
from pydantic import ValidationError

from src.claims.errors import ContractViolation
from src.claims.parsing import Malformed, Parsed, parse_fraud_response, parse_verification_response
from src.claims.schema import (
    FraudResult,
    Recommendation,
    RiskLevel,
    recommendation_for_level,
    risk_level_for_score,
)


def fraud_payload(**overrides) -> str:
    data = {
        "fraudRiskScore": 55,
        "riskLevel": "MEDIUM",
        "keyFindings": ["Amount slightly above average"],
        "recommendation": "REVIEW",
    }
    data.update(overrides)
    return json.dumps(data)


def verification_payload(**overrides) -> str:
    data = {"isValid": True, "confidence": 88, "findings": ["Name matches"], "matchScore": 92}
    data.update(overrides)
    return json.dumps(data)


# ============================================================================
# Test: Score bands
# ============================================================================


class TestScoreBands:
    """<40 LOW, 40-70 MEDIUM (inclusive), >70 HIGH."""

    @pytest.mark.parametrize("score,level", [
        (0, RiskLevel.LOW),
        (39.9, RiskLevel.LOW),
        (40, RiskLevel.MEDIUM),
        (55, RiskLevel.MEDIUM),
        (70, RiskLevel.MEDIUM),
        (70.1, RiskLevel.HIGH),
        (100, RiskLevel.HIGH),
    ])
    def test_band_edges(self, score, level):
        assert risk_level_for_score(score) == level

    def test_recommendation_mapping(self):
        assert recommendation_for_level(RiskLevel.LOW) == Recommendation.APPROVE
        assert recommendation_for_level(RiskLevel.MEDIUM) == Recommendation.REVIEW
        assert recommendation_for_level(RiskLevel.HIGH) == Recommendation.REJECT

    def test_fraud_result_rejects_inconsistent_level(self):
        with pytest.raises(ValidationError):
            FraudResult(
                fraud_risk_score=85,
                risk_level=RiskLevel.LOW,
                key_findings=[],
                recommendation=Recommendation.APPROVE,
            )

    def test_fraud_result_rejects_inconsistent_recommendation(self):
        with pytest.raises(ValidationError):
            FraudResult(
                fraud_risk_score=20,
                risk_level=RiskLevel.LOW,
                key_findings=[],
                recommendation=Recommendation.REJECT,
            )

    def test_fraud_result_wire_format(self):
        result = FraudResult.model_validate(json.loads(fraud_payload()))
        assert result.to_wire() == {
            "fraudRiskScore": 55.0,
            "riskLevel": "MEDIUM",
            "keyFindings": ["Amount slightly above average"],
            "recommendation": "REVIEW",
        }


# ============================================================================
# Test: Fraud response parsing
# ============================================================================


class TestParseFraudResponse:
    """Parsing and repair of fraud results."""

    def test_valid_response(self):
        outcome = parse_fraud_response(fraud_payload())
        assert isinstance(outcome, Parsed)
        assert outcome.repairs == []
        assert outcome.value.fraud_risk_score == 55
        assert outcome.value.risk_level == RiskLevel.MEDIUM
        assert outcome.value.recommendation == Recommendation.REVIEW

    def test_fenced_response_with_prose(self):
        text = "Analysis below\n```json\n" + fraud_payload() + "\n```"
        assert isinstance(parse_fraud_response(text), Parsed)

    def test_lowercase_level_accepted(self):
        outcome = parse_fraud_response(fraud_payload(riskLevel="medium", recommendation="review"))
        assert isinstance(outcome, Parsed)
        assert outcome.repairs == []

    def test_score_above_range_is_clamped(self):
        outcome = parse_fraud_response(
            fraud_payload(fraudRiskScore=150, riskLevel="HIGH", recommendation="REJECT")
        )
        assert outcome.value.fraud_risk_score == 100
        assert outcome.value.risk_level == RiskLevel.HIGH
        assert any("clamped" in r for r in outcome.repairs)

    def test_negative_score_is_clamped(self):
        outcome = parse_fraud_response(fraud_payload(fraudRiskScore=-5, riskLevel="LOW", recommendation="APPROVE"))
        assert outcome.value.fraud_risk_score == 0
        assert outcome.value.risk_level == RiskLevel.LOW

    def test_off_band_level_recomputed(self):
        outcome = parse_fraud_response(fraud_payload(fraudRiskScore=85, riskLevel="LOW", recommendation="APPROVE"))
        assert outcome.value.risk_level == RiskLevel.HIGH
        assert outcome.value.recommendation == Recommendation.REJECT
        assert len(outcome.repairs) == 2

    def test_invalid_level_recomputed(self):
        outcome = parse_fraud_response(fraud_payload(fraudRiskScore=10, riskLevel="SEVERE"))
        assert outcome.value.risk_level == RiskLevel.LOW
        assert outcome.value.recommendation == Recommendation.APPROVE

    def test_missing_level_recomputed(self):
        data = json.loads(fraud_payload())
        del data["riskLevel"]
        outcome = parse_fraud_response(json.dumps(data))
        assert isinstance(outcome, Parsed)
        assert outcome.value.risk_level == RiskLevel.MEDIUM

    def test_invalid_recommendation_recomputed(self):
        outcome = parse_fraud_response(fraud_payload(recommendation="MAYBE"))
        assert outcome.value.recommendation == Recommendation.REVIEW

    @pytest.mark.parametrize("text", [
        "I cannot analyze this claim.",
        "[1, 2, 3]",
        fraud_payload(fraudRiskScore="80"),
        fraud_payload(fraudRiskScore=True),
        fraud_payload(fraudRiskScore=None),
        fraud_payload(keyFindings="none"),
        fraud_payload(keyFindings=[1, 2]),
        "",
    ])
    def test_malformed(self, text):
        assert isinstance(parse_fraud_response(text), Malformed)


# ============================================================================
# Test: Verification response parsing
# ============================================================================


class TestParseVerificationResponse:
    """Parsing of per-category verification results."""

    def test_valid_response(self):
        outcome = parse_verification_response(verification_payload())
        assert isinstance(outcome, Parsed)
        assert outcome.value.is_valid is True
        assert outcome.value.confidence == 88
        assert outcome.value.match_score == 92
        assert outcome.value.findings == ["Name matches"]

    def test_scores_clamped(self):
        outcome = parse_verification_response(verification_payload(confidence=120, matchScore=-3))
        assert outcome.value.confidence == 100
        assert outcome.value.match_score == 0
        assert len(outcome.repairs) == 2

    @pytest.mark.parametrize("overrides", [
        {"isValid": "true"},
        {"confidence": "high"},
        {"matchScore": None},
        {"findings": "looks fine"},
    ])
    def test_malformed(self, overrides):
        assert isinstance(parse_verification_response(verification_payload(**overrides)), Malformed)

    def test_missing_findings(self):
        data = json.loads(verification_payload())
        del data["findings"]
        assert isinstance(parse_verification_response(json.dumps(data)), Malformed)


class TestMalformedToError:
    """Malformed outcomes convert to ContractViolation with a short excerpt."""

    def test_excerpt_truncated(self):
        outcome = parse_verification_response("x" * 1000)
        error = outcome.to_error(stage="verification", category="invoice")
        assert isinstance(error, ContractViolation)
        assert error.category == "invoice"
        assert error.stage == "verification"
        assert len(error.details["excerpt"]) <= 203
        assert error.to_dict()["code"] == "CONTRACT_VIOLATION"
