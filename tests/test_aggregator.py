"""
Tests for verification aggregation.
"""

import pytest

from src.claims.aggregator import VerificationPolicy, aggregate, determine_status, overall_confidence
from src.claims.schema import DocumentCategory, VerificationResult, VerificationStatus


def result(confidence: float, is_valid: bool = True) -> VerificationResult:
    return VerificationResult(is_valid=is_valid, confidence=confidence, match_score=confidence, findings=[])


def results(*confidences) -> dict:
    return {category: result(c) for category, c in zip(DocumentCategory, confidences)}


class TestAggregate:
    """Status rules, checked in order."""

    def test_empty_is_pending(self):
        summary = aggregate({})
        assert summary.verification_status == VerificationStatus.PENDING
        assert summary.overall_confidence == 0
        assert summary.results == {}

    def test_invalid_identity_overrides_high_confidence(self):
        data = results(99, 95, 97)
        data[DocumentCategory.IDENTITY] = result(99, is_valid=False)
        assert aggregate(data).verification_status == VerificationStatus.REJECTED

    def test_high_confidence_is_verified(self):
        summary = aggregate(results(85, 90, 95))
        assert summary.overall_confidence == 90
        assert summary.verification_status == VerificationStatus.VERIFIED

    def test_middle_confidence_needs_review(self):
        summary = aggregate(results(60, 55, 50))
        assert summary.overall_confidence == 55
        assert summary.verification_status == VerificationStatus.NEEDS_REVIEW

    def test_low_confidence_is_rejected(self):
        summary = aggregate(results(30, 40))
        assert summary.overall_confidence == 35
        assert summary.verification_status == VerificationStatus.REJECTED

    @pytest.mark.parametrize("confidence,status", [
        (80, VerificationStatus.VERIFIED),
        (79.9, VerificationStatus.NEEDS_REVIEW),
        (50, VerificationStatus.NEEDS_REVIEW),
        (49.9, VerificationStatus.REJECTED),
    ])
    def test_threshold_edges(self, confidence, status):
        assert determine_status(results(confidence)) == status

    def test_mean_over_present_categories_only(self):
        data = {DocumentCategory.INVOICE: result(70)}
        assert overall_confidence(data) == 70

    def test_string_keys_accepted(self):
        summary = aggregate({"invoice": result(90)})
        assert summary.result_for(DocumentCategory.INVOICE).confidence == 90


class TestVerificationPolicy:
    """Thresholds are configurable but ordered."""

    def test_custom_thresholds(self):
        policy = VerificationPolicy(verified_threshold=70, review_threshold=40)
        assert determine_status(results(72), policy) == VerificationStatus.VERIFIED
        assert determine_status(results(45), policy) == VerificationStatus.NEEDS_REVIEW

    def test_review_above_verified_rejected(self):
        with pytest.raises(ValueError):
            VerificationPolicy(verified_threshold=50, review_threshold=80)


class TestSummaryWireFormat:
    """Summaries serialise with camelCase category results."""

    def test_to_wire(self):
        wire = aggregate(results(90)).to_wire()
        assert wire["verification_status"] == "VERIFIED"
        assert wire["results"]["identity"]["isValid"] is True
        assert wire["results"]["identity"]["matchScore"] == 90
