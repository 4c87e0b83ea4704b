"""
Folds per-category verification results into one summary.
"""

from dataclasses import dataclass
from typing import Mapping

from .schema import DocumentCategory, VerificationResult, VerificationStatus, VerificationSummary


@dataclass(frozen=True)
class VerificationPolicy:
    """
    Confidence thresholds for the verification status.

    Two-tier: VERIFIED at or above verified_threshold, NEEDS_REVIEW at or
    above review_threshold, REJECTED below.
    """
    verified_threshold: float = 80.0
    review_threshold: float = 50.0

    def __post_init__(self):
        if self.review_threshold > self.verified_threshold:
            raise ValueError("review_threshold cannot exceed verified_threshold")

    @classmethod
    def from_settings(cls, settings) -> "VerificationPolicy":
        """Thresholds configured in application settings."""
        return cls(
            verified_threshold=settings.verified_threshold,
            review_threshold=settings.review_threshold,
        )


DEFAULT_POLICY = VerificationPolicy()


def overall_confidence(results: Mapping[DocumentCategory, VerificationResult]) -> float:
    """Mean confidence over the categories that produced a result (0 if none)."""
    if not results:
        return 0.0
    return sum(r.confidence for r in results.values()) / len(results)


def determine_status(
    results: Mapping[DocumentCategory, VerificationResult],
    policy: VerificationPolicy = DEFAULT_POLICY,
) -> VerificationStatus:
    """
    Derive the verification status, checked in order:

        1. no results            -> PENDING
        2. any invalid document  -> REJECTED
        3. confidence >= 80      -> VERIFIED
        4. confidence >= 50      -> NEEDS_REVIEW
        5. otherwise             -> REJECTED
    """
    if not results:
        return VerificationStatus.PENDING
    if any(not r.is_valid for r in results.values()):
        return VerificationStatus.REJECTED

    confidence = overall_confidence(results)
    if confidence >= policy.verified_threshold:
        return VerificationStatus.VERIFIED
    if confidence >= policy.review_threshold:
        return VerificationStatus.NEEDS_REVIEW
    return VerificationStatus.REJECTED


def aggregate(
    results: Mapping[DocumentCategory, VerificationResult],
    policy: VerificationPolicy = DEFAULT_POLICY,
) -> VerificationSummary:
    """Combine 0-3 category results into a VerificationSummary."""
    results = {DocumentCategory(category): result for category, result in results.items()}
    return VerificationSummary(
        results=results,
        overall_confidence=overall_confidence(results),
        verification_status=determine_status(results, policy),
    )
