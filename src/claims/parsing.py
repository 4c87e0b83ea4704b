"""
Validation and repair of generated JSON results.

Parsers never raise on bad input: they return a tagged outcome, either
Parsed(value) or Malformed(reason). Callers decide whether a Malformed
outcome becomes a fallback (fraud analysis) or an error (verification).
"""

import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from .errors import ContractViolation, excerpt
from .normalizer import normalize_response
from .schema import (
    FraudResult,
    Recommendation,
    RiskLevel,
    VerificationResult,
    recommendation_for_level,
    risk_level_for_score,
)


T = TypeVar("T")


@dataclass(frozen=True)
class Parsed(Generic[T]):
    """A response that satisfied the contract (possibly after repair)."""
    value: T
    repairs: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Malformed:
    """A response that could not be turned into the required shape."""
    reason: str
    raw_text: str = ""

    def to_error(self, stage: str, category: Optional[str] = None) -> ContractViolation:
        """Convert to the exception raised by strict callers."""
        return ContractViolation(self.reason, stage=stage, category=category, raw_text=self.raw_text)


ParseOutcome = Union[Parsed[T], Malformed]


# ============================================================================
# Field helpers
# ============================================================================


def _load_object(raw_text: str) -> Union[Dict[str, Any], Malformed]:
    cleaned = normalize_response(raw_text)
    if not cleaned:
        return Malformed("Empty response", raw_text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        return Malformed(f"Response is not valid JSON: {e.msg} at position {e.pos}", raw_text)
    if not isinstance(data, dict):
        return Malformed(f"Expected a JSON object, got {type(data).__name__}", raw_text)
    return data


def _as_score(value: Any) -> Optional[float]:
    """Return value as a finite float, or None if it is not numeric."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if not math.isfinite(value):
        return None
    return value


def clamp_score(value: float, low: float = 0.0, high: float = 100.0) -> float:
    """Clamp a score into [low, high]."""
    return max(low, min(high, value))


def _as_string_list(value: Any) -> Optional[List[str]]:
    if not isinstance(value, list):
        return None
    if not all(isinstance(item, str) for item in value):
        return None
    return list(value)


def _canonical(enum_cls, value: Any):
    if not isinstance(value, str):
        return None
    try:
        return enum_cls(value.strip().upper())
    except ValueError:
        return None


# ============================================================================
# Fraud result
# ============================================================================


def parse_fraud_response(raw_text: str) -> ParseOutcome[FraudResult]:
    """
    Parse and repair a fraud analysis response.

    Expected shape:
        {"fraudRiskScore": number, "riskLevel": "LOW|MEDIUM|HIGH",
         "keyFindings": [str], "recommendation": "APPROVE|REVIEW|REJECT"}

    Repairs (recorded in Parsed.repairs):
        - score clamped into [0, 100]
        - riskLevel recomputed from the score when invalid or off-band
        - recommendation recomputed from riskLevel when invalid or inconsistent

    Returns Malformed when the text is not a JSON object, the score is not
    numeric, or keyFindings is not a list of strings.
    """
    data = _load_object(raw_text)
    if isinstance(data, Malformed):
        return data

    raw_score = _as_score(data.get("fraudRiskScore"))
    if raw_score is None:
        return Malformed(
            f"fraudRiskScore must be a number, got {excerpt(repr(data.get('fraudRiskScore')), 40)}",
            raw_text,
        )

    findings = _as_string_list(data.get("keyFindings"))
    if findings is None:
        return Malformed("keyFindings must be a list of strings", raw_text)

    repairs = []
    score = clamp_score(raw_score)
    if score != raw_score:
        repairs.append(f"fraudRiskScore clamped from {raw_score} to {score}")

    expected_level = risk_level_for_score(score)
    level = _canonical(RiskLevel, data.get("riskLevel"))
    if level != expected_level:
        repairs.append(f"riskLevel {data.get('riskLevel')!r} replaced with {expected_level.value}")
        level = expected_level

    expected_recommendation = recommendation_for_level(level)
    recommendation = _canonical(Recommendation, data.get("recommendation"))
    if recommendation != expected_recommendation:
        repairs.append(
            f"recommendation {data.get('recommendation')!r} replaced with {expected_recommendation.value}"
        )
        recommendation = expected_recommendation

    result = FraudResult(
        fraud_risk_score=score,
        risk_level=level,
        key_findings=findings,
        recommendation=recommendation,
    )
    return Parsed(result, repairs)


# ============================================================================
# Verification result
# ============================================================================


def parse_verification_response(raw_text: str) -> ParseOutcome[VerificationResult]:
    """
    Parse a document verification response.

    Expected shape:
        {"isValid": bool, "confidence": number, "findings": [str], "matchScore": number}

    Scores are clamped into [0, 100]; every other deviation is Malformed.
    """
    data = _load_object(raw_text)
    if isinstance(data, Malformed):
        return data

    is_valid = data.get("isValid")
    if not isinstance(is_valid, bool):
        return Malformed("isValid must be a boolean", raw_text)

    confidence = _as_score(data.get("confidence"))
    if confidence is None:
        return Malformed("confidence must be a number", raw_text)

    match_score = _as_score(data.get("matchScore"))
    if match_score is None:
        return Malformed("matchScore must be a number", raw_text)

    findings = _as_string_list(data.get("findings"))
    if findings is None:
        return Malformed("findings must be a list of strings", raw_text)

    repairs = []
    if clamp_score(confidence) != confidence:
        repairs.append(f"confidence clamped from {confidence}")
    if clamp_score(match_score) != match_score:
        repairs.append(f"matchScore clamped from {match_score}")

    result = VerificationResult(
        is_valid=is_valid,
        confidence=clamp_score(confidence),
        match_score=clamp_score(match_score),
        findings=findings,
    )
    return Parsed(result, repairs)
