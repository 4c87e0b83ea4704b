"""
Fraud risk analysis for submitted claims.

Public API: FraudRiskAnalyzer(gateway).analyze(fields) -> FraudResult

Missing input fails fast with MissingFieldError. Everything after input
validation (prompt, generation, normalization, parsing) is guarded: a
failure there yields a conservative manual-review result instead of an
error, so fraud analysis never blocks claim submission.
"""

import logging
from datetime import datetime
from typing import Any, List, Mapping

from .errors import MissingFieldError, excerpt
from .gateway import GenerationGateway
from .parsing import Malformed, parse_fraud_response
from .prompts import build_fraud_prompt
from .schema import FraudResult, Recommendation, RiskLevel

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "claimType",
    "dateOfIncident",
    "incidentLocation",
    "incidentDescription",
    "claimAmount",
)

FALLBACK_FINDINGS = (
    "Fraud analysis failed - manual review required",
    "Response parsing error - check logs for details",
)


def fallback_result() -> FraudResult:
    """The fixed result used whenever analysis cannot complete."""
    return FraudResult(
        fraud_risk_score=50.0,
        risk_level=RiskLevel.MEDIUM,
        key_findings=list(FALLBACK_FINDINGS),
        recommendation=Recommendation.REVIEW,
    )


def is_fallback(result: FraudResult) -> bool:
    """Whether a result is the manual-review fallback."""
    return result.key_findings == list(FALLBACK_FINDINGS)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def find_missing_fields(fields: Mapping[str, Any]) -> List[str]:
    """Required fields that are absent, None or blank (0 is a valid amount)."""
    return [name for name in REQUIRED_FIELDS if _is_missing(fields.get(name))]


class FraudRiskAnalyzer:
    """
    Scores a claim's fraud risk with a text-generation model.

    The gateway is injected so tests can substitute a stub.
    """

    def __init__(self, gateway: GenerationGateway):
        self.gateway = gateway

    async def analyze(self, fields: Mapping[str, Any]) -> FraudResult:
        """
        Analyze claim fields for fraud risk.

        Args:
            fields: Claim data keyed by wire name (claimType, dateOfIncident,
                    incidentLocation, incidentDescription, claimAmount)

        Returns:
            FraudResult with consistent score, level and recommendation,
            or the fallback result if generation or parsing failed

        Raises:
            MissingFieldError: a required field is missing (no generation call)
        """
        missing = find_missing_fields(fields)
        if missing:
            raise MissingFieldError(missing, stage="fraud_analysis")

        start_time = datetime.utcnow()
        try:
            result = await self._run(fields)
        except MissingFieldError:
            raise
        except Exception as e:
            logger.error(f"Fraud analysis failed, using fallback: {e}")
            return fallback_result()

        elapsed_ms = (datetime.utcnow() - start_time).total_seconds() * 1000
        logger.info(
            f"Fraud analysis complete: score={result.fraud_risk_score:.0f}, "
            f"level={result.risk_level.value}, analysis_time_ms={elapsed_ms:.0f}"
        )
        return result

    async def _run(self, fields: Mapping[str, Any]) -> FraudResult:
        prompt = build_fraud_prompt(fields)
        logger.debug(f"Sending fraud prompt ({len(prompt)} chars)")

        raw_text = await self.gateway.generate(prompt)

        outcome = parse_fraud_response(raw_text)
        if isinstance(outcome, Malformed):
            logger.warning(f"Malformed fraud response: {outcome.reason}; excerpt={excerpt(raw_text)!r}")
            raise outcome.to_error(stage="fraud_analysis")

        for repair in outcome.repairs:
            logger.warning(f"Repaired fraud response: {repair}")
        return outcome.value
