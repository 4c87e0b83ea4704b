"""
Error hierarchy for the claim pipeline.

Every error names the pipeline stage it came from and, for document
verification, the document category. Errors serialise to a dict for API
responses and never carry more than a short excerpt of upstream output.
"""

from typing import Any, Dict, Iterable, List, Optional

EXCERPT_LIMIT = 200


def excerpt(text: Optional[str], limit: int = EXCERPT_LIMIT) -> str:
    """Truncate upstream text for logs and error payloads."""
    if not text:
        return ""
    text = str(text)
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class ClaimPipelineError(Exception):
    """
    Base exception for all claim pipeline errors.

    Attributes:
        message: Human-readable error description
        stage: Pipeline stage (e.g. 'fraud_analysis', 'verification', 'ocr')
        category: Document category, when the error is tied to one
        details: Additional context for triage
    """

    code = "CLAIM_PIPELINE_ERROR"

    def __init__(
        self,
        message: str,
        stage: str = "unknown",
        category: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.category = category
        self.details = details if details is not None else {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to a dictionary."""
        result: Dict[str, Any] = {
            "code": self.code,
            "error": self.message,
            "stage": self.stage,
        }
        if self.category is not None:
            result["category"] = self.category
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        prefix = f"[{self.stage}"
        if self.category:
            prefix += f"/{self.category}"
        return f"{prefix}] {self.message}"


class ClaimValidationError(ClaimPipelineError):
    """Required input is missing or malformed. Raised before any remote call."""

    code = "VALIDATION_ERROR"


class MissingFieldError(ClaimValidationError):
    """One or more required claim fields are missing."""

    code = "MISSING_FIELDS"

    def __init__(self, missing_fields: Iterable[str], stage: str = "input"):
        self.missing_fields: List[str] = list(missing_fields)
        super().__init__(
            f"Missing required fields: {', '.join(self.missing_fields)}",
            stage=stage,
            details={"missingFields": self.missing_fields},
        )


class UpstreamError(ClaimPipelineError):
    """A generation, OCR or storage call failed or timed out."""

    code = "UPSTREAM_ERROR"


class ContractViolation(ClaimPipelineError):
    """A generated response does not parse into the required shape."""

    code = "CONTRACT_VIOLATION"

    def __init__(
        self,
        reason: str,
        stage: str = "parsing",
        category: Optional[str] = None,
        raw_text: Optional[str] = None,
    ):
        details = {"excerpt": excerpt(raw_text)} if raw_text else {}
        super().__init__(reason, stage=stage, category=category, details=details)
        self.reason = reason


class SubmissionError(ClaimPipelineError):
    """The claim could not be stored; it is not considered submitted."""

    code = "SUBMISSION_FAILED"


class ClaimNotFoundError(ClaimPipelineError):
    """No claim exists for the given identifier."""

    code = "CLAIM_NOT_FOUND"

    def __init__(self, claim_id: str, stage: str = "lookup"):
        super().__init__(f"Claim not found: {claim_id}", stage=stage, details={"claim_id": claim_id})
        self.claim_id = claim_id


class InvalidStatusTransition(ClaimPipelineError):
    """A claim lifecycle move that the workflow does not allow."""

    code = "INVALID_STATUS_TRANSITION"


class VerificationAlreadyStored(ClaimPipelineError):
    """The claim already has a stored verification result for the document category."""

    code = "VERIFICATION_EXISTS"


class ClaimAccessDenied(ClaimPipelineError):
    """The authenticated user does not own the claim."""

    code = "FORBIDDEN"

    def __init__(self, claim_id: str, stage: str = "lookup"):
        super().__init__(f"Not allowed to access claim {claim_id}", stage=stage, details={"claim_id": claim_id})
        self.claim_id = claim_id
