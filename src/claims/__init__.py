"""
Claim intake risk and verification pipeline.

Fraud risk scoring and document verification backed by a text-generation
model, with OCR for uploaded documents. Submission orchestration lives in
src.claims.orchestrator (it depends on src.storage).
"""

from .aggregator import VerificationPolicy, aggregate, determine_status, overall_confidence
from .config import GenerationConfig
from .errors import (
    ClaimAccessDenied,
    ClaimNotFoundError,
    ClaimPipelineError,
    ClaimValidationError,
    ContractViolation,
    InvalidStatusTransition,
    MissingFieldError,
    SubmissionError,
    UpstreamError,
    VerificationAlreadyStored,
)
from .fraud import FraudRiskAnalyzer, fallback_result
from .gateway import GenerationGateway, LLMGateway, MockGateway, create_gateway
from .normalizer import normalize_response
from .parsing import Malformed, Parsed, parse_fraud_response, parse_verification_response
from .schema import (
    # Enums
    ClaimType,
    ClaimStatus,
    RiskLevel,
    Recommendation,
    DocumentCategory,
    VerificationStatus,
    # Models
    FraudResult,
    VerificationResult,
    VerificationSummary,
    ClaimForm,
    Claim,
    Document,
)
from .text_extractor import TextExtractionService
from .verifier import DocumentVerifier, VerificationRun

__all__ = [
    # Pipeline
    "FraudRiskAnalyzer",
    "DocumentVerifier",
    "VerificationRun",
    "TextExtractionService",
    "VerificationPolicy",
    "aggregate",
    "determine_status",
    "overall_confidence",
    "fallback_result",
    "normalize_response",
    "parse_fraud_response",
    "parse_verification_response",
    "Parsed",
    "Malformed",
    # Generation
    "GenerationConfig",
    "GenerationGateway",
    "LLMGateway",
    "MockGateway",
    "create_gateway",
    # Errors
    "ClaimPipelineError",
    "ClaimValidationError",
    "MissingFieldError",
    "UpstreamError",
    "ContractViolation",
    "SubmissionError",
    "ClaimNotFoundError",
    "ClaimAccessDenied",
    "InvalidStatusTransition",
    "VerificationAlreadyStored",
    # Enums
    "ClaimType",
    "ClaimStatus",
    "RiskLevel",
    "Recommendation",
    "DocumentCategory",
    "VerificationStatus",
    # Models
    "FraudResult",
    "VerificationResult",
    "VerificationSummary",
    "ClaimForm",
    "Claim",
    "Document",
]
