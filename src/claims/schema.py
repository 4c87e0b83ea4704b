"""
Canonical schema for claim intake, fraud scoring and document verification.

Defines Pydantic models for submitted claims, generated fraud results and
per-category document verification results. Models that mirror the
generator's JSON contract accept and emit its camelCase keys.
"""

import random
import string
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ============================================================================
# Enums
# ============================================================================


class ClaimType(str, Enum):
    """Kind of loss being claimed."""
    ACCIDENT = "Accident"
    THEFT = "Theft"
    FIRE = "Fire"
    HEALTH = "Health"
    TRAVEL = "Travel"
    OTHER = "Other"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


class ClaimStatus(str, Enum):
    """Lifecycle status of a claim."""
    SUBMITTED = "SUBMITTED"
    IN_REVIEW = "IN_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


# Reviewer workflow moves; terminal states have no exits
STATUS_TRANSITIONS = {
    ClaimStatus.SUBMITTED: {ClaimStatus.IN_REVIEW},
    ClaimStatus.IN_REVIEW: {ClaimStatus.APPROVED, ClaimStatus.REJECTED},
    ClaimStatus.APPROVED: set(),
    ClaimStatus.REJECTED: set(),
}


class RiskLevel(str, Enum):
    """Fraud risk band."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Recommendation(str, Enum):
    """Action suggested by fraud analysis."""
    APPROVE = "APPROVE"
    REVIEW = "REVIEW"
    REJECT = "REJECT"


class DocumentCategory(str, Enum):
    """Document classes verified independently."""
    IDENTITY = "identity"
    INVOICE = "invoice"
    SUPPORTING = "supporting"


class VerificationStatus(str, Enum):
    """Aggregate outcome of document verification."""
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    NEEDS_REVIEW = "NEEDS_REVIEW"
    REJECTED = "REJECTED"


# ============================================================================
# Risk bands
# ============================================================================


LOW_RISK_CEILING = 40.0
HIGH_RISK_FLOOR = 70.0

RECOMMENDATION_BY_LEVEL = {
    RiskLevel.LOW: Recommendation.APPROVE,
    RiskLevel.MEDIUM: Recommendation.REVIEW,
    RiskLevel.HIGH: Recommendation.REJECT,
}


def risk_level_for_score(score: float) -> RiskLevel:
    """Band a fraud score: <40 LOW, 40-70 MEDIUM (inclusive), >70 HIGH."""
    if score < LOW_RISK_CEILING:
        return RiskLevel.LOW
    if score > HIGH_RISK_FLOOR:
        return RiskLevel.HIGH
    return RiskLevel.MEDIUM


def recommendation_for_level(level: RiskLevel) -> Recommendation:
    """Map a risk level to its recommendation."""
    return RECOMMENDATION_BY_LEVEL[RiskLevel(level)]


# ============================================================================
# Generated results
# ============================================================================


class FraudResult(BaseModel):
    """
    Fraud analysis outcome for one claim.

    Score, level and recommendation are always mutually consistent.
    """

    model_config = ConfigDict(populate_by_name=True)

    fraud_risk_score: float = Field(alias="fraudRiskScore", ge=0.0, le=100.0)
    risk_level: RiskLevel = Field(alias="riskLevel")
    key_findings: List[str] = Field(default_factory=list, alias="keyFindings")
    recommendation: Recommendation

    @model_validator(mode="after")
    def check_consistency(self) -> "FraudResult":
        expected = risk_level_for_score(self.fraud_risk_score)
        if self.risk_level != expected:
            raise ValueError(
                f"riskLevel {self.risk_level.value} inconsistent with score {self.fraud_risk_score}"
            )
        if self.recommendation != recommendation_for_level(self.risk_level):
            raise ValueError(
                f"recommendation {self.recommendation.value} inconsistent with {self.risk_level.value}"
            )
        return self

    def to_wire(self) -> dict:
        """Dump with the generator's camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")


class VerificationResult(BaseModel):
    """Outcome of verifying one document category against claim data."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    is_valid: bool = Field(alias="isValid")
    confidence: float = Field(ge=0.0, le=100.0)
    match_score: float = Field(alias="matchScore", ge=0.0, le=100.0)
    findings: List[str] = Field(default_factory=list)


class VerificationSummary(BaseModel):
    """Per-category results folded into one confidence and status."""

    model_config = ConfigDict(frozen=True)

    results: Dict[DocumentCategory, VerificationResult] = Field(default_factory=dict)
    overall_confidence: float = Field(default=0.0, ge=0.0, le=100.0)
    verification_status: VerificationStatus = VerificationStatus.PENDING

    def result_for(self, category: DocumentCategory) -> Optional[VerificationResult]:
        """Result of one category, if it was verified."""
        return self.results.get(DocumentCategory(category))

    def to_wire(self) -> dict:
        """Dump with camelCase keys inside each category result."""
        return {
            "results": {
                category.value: result.model_dump(by_alias=True)
                for category, result in self.results.items()
            },
            "overall_confidence": self.overall_confidence,
            "verification_status": self.verification_status.value,
        }


# ============================================================================
# Claims and documents
# ============================================================================


def new_claim_id() -> str:
    """Generate a unique claim ID (CLM-<timestamp>-<suffix>)."""
    timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=7))
    return f"CLM-{timestamp}-{suffix}"


class ClaimForm(BaseModel):
    """Claim data as submitted by the policyholder."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    full_name: str = Field(alias="fullName", min_length=1)
    email: str = Field(min_length=3)
    phone: Optional[str] = None
    policy_number: Optional[str] = Field(default=None, alias="policyNumber")
    claim_type: ClaimType = Field(alias="claimType")
    date_of_incident: date = Field(alias="dateOfIncident")
    incident_location: str = Field(alias="incidentLocation", min_length=1)
    incident_description: str = Field(alias="incidentDescription", min_length=1)
    claim_amount: Decimal = Field(alias="claimAmount", ge=0)
    consent: bool = False

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Require a plausible address; ownership checks compare it."""
        if "@" not in v:
            raise ValueError("email must contain '@'")
        return v.lower()

    def analysis_fields(self) -> dict:
        """Fields consumed by fraud analysis, under their wire names."""
        return {
            "claimType": self.claim_type.value,
            "dateOfIncident": self.date_of_incident.isoformat(),
            "incidentLocation": self.incident_location,
            "incidentDescription": self.incident_description,
            "claimAmount": str(self.claim_amount),
        }

    def verification_fields(self) -> dict:
        """Fields compared against uploaded documents."""
        fields = self.analysis_fields()
        fields.update({
            "fullName": self.full_name,
            "email": self.email,
            "phone": self.phone or "",
        })
        return fields


class Claim(BaseModel):
    """A submitted claim with its fraud analysis."""

    claim_id: str = Field(default_factory=new_claim_id)
    full_name: str
    email: str
    phone: Optional[str] = None
    policy_number: Optional[str] = None
    claim_type: ClaimType
    incident_date: date
    incident_location: str
    incident_description: str
    claim_amount: Decimal = Field(ge=0)
    status: ClaimStatus = ClaimStatus.SUBMITTED

    fraud_risk_score: float = Field(ge=0.0, le=100.0)
    risk_level: RiskLevel
    recommendation: Recommendation
    key_findings: List[str] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("claim_id")
    @classmethod
    def validate_claim_id(cls, v: str) -> str:
        """Ensure claim_id is not empty."""
        if not v or not v.strip():
            raise ValueError("claim_id cannot be empty")
        return v.strip()

    @classmethod
    def from_submission(cls, form: ClaimForm, fraud: FraudResult, **kwargs) -> "Claim":
        """Build the claim record from a form and its fraud result."""
        return cls(
            full_name=form.full_name,
            email=form.email,
            phone=form.phone,
            policy_number=form.policy_number,
            claim_type=form.claim_type,
            incident_date=form.date_of_incident,
            incident_location=form.incident_location,
            incident_description=form.incident_description,
            claim_amount=form.claim_amount,
            fraud_risk_score=fraud.fraud_risk_score,
            risk_level=fraud.risk_level,
            recommendation=fraud.recommendation,
            key_findings=list(fraud.key_findings),
            **kwargs,
        )

    def fraud_result(self) -> FraudResult:
        """Fraud fields of this claim as a FraudResult."""
        return FraudResult(
            fraud_risk_score=self.fraud_risk_score,
            risk_level=self.risk_level,
            key_findings=self.key_findings,
            recommendation=self.recommendation,
        )

    def verification_fields(self) -> dict:
        """Claim fields compared against uploaded documents."""
        return {
            "fullName": self.full_name,
            "email": self.email,
            "phone": self.phone or "",
            "claimType": self.claim_type.value,
            "dateOfIncident": self.incident_date.isoformat(),
            "incidentLocation": self.incident_location,
            "incidentDescription": self.incident_description,
            "claimAmount": str(self.claim_amount),
        }


class Document(BaseModel):
    """An uploaded document attached to a claim."""

    claim_id: str
    category: DocumentCategory
    file_name: str
    mime_type: str
    size: int = Field(ge=0)
    locator: str = Field(description="Storage locator, e.g. 'trueclaim/invoices/<file>'")
    text: str = Field(default="", description="Text extracted by OCR (empty for PDFs)")
    uploaded_at: datetime = Field(default_factory=datetime.utcnow)
