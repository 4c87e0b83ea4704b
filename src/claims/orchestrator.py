"""
Claim submission orchestration.

Public API:
    ClaimSubmissionService.submit(form, principal_email) -> SubmissionOutcome
    ClaimSubmissionService.attach_documents(claim_id, uploads) -> DocumentsOutcome

Submission runs RECEIVED -> FRAUD_ANALYZED -> PERSISTED. Fraud analysis
always finishes before the claim is stored, so every stored claim carries a
fraud result (possibly the manual-review fallback). Documents are attached
later, keyed by claim id: DOCUMENTS_UPLOADED -> VERIFIED. A failure while
attaching documents never touches the stored claim. Verification results
are stored once per category, so categories can arrive in separate uploads.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from ..storage.claim_store import ClaimStore
from ..storage.object_store import LocalObjectStore, ObjectStore, new_upload_id, object_path, safe_file_name
from ..utils.config import Settings, get_settings
from .aggregator import VerificationPolicy
from .config import GenerationConfig
from .errors import (
    ClaimAccessDenied,
    ClaimNotFoundError,
    ClaimPipelineError,
    ClaimValidationError,
    MissingFieldError,
    VerificationAlreadyStored,
)
from .fraud import FraudRiskAnalyzer, find_missing_fields, is_fallback
from .gateway import GenerationGateway, create_gateway
from .schema import Claim, ClaimForm, Document, DocumentCategory, FraudResult, VerificationSummary
from .text_extractor import TesseractEngine, TextExtractionService, is_supported_upload
from .verifier import CATEGORY_ORDER, DocumentVerifier, resolve_category

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    """Lifecycle stages a claim passes through."""
    RECEIVED = "RECEIVED"
    FRAUD_ANALYZED = "FRAUD_ANALYZED"
    PERSISTED = "PERSISTED"
    DOCUMENTS_UPLOADED = "DOCUMENTS_UPLOADED"
    VERIFIED = "VERIFIED"


@dataclass
class Upload:
    """One uploaded file, before storage."""
    category: DocumentCategory
    file_name: str
    mime_type: str
    data: bytes


@dataclass
class SubmissionOutcome:
    """Result of submitting a claim."""
    claim: Claim
    fraud: FraudResult
    fallback_used: bool = False
    stages: List[Stage] = field(default_factory=list)


@dataclass
class DocumentsOutcome:
    """Result of attaching documents to a claim."""
    claim_id: str
    documents: List[Document] = field(default_factory=list)
    signed_urls: Dict[str, List[str]] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    summary: Optional[VerificationSummary] = None
    stages: List[Stage] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "claimId": self.claim_id,
            "documents": [
                {
                    "category": d.category.value,
                    "fileName": d.file_name,
                    "mimeType": d.mime_type,
                    "size": d.size,
                }
                for d in self.documents
            ],
            "urls": self.signed_urls,
            "skipped": self.skipped,
            "verification": self.summary.to_wire() if self.summary else None,
            "stages": [s.value for s in self.stages],
        }


class ClaimSubmissionService:
    """
    Runs claims through fraud analysis, persistence, document upload and
    document verification.

    Every collaborator is injected; from_settings() wires the defaults.
    """

    def __init__(
        self,
        analyzer: FraudRiskAnalyzer,
        store: ClaimStore,
        verifier: DocumentVerifier,
        text_extractor: TextExtractionService,
        object_store: ObjectStore,
        bucket: str = "trueclaim",
        signed_url_ttl: int = 3600,
        max_upload_bytes: int = 50 * 1024 * 1024,
    ):
        self.analyzer = analyzer
        self.store = store
        self.verifier = verifier
        self.text_extractor = text_extractor
        self.object_store = object_store
        self.bucket = bucket
        self.signed_url_ttl = signed_url_ttl
        self.max_upload_bytes = max_upload_bytes

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        gateway: Optional[GenerationGateway] = None,
    ) -> "ClaimSubmissionService":
        """Build the service from application settings."""
        settings = settings or get_settings()
        gateway = gateway or create_gateway(GenerationConfig.from_settings(settings))
        policy = VerificationPolicy.from_settings(settings)
        logger.info(f"Claim service using provider={settings.llm_provider}, db={settings.db_path}")
        return cls(
            analyzer=FraudRiskAnalyzer(gateway),
            store=ClaimStore(settings.db_path),
            verifier=DocumentVerifier(gateway, policy),
            text_extractor=TextExtractionService(TesseractEngine(settings.ocr_language)),
            object_store=LocalObjectStore(settings.storage_root, settings.signing_secret),
            bucket=settings.storage_bucket,
            signed_url_ttl=settings.signed_url_ttl,
            max_upload_bytes=settings.max_upload_bytes,
        )

    # =========================================================================
    # Submission
    # =========================================================================

    async def analyze(self, fields: Mapping[str, Any]) -> FraudResult:
        """Fraud analysis alone, without storing anything."""
        return await self.analyzer.analyze(fields)

    async def submit(
        self,
        form: Union[ClaimForm, Mapping[str, Any]],
        principal_email: Optional[str] = None,
    ) -> SubmissionOutcome:
        """
        Submit a claim: analyze fraud risk, then persist.

        Args:
            form: ClaimForm or its wire-format mapping
            principal_email: Authenticated user; must match the form email

        Returns:
            SubmissionOutcome with the stored claim

        Raises:
            ClaimValidationError: the form is invalid (nothing stored)
            MissingFieldError: a field needed for fraud analysis is missing
            SubmissionError: the claim could not be stored
        """
        start_time = datetime.utcnow()
        stages = [Stage.RECEIVED]

        if not isinstance(form, ClaimForm):
            form = self._parse_form(form)
        if principal_email and form.email != principal_email.lower():
            raise ClaimValidationError(
                "Claim email must match the signed-in user",
                stage="input",
                details={"field": "email"},
            )

        fraud = await self.analyzer.analyze(form.analysis_fields())
        stages.append(Stage.FRAUD_ANALYZED)
        fallback_used = is_fallback(fraud)
        if fallback_used:
            logger.warning("Claim submitted with fallback fraud result")

        claim = Claim.from_submission(form, fraud)
        self.store.insert_claim(claim)
        stages.append(Stage.PERSISTED)

        elapsed_ms = (datetime.utcnow() - start_time).total_seconds() * 1000
        logger.info(
            f"Claim {claim.claim_id} submitted: risk={fraud.risk_level.value}, "
            f"recommendation={fraud.recommendation.value}, submission_time_ms={elapsed_ms:.0f}"
        )
        return SubmissionOutcome(claim=claim, fraud=fraud, fallback_used=fallback_used, stages=stages)

    def _parse_form(self, data: Mapping[str, Any]) -> ClaimForm:
        missing = find_missing_fields(data)
        if missing:
            raise MissingFieldError(missing, stage="input")
        try:
            return ClaimForm.model_validate(data)
        except ValidationError as e:
            errors = [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            raise ClaimValidationError("Invalid claim data", stage="input", details={"errors": errors}) from e

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_claim(self, claim_id: str, principal_email: Optional[str] = None) -> Claim:
        """
        Fetch a claim, checking ownership when a principal is given.

        Raises:
            ClaimNotFoundError: unknown claim
            ClaimAccessDenied: the principal does not own the claim
        """
        claim = self.store.get(claim_id)
        if claim is None:
            raise ClaimNotFoundError(claim_id)
        if principal_email and claim.email != principal_email.lower():
            raise ClaimAccessDenied(claim_id)
        return claim

    def list_claims(self, principal_email: str) -> List[Claim]:
        """Claims owned by a user, newest first."""
        return self.store.find(email=principal_email)

    def claim_details(self, claim_id: str, principal_email: Optional[str] = None) -> dict:
        """Claim with its fraud result, documents and verification."""
        claim = self.get_claim(claim_id, principal_email)
        verification = self.store.get_verification(claim_id, self.verifier.policy)
        return {
            "claim": claim.model_dump(mode="json"),
            "fraud": claim.fraud_result().to_wire(),
            "documents": [
                d.model_dump(mode="json", exclude={"text"})
                for d in self.store.list_documents(claim_id)
            ],
            "verification": verification.to_wire() if verification else None,
        }

    # =========================================================================
    # Documents
    # =========================================================================

    async def attach_documents(
        self,
        claim_id: str,
        uploads: Iterable[Upload],
        principal_email: Optional[str] = None,
    ) -> DocumentsOutcome:
        """
        Store uploaded files, extract their text and verify them.

        Unsupported MIME types are skipped. Several files in one category
        are verified together as one concatenated text.
        Each category is verified once per claim; the returned summary covers
        every verified category, including ones from earlier uploads.

        Raises:
            ClaimNotFoundError / ClaimAccessDenied: claim lookup failed
            ClaimValidationError: nothing acceptable was uploaded, or a file
                is larger than the upload limit
            VerificationAlreadyStored: an uploaded category is already verified
                (checked before anything is stored)
            UpstreamError: storage or OCR failed
            ContractViolation / UpstreamError: verification failed (uploaded
                documents and results of completed categories stay stored)
        """
        claim = self.get_claim(claim_id, principal_email)
        outcome = DocumentsOutcome(claim_id=claim_id)

        accepted = []
        for upload in uploads:
            category = resolve_category(upload.category)
            if not is_supported_upload(upload.mime_type):
                logger.warning(f"Skipping {upload.file_name}: unsupported type {upload.mime_type!r}")
                outcome.skipped.append(upload.file_name)
                continue
            if len(upload.data) > self.max_upload_bytes:
                raise ClaimValidationError(
                    f"File too large: {upload.file_name}",
                    stage="upload",
                    category=category.value,
                    details={"size": len(upload.data), "limit": self.max_upload_bytes},
                )
            accepted.append((category, upload))

        if not accepted:
            raise ClaimValidationError(
                "No supported documents uploaded",
                stage="upload",
                details={"skipped": outcome.skipped},
            )

        self._ensure_unverified(claim_id, [category for category, _ in accepted])

        self.object_store.ensure_layout(self.bucket)
        upload_id = new_upload_id()
        texts: Dict[DocumentCategory, List[str]] = {}

        for category, upload in accepted:
            file_name = safe_file_name(upload_id, upload.file_name, upload.mime_type)
            locator = self.object_store.put_object(
                self.bucket, object_path(category, file_name), upload.data, upload.mime_type
            )
            text = await asyncio.to_thread(self.text_extractor.extract, upload.data, upload.mime_type)

            document = Document(
                claim_id=claim.claim_id,
                category=category,
                file_name=file_name,
                mime_type=upload.mime_type,
                size=len(upload.data),
                locator=locator,
                text=text,
            )
            self.store.add_document(document)
            outcome.documents.append(document)
            outcome.signed_urls.setdefault(category.value, []).append(
                self.object_store.get_signed_url(locator, self.signed_url_ttl)
            )
            texts.setdefault(category, []).append(text)

        outcome.stages.append(Stage.DOCUMENTS_UPLOADED)
        logger.info(f"Stored {len(outcome.documents)} documents for {claim_id}")

        outcome.summary = await self._verify_and_store(
            claim,
            {category: "\n\n".join(t for t in parts if t) for category, parts in texts.items()},
        )
        outcome.stages.append(Stage.VERIFIED)
        return outcome

    async def verify_texts(
        self,
        claim_id: str,
        documents: Mapping[Any, Any],
        principal_email: Optional[str] = None,
    ) -> VerificationSummary:
        """
        Verify already-extracted document texts and store the results.

        Returns the summary over every verified category of the claim.

        Raises:
            VerificationAlreadyStored: a submitted category is already verified
        """
        claim = self.get_claim(claim_id, principal_email)
        self._ensure_unverified(
            claim_id, [resolve_category(key) for key, doc in documents.items() if doc is not None]
        )
        return await self._verify_and_store(claim, documents)

    def _ensure_unverified(self, claim_id: str, categories: Iterable[DocumentCategory]) -> None:
        """Reject categories whose result is already stored, before any upload or generation call."""
        conflicts = set(self.store.verified_categories(claim_id)) & set(categories)
        for category in CATEGORY_ORDER:
            if category in conflicts:
                raise VerificationAlreadyStored(
                    f"{category.value} documents already verified for claim {claim_id}",
                    stage="verification",
                    category=category.value,
                    details={"claim_id": claim_id},
                )

    async def _verify_and_store(self, claim: Claim, documents: Mapping[Any, Any]) -> VerificationSummary:
        logger.debug(f"Verifying {len(documents)} document categories for {claim.claim_id}")
        run = self.verifier.start(claim.verification_fields(), documents)
        try:
            summary = await run.wait()
        except (asyncio.CancelledError, ClaimPipelineError):
            # Completed categories are final on their own
            completed = run.completed_results()
            if completed:
                self.store.save_verification(claim.claim_id, completed)
                logger.warning(
                    f"Stored partial verification for {claim.claim_id}: "
                    f"{[c.value for c in completed]}"
                )
            raise

        self.store.save_verification(claim.claim_id, summary.results)
        return self.store.get_verification(claim.claim_id, self.verifier.policy) or summary
