"""
FastAPI application for claim intake.

Provides:
- Fraud analysis of claim data
- Claim submission and lookup for the signed-in policyholder
- Document upload with OCR and verification
- Health check endpoints

Build with create_app(); every collaborator can be injected.
"""

import logging

# Reduce noise from verbose libraries
logging.getLogger("python_multipart").setLevel(logging.WARNING)
logging.getLogger("python_multipart.multipart").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.WARNING)
logging.getLogger("anthropic").setLevel(logging.WARNING)

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Callable, List, Optional

from fastapi import Depends, FastAPI, File, Header, Request, UploadFile
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..claims.errors import (
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
from ..claims.orchestrator import ClaimSubmissionService, Upload
from ..claims.schema import DocumentCategory
from ..utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """The authenticated user, identified by email."""
    email: str


PrincipalResolver = Callable[[str], Optional[Principal]]

# Checked in order; subclasses before their bases
ERROR_STATUS = (
    (MissingFieldError, 400),
    (ClaimValidationError, 400),
    (ClaimAccessDenied, 403),
    (ClaimNotFoundError, 404),
    (InvalidStatusTransition, 409),
    (VerificationAlreadyStored, 409),
    (SubmissionError, 500),
    (ContractViolation, 502),
    (UpstreamError, 502),
)


def status_for_error(error: ClaimPipelineError) -> int:
    """HTTP status for a pipeline error."""
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 500


def token_resolver(tokens: dict) -> PrincipalResolver:
    """Resolve bearer tokens from a static token -> email map."""
    def resolve(token: str) -> Optional[Principal]:
        email = tokens.get(token)
        return Principal(email=email.lower()) if email else None
    return resolve


def get_principal(request: Request, authorization: Optional[str] = Header(default=None)) -> Principal:
    """Resolve the bearer token of a request to a Principal (401 otherwise)."""
    if not authorization:
        raise StarletteHTTPException(status_code=401, detail="No authorization header")

    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise StarletteHTTPException(status_code=401, detail="No token provided")

    principal = request.app.state.resolve_principal(token)
    if principal is None:
        raise StarletteHTTPException(status_code=401, detail="Invalid session")
    return principal


def get_service(request: Request) -> ClaimSubmissionService:
    return request.app.state.service


def create_app(
    service: Optional[ClaimSubmissionService] = None,
    resolve_principal: Optional[PrincipalResolver] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the claim intake API.

    Args:
        service: Claim service (built from settings if None)
        resolve_principal: token -> Principal (settings.api_tokens if None)
        settings: Application settings (get_settings() if None)
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting claim intake API...")
        logger.info(f"LLM provider: {settings.llm_provider}")
        yield
        logger.info("Shutting down claim intake API...")

    app = FastAPI(
        title="TrueClaim Intake API",
        description="Claim submission with fraud risk scoring and document verification",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.service = service or ClaimSubmissionService.from_settings(settings)
    app.state.resolve_principal = resolve_principal or token_resolver(settings.api_tokens)

    # =========================================================================
    # Error handlers
    # =========================================================================

    @app.exception_handler(ClaimPipelineError)
    async def pipeline_error_handler(request: Request, exc: ClaimPipelineError):
        status_code = status_for_error(exc)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected: {exc}")

        if isinstance(exc, MissingFieldError):
            content = {"error": "Missing required fields", "missingFields": exc.missing_fields}
        else:
            content = {"error": exc.message, "details": exc.to_dict()}
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    # =========================================================================
    # Health Check Endpoints
    # =========================================================================

    @app.get("/")
    async def root():
        """Root endpoint - basic health check."""
        return {
            "service": "TrueClaim Intake API",
            "status": "running",
        }

    @app.get("/health")
    async def health_check():
        """Detailed health check endpoint."""
        return {
            "status": "healthy",
            "config": {
                "llm_provider": settings.llm_provider,
                "storage_bucket": settings.storage_bucket,
                "verified_threshold": settings.verified_threshold,
                "review_threshold": settings.review_threshold,
            },
        }

    # =========================================================================
    # Claim Endpoints
    # =========================================================================

    @app.post("/claims/analyze-fraud")
    async def analyze_fraud(
        body: dict,
        principal: Principal = Depends(get_principal),
        service: ClaimSubmissionService = Depends(get_service),
    ):
        """Score claim data for fraud risk without storing anything."""
        claim_data = body.get("claimData")
        if not isinstance(claim_data, dict):
            return JSONResponse(status_code=400, content={"error": "Missing claim data in request"})

        result = await service.analyze(claim_data)
        return result.to_wire()

    @app.post("/claims", status_code=201)
    async def submit_claim(
        body: dict,
        principal: Principal = Depends(get_principal),
        service: ClaimSubmissionService = Depends(get_service),
    ):
        """Submit a claim; fraud analysis runs before it is stored."""
        outcome = await service.submit(body, principal_email=principal.email)
        return {
            "message": "Claim submitted successfully",
            "claim": outcome.claim.model_dump(mode="json"),
            "fraud": outcome.fraud.to_wire(),
            "stages": [s.value for s in outcome.stages],
        }

    @app.get("/claims")
    async def list_claims(
        principal: Principal = Depends(get_principal),
        service: ClaimSubmissionService = Depends(get_service),
    ):
        """Claims of the signed-in user."""
        claims = service.list_claims(principal.email)
        return {"claims": [c.model_dump(mode="json") for c in claims]}

    @app.get("/claims/{claim_id}")
    async def get_claim(
        claim_id: str,
        principal: Principal = Depends(get_principal),
        service: ClaimSubmissionService = Depends(get_service),
    ):
        """One claim with its documents and verification."""
        return service.claim_details(claim_id, principal_email=principal.email)

    @app.post("/claims/{claim_id}/documents")
    async def upload_documents(
        claim_id: str,
        identity: Optional[List[UploadFile]] = File(default=None),
        invoice: Optional[List[UploadFile]] = File(default=None),
        supporting: Optional[List[UploadFile]] = File(default=None),
        principal: Principal = Depends(get_principal),
        service: ClaimSubmissionService = Depends(get_service),
    ):
        """Upload, OCR and verify claim documents."""
        uploads = []
        for category, files in (
            (DocumentCategory.IDENTITY, identity),
            (DocumentCategory.INVOICE, invoice),
            (DocumentCategory.SUPPORTING, supporting),
        ):
            for file in files or []:
                uploads.append(Upload(
                    category=category,
                    file_name=file.filename or "unnamed",
                    mime_type=file.content_type or "application/octet-stream",
                    data=await file.read(),
                ))

        if not uploads:
            return JSONResponse(status_code=400, content={"error": "No files uploaded"})

        outcome = await service.attach_documents(claim_id, uploads, principal_email=principal.email)
        return outcome.to_dict()

    @app.post("/claims/{claim_id}/verify-documents")
    async def verify_documents(
        claim_id: str,
        body: dict,
        principal: Principal = Depends(get_principal),
        service: ClaimSubmissionService = Depends(get_service),
    ):
        """Verify already-extracted document texts."""
        documents = body.get("documents")
        if not isinstance(documents, dict) or not documents:
            return JSONResponse(status_code=400, content={"error": "Missing required data"})

        summary = await service.verify_texts(claim_id, documents, principal_email=principal.email)
        return {"claimId": claim_id, "verification": summary.to_wire()}

    return app


# =============================================================================
# Main Entry Point
# =============================================================================


def main():
    """Run the FastAPI server."""
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
