"""
Shared fixtures and test doubles.

StubGateway answers prompts by kind (fraud, identity, invoice, supporting);
FakeOcrEngine stands in for Tesseract and counts acquire/release.
"""

import asyncio
import io
import json
import logging
from contextlib import contextmanager

import pytest
from PIL import Image

from src.claims.aggregator import VerificationPolicy
from src.claims.fraud import FraudRiskAnalyzer
from src.claims.gateway import GenerationGateway, MockGateway
from src.claims.orchestrator import ClaimSubmissionService
from src.claims.text_extractor import OcrEngine, OcrWorker, TextExtractionService
from src.claims.verifier import DocumentVerifier
from src.storage import ClaimStore, LocalObjectStore

# Setup logging for tests
logging.basicConfig(level=logging.INFO)


# ============================================================================
# Test doubles
# ============================================================================


def prompt_kind(prompt: str) -> str:
    """Which pipeline step a prompt belongs to."""
    if "fraudRiskScore" in prompt:
        return "fraud"
    if "identity document" in prompt:
        return "identity"
    if "invoice document" in prompt:
        return "invoice"
    if "supporting documents" in prompt:
        return "supporting"
    return "unknown"


def fraud_json(score=25, level="LOW", findings=None, recommendation="APPROVE") -> str:
    return json.dumps({
        "fraudRiskScore": score,
        "riskLevel": level,
        "keyFindings": findings if findings is not None else ["Nothing unusual"],
        "recommendation": recommendation,
    })


def verification_json(is_valid=True, confidence=90, match_score=90, findings=None) -> str:
    return json.dumps({
        "isValid": is_valid,
        "confidence": confidence,
        "findings": findings if findings is not None else ["Details match"],
        "matchScore": match_score,
    })


class StubGateway(GenerationGateway):
    """
    Canned responses keyed by prompt kind.

    A response may be a string, an exception to raise, or an awaitable
    factory (async callable taking the prompt).
    """

    def __init__(self, responses=None, default=None):
        self.responses = responses or {}
        self.default = default
        self.prompts = []

    def kinds(self):
        return [prompt_kind(p) for p in self.prompts]

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        response = self.responses.get(prompt_kind(prompt), self.default)
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return await response(prompt)
        return response


class FakeOcrWorker(OcrWorker):
    def __init__(self, engine: "FakeOcrEngine"):
        self.engine = engine

    def recognize(self, image):
        self.engine.images.append(image.size)
        if self.engine.error is not None:
            raise self.engine.error
        return self.engine.text


class FakeOcrEngine(OcrEngine):
    """Returns fixed text for every image."""

    def __init__(self, text: str = "", error: Exception = None):
        self.text = text
        self.error = error
        self.acquired = 0
        self.released = 0
        self.images = []

    @contextmanager
    def acquire(self):
        self.acquired += 1
        try:
            yield FakeOcrWorker(self)
        finally:
            self.released += 1


def png_bytes(size=(32, 32), color="white") -> bytes:
    """Encode a plain image as PNG."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def run(coro):
    """Drive a coroutine to completion."""
    return asyncio.run(coro)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def stub_gateway():
    """Factory for StubGateway instances."""
    return StubGateway


@pytest.fixture
def claim_fields():
    """Claim data under its wire names."""
    return {
        "fullName": "Jane Doe",
        "email": "jane@example.com",
        "phone": "555-0100",
        "claimType": "Accident",
        "dateOfIncident": "2024-05-01",
        "incidentLocation": "Main Street, Springfield",
        "incidentDescription": "Rear bumper dented in a parking lot collision",
        "claimAmount": "1200.00",
    }


@pytest.fixture
def claim_form_data(claim_fields):
    """A complete claim form as submitted over the API."""
    data = dict(claim_fields)
    data.update({"policyNumber": "POL-1001", "consent": True})
    return data


@pytest.fixture
def claim_store(tmp_path):
    return ClaimStore(tmp_path / "claims.db")


@pytest.fixture
def object_store(tmp_path):
    return LocalObjectStore(tmp_path / "objects", secret="test-secret")


@pytest.fixture
def ocr_engine():
    """OCR engine whose text matches the claim_fields identity."""
    return FakeOcrEngine(text="DRIVER LICENSE\nJane Doe\njane@example.com\n555-0100")


def build_service(gateway, store, objects, engine, **kwargs) -> ClaimSubmissionService:
    return ClaimSubmissionService(
        analyzer=FraudRiskAnalyzer(gateway),
        store=store,
        verifier=DocumentVerifier(gateway, VerificationPolicy()),
        text_extractor=TextExtractionService(engine),
        object_store=objects,
        bucket="trueclaim",
        **kwargs,
    )


@pytest.fixture
def mock_gateway():
    return MockGateway()


@pytest.fixture
def service(mock_gateway, claim_store, object_store, ocr_engine):
    """Claim service on the deterministic mock generator."""
    return build_service(mock_gateway, claim_store, object_store, ocr_engine)
