"""
Tests for concurrent document verification.
"""

import asyncio

import pytest

from conftest import run, verification_json
from src.claims.errors import ClaimValidationError, ContractViolation, UpstreamError
from src.claims.schema import Document, DocumentCategory, VerificationStatus
from src.claims.verifier import DocumentVerifier, document_text, resolve_category


ALL_DOCUMENTS = {
    "identity": {"text": "Jane Doe jane@example.com"},
    "invoice": {"text": "Invoice total 1200.00"},
    "supporting": {"text": "Police report, Main Street"},
}


# ============================================================================
# Test: Category handling
# ============================================================================


class TestCategories:
    """Category names, aliases and document shapes."""

    @pytest.mark.parametrize("key,category", [
        ("identity", DocumentCategory.IDENTITY),
        ("INVOICE", DocumentCategory.INVOICE),
        ("identityDocs", DocumentCategory.IDENTITY),
        ("invoices", DocumentCategory.INVOICE),
        ("supportingDocs", DocumentCategory.SUPPORTING),
        (DocumentCategory.SUPPORTING, DocumentCategory.SUPPORTING),
    ])
    def test_resolve_category(self, key, category):
        assert resolve_category(key) == category

    def test_unknown_category(self):
        with pytest.raises(ClaimValidationError):
            resolve_category("selfie")

    def test_document_text_shapes(self):
        doc = Document(
            claim_id="CLM-1", category="invoice", file_name="a.png",
            mime_type="image/png", size=1, locator="trueclaim/invoices/a.png", text="total 5",
        )
        assert document_text("plain") == "plain"
        assert document_text({"text": "mapped"}) == "mapped"
        assert document_text({"text": None}) == ""
        assert document_text(doc) == "total 5"


# ============================================================================
# Test: Verification
# ============================================================================


class TestVerify:
    """Per-category fan-out and aggregation."""

    def test_all_categories(self, stub_gateway, claim_fields):
        gateway = stub_gateway(responses={
            "identity": verification_json(confidence=85),
            "invoice": verification_json(confidence=90),
            "supporting": verification_json(confidence=95),
        })
        summary = run(DocumentVerifier(gateway).verify(claim_fields, ALL_DOCUMENTS))

        assert sorted(gateway.kinds()) == ["identity", "invoice", "supporting"]
        assert summary.overall_confidence == 90
        assert summary.verification_status == VerificationStatus.VERIFIED
        assert set(summary.results) == set(DocumentCategory)

    def test_only_present_categories(self, stub_gateway, claim_fields):
        gateway = stub_gateway(default=verification_json(confidence=60))
        summary = run(DocumentVerifier(gateway).verify(claim_fields, {"invoices": {"text": "total 1200"}}))

        assert gateway.kinds() == ["invoice"]
        assert list(summary.results) == [DocumentCategory.INVOICE]
        assert summary.verification_status == VerificationStatus.NEEDS_REVIEW

    def test_no_documents_is_pending(self, stub_gateway, claim_fields):
        gateway = stub_gateway(default=verification_json())
        summary = run(DocumentVerifier(gateway).verify(claim_fields, {}))
        assert summary.verification_status == VerificationStatus.PENDING
        assert gateway.prompts == []

    def test_unknown_category_fails_before_generation(self, stub_gateway, claim_fields):
        gateway = stub_gateway(default=verification_json())
        with pytest.raises(ClaimValidationError):
            run(DocumentVerifier(gateway).verify(claim_fields, {"selfie": {"text": "x"}}))
        assert gateway.prompts == []

    def test_prompt_uses_category_fields(self, stub_gateway, claim_fields):
        gateway = stub_gateway(default=verification_json())
        run(DocumentVerifier(gateway).verify(claim_fields, {"identity": {"text": ""}}))
        prompt = gateway.prompts[0]
        assert "- Name: Jane Doe" in prompt
        assert "- Email: jane@example.com" in prompt
        assert "(no text extracted)" in prompt
        assert "Claim Amount" not in prompt

    def test_categories_run_concurrently(self, claim_fields, stub_gateway):
        arrived = []
        all_arrived = asyncio.Event()

        async def wait_for_others(prompt):
            arrived.append(prompt)
            if len(arrived) == 3:
                all_arrived.set()
            await all_arrived.wait()
            return verification_json()

        gateway = stub_gateway(default=wait_for_others)

        async def scenario():
            # Sequential calls would never see all three prompts arrive
            return await asyncio.wait_for(
                DocumentVerifier(gateway).verify(claim_fields, ALL_DOCUMENTS), timeout=5
            )

        summary = run(scenario())
        assert len(summary.results) == 3


# ============================================================================
# Test: Failures
# ============================================================================


class TestFailures:
    """Category failures surface with their category; there is no fallback."""

    def test_upstream_error_carries_category(self, stub_gateway, claim_fields):
        gateway = stub_gateway(
            responses={"invoice": UpstreamError("model overloaded", stage="generation")},
            default=verification_json(),
        )
        with pytest.raises(UpstreamError) as exc_info:
            run(DocumentVerifier(gateway).verify(claim_fields, ALL_DOCUMENTS))

        assert exc_info.value.category == "invoice"
        assert exc_info.value.stage == "verification"
        # the other categories still ran to completion
        assert len(gateway.prompts) == 3

    def test_malformed_response_is_contract_violation(self, stub_gateway, claim_fields):
        gateway = stub_gateway(responses={"supporting": "Looks legit to me!"}, default=verification_json())
        with pytest.raises(ContractViolation) as exc_info:
            run(DocumentVerifier(gateway).verify(claim_fields, ALL_DOCUMENTS))
        assert exc_info.value.category == "supporting"

    def test_unexpected_error_wrapped(self, stub_gateway, claim_fields):
        gateway = stub_gateway(responses={"identity": RuntimeError("socket closed")}, default=verification_json())
        with pytest.raises(UpstreamError) as exc_info:
            run(DocumentVerifier(gateway).verify(claim_fields, ALL_DOCUMENTS))
        assert exc_info.value.category == "identity"

    def test_first_failure_in_category_order(self, stub_gateway, claim_fields):
        gateway = stub_gateway(responses={
            "identity": verification_json(),
            "invoice": "not json",
            "supporting": UpstreamError("timeout", stage="generation"),
        })
        with pytest.raises(ContractViolation) as exc_info:
            run(DocumentVerifier(gateway).verify(claim_fields, ALL_DOCUMENTS))
        assert exc_info.value.category == "invoice"


class TestCancellation:
    """Cancelling a run keeps the results that already completed."""

    def test_partial_summary_after_cancel(self, stub_gateway, claim_fields):
        never = asyncio.Event()

        async def hang(prompt):
            await never.wait()

        gateway = stub_gateway(
            responses={"identity": verification_json(confidence=88)},
            default=hang,
        )

        async def scenario():
            verification = DocumentVerifier(gateway).start(claim_fields, ALL_DOCUMENTS)
            waiter = asyncio.create_task(verification.wait())
            while not verification.tasks[DocumentCategory.IDENTITY].done():
                await asyncio.sleep(0)

            waiter.cancel()
            with pytest.raises(asyncio.CancelledError):
                await waiter
            await asyncio.gather(*verification.tasks.values(), return_exceptions=True)
            return verification

        verification = run(scenario())

        assert verification.tasks[DocumentCategory.INVOICE].cancelled()
        assert verification.tasks[DocumentCategory.SUPPORTING].cancelled()
        partial = verification.partial_summary()
        assert list(partial.results) == [DocumentCategory.IDENTITY]
        assert partial.overall_confidence == 88
        assert partial.verification_status == VerificationStatus.VERIFIED
