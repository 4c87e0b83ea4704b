"""
Document verification against claim data.

Each document category (identity, invoice, supporting) is checked by its
own generation call. Categories are independent, so they run concurrently
and are joined once all of them have settled. Unlike fraud analysis there
is no fallback here: a failed or malformed category raises.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from .aggregator import DEFAULT_POLICY, VerificationPolicy, aggregate
from .errors import ClaimPipelineError, ClaimValidationError, UpstreamError, excerpt
from .gateway import GenerationGateway
from .parsing import Malformed, parse_verification_response
from .prompts import build_verification_prompt
from .schema import DocumentCategory, VerificationResult, VerificationSummary

logger = logging.getLogger(__name__)

CATEGORY_ORDER = (DocumentCategory.IDENTITY, DocumentCategory.INVOICE, DocumentCategory.SUPPORTING)

# Upload field names used by the claim form
CATEGORY_ALIASES = {
    "identityDocs": DocumentCategory.IDENTITY,
    "invoices": DocumentCategory.INVOICE,
    "supportingDocs": DocumentCategory.SUPPORTING,
}


def resolve_category(key: Any) -> DocumentCategory:
    """Map a category name or upload field alias to a DocumentCategory."""
    if isinstance(key, DocumentCategory):
        return key
    if key in CATEGORY_ALIASES:
        return CATEGORY_ALIASES[key]
    try:
        return DocumentCategory(str(key).lower())
    except ValueError:
        raise ClaimValidationError(
            f"Unknown document category: {key}",
            stage="verification",
            details={"allowed": [c.value for c in DocumentCategory]},
        )


def document_text(document: Any) -> str:
    """Text of a document given as a string, a mapping with 'text', or a Document."""
    if document is None:
        return ""
    if isinstance(document, str):
        return document
    if isinstance(document, Mapping):
        return document.get("text") or ""
    return getattr(document, "text", "") or ""


class VerificationRun:
    """
    One in-flight verification: a task per present category.

    If the awaiting caller is cancelled, unfinished category tasks are
    cancelled too, and results that already completed remain available
    through completed_results() and partial_summary().
    """

    def __init__(
        self,
        verifier: "DocumentVerifier",
        fields: Mapping[str, Any],
        texts: Mapping[DocumentCategory, str],
    ):
        self.policy = verifier.policy
        self.tasks: Dict[DocumentCategory, asyncio.Task] = {
            category: asyncio.create_task(
                verifier.verify_category(category, fields, texts[category]),
                name=f"verify-{category.value}",
            )
            for category in CATEGORY_ORDER
            if category in texts
        }

    def completed_results(self) -> Dict[DocumentCategory, VerificationResult]:
        """Results of categories that finished successfully."""
        return {
            category: task.result()
            for category, task in self.tasks.items()
            if task.done() and not task.cancelled() and task.exception() is None
        }

    def partial_summary(self) -> VerificationSummary:
        """Aggregate whatever has completed so far."""
        return aggregate(self.completed_results(), self.policy)

    def cancel(self) -> None:
        """Cancel category tasks that are still running."""
        for task in self.tasks.values():
            if not task.done():
                task.cancel()

    async def wait(self) -> VerificationSummary:
        """
        Wait for every category to settle, then aggregate.

        Raises:
            UpstreamError / ContractViolation: the first failing category
                (in identity, invoice, supporting order)
        """
        if not self.tasks:
            return aggregate({}, self.policy)

        try:
            await asyncio.wait(self.tasks.values())
        except asyncio.CancelledError:
            self.cancel()
            logger.warning(
                f"Verification cancelled with {len(self.completed_results())}/"
                f"{len(self.tasks)} categories complete"
            )
            raise

        failures = [
            (category, task.exception())
            for category, task in self.tasks.items()
            if not task.cancelled() and task.exception() is not None
        ]
        for category, error in failures:
            logger.error(f"Verification failed for {category.value}: {error}")
        if failures:
            raise failures[0][1]

        return aggregate(self.completed_results(), self.policy)


class DocumentVerifier:
    """
    Verifies uploaded documents against claim data.

    The gateway is injected so tests can substitute a stub.
    """

    def __init__(self, gateway: GenerationGateway, policy: Optional[VerificationPolicy] = None):
        self.gateway = gateway
        self.policy = policy or DEFAULT_POLICY

    async def verify_category(
        self,
        category: DocumentCategory,
        fields: Mapping[str, Any],
        text: str,
    ) -> VerificationResult:
        """
        Verify one document category.

        Raises:
            UpstreamError: generation failed (category attached)
            ContractViolation: response did not match the result contract
        """
        start_time = datetime.utcnow()
        prompt = build_verification_prompt(category, fields, text)

        try:
            raw_text = await self.gateway.generate(prompt)
        except ClaimPipelineError as e:
            e.stage = "verification"
            e.category = category.value
            raise
        except Exception as e:
            raise UpstreamError(
                f"Generation call failed: {type(e).__name__}",
                stage="verification",
                category=category.value,
            ) from e

        outcome = parse_verification_response(raw_text)
        if isinstance(outcome, Malformed):
            logger.warning(
                f"Malformed {category.value} verification: {outcome.reason}; "
                f"excerpt={excerpt(raw_text)!r}"
            )
            raise outcome.to_error(stage="verification", category=category.value)

        for repair in outcome.repairs:
            logger.warning(f"Repaired {category.value} verification: {repair}")

        elapsed_ms = (datetime.utcnow() - start_time).total_seconds() * 1000
        logger.debug(
            f"Verified {category.value}: valid={outcome.value.is_valid}, "
            f"confidence={outcome.value.confidence:.0f}, verification_time_ms={elapsed_ms:.0f}"
        )
        return outcome.value

    def start(self, fields: Mapping[str, Any], documents: Mapping[Any, Any]) -> VerificationRun:
        """Start verifying the present categories; must be called inside a running loop."""
        texts = {resolve_category(key): document_text(doc) for key, doc in documents.items() if doc is not None}
        logger.info(f"Verifying categories: {[c.value for c in CATEGORY_ORDER if c in texts]}")
        return VerificationRun(self, fields, texts)

    async def verify(self, fields: Mapping[str, Any], documents: Mapping[Any, Any]) -> VerificationSummary:
        """
        Verify documents and aggregate the results.

        Args:
            fields: Claim data keyed by wire name
            documents: category -> document ({'text': ...}, Document or str);
                       only present categories are processed

        Returns:
            VerificationSummary with overall confidence and status

        Cancelling this call drops the run. Callers that need completed
        results after a cancellation use start() and VerificationRun.wait().
        """
        run = self.start(fields, documents)
        summary = await run.wait()
        logger.info(
            f"Verification complete: status={summary.verification_status.value}, "
            f"overall_confidence={summary.overall_confidence:.1f}"
        )
        return summary
