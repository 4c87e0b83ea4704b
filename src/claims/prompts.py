"""
Prompt templates for fraud analysis and document verification.

Rendering is deterministic: the same claim data always yields the same
prompt text, which keeps generation calls reproducible and testable.
"""

from typing import Any, Mapping

from .schema import DocumentCategory

NOT_PROVIDED = "not provided"


FRAUD_ANALYSIS_PROMPT = """Analyze this insurance claim for fraud risk. Respond with ONLY a JSON object in this exact format:
{{
  "fraudRiskScore": <number between 0-100>,
  "riskLevel": <"LOW" if score < 40 | "MEDIUM" if score 40-70 | "HIGH" if score > 70>,
  "keyFindings": [<list of string observations>],
  "recommendation": <"APPROVE" if LOW | "REVIEW" if MEDIUM | "REJECT" if HIGH>
}}

Claim Details:
- Type: {claimType}
- Date: {dateOfIncident}
- Location: {incidentLocation}
- Description: {incidentDescription}
- Amount: {claimAmount}

Consider:
1. Amount reasonability
2. Description consistency
3. Timing patterns
4. Location plausibility
5. Common fraud indicators

IMPORTANT: Return ONLY the JSON object, no other text."""


VERIFICATION_RESPONSE_FORMAT = """Respond with ONLY a JSON object in this format:
{{
  "isValid": <boolean>,
  "confidence": <number between 0-100>,
  "findings": [<list of string observations>],
  "matchScore": <number between 0-100 indicating {match_meaning}>
}}"""


IDENTITY_PROMPT = """Analyze this identity document and verify if it matches the provided form data.
Form data:
- Name: {fullName}
- Email: {email}
- Phone: {phone}

Document text content:
{text}

{response_format}

Consider:
1. Name matching
2. Document authenticity indicators
3. Data consistency
4. Common forgery signs

Return ONLY the JSON object, no other text."""


INVOICE_PROMPT = """Analyze this invoice document and verify if it matches the claimed amount and incident.
Form data:
- Claim Amount: {claimAmount}
- Incident Date: {dateOfIncident}
- Incident Type: {claimType}

Invoice text content:
{text}

{response_format}

Consider:
1. Amount matching
2. Date consistency
3. Service/product relevance to claim type
4. Invoice authenticity indicators
5. Common invoice fraud patterns

Return ONLY the JSON object, no other text."""


SUPPORTING_PROMPT = """Analyze these supporting documents and verify if they corroborate the claim details.
Form data:
- Incident Date: {dateOfIncident}
- Incident Location: {incidentLocation}
- Incident Description: {incidentDescription}
- Claim Type: {claimType}

Document text content:
{text}

{response_format}

Consider:
1. Date and location consistency
2. Incident description matching
3. Document authenticity
4. Photo metadata if available
5. Common document manipulation signs

Return ONLY the JSON object, no other text."""


_VERIFICATION_TEMPLATES = {
    DocumentCategory.IDENTITY: (
        IDENTITY_PROMPT,
        ("fullName", "email", "phone"),
        "how well the document matches the form data",
    ),
    DocumentCategory.INVOICE: (
        INVOICE_PROMPT,
        ("claimAmount", "dateOfIncident", "claimType"),
        "how well the invoice matches the claim details",
    ),
    DocumentCategory.SUPPORTING: (
        SUPPORTING_PROMPT,
        ("dateOfIncident", "incidentLocation", "incidentDescription", "claimType"),
        "how well the documents support the claim",
    ),
}


def _render_value(value: Any) -> str:
    if value is None:
        return NOT_PROVIDED
    text = str(value).strip()
    return text or NOT_PROVIDED


def build_fraud_prompt(fields: Mapping[str, Any]) -> str:
    """Render the fraud analysis prompt for one claim."""
    return FRAUD_ANALYSIS_PROMPT.format(
        claimType=_render_value(fields.get("claimType")),
        dateOfIncident=_render_value(fields.get("dateOfIncident")),
        incidentLocation=_render_value(fields.get("incidentLocation")),
        incidentDescription=_render_value(fields.get("incidentDescription")),
        claimAmount=_render_value(fields.get("claimAmount")),
    )


def build_verification_prompt(
    category: DocumentCategory,
    fields: Mapping[str, Any],
    document_text: str,
) -> str:
    """
    Render the verification prompt for one document category.

    Only the claim fields relevant to the category are included:
    identity (name, email, phone), invoice (amount, date, type) and
    supporting (date, location, description, type).
    """
    template, keys, match_meaning = _VERIFICATION_TEMPLATES[DocumentCategory(category)]
    values = {key: _render_value(fields.get(key)) for key in keys}
    return template.format(
        text=document_text.strip() if document_text and document_text.strip() else "(no text extracted)",
        response_format=VERIFICATION_RESPONSE_FORMAT.format(match_meaning=match_meaning),
        **values,
    )
