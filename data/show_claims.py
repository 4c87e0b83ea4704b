"""
Script to display claims, fraud scores and document verification with rich tables.
Run with: python data/show_claims.py [summary|all]
"""

import sys
from decimal import Decimal
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.claims.aggregator import VerificationPolicy
from src.claims.schema import Claim, ClaimStatus, RiskLevel, VerificationStatus, VerificationSummary
from src.storage import ClaimStore
from src.utils.config import get_settings

console = Console()

RISK_COLORS = {
    RiskLevel.LOW: "green",
    RiskLevel.MEDIUM: "yellow",
    RiskLevel.HIGH: "red",
}

STATUS_COLORS = {
    ClaimStatus.SUBMITTED: "cyan",
    ClaimStatus.IN_REVIEW: "yellow",
    ClaimStatus.APPROVED: "green",
    ClaimStatus.REJECTED: "red",
}

VERIFICATION_COLORS = {
    VerificationStatus.PENDING: "dim",
    VerificationStatus.VERIFIED: "green",
    VerificationStatus.NEEDS_REVIEW: "yellow",
    VerificationStatus.REJECTED: "red",
}


def truncate(text: Optional[str], max_len: int = 50) -> str:
    """Truncate text with ellipsis."""
    if not text:
        return ""
    text = str(text)
    if len(text) > max_len:
        return text[:max_len-3] + "..."
    return text


def colored(value, colors: dict) -> str:
    color = colors.get(value, "white")
    return f"[{color}]{value.value}[/{color}]"


def format_amount(amount: Decimal) -> str:
    return f"${amount:,.2f}"


def make_summary_table(store: ClaimStore, claims: list) -> Table:
    """Create summary table with key claim info."""
    table = Table(
        title="📋 All Claims",
        box=box.ROUNDED,
        header_style="bold cyan",
        show_lines=True,
    )

    table.add_column("Claim ID", style="bold")
    table.add_column("Created", style="dim")
    table.add_column("Status", style="bold")
    table.add_column("Name")
    table.add_column("Email")
    table.add_column("Type")
    table.add_column("Amount", justify="right")
    table.add_column("Fraud", justify="right")
    table.add_column("Risk")
    table.add_column("Documents")
    table.add_column("Verification")

    for claim in claims:
        summary = store.get_verification(claim.claim_id, VerificationPolicy.from_settings(get_settings()))
        documents = store.list_documents(claim.claim_id)
        verification = colored(summary.verification_status, VERIFICATION_COLORS) if summary else "[dim]-[/dim]"

        table.add_row(
            claim.claim_id,
            claim.created_at.strftime("%Y-%m-%d %H:%M"),
            colored(claim.status, STATUS_COLORS),
            truncate(claim.full_name, 20),
            truncate(claim.email, 25),
            claim.claim_type.value,
            format_amount(claim.claim_amount),
            f"{claim.fraud_risk_score:.0f}",
            colored(claim.risk_level, RISK_COLORS),
            str(len(documents)),
            verification,
        )

    return table


def make_verification_table(summary: VerificationSummary) -> Table:
    """Per-category verification results."""
    table = Table(box=box.SIMPLE, header_style="bold")
    table.add_column("Category")
    table.add_column("Valid")
    table.add_column("Confidence", justify="right")
    table.add_column("Match", justify="right")
    table.add_column("Findings", overflow="fold")

    for category, result in summary.results.items():
        table.add_row(
            category.value,
            "✅" if result.is_valid else "❌",
            f"{result.confidence:.0f}",
            f"{result.match_score:.0f}",
            "; ".join(result.findings[:3]) or "-",
        )
    return table


def show_claim_detail(store: ClaimStore, claim: Claim):
    """Show detailed view of a single claim."""
    console.print()
    console.print(Panel(f"[bold cyan]Claim: {claim.claim_id}[/bold cyan]", expand=False))

    console.print("\n[bold]📌 Basic Info[/bold]")
    console.print(f"  Status: {colored(claim.status, STATUS_COLORS)}")
    console.print(f"  Created: {claim.created_at:%Y-%m-%d %H:%M}")
    if claim.updated_at:
        console.print(f"  Updated: {claim.updated_at:%Y-%m-%d %H:%M}")

    console.print("\n[bold]👤 Claimant[/bold]")
    console.print(f"  Name: {claim.full_name}")
    console.print(f"  Email: {claim.email}")
    console.print(f"  Phone: {claim.phone or '[dim]Not provided[/dim]'}")
    console.print(f"  Policy #: {claim.policy_number or '[dim]Not provided[/dim]'}")

    console.print("\n[bold]🔥 Incident[/bold]")
    console.print(f"  Type: {claim.claim_type.value}")
    console.print(f"  Date: {claim.incident_date.isoformat()}")
    console.print(f"  Location: {claim.incident_location}")
    console.print("  Description:")
    for line in claim.incident_description.split("\n"):
        console.print(f"    {line}")
    console.print(f"  Amount: [bold]{format_amount(claim.claim_amount)}[/bold]")

    console.print("\n[bold]🔍 Fraud Analysis[/bold]")
    score_color = RISK_COLORS.get(claim.risk_level, "white")
    console.print(f"  Score: [{score_color}]{claim.fraud_risk_score:.0f}[/{score_color}]")
    console.print(f"  Risk Level: {colored(claim.risk_level, RISK_COLORS)}")
    console.print(f"  Recommendation: {claim.recommendation.value}")
    for finding in claim.key_findings[:5]:
        console.print(f"    - {finding}")

    documents = store.list_documents(claim.claim_id)
    console.print(f"\n[bold]📎 Documents ({len(documents)})[/bold]")
    for document in documents:
        console.print(
            f"  [{document.category.value}] {document.file_name} "
            f"[dim]({document.mime_type}, {document.size} bytes)[/dim]"
        )

    summary = store.get_verification(claim.claim_id, VerificationPolicy.from_settings(get_settings()))
    if summary:
        console.print("\n[bold]✅ Verification[/bold]")
        console.print(f"  Status: {colored(summary.verification_status, VERIFICATION_COLORS)}")
        console.print(f"  Overall Confidence: {summary.overall_confidence:.1f}")
        console.print(make_verification_table(summary))

    if claim.notes:
        console.print(f"\n[bold]📝 Notes[/bold]: {claim.notes}")


def main(mode: str = "summary"):
    """
    Main function to display claims.

    Args:
        mode: "summary" (default) or "all"
    """
    db_path = get_settings().db_path
    console.print(f"\n[bold]Database:[/bold] {Path(db_path).resolve()}\n")

    if not Path(db_path).exists():
        console.print("[yellow]No database found. Submit a claim through the API first.[/yellow]")
        return

    store = ClaimStore(db_path)
    total = store.count()
    console.print(f"[bold]Total claims:[/bold] {total}\n")

    if total == 0:
        console.print("[yellow]No claims in database yet.[/yellow]")
        return

    claims = store.list_all(limit=total)

    if mode == "all":
        for claim in claims:
            show_claim_detail(store, claim)
            console.print("\n" + "-"*70)
        return

    console.print(make_summary_table(store, claims))

    console.print("\n[bold]Status Breakdown:[/bold]")
    for status in ClaimStatus:
        n = store.count(status=status)
        if n:
            console.print(f"  {colored(status, STATUS_COLORS)}: {n}")

    show_claim_detail(store, claims[0])


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else "summary")
