#!/usr/bin/env python3
"""
View stored claims from the database.

Usage:
    python view_claims.py                          # List all claims
    python view_claims.py CLM-xxx                  # View specific claim details
    python view_claims.py --status SUBMITTED       # Filter by status
    python view_claims.py --email jane@example.com # Filter by owner
    python view_claims.py CLM-xxx --set-status IN_REVIEW
    python view_claims.py --stats                  # Show statistics
"""

import argparse
import json
import os
import sys
from datetime import datetime
from typing import Optional

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from src.claims.aggregator import VerificationPolicy
from src.claims.errors import ClaimPipelineError
from src.claims.schema import Claim, ClaimStatus, RiskLevel, VerificationStatus
from src.storage import ClaimStore
from src.utils.config import get_settings


def format_datetime(value: Optional[datetime]) -> str:
    """Format a datetime for display."""
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M:%S")


def load_summary(store: ClaimStore, claim_id: str):
    """Verification summary under the configured thresholds."""
    return store.get_verification(claim_id, VerificationPolicy.from_settings(get_settings()))


def print_claim_list(claims: list):
    """Print a table of claims."""
    if not claims:
        print("\nNo claims found.")
        return

    print(f"\n{'─' * 100}")
    print(f"{'Claim ID':<28} {'Status':<11} {'Type':<9} {'Risk':<7} {'Amount':>12}  {'Created':<20} {'Email':<20}")
    print(f"{'─' * 100}")

    for claim in claims:
        print(
            f"{claim.claim_id:<28} {claim.status.value:<11} {claim.claim_type.value:<9} "
            f"{claim.risk_level.value:<7} {claim.claim_amount:>12,.2f}  "
            f"{format_datetime(claim.created_at):<20} {claim.email[:20]:<20}"
        )

    print(f"{'─' * 100}")
    print(f"Total: {len(claims)} claim(s)")


def print_claim_detail(claim: Claim, store: ClaimStore):
    """Print detailed view of a single claim."""
    print(f"\n{'═' * 70}")
    print(f"  CLAIM DETAILS: {claim.claim_id}")
    print(f"{'═' * 70}")

    print(f"\n📋 STATUS & METADATA")
    print(f"   Status:     {claim.status.value}")
    print(f"   Created:    {format_datetime(claim.created_at)}")
    print(f"   Updated:    {format_datetime(claim.updated_at)}")

    print(f"\n👤 POLICYHOLDER")
    print(f"   Name:       {claim.full_name}")
    print(f"   Email:      {claim.email}")
    if claim.phone:
        print(f"   Phone:      {claim.phone}")
    if claim.policy_number:
        print(f"   Policy:     {claim.policy_number}")

    print(f"\n🔥 INCIDENT")
    print(f"   Type:       {claim.claim_type.value}")
    print(f"   Date:       {claim.incident_date.isoformat()}")
    print(f"   Location:   {claim.incident_location}")
    description = claim.incident_description
    if len(description) > 60:
        description = description[:60] + "..."
    print(f"   Description: {description}")
    print(f"   Amount:     ${claim.claim_amount:,.2f}")

    print(f"\n⚠️  FRAUD ANALYSIS")
    print(f"   Score:          {claim.fraud_risk_score:.0f}/100")
    print(f"   Risk level:     {claim.risk_level.value}")
    print(f"   Recommendation: {claim.recommendation.value}")
    for finding in claim.key_findings[:5]:
        print(f"      - {finding}")

    print(f"\n📎 DOCUMENTS")
    documents = store.list_documents(claim.claim_id)
    if documents:
        for doc in documents:
            print(f"   [{doc.category.value}] {doc.file_name} ({doc.mime_type}, {doc.size:,} bytes)")
    else:
        print("   (No documents uploaded)")

    print(f"\n🔎 VERIFICATION")
    summary = load_summary(store, claim.claim_id)
    if summary:
        print(f"   Status:     {summary.verification_status.value}")
        print(f"   Confidence: {summary.overall_confidence:.1f}")
        for category, result in summary.results.items():
            valid = "valid" if result.is_valid else "INVALID"
            print(f"   {category.value}: {valid}, confidence {result.confidence:.0f}, match {result.match_score:.0f}")
            for finding in result.findings[:3]:
                print(f"         - {finding}")
    else:
        print("   (Not verified)")

    if claim.notes:
        print(f"\n📝 NOTES\n   {claim.notes}")

    print(f"\n{'═' * 70}")


def print_stats(store: ClaimStore):
    """Print database statistics."""
    total = store.count()

    print(f"\n{'═' * 50}")
    print(f"  DATABASE STATISTICS")
    print(f"{'═' * 50}")
    print(f"\n  Total Claims: {total}")

    print(f"\n  By Status:")
    for status in ClaimStatus:
        count = store.count(status=status)
        if count > 0:
            print(f"    {status.value}: {count}")

    claims = store.list_all(limit=1000)

    print(f"\n  By Risk Level:")
    levels = {}
    for c in claims:
        levels[c.risk_level] = levels.get(c.risk_level, 0) + 1
    for level in RiskLevel:
        if levels.get(level):
            print(f"    {level.value}: {levels[level]}")

    print(f"\n  By Verification:")
    verifications = {}
    for c in claims:
        summary = load_summary(store, c.claim_id)
        key = summary.verification_status if summary else VerificationStatus.PENDING
        verifications[key] = verifications.get(key, 0) + 1
    for status in VerificationStatus:
        if verifications.get(status):
            print(f"    {status.value}: {verifications[status]}")

    print(f"\n  Database: {store.db_path}")
    print(f"{'═' * 50}")


def export_claim(claim: Claim, store: ClaimStore):
    """Export a claim to JSON."""
    summary = load_summary(store, claim.claim_id)
    data = {
        "claim": claim.model_dump(mode="json"),
        "fraud": claim.fraud_result().to_wire(),
        "documents": [
            d.model_dump(mode="json", exclude={"text"})
            for d in store.list_documents(claim.claim_id)
        ],
        "verification": summary.to_wire() if summary else None,
    }
    print(json.dumps(data, indent=2))


def main():
    parser = argparse.ArgumentParser(description="View stored claims")
    parser.add_argument("claim_id", nargs="?", help="Specific claim ID to view")
    parser.add_argument("--status", type=str.upper, choices=[s.value for s in ClaimStatus], help="Filter by status")
    parser.add_argument("--email", help="Filter by policyholder email")
    parser.add_argument("--stats", action="store_true", help="Show statistics")
    parser.add_argument("--export", action="store_true", help="Export claim as JSON")
    parser.add_argument("--set-status", type=str.upper, choices=[s.value for s in ClaimStatus],
                        help="Move the claim to a new status (reviewer workflow)")
    parser.add_argument("--notes", help="Reviewer notes stored with --set-status")
    parser.add_argument("--limit", type=int, default=50, help="Max claims to list")

    args = parser.parse_args()

    store = ClaimStore(get_settings().db_path)

    if args.stats:
        print_stats(store)
        return

    if args.claim_id:
        claim = store.get(args.claim_id)
        if not claim:
            print(f"\nClaim not found: {args.claim_id}")
            sys.exit(1)

        if args.set_status:
            try:
                claim = store.update_status(claim.claim_id, ClaimStatus(args.set_status), notes=args.notes)
            except ClaimPipelineError as e:
                print(f"\n{e}")
                sys.exit(1)
            print(f"\nClaim {claim.claim_id} is now {claim.status.value}")

        if args.export:
            export_claim(claim, store)
        else:
            print_claim_detail(claim, store)
    else:
        claims = store.list_all(
            status=args.status,
            email=args.email,
            limit=args.limit
        )
        print_claim_list(claims)


if __name__ == "__main__":
    main()
