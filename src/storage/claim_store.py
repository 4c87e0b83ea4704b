"""
SQLite-based claim storage.

Stores claims, their uploaded documents and document verification results
in a local SQLite database. No external database setup required.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Set

from ..claims.aggregator import DEFAULT_POLICY, VerificationPolicy, aggregate
from ..claims.errors import (
    ClaimNotFoundError,
    InvalidStatusTransition,
    SubmissionError,
    VerificationAlreadyStored,
)
from ..claims.schema import (
    STATUS_TRANSITIONS,
    Claim,
    ClaimStatus,
    Document,
    DocumentCategory,
    VerificationResult,
    VerificationSummary,
)

logger = logging.getLogger(__name__)

# Database file location
DEFAULT_DB_PATH = Path(__file__).parent.parent.parent / "data" / "claims.db"


class ClaimStore:
    """
    SQLite-based storage for insurance claims.

    Usage:
        store = ClaimStore()

        # Save a claim (fraud fields already set)
        store.insert_claim(claim)

        # Retrieve
        claim = store.get(claim_id)
        claims = store.find(email="jane@example.com")

        # Reviewer workflow
        store.update_status(claim_id, ClaimStatus.IN_REVIEW)

        # Documents and verification
        store.add_document(document)
        store.save_verification(claim_id, summary.results)
        summary = store.get_verification(claim_id)
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize the claim store."""
        self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Create tables if they don't exist."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS claims (
                    claim_id TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'SUBMITTED',

                    -- Contact & policy
                    full_name TEXT NOT NULL,
                    email TEXT NOT NULL,
                    phone TEXT,
                    policy_number TEXT,

                    -- Incident
                    claim_type TEXT NOT NULL,
                    incident_date TEXT NOT NULL,
                    incident_location TEXT NOT NULL,
                    incident_description TEXT NOT NULL,
                    claim_amount TEXT NOT NULL,

                    -- Fraud analysis (set once, at submission)
                    fraud_risk_score REAL NOT NULL,
                    risk_level TEXT NOT NULL,
                    recommendation TEXT NOT NULL,
                    key_findings TEXT NOT NULL DEFAULT '[]',

                    notes TEXT
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS claim_documents (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    claim_id TEXT NOT NULL REFERENCES claims(claim_id),
                    category TEXT NOT NULL,
                    file_name TEXT NOT NULL,
                    mime_type TEXT NOT NULL,
                    size INTEGER NOT NULL,
                    locator TEXT NOT NULL,
                    text TEXT NOT NULL DEFAULT '',
                    uploaded_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS verification_results (
                    claim_id TEXT NOT NULL REFERENCES claims(claim_id),
                    category TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    is_valid INTEGER NOT NULL,
                    confidence REAL NOT NULL,
                    match_score REAL NOT NULL,
                    findings TEXT NOT NULL DEFAULT '[]',

                    -- Written once per category
                    PRIMARY KEY (claim_id, category)
                )
            """)

            # Create indexes for common queries
            conn.execute("CREATE INDEX IF NOT EXISTS idx_claims_status ON claims(status)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_claims_email ON claims(email)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_claims_created ON claims(created_at)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_documents_claim ON claim_documents(claim_id)")

            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    # =========================================================================
    # Claims
    # =========================================================================

    def insert_claim(self, claim: Claim) -> str:
        """
        Save a new claim.

        Returns:
            The claim ID

        Raises:
            SubmissionError: the claim could not be stored
        """
        now = datetime.utcnow().isoformat()
        try:
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT INTO claims (
                        claim_id, created_at, updated_at, status,
                        full_name, email, phone, policy_number,
                        claim_type, incident_date, incident_location, incident_description, claim_amount,
                        fraud_risk_score, risk_level, recommendation, key_findings
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    claim.claim_id,
                    claim.created_at.isoformat(),
                    now,
                    claim.status.value,
                    claim.full_name,
                    claim.email.lower(),
                    claim.phone,
                    claim.policy_number,
                    claim.claim_type.value,
                    claim.incident_date.isoformat(),
                    claim.incident_location,
                    claim.incident_description,
                    str(claim.claim_amount),
                    claim.fraud_risk_score,
                    claim.risk_level.value,
                    claim.recommendation.value,
                    json.dumps(claim.key_findings),
                ))
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error inserting claim {claim.claim_id}: {e}")
            raise SubmissionError(
                "Failed to store claim",
                stage="persistence",
                details={"claim_id": claim.claim_id},
            ) from e

        logger.info(f"Claim saved with ID: {claim.claim_id}")
        return claim.claim_id

    def get(self, claim_id: str) -> Optional[Claim]:
        """
        Retrieve a claim by ID.

        Returns:
            Claim or None if not found
        """
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM claims WHERE claim_id = ?",
                (claim_id,)
            ).fetchone()

            if row:
                return self._row_to_claim(row)
        return None

    def find(self, claim_id: Optional[str] = None, email: Optional[str] = None) -> List[Claim]:
        """
        Select claims by ID, by owner email, or both.

        Raises:
            ValueError: neither claim_id nor email given
        """
        if not claim_id and not email:
            raise ValueError("find() needs a claim_id or an email")

        query = "SELECT * FROM claims WHERE 1=1"
        params = []
        if claim_id:
            query += " AND claim_id = ?"
            params.append(claim_id)
        if email:
            query += " AND email = ?"
            params.append(email.lower())
        query += " ORDER BY created_at DESC"

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_claim(row) for row in rows]

    def list_all(
        self,
        status: Optional[ClaimStatus] = None,
        email: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Claim]:
        """
        List claims with optional filtering.

        Args:
            status: Filter by status
            email: Filter by owner email
            limit: Max results
            offset: Pagination offset
        """
        query = "SELECT * FROM claims WHERE 1=1"
        params = []

        if status:
            query += " AND status = ?"
            params.append(ClaimStatus(status).value)

        if email:
            query += " AND email = ?"
            params.append(email.lower())

        query += " ORDER BY created_at DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_claim(row) for row in rows]

    def update_status(self, claim_id: str, status: ClaimStatus, notes: Optional[str] = None) -> Claim:
        """
        Move a claim along its lifecycle (SUBMITTED -> IN_REVIEW -> APPROVED|REJECTED).

        Raises:
            ClaimNotFoundError: unknown claim
            InvalidStatusTransition: the move is not allowed
        """
        status = ClaimStatus(status)
        claim = self.get(claim_id)
        if claim is None:
            raise ClaimNotFoundError(claim_id, stage="review")
        if status not in STATUS_TRANSITIONS[claim.status]:
            raise InvalidStatusTransition(
                f"Cannot move claim from {claim.status.value} to {status.value}",
                stage="review",
                details={"claim_id": claim_id},
            )

        now = datetime.utcnow().isoformat()
        with self._get_connection() as conn:
            if notes:
                conn.execute(
                    "UPDATE claims SET status = ?, updated_at = ?, notes = ? WHERE claim_id = ?",
                    (status.value, now, notes, claim_id)
                )
            else:
                conn.execute(
                    "UPDATE claims SET status = ?, updated_at = ? WHERE claim_id = ?",
                    (status.value, now, claim_id)
                )
            conn.commit()

        logger.info(f"Claim {claim_id} moved {claim.status.value} -> {status.value}")
        return self.get(claim_id)

    def count(self, status: Optional[ClaimStatus] = None) -> int:
        """Count claims, optionally by status."""
        with self._get_connection() as conn:
            if status:
                row = conn.execute(
                    "SELECT COUNT(*) FROM claims WHERE status = ?",
                    (ClaimStatus(status).value,)
                ).fetchone()
            else:
                row = conn.execute("SELECT COUNT(*) FROM claims").fetchone()
            return row[0]

    # =========================================================================
    # Documents
    # =========================================================================

    def add_document(self, document: Document) -> None:
        """Record an uploaded document."""
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO claim_documents (
                    claim_id, category, file_name, mime_type, size, locator, text, uploaded_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                document.claim_id,
                document.category.value,
                document.file_name,
                document.mime_type,
                document.size,
                document.locator,
                document.text,
                document.uploaded_at.isoformat(),
            ))
            conn.commit()

    def list_documents(self, claim_id: str) -> List[Document]:
        """Documents of a claim, oldest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM claim_documents WHERE claim_id = ? ORDER BY id",
                (claim_id,)
            ).fetchall()
            return [
                Document(
                    claim_id=row["claim_id"],
                    category=row["category"],
                    file_name=row["file_name"],
                    mime_type=row["mime_type"],
                    size=row["size"],
                    locator=row["locator"],
                    text=row["text"],
                    uploaded_at=datetime.fromisoformat(row["uploaded_at"]),
                )
                for row in rows
            ]

    # =========================================================================
    # Verification
    # =========================================================================

    def save_verification(
        self,
        claim_id: str,
        results: Mapping[DocumentCategory, VerificationResult],
    ) -> None:
        """
        Store per-category verification results. Each category is written
        once per claim; all results of one call are stored together or not
        at all.

        Raises:
            VerificationAlreadyStored: a category already has a stored result
        """
        if not results:
            return
        now = datetime.utcnow().isoformat()
        categories = [DocumentCategory(c) for c in results]

        try:
            with self._get_connection() as conn:
                existing = self._stored_categories(conn, claim_id)
                for category in categories:
                    if category in existing:
                        raise self._already_stored(claim_id, category)

                conn.executemany("""
                    INSERT INTO verification_results (
                        claim_id, category, created_at,
                        is_valid, confidence, match_score, findings
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """, [
                    (
                        claim_id,
                        category.value,
                        now,
                        int(result.is_valid),
                        result.confidence,
                        result.match_score,
                        json.dumps(result.findings),
                    )
                    for category, result in zip(categories, results.values())
                ])
                conn.commit()
        except sqlite3.IntegrityError as e:
            # Lost a race with a concurrent writer for the same category
            raise VerificationAlreadyStored(
                f"Verification already stored for claim {claim_id}",
                stage="persistence",
                details={"claim_id": claim_id, "categories": [c.value for c in categories]},
            ) from e

        logger.info(f"Verification stored for {claim_id}: {[c.value for c in categories]}")

    def verified_categories(self, claim_id: str) -> List[DocumentCategory]:
        """Categories that already have a stored result for the claim."""
        with self._get_connection() as conn:
            stored = self._stored_categories(conn, claim_id)
        return [c for c in DocumentCategory if c in stored]

    def get_verification_results(self, claim_id: str) -> Dict[DocumentCategory, VerificationResult]:
        """Stored per-category results of a claim."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM verification_results WHERE claim_id = ?",
                (claim_id,)
            ).fetchall()

        by_category = {
            DocumentCategory(row["category"]): VerificationResult(
                is_valid=bool(row["is_valid"]),
                confidence=row["confidence"],
                match_score=row["match_score"],
                findings=json.loads(row["findings"]),
            )
            for row in rows
        }
        return {c: by_category[c] for c in DocumentCategory if c in by_category}

    def get_verification(
        self,
        claim_id: str,
        policy: VerificationPolicy = DEFAULT_POLICY,
    ) -> Optional[VerificationSummary]:
        """Summary over every stored category result, or None if nothing is verified yet."""
        results = self.get_verification_results(claim_id)
        if not results:
            return None
        return aggregate(results, policy)

    def _stored_categories(self, conn: sqlite3.Connection, claim_id: str) -> Set[DocumentCategory]:
        rows = conn.execute(
            "SELECT category FROM verification_results WHERE claim_id = ?",
            (claim_id,)
        ).fetchall()
        return {DocumentCategory(row["category"]) for row in rows}

    @staticmethod
    def _already_stored(claim_id: str, category: DocumentCategory) -> VerificationAlreadyStored:
        return VerificationAlreadyStored(
            f"{category.value} documents already verified for claim {claim_id}",
            stage="persistence",
            category=category.value,
            details={"claim_id": claim_id},
        )

    def _row_to_claim(self, row: sqlite3.Row) -> Claim:
        """Convert a database row to Claim."""
        return Claim(
            claim_id=row["claim_id"],
            full_name=row["full_name"],
            email=row["email"],
            phone=row["phone"],
            policy_number=row["policy_number"],
            claim_type=row["claim_type"],
            incident_date=date.fromisoformat(row["incident_date"]),
            incident_location=row["incident_location"],
            incident_description=row["incident_description"],
            claim_amount=Decimal(row["claim_amount"]),
            status=row["status"],
            fraud_risk_score=row["fraud_risk_score"],
            risk_level=row["risk_level"],
            recommendation=row["recommendation"],
            key_findings=json.loads(row["key_findings"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            notes=row["notes"],
        )
