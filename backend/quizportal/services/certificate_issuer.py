"""
Certificate Issuer.

Issues at most one certificate per attempt, for attempts scoring at least
CERTIFICATE_PASS_SCORE. Numbers look like CERT-202610-0042: issue year and
month, then a global sequence drawn from a single-row counter that is
incremented atomically inside the issuing transaction.
"""

import os
import logging
from datetime import datetime
from typing import Optional, List

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from quizportal.database import insert_ignore
from quizportal.models.models import Certificate, CertificateSequence, QuizAttempt
from quizportal.services.exceptions import CertificateIssuanceError, NotFoundError

logger = logging.getLogger(__name__)

CERTIFICATE_PASS_SCORE = float(os.getenv("CERTIFICATE_PASS_SCORE", "50"))
SEQUENCE_NAME = "certificate_number"


def format_certificate_number(issued_at: datetime, sequence: int) -> str:
    return f"CERT-{issued_at.year}{issued_at.month:02d}-{sequence:04d}"


class CertificateIssuer:

    def __init__(self, pass_score: float = CERTIFICATE_PASS_SCORE):
        self.pass_score = pass_score

    def is_eligible(self, attempt: QuizAttempt) -> bool:
        return attempt.total_score >= self.pass_score

    def get_for_attempt(self, db: Session, attempt_id: str) -> Optional[Certificate]:
        return db.query(Certificate).filter(Certificate.attempt_id == attempt_id).first()

    def get(self, db: Session, certificate_id: str) -> Certificate:
        certificate = db.query(Certificate).filter(Certificate.id == certificate_id).first()
        if not certificate:
            raise NotFoundError(f"Certificate not found: {certificate_id}")
        return certificate

    def list_for_user(self, db: Session, user_id: str) -> List[Certificate]:
        return db.query(Certificate).filter(
            Certificate.user_id == user_id
        ).order_by(Certificate.created_at.desc(), Certificate.sequence.desc()).all()

    def _next_sequence(self, db: Session) -> int:
        """
        Bump the certificate counter and return the new value. Does not commit.

        The UPDATE holds the row (Postgres) or database (SQLite) write lock
        until the caller commits, so concurrent issuers serialize here.
        """
        # First use seeds from any certificates issued before the counter existed
        existing = db.query(func.count(Certificate.id)).scalar() or 0
        insert_ignore(db, CertificateSequence.__table__, name=SEQUENCE_NAME, value=existing)

        db.query(CertificateSequence).filter(
            CertificateSequence.name == SEQUENCE_NAME
        ).update(
            {CertificateSequence.value: CertificateSequence.value + 1},
            synchronize_session=False
        )
        return db.query(CertificateSequence.value).filter(
            CertificateSequence.name == SEQUENCE_NAME
        ).scalar()

    def _existing_after_conflict(self, db: Session, attempt_id: str) -> Optional[Certificate]:
        try:
            return self.get_for_attempt(db, attempt_id)
        except SQLAlchemyError as e:
            db.rollback()
            raise CertificateIssuanceError(f"Could not issue certificate for attempt {attempt_id}") from e

    def issue_if_eligible(
        self,
        db: Session,
        attempt: QuizAttempt,
        now: Optional[datetime] = None
    ) -> Optional[Certificate]:
        """
        Return the attempt's certificate, issuing it first if needed.

        Returns None for attempts below the pass score. Re-invoking for the
        same attempt returns the existing certificate.

        Raises:
            CertificateIssuanceError: If the certificate could not be written.
        """
        attempt_id = attempt.id
        if not self.is_eligible(attempt):
            logger.info(
                "Attempt %s scored %.1f, below %.1f; no certificate",
                attempt_id, attempt.total_score, self.pass_score
            )
            return None

        issued_at = now or datetime.now()
        try:
            certificate = self.get_for_attempt(db, attempt_id)
            if certificate:
                return certificate

            sequence = self._next_sequence(db)
            certificate = Certificate(
                user_id=attempt.user_id,
                attempt_id=attempt_id,
                category=attempt.category,
                score=attempt.total_score,
                sequence=sequence,
                certificate_number=format_certificate_number(issued_at, sequence),
                issue_date=issued_at,
                created_at=issued_at
            )
            db.add(certificate)
            db.commit()
            db.refresh(certificate)
        except IntegrityError as e:
            db.rollback()
            # Lost a race with a concurrent issuer for the same attempt
            certificate = self._existing_after_conflict(db, attempt_id)
            if certificate:
                return certificate
            raise CertificateIssuanceError(f"Could not issue certificate for attempt {attempt_id}") from e
        except SQLAlchemyError as e:
            db.rollback()
            raise CertificateIssuanceError(f"Could not issue certificate for attempt {attempt_id}") from e

        logger.info(
            "Issued certificate %s for attempt %s (score %.1f)",
            certificate.certificate_number, attempt_id, certificate.score
        )
        return certificate


# Singleton instance
_certificate_issuer: Optional[CertificateIssuer] = None


def get_certificate_issuer() -> CertificateIssuer:
    """Get the singleton CertificateIssuer instance."""
    global _certificate_issuer
    if _certificate_issuer is None:
        _certificate_issuer = CertificateIssuer()
    return _certificate_issuer
