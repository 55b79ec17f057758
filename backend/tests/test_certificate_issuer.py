"""
Tests for certificate issuance.
"""

from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from quizportal.models.models import User, Certificate, QuizCategory
from quizportal.services.certificate_issuer import CertificateIssuer, format_certificate_number
from quizportal.services.exceptions import NotFoundError, CertificateIssuanceError

ISSUED_AT = datetime(2026, 10, 19, 15, 30)


@pytest.fixture
def issuer():
    return CertificateIssuer(pass_score=50.0)


class TestCertificateNumber:

    @pytest.mark.unit
    def test_format(self):
        assert format_certificate_number(datetime(2026, 3, 1), 7) == "CERT-202603-0007"

    @pytest.mark.unit
    def test_sequence_wider_than_four_digits(self):
        assert format_certificate_number(datetime(2026, 12, 31), 12345) == "CERT-202612-12345"


class TestIssueIfEligible:
    """Test threshold, idempotency and numbering"""

    @pytest.mark.integration
    def test_below_pass_score_issues_nothing(self, db: Session, test_user: User, issuer, attempt_factory):
        attempt = attempt_factory(test_user, correct=1, total=2, total_score=49.999)

        assert issuer.issue_if_eligible(db, attempt, ISSUED_AT) is None
        assert db.query(Certificate).count() == 0

    @pytest.mark.integration
    def test_exactly_pass_score_issues_certificate(self, db: Session, test_user: User, issuer, attempt_factory):
        attempt = attempt_factory(test_user, correct=1, total=2)

        certificate = issuer.issue_if_eligible(db, attempt, ISSUED_AT)

        assert certificate is not None
        assert certificate.certificate_number == "CERT-202610-0001"
        assert certificate.attempt_id == attempt.id
        assert certificate.user_id == test_user.id
        assert certificate.category == QuizCategory.APTITUDE
        assert certificate.score == 50.0
        assert certificate.issue_date == ISSUED_AT

    @pytest.mark.integration
    def test_reissue_returns_existing(self, db: Session, test_user: User, issuer, attempt_factory):
        attempt = attempt_factory(test_user, correct=3, total=4)

        first = issuer.issue_if_eligible(db, attempt, ISSUED_AT)
        second = issuer.issue_if_eligible(db, attempt, ISSUED_AT)

        assert first.id == second.id
        assert db.query(Certificate).count() == 1

    @pytest.mark.integration
    def test_numbers_are_sequential(self, db: Session, test_user: User, other_user: User, issuer, attempt_factory):
        first = issuer.issue_if_eligible(db, attempt_factory(test_user), ISSUED_AT)
        second = issuer.issue_if_eligible(
            db, attempt_factory(other_user, category=QuizCategory.TECHNICAL), datetime(2026, 11, 2)
        )

        assert first.certificate_number == "CERT-202610-0001"
        assert second.certificate_number == "CERT-202611-0002"
        assert second.sequence == first.sequence + 1

    @pytest.mark.integration
    def test_sequence_seeded_from_existing_certificates(self, db: Session, test_user: User, issuer, attempt_factory):
        """Certificates written before the counter existed are not renumbered over"""
        legacy = attempt_factory(test_user)
        db.add(Certificate(
            user_id=test_user.id,
            attempt_id=legacy.id,
            category=legacy.category,
            score=legacy.total_score,
            sequence=1,
            certificate_number="CERT-202609-0001",
            issue_date=datetime(2026, 9, 1)
        ))
        db.commit()

        certificate = issuer.issue_if_eligible(db, attempt_factory(test_user), ISSUED_AT)
        assert certificate.certificate_number == "CERT-202610-0002"


class TestIssuanceFailures:

    @pytest.mark.integration
    def test_lookup_error_raises_issuance_error(self, db: Session, test_user: User, issuer, attempt_factory, monkeypatch):
        attempt = attempt_factory(test_user)

        def failing_lookup(db, attempt_id):
            raise OperationalError("SELECT certificates", {}, Exception("database is locked"))

        monkeypatch.setattr(issuer, "get_for_attempt", failing_lookup)

        with pytest.raises(CertificateIssuanceError):
            issuer.issue_if_eligible(db, attempt, ISSUED_AT)

    @pytest.mark.integration
    def test_sequence_error_raises_issuance_error(self, db: Session, test_user: User, issuer, attempt_factory, monkeypatch):
        attempt = attempt_factory(test_user)

        def failing_sequence(db):
            raise OperationalError("UPDATE certificate_sequences", {}, Exception("disk I/O error"))

        monkeypatch.setattr(issuer, "_next_sequence", failing_sequence)

        with pytest.raises(CertificateIssuanceError):
            issuer.issue_if_eligible(db, attempt, ISSUED_AT)
        assert db.query(Certificate).count() == 0


class TestCertificateLookup:

    @pytest.mark.integration
    def test_get_unknown_raises(self, db: Session, issuer):
        with pytest.raises(NotFoundError):
            issuer.get(db, "missing")

    @pytest.mark.integration
    def test_list_for_user_only_returns_own(self, db: Session, test_user: User, other_user: User, issuer, attempt_factory):
        issuer.issue_if_eligible(db, attempt_factory(test_user), ISSUED_AT)
        issuer.issue_if_eligible(db, attempt_factory(other_user), ISSUED_AT)

        certificates = issuer.list_for_user(db, test_user.id)
        assert len(certificates) == 1
        assert certificates[0].user_id == test_user.id
