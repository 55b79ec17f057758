"""
Certificates Router

Certificate lookup for passed attempts. Rendering the certificate document
is handled elsewhere; these endpoints return its identity fields.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from quizportal.database import get_db
from quizportal.models.models import User
from quizportal.dependencies.auth import get_current_user, verify_user_access
from quizportal.schemas.certificate import CertificateOut
from quizportal.services.attempt_store import get_attempt_store
from quizportal.services.certificate_issuer import get_certificate_issuer
from quizportal.services.exceptions import QuizError, CertificateIssuanceError
from quizportal.utils.http_errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/certificates", tags=["certificates"])


@router.get("/user", response_model=List[CertificateOut])
def get_user_certificates(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """The caller's certificates, newest first."""
    return get_certificate_issuer().list_for_user(db, current_user.id)


@router.get("/quiz/{attempt_id}", response_model=CertificateOut)
def get_certificate_for_attempt(
    attempt_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Certificate for an attempt, issuing it now if the attempt qualifies
    and issuance was missed at submission time.
    """
    try:
        attempt = get_attempt_store().get(db, attempt_id)
    except QuizError as e:
        raise to_http_exception(e)

    verify_user_access(current_user, attempt.user_id)

    try:
        certificate = get_certificate_issuer().issue_if_eligible(db, attempt)
    except CertificateIssuanceError as e:
        logger.exception("Certificate issuance failed for attempt %s", attempt_id)
        raise HTTPException(status_code=500, detail=str(e))

    if not certificate:
        raise HTTPException(status_code=404, detail="Certificate not found and could not be generated")
    return certificate


@router.get("/{certificate_id}", response_model=CertificateOut)
def get_certificate(
    certificate_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Certificate metadata for display or download."""
    try:
        certificate = get_certificate_issuer().get(db, certificate_id)
    except QuizError as e:
        raise to_http_exception(e)

    verify_user_access(current_user, certificate.user_id)
    return certificate
