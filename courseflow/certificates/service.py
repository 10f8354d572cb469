"""Certificate issuer port."""

from typing import Protocol
from uuid import uuid4

import structlog

from .models import CertificateId, CompletionRecord


logger = structlog.get_logger(__name__)


class CertificateIssuer(Protocol):
    """Turns a completion record into a certificate artifact."""

    async def issue_certificate(self, record: CompletionRecord) -> CertificateId:
        ...


class LoggingCertificateIssuer:
    """Default issuer: assigns an ID and logs the issuance."""

    def __init__(self) -> None:
        self.issued: dict[CertificateId, CompletionRecord] = {}

    async def issue_certificate(self, record: CompletionRecord) -> CertificateId:
        certificate_id = str(uuid4())
        self.issued[certificate_id] = record
        logger.info(
            "certificate_issued",
            certificate_id=certificate_id,
            learner_id=str(record.learner_id),
            course_id=str(record.course_id),
        )
        return certificate_id
