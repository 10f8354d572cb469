"""Certificate issuance for completed courses."""

from courseflow.certificates.models import CertificateId, CompletionRecord
from courseflow.certificates.service import CertificateIssuer, LoggingCertificateIssuer


__all__ = [
    "CertificateId",
    "CertificateIssuer",
    "CompletionRecord",
    "LoggingCertificateIssuer",
]
