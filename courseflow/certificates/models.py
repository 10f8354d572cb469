"""Completion records handed to the certificate issuer."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID


# Opaque identifier returned by the issuer.
CertificateId = str


@dataclass(frozen=True)
class CompletionRecord:
    """Proof that a learner finished a course."""

    learner_id: UUID
    course_id: UUID
    completed_at: datetime
    certificate_id: CertificateId | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "learner_id": str(self.learner_id),
            "course_id": str(self.course_id),
            "completed_at": self.completed_at.isoformat(),
            "certificate_id": self.certificate_id,
        }
