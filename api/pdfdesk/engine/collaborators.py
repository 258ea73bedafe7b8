"""
Boundary contracts consumed by the engine: persistence and entitlement.

The engine never depends on a concrete backend; the service wires in the
SQLModel ledger (``pdfdesk.ledger``), tests wire in fakes.
"""

from enum import Enum
from typing import List, Optional, Protocol

from loguru import logger

from .errors import QuotaExceeded
from .models import Entitlement, SavedSignatureEntry


class RecordOutcome(str, Enum):
    OK = "ok"
    QUOTA_EXCEEDED = "quota_exceeded"


class DeleteOutcome(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"


class PersistenceCollaborator(Protocol):
    def record_document(self, kind: str, action: str, size_bytes: int) -> RecordOutcome: ...

    def list_saved_signatures(self) -> List[SavedSignatureEntry]: ...

    def save_signature(self, name: str, image_bytes: bytes) -> str: ...

    def delete_signature(self, signature_id: str) -> DeleteOutcome: ...


class EntitlementCollaborator(Protocol):
    def get_entitlement(self) -> Entitlement: ...


def ensure_quota(entitlement: Optional[EntitlementCollaborator]) -> Optional[Entitlement]:
    """Raise QuotaExceeded before any rendering work starts."""
    if entitlement is None:
        return None
    current = entitlement.get_entitlement()
    if current.daily_limit_remaining is not None and current.daily_limit_remaining <= 0:
        raise QuotaExceeded(f"daily limit reached for the {current.plan} plan")
    return current


def record_usage_quietly(
    persistence: Optional[PersistenceCollaborator],
    kind: str,
    action: str,
    size_bytes: int,
) -> Optional[RecordOutcome]:
    # usage bookkeeping must never fail an export that already succeeded
    if persistence is None:
        return None
    try:
        outcome = persistence.record_document(kind, action, size_bytes)
    except Exception as exc:
        logger.warning(f"Could not record {action} usage: {exc}")
        return None
    if outcome is RecordOutcome.QUOTA_EXCEEDED:
        logger.info(f"Usage for {action} not recorded: daily quota already reached")
    return outcome
