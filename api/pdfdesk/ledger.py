"""
SQLModel-backed persistence and entitlement collaborators.

The free plan allows FREE_DAILY_LIMIT exports per calendar day and no
timestamp labels; every other plan is unlimited and may timestamp.
"""

from datetime import datetime, time, timezone
from typing import Callable, List

from fastapi import Depends
from loguru import logger
from sqlalchemy import func
from sqlmodel import Session, select

from .config import FREE_DAILY_LIMIT, PLAN
from .db import get_session
from .engine.collaborators import DeleteOutcome, RecordOutcome
from .engine.imaging import sniff_format
from .engine.models import Entitlement, SavedSignatureEntry
from .models import SavedSignature, UsageRecord
from .utils import sha256_bytes

FREE_PLAN = "free"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LocalLedger:
    def __init__(
        self,
        session: Session,
        plan: str = PLAN,
        daily_limit: int = FREE_DAILY_LIMIT,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.plan = plan
        self.daily_limit = daily_limit
        self.clock = clock

    @property
    def is_free(self) -> bool:
        return self.plan == FREE_PLAN

    def now(self) -> datetime:
        """Current time in UTC; a naive clock reading is taken as UTC."""
        current = self.clock()
        if current.tzinfo is None:
            return current.replace(tzinfo=timezone.utc)
        return current.astimezone(timezone.utc)

    def used_today(self) -> int:
        start = datetime.combine(self.now().date(), time.min, tzinfo=timezone.utc)
        stmt = select(func.count()).select_from(UsageRecord).where(UsageRecord.created_at >= start)
        return self.session.exec(stmt).one()

    # ---------- entitlement ----------

    def get_entitlement(self) -> Entitlement:
        if not self.is_free:
            return Entitlement(plan=self.plan, daily_limit_remaining=None, can_use_timestamp=True)
        remaining = max(self.daily_limit - self.used_today(), 0)
        return Entitlement(plan=self.plan, daily_limit_remaining=remaining, can_use_timestamp=False)

    # ---------- persistence ----------

    def record_document(self, kind: str, action: str, size_bytes: int) -> RecordOutcome:
        if self.is_free and self.used_today() >= self.daily_limit:
            return RecordOutcome.QUOTA_EXCEEDED
        self.session.add(UsageRecord(kind=kind, action=action, size_bytes=size_bytes, created_at=self.now()))
        self.session.commit()
        return RecordOutcome.OK

    def list_saved_signatures(self) -> List[SavedSignatureEntry]:
        rows = self.session.exec(select(SavedSignature).order_by(SavedSignature.created_at.desc())).all()
        return [
            SavedSignatureEntry(id=r.id, name=r.name, image_bytes=r.image_bytes, created_at=r.created_at)
            for r in rows
        ]

    def get_signature(self, signature_id: str):
        row = self.session.get(SavedSignature, signature_id)
        if not row:
            return None
        return SavedSignatureEntry(id=row.id, name=row.name, image_bytes=row.image_bytes, created_at=row.created_at)

    def save_signature(self, name: str, image_bytes: bytes) -> str:
        sniff_format(image_bytes)
        row = SavedSignature(name=name, image_bytes=image_bytes, created_at=self.now())
        self.session.add(row)
        self.session.commit()
        logger.info(f"Saved signature {row.id} ({name!r}, sha256 {sha256_bytes(image_bytes)[:12]})")
        return row.id

    def delete_signature(self, signature_id: str) -> DeleteOutcome:
        row = self.session.get(SavedSignature, signature_id)
        if not row:
            return DeleteOutcome.NOT_FOUND
        self.session.delete(row)
        self.session.commit()
        return DeleteOutcome.OK


def get_ledger(session: Session = Depends(get_session)) -> LocalLedger:
    return LocalLedger(session, plan=PLAN, daily_limit=FREE_DAILY_LIMIT)
