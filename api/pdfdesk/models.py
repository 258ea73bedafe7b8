
import uuid
from typing import Optional
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field as ORMField

def _new_id() -> str:
    return uuid.uuid4().hex

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

class UsageRecord(SQLModel, table=True):
    id: Optional[int] = ORMField(default=None, primary_key=True)
    kind: str     # pdf|image
    action: str   # fill|sign|compress|to_images|images_to_pdf
    size_bytes: int = 0
    created_at: datetime = ORMField(default_factory=_utcnow, index=True)

class SavedSignature(SQLModel, table=True):
    id: str = ORMField(default_factory=_new_id, primary_key=True)
    name: str
    image_bytes: bytes
    created_at: datetime = ORMField(default_factory=_utcnow)
