
from datetime import datetime
from pydantic import BaseModel, Field
from typing import Dict, List, Optional, Tuple, Union

class TextItemIn(BaseModel):
    page: int = 0
    x: float          # click position, fraction of page width
    y: float          # click position, fraction of page height
    text: str
    font_size: float = 14
    color: str = "#000000"

class ImageItemIn(BaseModel):
    page: int = 0
    x: float
    y: float
    kind: str = "signature"  # signature|stamp
    image: Optional[str] = None  # data URL or base64
    signature_id: Optional[str] = None
    text: Optional[str] = None   # typed signature, rendered to a transparent PNG
    color: str = "#000000"
    width: Optional[float] = None

class FillPayload(BaseModel):
    fields: Dict[str, Union[bool, str]] = Field(default_factory=dict)
    texts: List[TextItemIn] = Field(default_factory=list)
    flatten: bool = False

class SignPayload(BaseModel):
    items: List[ImageItemIn] = Field(default_factory=list)
    flatten: bool = False

class PageOut(BaseModel):
    index: int
    width_pt: float
    height_pt: float

class FieldOut(BaseModel):
    name: str
    kind: str
    current_value: str
    options: List[str] = Field(default_factory=list)
    owner_page_index: int = 0
    rect: Optional[Tuple[float, float, float, float]] = None  # x%, y%, w%, h% of the owner page

class InspectOut(BaseModel):
    page_count: int
    pages: List[PageOut]
    fields: List[FieldOut]

class SignatureCreate(BaseModel):
    name: str
    image: str  # data URL or base64

class SignatureOut(BaseModel):
    id: str
    name: str
    image: str
    created_at: datetime

class UsageOut(BaseModel):
    plan: str
    daily_limit_remaining: Optional[int] = None
    can_use_timestamp: bool
