"""
Value types shared by the composition engine.
Plain dataclasses; the API layer has its own pydantic schemas.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple, Union


@dataclass(frozen=True)
class PdfPageRef:
    index: int
    width_pt: float
    height_pt: float


class FieldKind(str, Enum):
    TEXT = "text"
    CHECKBOX = "checkbox"
    DROPDOWN = "dropdown"


@dataclass(frozen=True)
class TextValue:
    text: str = ""


@dataclass(frozen=True)
class CheckboxValue:
    checked: bool = False


@dataclass(frozen=True)
class DropdownValue:
    selected: str = ""
    options: Tuple[str, ...] = ()


FieldValue = Union[TextValue, CheckboxValue, DropdownValue]


@dataclass(frozen=True)
class FormField:
    name: str
    value: FieldValue
    owner_page_index: int = 0
    rect: Optional[Tuple[float, float, float, float]] = None

    @property
    def kind(self) -> FieldKind:
        if isinstance(self.value, TextValue):
            return FieldKind.TEXT
        if isinstance(self.value, CheckboxValue):
            return FieldKind.CHECKBOX
        return FieldKind.DROPDOWN

    @property
    def current_value(self) -> str:
        if isinstance(self.value, TextValue):
            return self.value.text
        if isinstance(self.value, CheckboxValue):
            return "true" if self.value.checked else "false"
        return self.value.selected

    @property
    def options(self) -> List[str]:
        if isinstance(self.value, DropdownValue):
            return list(self.value.options)
        return []


class ItemKind(str, Enum):
    SIGNATURE = "signature"
    STAMP = "stamp"
    TEXT = "text"

    @property
    def is_image(self) -> bool:
        return self is not ItemKind.TEXT


class ItemState(str, Enum):
    PLACED = "placed"
    MOVING = "moving"
    RESIZING = "resizing"
    REMOVED = "removed"


@dataclass
class PlacedItem:
    id: str
    kind: ItemKind
    page_index: int
    x_percent: float
    y_percent: float
    content: Union[bytes, str]
    width_percent: Optional[float] = None
    font_size_pt: Optional[float] = None
    color_rgb: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    timestamp_label: Optional[str] = None
    state: ItemState = ItemState.PLACED


@dataclass(frozen=True)
class ConvertedPage:
    page_number: int
    pixel_width: int
    pixel_height: int
    encoded_bytes: bytes
    mime_type: str


@dataclass(frozen=True)
class CompressionPreset:
    name: str
    render_scale: float
    jpeg_quality: float


@dataclass(frozen=True)
class CompressionReport:
    original_size: int
    compressed_size: int

    @property
    def saved_percent(self) -> int:
        if self.original_size <= 0:
            return 0
        return round((1 - self.compressed_size / self.original_size) * 100)


@dataclass(frozen=True)
class Entitlement:
    plan: str
    daily_limit_remaining: Optional[int]  # None means unlimited
    can_use_timestamp: bool


@dataclass(frozen=True)
class SavedSignatureEntry:
    id: str
    name: str
    image_bytes: bytes
    created_at: datetime


@dataclass(frozen=True)
class ExportArtifact:
    content: bytes
    filename: str
    media_type: str
    headers: dict = field(default_factory=dict)
