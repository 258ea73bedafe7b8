"""
Placement engine: user-placed overlay items kept in percentage space.

Per item: Placed -> (Moving | Resizing) -> Placed -> ... -> Removed.
Only one drag runs at a time (single pointer); beginning a new drag ends the
one in flight.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple, Union

from loguru import logger

from .collaborators import EntitlementCollaborator
from .errors import InvalidTransition, ItemNotFound
from .models import ItemKind, ItemState, PlacedItem

# anchor offsets so the click lands inside a fresh image item
CLICK_OFFSET_X = 0.1
CLICK_OFFSET_Y = 0.025

PLACE_MAX_X = 0.8
PLACE_MAX_Y = 0.9
MOVE_MAX = 0.95
MIN_WIDTH = 0.05
MAX_WIDTH = 0.70

DEFAULT_WIDTHS = {
    ItemKind.SIGNATURE: 0.2,
    ItemKind.STAMP: 0.15,
}
DEFAULT_FONT_SIZE = 14.0

_TIMESTAMP_PREFIX = {
    ItemKind.SIGNATURE: "Signed on",
    ItemKind.STAMP: "Certified on",
}


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


def format_timestamp_label(kind: ItemKind, when: datetime) -> str:
    return f"{_TIMESTAMP_PREFIX[kind]} {when:%d/%m/%Y} at {when:%H:%M:%S}"


@dataclass
class _DragOrigin:
    item_id: str
    state: ItemState
    x: float
    y: float
    width: Optional[float]


class PlacementEngine:
    def __init__(
        self,
        entitlement: Optional[EntitlementCollaborator] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._entitlement = entitlement
        self._clock = clock
        self._items: Dict[str, PlacedItem] = {}
        self._drag: Optional[_DragOrigin] = None
        self.selected_id: Optional[str] = None

    # ── queries ──────────────────────────────────────────

    def get(self, item_id: str) -> PlacedItem:
        item = self._items.get(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        return item

    def items(self) -> List[PlacedItem]:
        return list(self._items.values())

    def items_on_page(self, page_index: int) -> List[PlacedItem]:
        return [item for item in self._items.values() if item.page_index == page_index]

    def pages_with_items(self) -> List[int]:
        return sorted({item.page_index for item in self._items.values()})

    @property
    def active_drag(self) -> Optional[str]:
        return self._drag.item_id if self._drag else None

    # ── transitions ──────────────────────────────────────

    def place(
        self,
        kind: Union[ItemKind, str],
        content: Union[bytes, str],
        page_index: int,
        click_x_percent: float,
        click_y_percent: float,
        *,
        font_size_pt: float = DEFAULT_FONT_SIZE,
        color_rgb: Tuple[float, float, float] = (0.0, 0.0, 0.0),
        width_percent: Optional[float] = None,
    ) -> PlacedItem:
        kind = ItemKind(kind)
        if page_index < 0:
            raise ValueError(f"page index must be >= 0, got {page_index}")
        if kind.is_image:
            x = click_x_percent - CLICK_OFFSET_X
            y = click_y_percent - CLICK_OFFSET_Y
        else:
            x, y = click_x_percent, click_y_percent
        item = PlacedItem(
            id=uuid.uuid4().hex,
            kind=kind,
            page_index=page_index,
            x_percent=clamp(x, 0.0, PLACE_MAX_X),
            y_percent=clamp(y, 0.0, PLACE_MAX_Y),
            content=content,
        )
        if kind.is_image:
            item.width_percent = clamp(width_percent or DEFAULT_WIDTHS[kind], MIN_WIDTH, MAX_WIDTH)
            if self._can_use_timestamp():
                item.timestamp_label = format_timestamp_label(kind, self._clock())
        else:
            item.font_size_pt = font_size_pt
            item.color_rgb = color_rgb
        self._items[item.id] = item
        self.selected_id = item.id
        logger.debug(f"Placed {kind.value} {item.id} on page {page_index + 1} at ({item.x_percent:.3f}, {item.y_percent:.3f})")
        return item

    def select(self, item_id: Optional[str]):
        if item_id is not None:
            self.get(item_id)
        self.selected_id = item_id

    def begin_move(self, item_id: str) -> PlacedItem:
        return self._begin(item_id, ItemState.MOVING)

    def begin_resize(self, item_id: str) -> PlacedItem:
        item = self.get(item_id)
        if not item.kind.is_image:
            raise InvalidTransition("text items have no width to resize")
        return self._begin(item_id, ItemState.RESIZING)

    def update_drag(self, item_id: str, delta_x_percent: float, delta_y_percent: float) -> PlacedItem:
        item = self.get(item_id)
        drag = self._drag
        if drag is None or drag.item_id != item_id:
            raise InvalidTransition(f"item {item_id} is not being dragged")
        if drag.state is ItemState.MOVING:
            item.x_percent = clamp(drag.x + delta_x_percent, 0.0, MOVE_MAX)
            item.y_percent = clamp(drag.y + delta_y_percent, 0.0, MOVE_MAX)
        else:
            item.width_percent = clamp(drag.width + delta_x_percent, MIN_WIDTH, MAX_WIDTH)
        return item

    def end_drag(self, item_id: str) -> PlacedItem:
        item = self.get(item_id)
        if self._drag is not None and self._drag.item_id == item_id:
            self._drag = None
        item.state = ItemState.PLACED
        return item

    def remove(self, item_id: str) -> PlacedItem:
        item = self._items.pop(item_id, None)
        if item is None:
            raise ItemNotFound(item_id)
        item.state = ItemState.REMOVED
        if self._drag is not None and self._drag.item_id == item_id:
            self._drag = None
        if self.selected_id == item_id:
            self.selected_id = None
        return item

    def reset(self):
        for item in self._items.values():
            item.state = ItemState.REMOVED
        self._items.clear()
        self._drag = None
        self.selected_id = None

    # ── internals ────────────────────────────────────────

    def _begin(self, item_id: str, state: ItemState) -> PlacedItem:
        item = self.get(item_id)
        if self._drag is not None:
            self.end_drag(self._drag.item_id)
        self._drag = _DragOrigin(
            item_id=item_id,
            state=state,
            x=item.x_percent,
            y=item.y_percent,
            width=item.width_percent,
        )
        item.state = state
        self.selected_id = item_id
        return item

    def _can_use_timestamp(self) -> bool:
        if self._entitlement is None:
            return False
        return bool(self._entitlement.get_entitlement().can_use_timestamp)
