"""
Compositor: merge field edits and placed overlay items into a source PDF.

Every call starts from a fresh parse of the source bytes. Field edits go
through pypdf's form API on a cloned writer; overlays are drawn with
reportlab on one canvas per page and merged onto that page.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from io import BytesIO
from typing import Dict, Iterable, List, Mapping, Optional, Union

from loguru import logger
from pypdf import PdfWriter
from pypdf.constants import FieldDictionaryAttributes as FA
from pypdf.errors import PyPdfError
from pypdf.generic import NameObject, TextStringObject
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .coordinates import to_pdf_space
from .errors import FieldNotFound, FlattenFailed, MalformedDocument, PageIndexOutOfRange
from .imaging import decode_image_payload, to_embeddable
from .models import CheckboxValue, DropdownValue, PlacedItem, TextValue
from .placement import DEFAULT_FONT_SIZE, clamp
from .reader import FieldNode, Document, collect_field_nodes, load, page_size

FieldEdits = Mapping[str, Union[str, bool]]

OVERLAY_FONT = "Helvetica"
TIMESTAMP_GRAY = 0.35
TIMESTAMP_GAP = 3
TEXT_LEADING = 1.2
_PUSHBUTTON = int(FA.FfBits.Pushbutton)


@dataclass
class ComposeOptions:
    flatten_form: bool = False


def compose(
    source_bytes: bytes,
    field_edits: Optional[FieldEdits] = None,
    placed_items: Iterable[PlacedItem] = (),
    options: Optional[ComposeOptions] = None,
) -> bytes:
    options = options or ComposeOptions()
    document = load(source_bytes)
    writer = PdfWriter(clone_from=document.reader)

    applied = apply_field_edits(writer, document, field_edits or {})

    draw_map: Dict[int, List[PlacedItem]] = {}
    for item in placed_items:
        draw_map.setdefault(item.page_index, []).append(item)
    for pidx, items in draw_map.items():
        if not 0 <= pidx < len(writer.pages):
            raise PageIndexOutOfRange(pidx, len(writer.pages))
        page = writer.pages[pidx]
        overlay_pdf = _overlay_page(page, items)
        overlay = load(overlay_pdf).reader.pages[0]
        page.merge_page(overlay)

    if applied and not options.flatten_form:
        writer.set_need_appearances_writer(True)
    out = BytesIO()
    writer.write(out)
    final_bytes = out.getvalue()

    if options.flatten_form:
        try:
            final_bytes = flatten_form(final_bytes)
        except FlattenFailed as exc:
            logger.warning(f"Form left interactive: {exc}")
    logger.info(
        f"Composed PDF: {len(applied)} field edit(s), "
        f"{sum(len(v) for v in draw_map.values())} overlay item(s), {len(final_bytes)} bytes"
    )
    return final_bytes


def apply_field_edits(writer: PdfWriter, document: Document, edits: FieldEdits) -> List[str]:
    """Apply what resolves; log and skip the rest."""
    applied = []
    writer_nodes = collect_field_nodes(writer.root_object)
    for name, raw in edits.items():
        try:
            node = document.field_node(name)
            if node is None:
                raise FieldNotFound(name)
            value = _pdf_value(node, raw)
            if value is None:
                logger.info(f"Field {name!r}: {raw!r} is not one of its options, left unset")
                continue
            with _namesakes_hidden(writer_nodes, name):
                writer.update_page_form_field_values(None, {name: value}, auto_regenerate=False)
            applied.append(name)
        except (FieldNotFound, PyPdfError, KeyError, ValueError, TypeError) as exc:
            logger.warning(f"Skipping field edit {name!r}: {exc}")
    return applied


@contextmanager
def _namesakes_hidden(nodes: List[FieldNode], name: str):
    """pypdf matches fields by partial /T as well as by qualified name;
    other fields whose partial name equals ``name`` are renamed for the
    duration of the update."""
    hidden = []
    for node in nodes:
        partial = node.obj.get("/T")
        if node.name != name and partial is not None and str(partial) == name:
            hidden.append((node.obj, partial))
            node.obj[NameObject("/T")] = TextStringObject(f"#hidden-{len(hidden)}")
    try:
        yield
    finally:
        for obj, partial in hidden:
            obj[NameObject("/T")] = partial


def _pdf_value(node: FieldNode, raw) -> Optional[str]:
    value = node.value
    if isinstance(value, TextValue):
        return "" if raw is None else str(raw)
    if isinstance(value, CheckboxValue):
        return node.on_state if _truthy(raw) else "/Off"
    if isinstance(value, DropdownValue):
        choice = "" if raw is None else str(raw)
        if choice not in value.options:
            return None
        return node.option_exports.get(choice, choice)
    raise FieldNotFound(node.name)


def _truthy(raw) -> bool:
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in ("true", "1", "yes", "on")


def _page_transform(page):
    """Matrix taking displayed-page coordinates (origin bottom-left of the
    crop box as shown) into the page's own user space."""
    box = page.cropbox
    x0, y0 = float(box.left), float(box.bottom)
    w, h = float(box.width), float(box.height)
    rotation = (page.rotation or 0) % 360
    if rotation == 90:
        return (0, 1, -1, 0, x0 + w, y0)
    if rotation == 180:
        return (-1, 0, 0, -1, x0 + w, y0 + h)
    if rotation == 270:
        return (0, -1, 1, 0, x0, y0 + h)
    return (1, 0, 0, 1, x0, y0)


def _overlay_page(page, items: List[PlacedItem]) -> bytes:
    page_w, page_h = page_size(page)
    media = page.mediabox
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=(float(media.right), float(media.top)), invariant=1)
    c.transform(*_page_transform(page))
    for item in items:
        if item.kind.is_image:
            _draw_image_item(c, item, page_w, page_h)
        else:
            _draw_text_item(c, item, page_w, page_h)
    c.showPage()
    c.save()
    return buf.getvalue()


def _draw_image_item(c, item: PlacedItem, page_w: float, page_h: float):
    image = to_embeddable(decode_image_payload(item.content))
    item_w = item.width_percent * page_w
    item_h = item_w * image.aspect
    x, y = to_pdf_space(item.x_percent, item.y_percent, page_w, page_h, item_h)
    # JPEG data is passed through as DCT, PNG goes in losslessly with its alpha
    c.drawImage(ImageReader(BytesIO(image.data)), x, y, width=item_w, height=item_h, mask="auto")
    if item.timestamp_label:
        size = clamp(item_w * 0.055, 7, 12)
        c.setFillColorRGB(TIMESTAMP_GRAY, TIMESTAMP_GRAY, TIMESTAMP_GRAY)
        c.setFont(OVERLAY_FONT, size)
        c.drawString(x, y - size - TIMESTAMP_GAP, item.timestamp_label)


def _draw_text_item(c, item: PlacedItem, page_w: float, page_h: float):
    text = str(item.content or "")
    if not text:
        return
    size = item.font_size_pt or DEFAULT_FONT_SIZE
    x, y = to_pdf_space(item.x_percent, item.y_percent, page_w, page_h, size)
    c.setFillColorRGB(*item.color_rgb)
    c.setFont(OVERLAY_FONT, size)
    for line in text.splitlines():
        c.drawString(x, y, line)
        y -= size * TEXT_LEADING


def flatten_form(pdf_bytes: bytes) -> bytes:
    """Bake widget appearances into page content and drop the AcroForm.

    Runs on its own fresh copy, so a failure leaves the caller's bytes intact.
    """
    try:
        document = load(pdf_bytes)
        writer = PdfWriter(clone_from=document.reader)
        if "/AcroForm" not in writer.root_object:
            return pdf_bytes
        nodes = collect_field_nodes(writer.root_object)
        values = {}
        for node in nodes:
            if isinstance(node.value, CheckboxValue):
                values[node.name] = node.on_state if node.value.checked else "/Off"
            elif node.field_type == "/Btn":
                if node.flags & _PUSHBUTTON:
                    continue
                state = node.obj.get("/V")
                values[node.name] = str(state) if state is not None else "/Off"
            elif node.field_type in ("/Tx", "/Ch"):
                values[node.name] = None
        for name, value in values.items():
            with _namesakes_hidden(nodes, name):
                writer.update_page_form_field_values(None, {name: value}, auto_regenerate=False, flatten=True)
        writer.remove_annotations(subtypes="/Widget")
        del writer.root_object["/AcroForm"]
        out = BytesIO()
        writer.write(out)
    except (MalformedDocument, PyPdfError, KeyError, ValueError, TypeError, AttributeError) as exc:
        raise FlattenFailed(str(exc) or exc.__class__.__name__) from exc
    return out.getvalue()
