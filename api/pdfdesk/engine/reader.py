"""
Structural PDF reader (pypdf): pages, page sizes and AcroForm fields.

Rendering goes through PyMuPDF in ``raster.py``; the two must agree on page
order and displayed page size, which is why page sizes here are taken from
the crop box with /Rotate applied, the same box the renderer shows.
"""

from dataclasses import dataclass, field
from io import BytesIO
from typing import Dict, List, Optional, Tuple

from loguru import logger
from pypdf import PdfReader
from pypdf.constants import FieldDictionaryAttributes as FA
from pypdf.errors import PyPdfError
from pypdf.generic import ArrayObject, IndirectObject

from .errors import MalformedDocument, PageIndexOutOfRange
from .models import (
    CheckboxValue,
    DropdownValue,
    FieldValue,
    FormField,
    PdfPageRef,
    TextValue,
)

_RADIO = int(FA.FfBits.Radio)
_PUSHBUTTON = int(FA.FfBits.Pushbutton)
_COMBO = int(FA.FfBits.Combo)


@dataclass
class FieldNode:
    """A terminal AcroForm field as found in the source, before classification."""

    name: str
    field_type: Optional[str]
    flags: int
    obj: object
    widgets: List[object] = field(default_factory=list)
    widget_ids: List[int] = field(default_factory=list)
    value: Optional[FieldValue] = None
    on_state: Optional[str] = None
    option_exports: Dict[str, str] = field(default_factory=dict)


class Document:
    """A parsed source PDF. Treat as read-only; exports reload from ``source``."""

    def __init__(self, source: bytes, reader: PdfReader):
        self.source = source
        self.reader = reader
        self._nodes: Optional[List[FieldNode]] = None

    @property
    def page_count(self) -> int:
        return len(self.reader.pages)

    def field_nodes(self) -> List[FieldNode]:
        if self._nodes is None:
            self._nodes = collect_field_nodes(self.reader.trailer["/Root"].get_object())
        return self._nodes

    def field_node(self, name: str) -> Optional[FieldNode]:
        for node in self.field_nodes():
            if node.name == name and node.value is not None:
                return node
        return None


def load(pdf_bytes: bytes) -> Document:
    if not pdf_bytes:
        raise MalformedDocument("empty document")
    try:
        reader = PdfReader(BytesIO(pdf_bytes), strict=False)
        if reader.is_encrypted:
            # owner-password-only files open with the empty user password;
            # permission flags are not enforced
            if not reader.decrypt(""):
                raise MalformedDocument("PDF is encrypted with a user password")
        count = len(reader.pages)
    except MalformedDocument:
        raise
    except (PyPdfError, ValueError, KeyError, TypeError, AttributeError) as exc:
        raise MalformedDocument(f"cannot parse PDF structure: {exc}") from exc
    if count == 0:
        raise MalformedDocument("document has no pages")
    logger.debug(f"Loaded PDF with {count} page(s), encrypted={reader.is_encrypted}")
    return Document(pdf_bytes, reader)


def page_size(page) -> Tuple[float, float]:
    box = page.cropbox
    width, height = float(box.width), float(box.height)
    if (page.rotation or 0) % 180 == 90:
        return height, width
    return width, height


def list_pages(document: Document) -> List[PdfPageRef]:
    refs = []
    for index, page in enumerate(document.reader.pages):
        width, height = page_size(page)
        refs.append(PdfPageRef(index=index, width_pt=width, height_pt=height))
    return refs


def get_page(document: Document, page_index: int) -> PdfPageRef:
    if not 0 <= page_index < document.page_count:
        raise PageIndexOutOfRange(page_index, document.page_count)
    width, height = page_size(document.reader.pages[page_index])
    return PdfPageRef(index=page_index, width_pt=width, height_pt=height)


def list_form_fields(document: Document) -> List[FormField]:
    annot_pages = _annotation_page_index(document.reader)
    fields = []
    for node in document.field_nodes():
        if node.value is None:
            continue
        owner = 0
        for widget_id in node.widget_ids:
            if widget_id in annot_pages:
                owner = annot_pages[widget_id]
                break
        fields.append(
            FormField(
                name=node.name,
                value=node.value,
                owner_page_index=owner,
                rect=_widget_rect(node),
            )
        )
    return fields


def _annotation_page_index(reader: PdfReader) -> Dict[int, int]:
    # first page listing an annotation wins when annotation sets overlap
    index: Dict[int, int] = {}
    for page_number, page in enumerate(reader.pages):
        annots = page.get("/Annots")
        if annots is None:
            continue
        annots = annots.get_object()
        if not isinstance(annots, ArrayObject):
            continue
        for ref in annots:
            if isinstance(ref, IndirectObject):
                index.setdefault(ref.idnum, page_number)
    return index


def collect_field_nodes(root) -> List[FieldNode]:
    """Terminal fields under a catalog dictionary, from a reader or a writer."""
    acroform = root.get("/AcroForm")
    if acroform is None:
        return []
    top = acroform.get_object().get("/Fields")
    if top is None:
        return []
    nodes: List[FieldNode] = []
    for ref in top.get_object():
        _walk(ref, "", None, 0, nodes, depth=0)
    return nodes


def _walk(ref, parent_name: str, inherited_type, inherited_flags: int, out: List[FieldNode], depth: int):
    if depth > 32:
        logger.warning(f"AcroForm tree deeper than 32 levels under {parent_name!r}; stopping")
        return
    obj = ref.get_object()
    partial = obj.get("/T")
    name = str(partial) if partial is not None else ""
    if parent_name and name:
        name = f"{parent_name}.{name}"
    elif parent_name:
        name = parent_name
    field_type = obj.get("/FT", inherited_type)
    flags = int(obj.get("/Ff", inherited_flags))

    kids = obj.get("/Kids")
    kid_refs = list(kids.get_object()) if kids is not None else []
    field_kids = [k for k in kid_refs if "/T" in k.get_object()]
    if field_kids:
        for kid in field_kids:
            _walk(kid, name, field_type, flags, out, depth + 1)
        return

    node = FieldNode(name=name, field_type=field_type, flags=flags, obj=obj)
    if kid_refs:
        widget_refs = kid_refs
    elif obj.get("/Subtype") == "/Widget":
        widget_refs = [ref]
    else:
        widget_refs = []
    node.widgets = [w.get_object() for w in widget_refs]
    node.widget_ids = [w.idnum for w in widget_refs if isinstance(w, IndirectObject)]
    _classify(node)
    out.append(node)


def _classify(node: FieldNode):
    obj = node.obj
    if node.field_type == "/Tx":
        node.value = TextValue(_as_text(obj.get("/V")))
    elif node.field_type == "/Btn":
        if node.flags & (_RADIO | _PUSHBUTTON):
            return
        node.on_state = _checkbox_on_state(node)
        state = obj.get("/V")
        if state is None and node.widgets:
            state = node.widgets[0].get("/AS")
        node.value = CheckboxValue(checked=state is not None and str(state) != "/Off")
    elif node.field_type == "/Ch":
        if not node.flags & _COMBO:
            return
        options = []
        for entry in obj.get("/Opt", ArrayObject()).get_object():
            entry = entry.get_object()
            if isinstance(entry, ArrayObject) and len(entry) >= 2:
                export, display = _as_text(entry[0]), _as_text(entry[1])
            else:
                export = display = _as_text(entry)
            options.append(display)
            node.option_exports[display] = export
        selected = obj.get("/V")
        if isinstance(selected, ArrayObject):
            selected = selected[0] if len(selected) else None
        selected_text = _as_text(selected)
        for display, export in node.option_exports.items():
            if export == selected_text:
                selected_text = display
                break
        node.value = DropdownValue(selected=selected_text, options=tuple(options))
    # other field types (signature, list box, radio, push button) are not supported


def _checkbox_on_state(node: FieldNode) -> str:
    for widget in node.widgets:
        ap = widget.get("/AP")
        if ap is None:
            continue
        normal = ap.get_object().get("/N")
        if normal is None:
            continue
        normal = normal.get_object()
        if not hasattr(normal, "keys"):
            continue
        for state in normal.keys():
            if state != "/Off":
                return str(state)
    return "/Yes"


def _widget_rect(node: FieldNode) -> Optional[Tuple[float, float, float, float]]:
    for widget in node.widgets:
        rect = widget.get("/Rect")
        if rect is not None:
            x0, y0, x1, y1 = (float(v) for v in rect.get_object())
            return min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1)
    return None


def _as_text(value) -> str:
    if value is None:
        return ""
    value = value.get_object() if hasattr(value, "get_object") else value
    if isinstance(value, bytes):
        return value.decode("latin-1")
    return str(value)
