"""
End-to-end export workflows: quota check -> engine -> usage record.

Each workflow returns an ExportArtifact carrying bytes, a suggested
filename and a media type; the routers only translate HTTP in and out.
"""

from typing import Iterable, List, Mapping, Optional, Sequence, Union

from loguru import logger

from .config import DEFAULT_IMAGE_QUALITY, RENDER_ANNOTATIONS
from .engine import export, reader
from .engine.collaborators import (
    EntitlementCollaborator,
    PersistenceCollaborator,
    ensure_quota,
    record_usage_quietly,
)
from .engine.compositor import ComposeOptions, compose
from .engine.compression import DEFAULT_PRESET, compress_with_report, get_preset
from .engine.coordinates import rect_to_percent
from .engine.errors import ItemNotFound
from .engine.image_pdf import PageLayout, images_to_pdf
from .engine.imaging import decode_image_payload, render_typed_signature
from .engine.models import ExportArtifact, ItemKind
from .engine.placement import DEFAULT_FONT_SIZE, PlacementEngine
from .engine.raster import RasterConfig, RasterPipeline, extension_for
from .utils import parse_hex_color

PDF = "application/pdf"


def raster_pipeline() -> RasterPipeline:
    return RasterPipeline(RasterConfig(render_annotations=RENDER_ANNOTATIONS))


def inspect_document(source: bytes) -> dict:
    document = reader.load(source)
    pages = reader.list_pages(document)
    fields = []
    for f in reader.list_form_fields(document):
        owner = pages[f.owner_page_index] if f.owner_page_index < len(pages) else pages[0]
        fields.append({
            "name": f.name,
            "kind": f.kind.value,
            "current_value": f.current_value,
            "options": f.options,
            "owner_page_index": f.owner_page_index,
            "rect": rect_to_percent(f.rect, owner.width_pt, owner.height_pt) if f.rect else None,
        })
    logger.info(f"Inspected PDF: {len(pages)} page(s), {len(fields)} form field(s)")
    return {
        "page_count": len(pages),
        "pages": [{"index": p.index, "width_pt": p.width_pt, "height_pt": p.height_pt} for p in pages],
        "fields": fields,
    }


# ---------- placement ----------

def place_text_items(placement: PlacementEngine, texts: Iterable) -> None:
    for t in texts:
        placement.place(
            ItemKind.TEXT, t.text, t.page, t.x, t.y,
            font_size_pt=t.font_size or DEFAULT_FONT_SIZE,
            color_rgb=parse_hex_color(t.color),
        )


def place_image_items(placement: PlacementEngine, items: Iterable, persistence=None) -> None:
    for it in items:
        if it.signature_id:
            entry = persistence.get_signature(it.signature_id) if persistence is not None else None
            if entry is None:
                raise ItemNotFound(it.signature_id)
            content: Union[bytes, str] = entry.image_bytes
        elif it.image:
            content = decode_image_payload(it.image)
        elif it.text:
            content = render_typed_signature(it.text, parse_hex_color(it.color))
        else:
            raise ValueError("image item needs an image, a signature_id or typed text")
        placement.place(ItemKind(it.kind), content, it.page, it.x, it.y, width_percent=it.width)


# ---------- exports ----------

def fill_document(
    source: bytes,
    filename: str,
    field_edits: Optional[Mapping[str, Union[str, bool]]] = None,
    texts: Sequence = (),
    flatten: bool = False,
    persistence: Optional[PersistenceCollaborator] = None,
    entitlement: Optional[EntitlementCollaborator] = None,
) -> ExportArtifact:
    ensure_quota(entitlement)
    placement = PlacementEngine(entitlement=entitlement)
    place_text_items(placement, texts)
    output = compose(source, field_edits or {}, placement.items(), ComposeOptions(flatten_form=flatten))
    record_usage_quietly(persistence, "pdf", "fill", len(output))
    logger.success(f"Filled {filename!r}: {len(output)} bytes")
    return ExportArtifact(output, export.suggest_filename(filename, export.SUFFIX_FILLED), PDF)


def sign_document(
    source: bytes,
    filename: str,
    items: Sequence,
    flatten: bool = False,
    persistence=None,
    entitlement: Optional[EntitlementCollaborator] = None,
) -> ExportArtifact:
    ensure_quota(entitlement)
    placement = PlacementEngine(entitlement=entitlement)
    place_image_items(placement, items, persistence)
    output = compose(source, {}, placement.items(), ComposeOptions(flatten_form=flatten))
    record_usage_quietly(persistence, "pdf", "sign", len(output))
    logger.success(f"Signed {filename!r}: {len(placement.items())} item(s) on page(s) {placement.pages_with_items()}")
    return ExportArtifact(output, export.suggest_filename(filename, export.SUFFIX_SIGNED), PDF)


def compress_document(
    source: bytes,
    filename: str,
    level: str = DEFAULT_PRESET,
    persistence: Optional[PersistenceCollaborator] = None,
    entitlement: Optional[EntitlementCollaborator] = None,
) -> ExportArtifact:
    preset = get_preset(level)
    ensure_quota(entitlement)
    output, report = compress_with_report(source, preset, pipeline=raster_pipeline())
    record_usage_quietly(persistence, "pdf", "compress", len(output))
    return ExportArtifact(
        output,
        export.suggest_filename(filename, export.SUFFIX_COMPRESSED),
        PDF,
        headers={
            "X-Original-Size": str(report.original_size),
            "X-Compressed-Size": str(report.compressed_size),
            "X-Saved-Percent": str(report.saved_percent),
        },
    )


def document_to_images(
    source: bytes,
    filename: str,
    fmt: str = "jpeg",
    dpi: float = 150,
    quality: Optional[float] = None,
    persistence: Optional[PersistenceCollaborator] = None,
    entitlement: Optional[EntitlementCollaborator] = None,
) -> ExportArtifact:
    ext = extension_for(fmt)
    ensure_quota(entitlement)
    pages = raster_pipeline().convert_document(
        source, fmt=fmt, dpi=dpi, quality=DEFAULT_IMAGE_QUALITY if quality is None else quality
    )
    artifact = export.package_pages(export.base_name(filename), pages, ext)
    record_usage_quietly(persistence, "pdf", "to_images", len(artifact.content))
    logger.success(f"Converted {filename!r} to {len(pages)} {ext} image(s)")
    return artifact


def build_pdf_from_images(
    images: List[bytes],
    layout: Optional[PageLayout] = None,
    filename: str = "images",
    persistence: Optional[PersistenceCollaborator] = None,
    entitlement: Optional[EntitlementCollaborator] = None,
) -> ExportArtifact:
    layout = layout or PageLayout()
    layout.dimensions()  # raises ValueError on an unknown size or orientation
    ensure_quota(entitlement)
    output = images_to_pdf(images, layout)
    record_usage_quietly(persistence, "image", "images_to_pdf", len(output))
    return ExportArtifact(output, f"{filename}.pdf", PDF)
