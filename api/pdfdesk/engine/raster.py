"""
Raster pipeline: PDF page -> pixel buffer -> JPEG/PNG bytes.

Rendering is done by PyMuPDF, encoding by Pillow. The pipeline owns its
renderer settings (``RasterConfig``) instead of reaching into module state,
so two pipelines with different settings can live side by side.
"""

from dataclasses import dataclass
from io import BytesIO
from typing import Callable, List, Optional

import pymupdf
from loguru import logger
from PIL import Image

from .errors import MalformedDocument, PageIndexOutOfRange, UnsupportedFormat
from .imaging import flatten_alpha
from .models import ConvertedPage, PdfPageRef

ProgressCallback = Optional[Callable[[int], None]]

PDF_BASE_DPI = 72
DEFAULT_JPEG_QUALITY = 0.92

_FORMAT_ALIASES = {"jpeg": "jpeg", "jpg": "jpeg", "png": "png"}
_PIL_FORMATS = {"jpeg": "JPEG", "png": "PNG"}
_MIME_TYPES = {"jpeg": "image/jpeg", "png": "image/png"}
_EXTENSIONS = {"jpeg": "jpg", "png": "png"}


def normalize_format(fmt: str) -> str:
    key = (fmt or "").strip().lower().lstrip(".")
    if key not in _FORMAT_ALIASES:
        raise UnsupportedFormat(f"unsupported output format {fmt!r} (expected JPEG or PNG)")
    return _FORMAT_ALIASES[key]


def extension_for(fmt: str) -> str:
    return _EXTENSIONS[normalize_format(fmt)]


def dpi_to_scale(dpi: float) -> float:
    if dpi <= 0:
        raise ValueError(f"dpi must be positive, got {dpi}")
    return dpi / PDF_BASE_DPI


def quality_to_codec(quality: float) -> int:
    """Map a (0, 1] quality to Pillow's 1..100 JPEG scale."""
    if not 0 < quality <= 1:
        raise ValueError(f"quality must be in (0, 1], got {quality}")
    return max(1, min(100, round(quality * 100)))


@dataclass(frozen=True)
class RasterConfig:
    render_annotations: bool = True
    jpeg_subsampling: int = 2  # 4:2:0
    png_compress_level: int = 6


class RenderDocument:
    """A PyMuPDF document opened from bytes; use as a context manager."""

    def __init__(self, doc: "pymupdf.Document"):
        self._doc = doc

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    def page(self, page_index: int) -> "pymupdf.Page":
        if not 0 <= page_index < self._doc.page_count:
            raise PageIndexOutOfRange(page_index, self._doc.page_count)
        return self._doc[page_index]

    def page_ref(self, page_index: int) -> PdfPageRef:
        rect = self.page(page_index).rect
        return PdfPageRef(index=page_index, width_pt=float(rect.width), height_pt=float(rect.height))

    def close(self):
        self._doc.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class RasterPipeline:
    def __init__(self, config: Optional[RasterConfig] = None):
        self.config = config or RasterConfig()

    def open(self, pdf_bytes: bytes) -> RenderDocument:
        try:
            doc = pymupdf.open(stream=pdf_bytes, filetype="pdf")
        except (pymupdf.FileDataError, RuntimeError, ValueError) as exc:
            raise MalformedDocument(f"cannot open PDF for rendering: {exc}") from exc
        if doc.needs_pass and not doc.authenticate(""):
            doc.close()
            raise MalformedDocument("PDF is encrypted with a user password")
        return RenderDocument(doc)

    def page_count(self, document: RenderDocument) -> int:
        return document.page_count

    def render_page_to_bitmap(self, document: RenderDocument, page_index: int, scale: float) -> Image.Image:
        if scale <= 0:
            raise ValueError(f"scale must be positive, got {scale}")
        page = document.page(page_index)
        rect = page.rect
        target = (max(1, round(rect.width * scale)), max(1, round(rect.height * scale)))
        # per-axis matrix so the output lands exactly on the rounded target size
        matrix = pymupdf.Matrix(target[0] / rect.width, target[1] / rect.height)
        pix = page.get_pixmap(matrix=matrix, alpha=False, annots=self.config.render_annotations)
        img = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
        if img.size != target:
            img = img.resize(target, Image.LANCZOS)
        logger.debug(f"Rendered page {page_index + 1} at scale {scale:.3f} -> {img.size[0]}x{img.size[1]}")
        return img

    def encode_bitmap(self, image: Image.Image, fmt: str, quality: Optional[float] = None) -> bytes:
        fmt = normalize_format(fmt)
        out = BytesIO()
        if fmt == "jpeg":
            codec_quality = quality_to_codec(DEFAULT_JPEG_QUALITY if quality is None else quality)
            flatten_alpha(image).save(
                out,
                format=_PIL_FORMATS[fmt],
                quality=codec_quality,
                subsampling=self.config.jpeg_subsampling,
            )
        else:
            image.save(out, format=_PIL_FORMATS[fmt], compress_level=self.config.png_compress_level)
        return out.getvalue()

    def convert_document(
        self,
        pdf_bytes: bytes,
        fmt: str = "jpeg",
        dpi: float = 150,
        quality: Optional[float] = None,
        progress: ProgressCallback = None,
    ) -> List[ConvertedPage]:
        """Render and encode every page in order (PDF -> images)."""
        fmt = normalize_format(fmt)
        scale = dpi_to_scale(dpi)
        pages: List[ConvertedPage] = []
        with self.open(pdf_bytes) as document:
            total = document.page_count
            logger.info(f"Converting {total} page(s) to {fmt.upper()} at {dpi} DPI")
            for index in range(total):
                bitmap = self.render_page_to_bitmap(document, index, scale)
                encoded = self.encode_bitmap(bitmap, fmt, quality)
                pages.append(
                    ConvertedPage(
                        page_number=index + 1,
                        pixel_width=bitmap.width,
                        pixel_height=bitmap.height,
                        encoded_bytes=encoded,
                        mime_type=_MIME_TYPES[fmt],
                    )
                )
                if progress:
                    progress(round((index + 1) / total * 100))
        return pages
