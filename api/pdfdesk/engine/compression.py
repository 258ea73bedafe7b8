"""
Preset-based compression: rasterize every page and rebuild a JPEG-only PDF.

Vector content, fonts and form fields do not survive; every output page is
a single full-page JPEG at the source page size.
"""

from io import BytesIO
from typing import Dict, Optional

from loguru import logger
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .models import CompressionPreset, CompressionReport
from .raster import ProgressCallback, RasterPipeline

PRESETS: Dict[str, CompressionPreset] = {
    "light": CompressionPreset("light", render_scale=1.5, jpeg_quality=0.8),
    "recommended": CompressionPreset("recommended", render_scale=1.2, jpeg_quality=0.6),
    "maximum": CompressionPreset("maximum", render_scale=1.0, jpeg_quality=0.4),
}
DEFAULT_PRESET = "recommended"


def get_preset(name: str) -> CompressionPreset:
    try:
        return PRESETS[name.strip().lower()]
    except KeyError:
        raise ValueError(f"unknown compression preset {name!r} (expected one of {', '.join(PRESETS)})") from None


def compress(
    source_bytes: bytes,
    preset: CompressionPreset,
    progress: ProgressCallback = None,
    pipeline: Optional[RasterPipeline] = None,
) -> bytes:
    pipeline = pipeline or RasterPipeline()
    buf = BytesIO()
    c = canvas.Canvas(buf, invariant=1)
    with pipeline.open(source_bytes) as document:
        total = document.page_count
        logger.info(f"Compressing {total} page(s) with preset {preset.name} "
                    f"(scale {preset.render_scale}, quality {preset.jpeg_quality})")
        for index in range(total):
            ref = document.page_ref(index)
            bitmap = pipeline.render_page_to_bitmap(document, index, preset.render_scale)
            jpeg = pipeline.encode_bitmap(bitmap, "jpeg", preset.jpeg_quality)
            c.setPageSize((ref.width_pt, ref.height_pt))
            c.drawImage(ImageReader(BytesIO(jpeg)), 0, 0, width=ref.width_pt, height=ref.height_pt)
            c.showPage()
            logger.debug(f"Page {index + 1}/{total}: {len(jpeg)} bytes of JPEG")
            if progress:
                progress(round((index + 1) / total * 100))
    c.save()
    return buf.getvalue()


def compress_with_report(
    source_bytes: bytes,
    preset: CompressionPreset,
    progress: ProgressCallback = None,
    pipeline: Optional[RasterPipeline] = None,
):
    output = compress(source_bytes, preset, progress=progress, pipeline=pipeline)
    report = CompressionReport(original_size=len(source_bytes), compressed_size=len(output))
    logger.success(f"Compressed {report.original_size} -> {report.compressed_size} bytes ({report.saved_percent}% saved)")
    return output, report
