from dataclasses import dataclass
from io import BytesIO
from typing import Optional, Sequence, Tuple

from loguru import logger
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .imaging import to_embeddable
from .raster import ProgressCallback

PAGE_SIZES = {
    "a4": (595.28, 841.89),
    "letter": (612.0, 792.0),
}
MM_TO_PT = 2.835
FIT_MODES = ("fit", "fill", "stretch")


@dataclass
class PageLayout:
    page_size: str = "a4"
    orientation: str = "portrait"
    margin_mm: float = 10.0
    fit: str = "fit"
    custom_width_mm: float = 210.0
    custom_height_mm: float = 297.0

    def dimensions(self) -> Tuple[float, float]:
        if self.page_size == "custom":
            w, h = self.custom_width_mm * MM_TO_PT, self.custom_height_mm * MM_TO_PT
        elif self.page_size in PAGE_SIZES:
            w, h = PAGE_SIZES[self.page_size]
        else:
            raise ValueError(f"unknown page size {self.page_size!r}")
        if self.orientation == "landscape":
            return max(w, h), min(w, h)
        if self.orientation == "portrait":
            return min(w, h), max(w, h)
        raise ValueError(f"unknown orientation {self.orientation!r}")


def place_image(img_w: float, img_h: float, page_w: float, page_h: float, margin: float, fit: str):
    """Return the (x, y, w, h) draw box for an image on the page."""
    content_w = page_w - margin * 2
    content_h = page_h - margin * 2
    if content_w <= 0 or content_h <= 0:
        raise ValueError("margins leave no room for content")
    if fit == "stretch":
        return margin, margin, content_w, content_h
    if fit == "fit":
        scale = min(content_w / img_w, content_h / img_h)
    elif fit == "fill":
        scale = max(content_w / img_w, content_h / img_h)
    else:
        raise ValueError(f"unknown fit mode {fit!r} (expected one of {', '.join(FIT_MODES)})")
    draw_w, draw_h = img_w * scale, img_h * scale
    return margin + (content_w - draw_w) / 2, margin + (content_h - draw_h) / 2, draw_w, draw_h


def images_to_pdf(
    images: Sequence[bytes],
    layout: Optional[PageLayout] = None,
    progress: ProgressCallback = None,
) -> bytes:
    if not images:
        raise ValueError("no images to convert")
    layout = layout or PageLayout()
    page_w, page_h = layout.dimensions()
    margin = layout.margin_mm * MM_TO_PT
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=(page_w, page_h), invariant=1)
    total = len(images)
    for i, data in enumerate(images):
        image = to_embeddable(data)
        x, y, w, h = place_image(image.width_px, image.height_px, page_w, page_h, margin, layout.fit)
        c.drawImage(ImageReader(BytesIO(image.data)), x, y, width=w, height=h, mask="auto")
        c.showPage()
        if progress:
            progress(round((i + 1) / total * 100))
    c.save()
    logger.info(f"Built {total}-page PDF from images ({layout.page_size}, {layout.orientation}, {layout.fit})")
    return buf.getvalue()
