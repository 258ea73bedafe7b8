import base64
import binascii
import math
from dataclasses import dataclass
from io import BytesIO
from typing import Optional, Tuple, Union

from PIL import Image, ImageDraw, ImageFont

from .errors import UnsupportedFormat

EMBEDDABLE_FORMATS = ("jpeg", "png")

TYPED_FONT_SIZE = 64
TYPED_PADDING_X = 20
TYPED_PADDING_Y = 10
TYPED_LINE_HEIGHT = 1.4

MIME_TYPES = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
    "bmp": "image/bmp",
}


@dataclass(frozen=True)
class EmbeddableImage:
    data: bytes
    fmt: str  # "jpeg" | "png"
    width_px: int
    height_px: int

    @property
    def aspect(self) -> float:
        return self.height_px / self.width_px


def sniff_format(data: bytes) -> str:
    if data[:3] == b"\xff\xd8\xff":
        return "jpeg"
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "gif"
    if data[:2] == b"BM":
        return "bmp"
    raise UnsupportedFormat("unrecognized image data (expected JPEG, PNG, WEBP, GIF or BMP)")


def decode_image_payload(content: Union[bytes, str]) -> bytes:
    """Raw bytes pass through; ``data:`` URLs and bare base64 text are decoded."""
    if isinstance(content, (bytes, bytearray)):
        return bytes(content)
    text = content.strip()
    if text.startswith("data:"):
        if "," not in text:
            raise UnsupportedFormat("data URL without payload")
        text = text.split(",", 1)[1]
    try:
        return base64.b64decode(text, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise UnsupportedFormat(f"image payload is not valid base64: {exc}") from exc


def to_embeddable(data: bytes) -> EmbeddableImage:
    fmt = sniff_format(data)
    try:
        with Image.open(BytesIO(data)) as img:
            # decode fully so truncated data fails here rather than at embed time
            img.load()
            width, height = img.size
            if fmt in EMBEDDABLE_FORMATS:
                return EmbeddableImage(data=data, fmt=fmt, width_px=width, height_px=height)
            # no native embed path for the other formats
            img.seek(0)
            frame = img.convert("RGBA")
    except (OSError, SyntaxError) as exc:
        raise UnsupportedFormat(f"cannot decode {fmt} image: {exc}") from exc
    out = BytesIO()
    frame.save(out, format="PNG")
    return EmbeddableImage(data=out.getvalue(), fmt="png", width_px=width, height_px=height)


def flatten_alpha(img: Image.Image, background=(255, 255, 255)) -> Image.Image:
    """Composite onto an opaque background; formats without alpha turn transparency black otherwise."""
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        base = Image.new("RGB", rgba.size, background)
        base.paste(rgba, mask=rgba.split()[-1])
        return base
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def render_typed_signature(
    text: str,
    color: Tuple[float, float, float] = (0, 0, 0),
    font_size: int = TYPED_FONT_SIZE,
    font_path: Optional[str] = None,
) -> bytes:
    """Draw ``text`` on a transparent canvas and return it as PNG bytes.

    The canvas is the text width plus 20 px on each side, and 1.4 times the
    font size plus 10 px above and below; the text is vertically centred.
    ``color`` is RGB in 0..1, as placed items carry it.
    """
    text = (text or "").strip()
    if not text:
        raise ValueError("typed signature text is empty")
    font = _signature_font(font_path, font_size)
    left, top, right, bottom = font.getbbox(text)
    width = int(math.ceil(right - left)) + 2 * TYPED_PADDING_X
    height = int(math.ceil(font_size * TYPED_LINE_HEIGHT)) + 2 * TYPED_PADDING_Y
    img = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    fill = tuple(int(round(c * 255)) for c in color) + (255,)
    y = (height - (bottom - top)) / 2 - top
    ImageDraw.Draw(img).text((TYPED_PADDING_X - left, y), text, font=font, fill=fill)
    out = BytesIO()
    img.save(out, format="PNG")
    return out.getvalue()


def _signature_font(font_path: Optional[str], size: int):
    if font_path:
        try:
            return ImageFont.truetype(font_path, size)
        except OSError as exc:
            raise ValueError(f"cannot load signature font {font_path!r}: {exc}") from exc
    return ImageFont.load_default(size=size)
