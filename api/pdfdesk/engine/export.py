import re
import zipfile
from io import BytesIO
from pathlib import PurePath
from typing import Sequence

from .models import ConvertedPage, ExportArtifact

SUFFIX_FILLED = "filled"
SUFFIX_SIGNED = "signed"
SUFFIX_COMPRESSED = "compressed"

_PDF_EXT = re.compile(r"\.pdf$", re.IGNORECASE)


def base_name(original_name: str, default: str = "document") -> str:
    name = PurePath((original_name or "").replace("\\", "/")).name
    name = _PDF_EXT.sub("", name).strip()
    return name or default


def suggest_filename(original_name: str, suffix: str, ext: str = "pdf") -> str:
    return f"{base_name(original_name)}_{suffix}.{ext}"


def page_filename(base: str, page_number: int, ext: str) -> str:
    return f"{base}_page_{page_number}.{ext}"


def package_pages(base: str, pages: Sequence[ConvertedPage], ext: str) -> ExportArtifact:
    """One page -> the image itself; several -> a ZIP with one entry per page."""
    if not pages:
        raise ValueError("no pages to package")
    if len(pages) == 1:
        page = pages[0]
        return ExportArtifact(
            content=page.encoded_bytes,
            filename=page_filename(base, page.page_number, ext),
            media_type=page.mime_type,
        )
    buf = BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for page in pages:
            archive.writestr(page_filename(base, page.page_number, ext), page.encoded_bytes)
    return ExportArtifact(
        content=buf.getvalue(),
        filename=f"{base}_images.zip",
        media_type="application/zip",
    )
