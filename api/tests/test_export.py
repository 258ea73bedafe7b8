import zipfile
from io import BytesIO

import pytest

from pdfdesk.engine.export import base_name, package_pages, suggest_filename
from pdfdesk.engine.models import ConvertedPage
from pdfdesk.workflows import document_to_images


def _page(n):
    return ConvertedPage(page_number=n, pixel_width=10, pixel_height=10, encoded_bytes=b"jpg%d" % n, mime_type="image/jpeg")


@pytest.mark.parametrize("original,expected", [
    ("contract.pdf", "contract"),
    ("Contract.PDF", "Contract"),
    ("/tmp/uploads/report.final.pdf", "report.final"),
    ("C:\\docs\\scan.pdf", "scan"),
    ("", "document"),
    (".pdf", "document"),
])
def test_base_name(original, expected):
    assert base_name(original) == expected


def test_suggest_filename():
    assert suggest_filename("lease.pdf", "signed") == "lease_signed.pdf"
    assert suggest_filename("lease", "compressed") == "lease_compressed.pdf"


def test_single_page_is_not_zipped():
    artifact = package_pages("doc", [_page(1)], "jpg")
    assert artifact.filename == "doc_page_1.jpg"
    assert artifact.media_type == "image/jpeg"
    assert artifact.content == b"jpg1"


def test_pages_are_zipped_at_root():
    artifact = package_pages("doc", [_page(1), _page(2)], "jpg")
    assert artifact.filename == "doc_images.zip"
    with zipfile.ZipFile(BytesIO(artifact.content)) as archive:
        assert archive.namelist() == ["doc_page_1.jpg", "doc_page_2.jpg"]
        assert archive.read("doc_page_2.jpg") == b"jpg2"


def test_three_page_document_exports_zip(three_page_pdf):
    artifact = document_to_images(three_page_pdf, "doc.pdf", fmt="jpeg", dpi=72)
    assert artifact.media_type == "application/zip"
    with zipfile.ZipFile(BytesIO(artifact.content)) as archive:
        assert archive.namelist() == ["doc_page_1.jpg", "doc_page_2.jpg", "doc_page_3.jpg"]
        assert all(archive.read(n)[:3] == b"\xff\xd8\xff" for n in archive.namelist())


def test_empty_page_list():
    with pytest.raises(ValueError):
        package_pages("doc", [], "png")
