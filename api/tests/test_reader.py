import pytest
from pypdf import PdfWriter
from pypdf.generic import ArrayObject, NameObject
from io import BytesIO

from pdfdesk.engine import reader
from pdfdesk.engine.errors import MalformedDocument, PageIndexOutOfRange
from pdfdesk.engine.models import FieldKind
from pdfdesk.engine.raster import RasterPipeline

from conftest import FORM_PAGE, NAME_RECT, build_form_pdf, build_pdf, displayed_size


def _fields_by_name(pdf_bytes):
    return {f.name: f for f in reader.list_form_fields(reader.load(pdf_bytes))}


def test_load_rejects_garbage():
    with pytest.raises(MalformedDocument):
        reader.load(b"this is not a pdf at all")


def test_load_rejects_empty_bytes():
    with pytest.raises(MalformedDocument):
        reader.load(b"")


def test_load_opens_owner_password_only_document(simple_pdf):
    writer = PdfWriter(clone_from=reader.load(simple_pdf).reader)
    writer.encrypt(user_password="", owner_password="owner-secret")
    buf = BytesIO()
    writer.write(buf)
    assert reader.load(buf.getvalue()).page_count == 1


def test_load_rejects_user_password_document(simple_pdf):
    writer = PdfWriter(clone_from=reader.load(simple_pdf).reader)
    writer.encrypt(user_password="open-sesame", owner_password="owner-secret")
    buf = BytesIO()
    writer.write(buf)
    with pytest.raises(MalformedDocument):
        reader.load(buf.getvalue())


def test_list_pages_reports_point_sizes(make_pdf):
    doc = reader.load(make_pdf(pages=((612, 792), (842, 595))))
    pages = reader.list_pages(doc)
    assert [(p.index, p.width_pt, p.height_pt) for p in pages] == [(0, 612, 792), (1, 842, 595)]


def test_rotated_page_reports_displayed_size(rotated_pdf, rotation):
    ref = reader.get_page(reader.load(rotated_pdf), 0)
    assert (ref.width_pt, ref.height_pt) == displayed_size(rotation)


def test_get_page_out_of_range(simple_pdf):
    with pytest.raises(PageIndexOutOfRange) as info:
        reader.get_page(reader.load(simple_pdf), 3)
    assert isinstance(info.value, IndexError)


@pytest.mark.parametrize(
    "pdf_bytes",
    [
        build_pdf(),
        build_pdf(pages=((612, 792), (842, 595), (300, 144))),
        build_pdf(pages=(FORM_PAGE,), rotation=90),
        build_pdf(pages=(FORM_PAGE,), rotation=270),
        build_form_pdf(),
    ],
    ids=["simple", "mixed", "rotated90", "rotated270", "form"],
)
def test_reader_and_renderer_agree_on_pages(pdf_bytes):
    pages = reader.list_pages(reader.load(pdf_bytes))
    with RasterPipeline().open(pdf_bytes) as rendered:
        assert rendered.page_count == len(pages)
        for ref in pages:
            other = rendered.page_ref(ref.index)
            assert other.width_pt == pytest.approx(ref.width_pt)
            assert other.height_pt == pytest.approx(ref.height_pt)


def test_form_fields_are_classified(form_pdf):
    fields = _fields_by_name(form_pdf)
    # radio groups are not supported and are skipped silently
    assert set(fields) == {"name", "agree", "country", "notes"}
    assert fields["name"].kind is FieldKind.TEXT
    assert fields["name"].current_value == ""
    assert fields["agree"].kind is FieldKind.CHECKBOX
    assert fields["agree"].current_value == "false"
    assert fields["country"].kind is FieldKind.DROPDOWN
    assert fields["country"].current_value == "France"
    assert fields["country"].options == ["France", "Germany", "Italy"]
    assert fields["notes"].current_value == "draft"


def test_owner_page_comes_from_annotations(form_pdf):
    fields = _fields_by_name(form_pdf)
    assert fields["name"].owner_page_index == 0
    assert fields["notes"].owner_page_index == 1


def _list_notes_widget_on(form_pdf, pages):
    writer = PdfWriter(clone_from=reader.load(form_pdf).reader)
    notes_ref = next(ref for ref in writer.pages[1]["/Annots"] if ref.get_object().get("/T") == "notes")
    for index, page in enumerate(writer.pages):
        annots = [ref for ref in page.get("/Annots", ArrayObject()) if ref.idnum != notes_ref.idnum]
        if index in pages:
            annots.append(notes_ref)
        page[NameObject("/Annots")] = ArrayObject(annots)
    buf = BytesIO()
    writer.write(buf)
    return buf.getvalue()


def test_unreferenced_widget_falls_back_to_first_page(form_pdf):
    fields = _fields_by_name(_list_notes_widget_on(form_pdf, pages=()))
    assert fields["notes"].owner_page_index == 0
    assert fields["notes"].current_value == "draft"


def test_overlapping_annotations_resolve_to_first_page(form_pdf):
    fields = _fields_by_name(_list_notes_widget_on(form_pdf, pages=(0, 1)))
    assert fields["notes"].owner_page_index == 0
    assert fields["name"].owner_page_index == 0


def test_field_rect_is_first_widget_rect(form_pdf):
    assert _fields_by_name(form_pdf)["name"].rect == pytest.approx(NAME_RECT)


def test_document_without_form_has_no_fields(simple_pdf):
    assert reader.list_form_fields(reader.load(simple_pdf)) == []
