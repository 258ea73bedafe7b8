import pytest

from pdfdesk.engine import reader
from pdfdesk.engine.compression import PRESETS, compress, compress_with_report, get_preset
from pdfdesk.engine.errors import MalformedDocument
from pdfdesk.engine.raster import RasterPipeline


def test_preset_values():
    assert (PRESETS["light"].render_scale, PRESETS["light"].jpeg_quality) == (1.5, 0.8)
    assert (PRESETS["recommended"].render_scale, PRESETS["recommended"].jpeg_quality) == (1.2, 0.6)
    assert (PRESETS["maximum"].render_scale, PRESETS["maximum"].jpeg_quality) == (1.0, 0.4)


def test_unknown_preset():
    assert get_preset(" Light ").name == "light"
    with pytest.raises(ValueError):
        get_preset("extreme")


def test_output_keeps_page_count_and_sizes(make_pdf):
    source = make_pdf(pages=((612, 792), (842, 595)))
    out = compress(source, get_preset("maximum"))
    pages = reader.list_pages(reader.load(out))
    assert [(p.width_pt, p.height_pt) for p in pages] == [(612, 792), (842, 595)]


def test_output_is_raster_only(form_pdf):
    out = compress(form_pdf, get_preset("recommended"))
    assert reader.list_form_fields(reader.load(out)) == []
    page = reader.load(out).reader.pages[0]
    assert "/XObject" in page["/Resources"]
    assert "Application form" not in page.extract_text()


def test_light_is_never_smaller_than_maximum(three_page_pdf):
    light = compress(three_page_pdf, get_preset("light"))
    maximum = compress(three_page_pdf, get_preset("maximum"))
    assert len(light) >= len(maximum)


def test_progress_after_each_page(three_page_pdf):
    seen = []
    compress(three_page_pdf, get_preset("maximum"), progress=seen.append)
    assert seen == [33, 67, 100]


def test_report(three_page_pdf):
    out, report = compress_with_report(three_page_pdf, get_preset("maximum"), pipeline=RasterPipeline())
    assert report.original_size == len(three_page_pdf)
    assert report.compressed_size == len(out)
    assert report.saved_percent == round((1 - len(out) / len(three_page_pdf)) * 100)


def test_malformed_source_aborts():
    with pytest.raises(MalformedDocument):
        compress(b"broken", get_preset("light"))


class FailingPipeline(RasterPipeline):
    def __init__(self, fail_at):
        super().__init__()
        self.fail_at = fail_at

    def render_page_to_bitmap(self, document, page_index, scale):
        if page_index == self.fail_at:
            raise RuntimeError(f"render failed on page {page_index + 1}")
        return super().render_page_to_bitmap(document, page_index, scale)


def test_page_failure_aborts_without_output(three_page_pdf):
    seen = []
    with pytest.raises(RuntimeError, match="page 2"):
        compress_with_report(three_page_pdf, get_preset("maximum"), progress=seen.append, pipeline=FailingPipeline(1))
    assert seen == [33]
