from pathlib import Path
from tempfile import TemporaryDirectory

import pytest
from PIL import Image
from pypdf import PdfReader

from pagefit_worker.compose import CompositionResult
from pagefit_worker.errors import EmptyPagePlan, InvalidInput, InvalidTarget, MalformedDocument
from pagefit_worker.history import JsonlHistoryStore
from pagefit_worker.tools import (
    merge_output_name,
    merge_pdfs,
    mix_output_name,
    mix_pdfs,
    normalize_output_name,
    normalize_pdf,
    parse_dimension,
    parse_mix_order,
    parse_page_order,
    remove_output_name,
    remove_pages,
    reorder_output_name,
    reorder_pages,
    scale_output_name,
    scale_pdf,
    thumbnail_output_name,
    thumbnail_png,
)


def _write_pdf(path: Path, data: bytes) -> Path:
    path.write_bytes(data)
    return path


def test_parse_page_order_formats() -> None:
    """Page orders accept lists, JSON and comma ranges."""
    assert parse_page_order([3, "1", 2.0]) == [3, 1, 2]
    assert parse_page_order("[2, 2, 1]") == [2, 2, 1]
    assert parse_page_order("3, 1-2, 5-4") == [3, 1, 2, 5, 4]
    assert parse_page_order("0,9") == [0, 9]
    assert parse_page_order(None) == []
    with pytest.raises(InvalidInput):
        parse_page_order("1,x")
    with pytest.raises(InvalidInput):
        parse_page_order("[1, ")


def test_parse_mix_order_formats() -> None:
    """Mix orders accept objects and pairs."""
    order = parse_mix_order('[{"fileIndex": 1, "pageIndex": 0}, [0, 2]]')
    assert order == [(1, 0), (0, 2)]
    assert parse_mix_order([{"fileIndex": "0", "pageIndex": "1"}]) == [(0, 1)]
    assert parse_mix_order("") == []
    with pytest.raises(InvalidInput):
        parse_mix_order('[{"fileIndex": 1}]')
    with pytest.raises(InvalidInput):
        parse_mix_order("1,2")
    with pytest.raises(InvalidInput):
        parse_mix_order([[1, 2, 3]])


def test_parse_dimension() -> None:
    """Dimensions must be positive numbers."""
    assert parse_dimension(" 612.5 ") == 612.5
    for value in ("", "abc", "0", -4, None):
        with pytest.raises(InvalidTarget):
            parse_dimension(value)


def test_output_names() -> None:
    """Output names carry the rounded result size and strip download prefixes."""
    result = CompositionResult(data=b"", width=1199.6, height=1552.3, page_count=1)
    assert scale_output_name("03_report.pdf", result) == "report_1200px.pdf"
    assert merge_output_name(result) == "merged_1200px.pdf"
    assert mix_output_name(result) == "mixed_1200px.pdf"
    square = CompositionResult(data=b"", width=400, height=500.5, page_count=1)
    assert normalize_output_name("report.pdf", square) == "report_normalized_400x500.5.pdf"
    assert reorder_output_name("01_report.pdf") == "report_reordered.pdf"
    assert remove_output_name("report.pdf") == "report_trimmed.pdf"
    assert thumbnail_output_name("report.pdf", 0) == "report_page1.png"


def test_scale_pdf_writes_output_and_history(make_pdf) -> None:
    """Scaling a file writes the PDF and a local history record."""
    with TemporaryDirectory() as temp:
        temp_path = Path(temp)
        source = _write_pdf(temp_path / "01_report.pdf", make_pdf([(612, 792)]))
        history = JsonlHistoryStore(temp_path / "history.jsonl")
        output = temp_path / "out" / "scaled.pdf"

        result = scale_pdf(source, output, "1224", history)
        page = PdfReader(str(output)).pages[0]
        assert (float(page.mediabox.width), float(page.mediabox.height)) == (1224, 1584)
        assert result.scale == pytest.approx(2)
        records = history.recent()
        assert records[0].filename == "report.pdf"
        assert records[0].target_width == 1224


def test_merge_and_mix_pdfs(make_pdf) -> None:
    """Merging and mixing files write documents of the expected length."""
    with TemporaryDirectory() as temp:
        temp_path = Path(temp)
        first = _write_pdf(temp_path / "first.pdf", make_pdf([(300, 300)]))
        second = _write_pdf(temp_path / "second.pdf", make_pdf([(600, 300)] * 2))

        merge_pdfs([first, second], temp_path / "merged.pdf", 150)
        assert len(PdfReader(str(temp_path / "merged.pdf")).pages) == 3

        mix_pdfs(
            [first, second],
            temp_path / "mixed.pdf",
            '[{"fileIndex": 1, "pageIndex": 1}, {"fileIndex": 0, "pageIndex": 0}]',
            150,
        )
        pages = PdfReader(str(temp_path / "mixed.pdf")).pages
        assert [float(page.mediabox.height) for page in pages] == [75, 150]


def test_normalize_pdf_requires_custom_size(make_pdf) -> None:
    """The custom canvas needs both dimensions; other canvases do not."""
    with TemporaryDirectory() as temp:
        temp_path = Path(temp)
        source = _write_pdf(temp_path / "doc.pdf", make_pdf([(100, 100), (300, 200)]))
        with pytest.raises(InvalidTarget):
            normalize_pdf(source, temp_path / "out.pdf", "custom", "400", "")
        result = normalize_pdf(source, temp_path / "out.pdf", "smallest")
        assert (result.width, result.height) == (100, 100)
        pages = PdfReader(str(temp_path / "out.pdf")).pages
        assert [float(page.mediabox.width) for page in pages] == [100, 100]


def test_normalize_pdf_rejects_request_before_reading(tmp_path) -> None:
    """Bad canvas settings win over an unreadable file."""
    source = _write_pdf(tmp_path / "broken.pdf", b"garbage")
    with pytest.raises(InvalidTarget):
        normalize_pdf(source, tmp_path / "out.pdf", "custom", "400", None)
    with pytest.raises(InvalidInput):
        normalize_pdf(source, tmp_path / "out.pdf", "biggest")
    with pytest.raises(MalformedDocument):
        normalize_pdf(source, tmp_path / "out.pdf", "first")
    assert not (tmp_path / "out.pdf").exists()


def test_reorder_and_remove_pages(make_pdf) -> None:
    """Reordering and removing pages take 1-based page lists."""
    with TemporaryDirectory() as temp:
        temp_path = Path(temp)
        source = _write_pdf(temp_path / "doc.pdf", make_pdf([(100, 100)] * 4))
        reorder_pages(source, temp_path / "reordered.pdf", "4-3,1")
        assert len(PdfReader(str(temp_path / "reordered.pdf")).pages) == 3
        remove_pages(source, temp_path / "trimmed.pdf", "2")
        assert len(PdfReader(str(temp_path / "trimmed.pdf")).pages) == 3
        with pytest.raises(EmptyPagePlan):
            reorder_pages(source, temp_path / "none.pdf", "")
        assert not (temp_path / "none.pdf").exists()


def test_thumbnail_png(make_pdf) -> None:
    """Thumbnails are written as PNG files."""
    with TemporaryDirectory() as temp:
        temp_path = Path(temp)
        source = _write_pdf(temp_path / "doc.pdf", make_pdf([(200, 400)]))
        output = thumbnail_png(source, temp_path / "thumb.png", 0, 100)
        with Image.open(output) as image:
            assert image.size == (50, 100)
