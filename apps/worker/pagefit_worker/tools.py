"""File-level page tools shared by the worker and the command line."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

from .compose import (
    CompositionResult,
    InputFile,
    ScaleResult,
    merge_documents,
    mix_documents,
    normalize_document,
    remove_document_pages,
    reorder_document,
    scale_document,
)
from .errors import InvalidInput
from .geometry import require_positive
from .history import HistoryStore
from .thumbnails import DEFAULT_THUMBNAIL_SIZE, render_page_thumbnail


def _strip_input_prefix(path: Path) -> Path:
    """Drop the ``NN_`` download prefix the worker adds to input files."""
    name = path.name
    if "_" in name:
        prefix, remainder = name.split("_", 1)
        if prefix.isdigit():
            name = remainder
    return Path(name)


def _parse_int(value: Any) -> int:
    """Parse an integer page reference or raise ``InvalidInput``."""
    if isinstance(value, bool):
        raise InvalidInput(f"Invalid page number: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError as error:
        raise InvalidInput(f"Invalid page number: {value!r}") from error


def _load_json_list(value: str) -> list | None:
    cleaned = value.strip()
    if not cleaned.startswith("["):
        return None
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as error:
        raise InvalidInput("Page order is not valid JSON") from error
    if not isinstance(parsed, list):
        raise InvalidInput("Page order must be a list")
    return parsed


def parse_page_order(value: Any) -> List[int]:
    """
    Expand a page order into a list of 1-based page numbers.

    Accepts a list of integers, a JSON list string (``"[3, 1, 2]"``) or a
    comma-separated string with ranges (``"3,1-2,2"``). Order and duplicates
    are kept, ranges may run backwards (``"5-3"``), and numbers are not
    clamped: range checks against the document happen later.

    Raises:
        InvalidInput: If an entry is not an integer or a range is malformed.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [_parse_int(item) for item in value]
    text = str(value)
    parsed = _load_json_list(text)
    if parsed is not None:
        return [_parse_int(item) for item in parsed]
    pages: List[int] = []
    for part in text.split(","):
        cleaned = part.strip()
        if not cleaned:
            continue
        if "-" in cleaned.lstrip("-"):
            start_text, end_text = cleaned.split("-", 1)
            start, end = _parse_int(start_text), _parse_int(end_text)
            step = 1 if start <= end else -1
            pages.extend(range(start, end + step, step))
        else:
            pages.append(_parse_int(cleaned))
    return pages


def parse_mix_order(value: Any) -> List[Tuple[int, int]]:
    """
    Parse a cross-document page list into ``(file_index, page_index)`` pairs.

    Items may be objects with ``fileIndex``/``pageIndex`` keys or two-element
    lists. Both indices are 0-based.

    Raises:
        InvalidInput: If the value is not a list of page references.
    """
    if value is None:
        return []
    items = value
    if isinstance(value, str):
        if not value.strip():
            return []
        items = _load_json_list(value)
        if items is None:
            raise InvalidInput("Page order must be a JSON list")
    if not isinstance(items, (list, tuple)):
        raise InvalidInput("Page order must be a list")
    order: List[Tuple[int, int]] = []
    for item in items:
        if isinstance(item, dict):
            if "fileIndex" not in item or "pageIndex" not in item:
                raise InvalidInput("Page references need fileIndex and pageIndex")
            order.append((_parse_int(item["fileIndex"]), _parse_int(item["pageIndex"])))
        elif isinstance(item, (list, tuple)) and len(item) == 2:
            order.append((_parse_int(item[0]), _parse_int(item[1])))
        else:
            raise InvalidInput(f"Invalid page reference: {item!r}")
    return order


def parse_dimension(value: Any, field: str = "Target width") -> float:
    """Parse a positive width or height, raising ``InvalidTarget`` otherwise."""
    if isinstance(value, str):
        value = value.strip()
    return require_positive(value, field)


def _stem(path: Path | str) -> str:
    return _strip_input_prefix(Path(path)).stem or "output"


def scale_output_name(input_name: str, result: CompositionResult) -> str:
    return f"{_stem(input_name)}_{round(result.width)}px.pdf"


def merge_output_name(result: CompositionResult) -> str:
    return f"merged_{round(result.width)}px.pdf"


def mix_output_name(result: CompositionResult) -> str:
    return f"mixed_{round(result.width)}px.pdf"


def normalize_output_name(input_name: str, result: CompositionResult) -> str:
    return f"{_stem(input_name)}_normalized_{result.width:g}x{result.height:g}.pdf"


def reorder_output_name(input_name: str) -> str:
    return f"{_stem(input_name)}_reordered.pdf"


def remove_output_name(input_name: str) -> str:
    return f"{_stem(input_name)}_trimmed.pdf"


def thumbnail_output_name(input_name: str, page_index: int) -> str:
    return f"{_stem(input_name)}_page{page_index + 1}.png"


def read_input(path: Path) -> InputFile:
    """Read a source file, naming it without the worker's download prefix."""
    return InputFile(name=_strip_input_prefix(path).name, data=path.read_bytes())


def _write(output_path: Path, data: bytes) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(data)
    return output_path


def scale_pdf(
    input_path: Path,
    output_path: Path,
    target_width: Any,
    history: Optional[HistoryStore] = None,
) -> ScaleResult:
    """Scale every page of a PDF to ``target_width`` and write the result."""
    result = scale_document(
        read_input(input_path), parse_dimension(target_width), history=history
    )
    _write(output_path, result.data)
    return result


def merge_pdfs(
    inputs: Sequence[Path], output_path: Path, target_width: Any
) -> CompositionResult:
    """
    Merge PDFs in the given order, each scaled to ``target_width``.

    Parameters:
        inputs (Sequence[Path]): Source PDFs, concatenated in this order.
        output_path (Path): Destination path for the merged PDF.
        target_width: Width every source's first page is scaled to.

    Returns:
        CompositionResult: The merged document and its first page size.
    """
    width = parse_dimension(target_width)
    result = merge_documents([read_input(path) for path in inputs], width)
    _write(output_path, result.data)
    return result


def mix_pdfs(
    inputs: Sequence[Path], output_path: Path, order: Any, target_width: Any
) -> CompositionResult:
    """Compose pages picked across ``inputs`` in ``order`` at ``target_width``."""
    width = parse_dimension(target_width)
    page_order = parse_mix_order(order)
    result = mix_documents([read_input(path) for path in inputs], page_order, width)
    _write(output_path, result.data)
    return result


def normalize_pdf(
    input_path: Path,
    output_path: Path,
    canvas: Any = "custom",
    target_width: Any = None,
    target_height: Any = None,
) -> CompositionResult:
    """
    Give every page of a PDF the same size and write the result.

    With the ``custom`` canvas both ``target_width`` and ``target_height`` are
    required; ``first``, ``largest`` and ``smallest`` pick the size from the
    document's own pages.
    """
    width = None if target_width in (None, "") else parse_dimension(target_width)
    height = (
        None if target_height in (None, "") else parse_dimension(target_height, "Target height")
    )
    result = normalize_document(read_input(input_path), canvas, width, height)
    _write(output_path, result.data)
    return result


def reorder_pages(input_path: Path, output_path: Path, order: Any) -> CompositionResult:
    """Write the pages of a PDF in ``order`` (1-based; repeats allowed)."""
    result = reorder_document(read_input(input_path), parse_page_order(order))
    _write(output_path, result.data)
    return result


def remove_pages(input_path: Path, output_path: Path, pages: Any) -> CompositionResult:
    """Remove the listed 1-based pages from a PDF."""
    result = remove_document_pages(read_input(input_path), parse_page_order(pages))
    _write(output_path, result.data)
    return result


def thumbnail_png(
    input_path: Path,
    output_path: Path,
    page_index: int,
    size: int = DEFAULT_THUMBNAIL_SIZE,
) -> Path:
    """Render page ``page_index`` (0-based) of a PDF to a PNG thumbnail."""
    source = read_input(input_path)
    png = render_page_thumbnail(source.data, page_index, source.name, size, size)
    return _write(output_path, png)
