"""Composition of output documents from page plans."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .codec import PdfOutput, PdfSource, load_document
from .errors import EmptyPagePlan, InvalidInput, MalformedDocument
from .geometry import CanvasPolicy, UniformWidth, resolve_transform
from .history import HistoryRecord, HistoryStore, record_history
from .plans import (
    PagePlan,
    check_normalize_request,
    plan_merge,
    plan_mix,
    plan_normalize,
    plan_remove,
    plan_reorder,
    plan_scale,
)

logger = logging.getLogger(__name__)

MAX_LOAD_WORKERS = 4


@dataclass(frozen=True)
class InputFile:
    """A named source document as raw bytes."""

    name: str
    data: bytes


@dataclass(frozen=True)
class CompositionResult:
    """Output bytes plus the representative page size and page count."""

    data: bytes
    width: float
    height: float
    page_count: int


@dataclass(frozen=True)
class ScaleResult(CompositionResult):
    """Scale output with the factor and the original first-page size."""

    scale: float
    source_width: float
    source_height: float


def load_sources(files: Sequence[InputFile]) -> List[PdfSource]:
    """
    Parse every input file, keeping input order.

    Several files are parsed on a thread pool since parsing only reads its
    own buffer. The first failing file, in input order, is the one reported.

    Raises:
        InvalidInput: If no files are given.
        MalformedDocument: If any file cannot be parsed.
    """
    if not files:
        raise InvalidInput("No files provided")
    if len(files) == 1:
        return [load_document(files[0].data, files[0].name, 0)]
    max_workers = min(len(files), MAX_LOAD_WORKERS)
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [
            executor.submit(load_document, item.data, item.name, index)
            for index, item in enumerate(files)
        ]
        return [future.result() for future in futures]


def compose(
    plan: PagePlan,
    sources: Sequence[PdfSource],
    metadata_source: Optional[PdfSource] = None,
) -> CompositionResult:
    """
    Build the output document for ``plan``.

    Pages are written strictly in plan order. A failure on any page aborts the
    whole request; the partial output is discarded.

    Raises:
        InvalidInput: If ``sources`` is empty.
        EmptyPagePlan: If the plan has no entries.
        InvalidSourceGeometry: If a planned page has a zero dimension.
        MalformedDocument: If a page cannot be copied.
    """
    if not sources:
        raise InvalidInput("No source documents provided")
    if not plan.entries:
        raise EmptyPagePlan("Page plan is empty")

    output = PdfOutput()
    for position, entry in enumerate(plan.entries, start=1):
        source = sources[entry.source_id]
        page_size = source.page_size(entry.page_index)
        transform = resolve_transform(page_size, entry.target)
        handle = output.copy_page(source, entry.page_index)
        handle.set_size(transform.width, transform.height)
        handle.scale_content(transform.scale_x, transform.scale_y)
        handle.translate_content(transform.translate_x, transform.translate_y)
        output.append(handle)
        logger.debug(
            "Page %d <- %s p%d: %.0f x %.0f -> %.0f x %.0f",
            position,
            source.name,
            entry.page_index + 1,
            page_size.width,
            page_size.height,
            transform.width,
            transform.height,
        )

    if metadata_source is not None:
        output.copy_metadata(metadata_source)
    try:
        data = output.save()
    except (ValueError, KeyError, TypeError, OSError) as error:
        names = ", ".join(source.name for source in sources)
        raise MalformedDocument(f"Failed to write output for {names}", source=names) from error
    return CompositionResult(
        data=data,
        width=plan.canvas.width,
        height=plan.canvas.height,
        page_count=output.page_count,
    )


def scale_document(
    file: InputFile,
    target_width: float,
    history: Optional[HistoryStore] = None,
) -> ScaleResult:
    """
    Scale every page of one document to ``target_width``.

    When ``history`` is given, a record is appended after success; a history
    failure is logged and never affects the result.
    """
    target = UniformWidth(target_width)
    source = load_document(file.data, file.name)
    pages = source.page_sizes()
    plan = plan_scale(pages, target.target_width)
    scale = resolve_transform(pages[0], target).scale_x
    logger.info(
        "Scaling %s: %.0f x %.0f -> width %.0f (scale %.4f)",
        file.name,
        pages[0].width,
        pages[0].height,
        target.target_width,
        scale,
    )
    composed = compose(plan, [source], metadata_source=source)
    result = ScaleResult(
        data=composed.data,
        width=composed.width,
        height=composed.height,
        page_count=composed.page_count,
        scale=scale,
        source_width=pages[0].width,
        source_height=pages[0].height,
    )
    logger.info("Scaled %s to %.0f x %.0f", file.name, result.width, result.height)
    record_history(
        history,
        HistoryRecord(
            filename=file.name,
            source_width=result.source_width,
            target_width=target.target_width,
            scale=result.scale,
            original_size=len(file.data),
            output_size=len(result.data),
        ),
    )
    return result


def merge_documents(files: Sequence[InputFile], target_width: float) -> CompositionResult:
    """Concatenate documents, each scaled from its own first page to ``target_width``."""
    UniformWidth(target_width)
    sources = load_sources(files)
    logger.info("Merging %d PDF files at width %s", len(sources), target_width)
    plan = plan_merge([source.page_sizes() for source in sources], target_width)
    result = compose(plan, sources)
    logger.info(
        "Merged %d pages at %.0f x %.0f", result.page_count, result.width, result.height
    )
    return result


def mix_documents(
    files: Sequence[InputFile],
    order: Iterable[Tuple[int, int]],
    target_width: float,
) -> CompositionResult:
    """Compose an explicit ``(file_index, page_index)`` list at ``target_width``."""
    UniformWidth(target_width)
    requested = list(order)
    if not requested:
        raise EmptyPagePlan("No pages selected")
    sources = load_sources(files)
    logger.info(
        "Mixing %d pages from %d files at width %s", len(requested), len(sources), target_width
    )
    plan = plan_mix([source.page_sizes() for source in sources], requested, target_width)
    if len(plan) < len(requested):
        logger.info("Dropped %d invalid page references", len(requested) - len(plan))
    return compose(plan, sources)


def normalize_document(
    file: InputFile,
    policy: str | CanvasPolicy | None = CanvasPolicy.CUSTOM,
    width: float | None = None,
    height: float | None = None,
) -> CompositionResult:
    """Give every page one size chosen by ``policy`` (custom size by default)."""
    resolved = check_normalize_request(policy, width, height)
    source = load_document(file.data, file.name)
    plan = plan_normalize(source.page_sizes(), resolved, width, height)
    logger.info(
        "Normalizing %s (%d pages) to %.0f x %.0f",
        file.name,
        source.page_count,
        plan.canvas.width,
        plan.canvas.height,
    )
    return compose(plan, [source], metadata_source=source)


def reorder_document(file: InputFile, order: Iterable[int]) -> CompositionResult:
    """Copy pages in the given 1-based order; unlisted pages are dropped."""
    requested = list(order)
    if not requested:
        raise EmptyPagePlan("Page order is empty")
    source = load_document(file.data, file.name)
    logger.info("Reordering %s: %s", file.name, requested)
    plan = plan_reorder(source.page_sizes(), requested)
    return compose(plan, [source], metadata_source=source)


def remove_document_pages(file: InputFile, pages: Iterable[int]) -> CompositionResult:
    """Drop the listed 1-based pages and keep the rest in order."""
    source = load_document(file.data, file.name)
    plan = plan_remove(source.page_sizes(), pages)
    logger.info("Keeping %d of %d pages of %s", len(plan), source.page_count, file.name)
    return compose(plan, [source], metadata_source=source)
