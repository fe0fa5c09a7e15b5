"""Page plans: which source pages go where, at what size."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .errors import EmptyPagePlan, InvalidInput
from .geometry import (
    IDENTITY,
    CanvasPolicy,
    ExplicitSize,
    PageSize,
    TargetSpec,
    UniformWidth,
    check_page_size,
    parse_canvas_policy,
    require_positive,
    resolve_canvas,
    resolve_transform,
)

logger = logging.getLogger(__name__)

NORMALIZE_POLICIES = (
    CanvasPolicy.FIRST,
    CanvasPolicy.LARGEST,
    CanvasPolicy.SMALLEST,
    CanvasPolicy.CUSTOM,
)


@dataclass(frozen=True)
class PlanEntry:
    """One output page: a source page and its target size."""

    source_id: int
    page_index: int
    target: TargetSpec


@dataclass(frozen=True)
class PagePlan:
    """Ordered plan entries plus the canvas size reported to the caller."""

    entries: Tuple[PlanEntry, ...]
    canvas: PageSize

    def __len__(self) -> int:
        return len(self.entries)


def plan_scale(pages: Sequence[PageSize], target_width: float) -> PagePlan:
    """Scale every page of one source to ``target_width``, keeping aspect ratios."""
    target = UniformWidth(target_width)
    if not pages:
        raise EmptyPagePlan("PDF has no pages")
    entries = tuple(PlanEntry(0, index, target) for index in range(len(pages)))
    return PagePlan(entries, resolve_transform(pages[0], target).size)


def plan_merge(sources: Sequence[Sequence[PageSize]], target_width: float) -> PagePlan:
    """
    Concatenate several sources, each normalized to ``target_width`` on its own.

    Every page of a source shares the scale factor derived from that source's
    first page, so pages narrower or wider than the first page keep their
    relative size. Sources without pages are skipped.

    Raises:
        InvalidTarget: If ``target_width`` is not positive.
        InvalidInput: If ``sources`` is empty.
        EmptyPagePlan: If no source has any page.
    """
    UniformWidth(target_width)
    if not sources:
        raise InvalidInput("No files provided")
    entries: List[PlanEntry] = []
    canvas = None
    for source_id, pages in enumerate(sources):
        if not pages:
            logger.warning("Source %d has no pages; skipping", source_id)
            continue
        first = resolve_transform(pages[0], UniformWidth(target_width))
        scale = first.scale_x
        logger.debug(
            "Source %d: %.0f x %.0f -> %.0f (scale %.4f)",
            source_id,
            pages[0].width,
            pages[0].height,
            target_width,
            scale,
        )
        for index, page in enumerate(pages):
            check_page_size(page)
            entries.append(PlanEntry(source_id, index, UniformWidth(page.width * scale)))
        if canvas is None:
            canvas = first.size
    if canvas is None:
        raise EmptyPagePlan("No valid pages to merge")
    return PagePlan(tuple(entries), canvas)


def plan_mix(
    sources: Sequence[Sequence[PageSize]],
    order: Iterable[Tuple[int, int]],
    target_width: float,
) -> PagePlan:
    """
    Build an explicit cross-source page list at ``target_width``.

    ``order`` holds ``(source_id, page_index)`` pairs, both 0-based; each page
    is scaled from its own width. Pairs pointing outside the sources are
    dropped.

    Raises:
        InvalidTarget: If ``target_width`` is not positive.
        EmptyPagePlan: If ``order`` is empty or no pair is valid.
    """
    target = UniformWidth(target_width)
    if not sources:
        raise InvalidInput("No files provided")
    requested = list(order)
    if not requested:
        raise EmptyPagePlan("No pages selected")
    entries: List[PlanEntry] = []
    for source_id, page_index in requested:
        if not 0 <= source_id < len(sources) or not 0 <= page_index < len(sources[source_id]):
            logger.debug("Skipping page reference (%s, %s)", source_id, page_index)
            continue
        entries.append(PlanEntry(source_id, page_index, target))
    if not entries:
        raise EmptyPagePlan("No valid pages to mix")
    first = entries[0]
    canvas = resolve_transform(sources[first.source_id][first.page_index], target).size
    return PagePlan(tuple(entries), canvas)


def check_normalize_request(
    policy: str | CanvasPolicy | None,
    width: float | None = None,
    height: float | None = None,
) -> CanvasPolicy:
    """
    Validate a normalize request without touching any page.

    Raises:
        InvalidInput: If the policy is not one of first, largest, smallest or custom.
        InvalidTarget: If ``custom`` is missing a positive width or height.
    """
    resolved = parse_canvas_policy(policy)
    if resolved not in NORMALIZE_POLICIES:
        valid = ", ".join(item.value for item in NORMALIZE_POLICIES)
        raise InvalidInput(f"Normalize supports canvas policies: {valid}")
    if resolved is CanvasPolicy.CUSTOM:
        ExplicitSize(require_positive(width, "Target width"), require_positive(height, "Target height"))
    return resolved


def plan_normalize(
    pages: Sequence[PageSize],
    policy: str | CanvasPolicy | None = CanvasPolicy.FIRST,
    width: float | None = None,
    height: float | None = None,
) -> PagePlan:
    """
    Give every page of one source the same page box.

    The box comes from the canvas policy. Pages already within one point of
    it on both axes are passed through unchanged.

    Raises:
        InvalidInput: If the policy is not one of first, largest, smallest or custom.
        InvalidTarget: If ``custom`` is missing a positive width or height.
        InvalidSourceGeometry: If any page has a zero dimension.
        EmptyPagePlan: If the source has no pages.
    """
    resolved = check_normalize_request(policy, width, height)
    if not pages:
        raise EmptyPagePlan("PDF has no pages")
    for page in pages:
        check_page_size(page)
    canvas = resolve_canvas(pages, resolved, width, height)
    target = ExplicitSize(canvas.width, canvas.height)
    entries = []
    for index, page in enumerate(pages):
        if page.matches(canvas):
            logger.debug("Page %d already %.0f x %.0f", index + 1, page.width, page.height)
            entries.append(PlanEntry(0, index, IDENTITY))
        else:
            entries.append(PlanEntry(0, index, target))
    return PagePlan(tuple(entries), canvas)


def plan_reorder(pages: Sequence[PageSize], order: Iterable[int]) -> PagePlan:
    """
    Copy pages of one source in the given 1-based order, unscaled.

    Numbers may repeat. Numbers outside ``1..len(pages)`` are skipped, and
    pages never mentioned are left out of the output.

    Raises:
        EmptyPagePlan: If ``order`` is empty or every number is out of range.
    """
    requested = list(order)
    if not requested:
        raise EmptyPagePlan("Page order is empty")
    total = len(pages)
    entries: List[PlanEntry] = []
    for number in requested:
        if not 1 <= number <= total:
            logger.warning("Skipping invalid page number %s (document has %d pages)", number, total)
            continue
        entries.append(PlanEntry(0, number - 1, IDENTITY))
    if not entries:
        raise EmptyPagePlan("No valid pages to copy")
    return PagePlan(tuple(entries), pages[entries[0].page_index])


def plan_remove(pages: Sequence[PageSize], remove: Iterable[int]) -> PagePlan:
    """Keep every page whose 1-based number is not in ``remove``, in source order."""
    total = len(pages)
    remove_set = set()
    for number in remove:
        if not 1 <= number <= total:
            logger.warning("Ignoring invalid page number %s (document has %d pages)", number, total)
            continue
        remove_set.add(number)
    keep = [number for number in range(1, total + 1) if number not in remove_set]
    if not keep:
        raise EmptyPagePlan("Removing every page would leave an empty document")
    return plan_reorder(pages, keep)
