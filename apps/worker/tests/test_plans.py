import logging

import pytest

from pagefit_worker.errors import (
    EmptyPagePlan,
    InvalidInput,
    InvalidSourceGeometry,
    InvalidTarget,
)
from pagefit_worker.geometry import IDENTITY, ExplicitSize, PageSize, UniformWidth
from pagefit_worker.plans import (
    plan_merge,
    plan_mix,
    plan_normalize,
    plan_remove,
    plan_reorder,
    plan_scale,
)


def test_plan_scale_covers_every_page() -> None:
    """Scale plans one entry per page with the canvas of the first page."""
    plan = plan_scale([PageSize(612, 792), PageSize(842, 595)], 306)
    assert len(plan) == 2
    assert all(entry.target == UniformWidth(306) for entry in plan.entries)
    assert plan.canvas == PageSize(306, 396)


def test_plan_scale_rejects_bad_width_and_empty_source() -> None:
    """Scale needs a positive width and at least one page."""
    with pytest.raises(InvalidTarget):
        plan_scale([PageSize(100, 100)], 0)
    with pytest.raises(EmptyPagePlan):
        plan_scale([], 100)


def test_plan_merge_uses_each_source_first_page_factor() -> None:
    """Pages of one source share the factor of that source's first page."""
    sources = [[PageSize(100, 100), PageSize(200, 50)], [PageSize(400, 400)]]
    plan = plan_merge(sources, 50)
    assert [(entry.source_id, entry.page_index) for entry in plan.entries] == [(0, 0), (0, 1), (1, 0)]
    assert plan.entries[1].target == UniformWidth(100)
    assert plan.entries[2].target == UniformWidth(50)
    assert plan.canvas == PageSize(50, 50)


def test_plan_merge_skips_empty_sources(caplog) -> None:
    """Sources without pages are logged and skipped."""
    with caplog.at_level(logging.WARNING, logger="pagefit_worker.plans"):
        plan = plan_merge([[], [PageSize(10, 20)]], 5)
    assert [entry.source_id for entry in plan.entries] == [1]
    assert "no pages" in caplog.text
    with pytest.raises(EmptyPagePlan):
        plan_merge([[], []], 5)
    with pytest.raises(InvalidInput):
        plan_merge([], 5)


def test_plan_merge_rejects_zero_sized_page() -> None:
    """A degenerate page anywhere in a source fails the merge."""
    with pytest.raises(InvalidSourceGeometry):
        plan_merge([[PageSize(100, 100), PageSize(0, 10)]], 50)


def test_plan_mix_keeps_order_and_drops_invalid_references() -> None:
    """Mix follows the requested order and ignores out-of-range pairs."""
    sources = [[PageSize(200, 100)], [PageSize(100, 300), PageSize(50, 50)]]
    plan = plan_mix(sources, [(1, 1), (5, 0), (0, 0), (1, 9), (-1, 0), (1, 1)], 100)
    assert [(entry.source_id, entry.page_index) for entry in plan.entries] == [(1, 1), (0, 0), (1, 1)]
    assert plan.canvas == PageSize(100, 100)


def test_plan_mix_empty_cases() -> None:
    """Mix with nothing selected or nothing valid is an empty plan."""
    sources = [[PageSize(100, 100)]]
    with pytest.raises(EmptyPagePlan):
        plan_mix(sources, [], 100)
    with pytest.raises(EmptyPagePlan):
        plan_mix(sources, [(0, 3), (2, 0)], 100)


def test_plan_normalize_passes_matching_pages_through() -> None:
    """Pages within a point of the canvas are copied unchanged."""
    pages = [PageSize(612, 792), PageSize(612.4, 791.7), PageSize(595, 842)]
    plan = plan_normalize(pages, "first")
    assert plan.canvas == PageSize(612, 792)
    assert plan.entries[0].target is IDENTITY
    assert plan.entries[1].target is IDENTITY
    assert plan.entries[2].target == ExplicitSize(612, 792)


def test_plan_normalize_policies() -> None:
    """Normalize sizes pages by largest, smallest or a custom box."""
    pages = [PageSize(100, 100), PageSize(300, 300)]
    assert plan_normalize(pages, "largest").canvas == PageSize(300, 300)
    assert plan_normalize(pages, "smallest").canvas == PageSize(100, 100)
    custom = plan_normalize(pages, "custom", 200, 150)
    assert custom.canvas == PageSize(200, 150)
    assert all(entry.target == ExplicitSize(200, 150) for entry in custom.entries)


def test_plan_normalize_rejects_bad_requests() -> None:
    """Normalize validates its policy and custom dimensions."""
    pages = [PageSize(100, 100)]
    with pytest.raises(InvalidInput):
        plan_normalize(pages, "explicit-width", 100)
    with pytest.raises(InvalidTarget):
        plan_normalize(pages, "custom", 100, None)
    with pytest.raises(InvalidTarget):
        plan_normalize([], "custom", 0, 100)
    with pytest.raises(EmptyPagePlan):
        plan_normalize([], "first")
    with pytest.raises(InvalidSourceGeometry):
        plan_normalize([PageSize(100, 100), PageSize(100, 0)], "first")


def test_plan_reorder_duplicates_and_skips(caplog) -> None:
    """Reorder repeats pages on request and skips numbers out of range."""
    pages = [PageSize(100, 100), PageSize(200, 200), PageSize(300, 300)]
    with caplog.at_level(logging.WARNING, logger="pagefit_worker.plans"):
        plan = plan_reorder(pages, [3, 0, 1, 4, 3])
    assert [entry.page_index for entry in plan.entries] == [2, 0, 2]
    assert all(entry.target is IDENTITY for entry in plan.entries)
    assert plan.canvas == PageSize(300, 300)
    assert "invalid page number 0" in caplog.text


def test_plan_reorder_empty_cases() -> None:
    """An empty order or one without valid numbers is rejected."""
    pages = [PageSize(100, 100)]
    with pytest.raises(EmptyPagePlan):
        plan_reorder(pages, [])
    with pytest.raises(EmptyPagePlan):
        plan_reorder(pages, [0, 2, -1])


def test_plan_remove_keeps_remaining_pages() -> None:
    """Remove keeps unlisted pages in document order."""
    pages = [PageSize(100, 100)] * 4
    plan = plan_remove(pages, [2, 4, 9])
    assert [entry.page_index for entry in plan.entries] == [0, 2]
    with pytest.raises(EmptyPagePlan):
        plan_remove(pages, [1, 2, 3, 4])
