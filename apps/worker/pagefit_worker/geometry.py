"""Page geometry: target sizes, content transforms and canvas policies."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Union

from .errors import InvalidInput, InvalidSourceGeometry, InvalidTarget, NoPagesAvailable

# Pages closer than this to a target size (in points, on both axes) count as already sized.
SIZE_EPSILON = 1.0


def require_positive(value: float, field: str) -> float:
    """Return ``value`` as a float or raise ``InvalidTarget``."""
    try:
        number = float(value)
    except (TypeError, ValueError) as error:
        raise InvalidTarget(f"{field} must be a positive number") from error
    if not math.isfinite(number) or number <= 0:
        raise InvalidTarget(f"{field} must be a positive number")
    return number


@dataclass(frozen=True)
class PageSize:
    """A page box in PDF points."""

    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height

    def matches(self, other: "PageSize", epsilon: float = SIZE_EPSILON) -> bool:
        """Return True when both dimensions are within ``epsilon`` of ``other``."""
        return (
            abs(self.width - other.width) < epsilon
            and abs(self.height - other.height) < epsilon
        )


@dataclass(frozen=True)
class UniformWidth:
    """Scale both axes by ``target_width / source_width``."""

    target_width: float

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "target_width", require_positive(self.target_width, "Target width")
        )


@dataclass(frozen=True)
class ExplicitSize:
    """Scale each axis independently to an exact page box."""

    target_width: float
    target_height: float

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "target_width", require_positive(self.target_width, "Target width")
        )
        object.__setattr__(
            self,
            "target_height",
            require_positive(self.target_height, "Target height"),
        )


@dataclass(frozen=True)
class Identity:
    """Copy a page with its box and content untouched."""


IDENTITY = Identity()

TargetSpec = Union[UniformWidth, ExplicitSize, Identity]


@dataclass(frozen=True)
class Transform:
    """Scale and translation applied to a copied page's content."""

    scale_x: float
    scale_y: float
    translate_x: float
    translate_y: float
    width: float
    height: float

    @property
    def size(self) -> PageSize:
        return PageSize(self.width, self.height)

    @property
    def is_identity(self) -> bool:
        return (
            self.scale_x == 1
            and self.scale_y == 1
            and self.translate_x == 0
            and self.translate_y == 0
        )


def check_page_size(page: PageSize) -> None:
    """Raise ``InvalidSourceGeometry`` unless both dimensions are positive and finite."""
    for field, value in (("width", page.width), ("height", page.height)):
        if not math.isfinite(value) or value <= 0:
            raise InvalidSourceGeometry(f"Source page {field} must be positive, got {value}")


def resolve_transform(page: PageSize, target: TargetSpec) -> Transform:
    """
    Compute the content transform and new page box for one page.

    ``UniformWidth`` keeps the aspect ratio, ``ExplicitSize`` sets both axes,
    and ``IDENTITY`` leaves the page as it is. The vertical translation keeps
    the top edge of the content on the top edge of the new box under PDF's
    bottom-left origin; it is zero whenever the box height equals the scaled
    content height, which holds for every target defined here.

    Raises:
        InvalidSourceGeometry: If the page has a zero, negative or non-finite
            dimension, or the resulting scale is not a positive finite number.
    """
    check_page_size(page)
    if isinstance(target, Identity):
        return Transform(1.0, 1.0, 0.0, 0.0, page.width, page.height)
    if isinstance(target, UniformWidth):
        scale_x = scale_y = target.target_width / page.width
        new_width = page.width * scale_x
        new_height = page.height * scale_y
    elif isinstance(target, ExplicitSize):
        scale_x = target.target_width / page.width
        scale_y = target.target_height / page.height
        new_width = target.target_width
        new_height = target.target_height
    else:
        raise InvalidInput(f"Unsupported target: {target!r}")
    for value in (scale_x, scale_y):
        if not math.isfinite(value) or value <= 0:
            raise InvalidSourceGeometry(f"Page {page.width} x {page.height} yields scale {value}")
    translate_y = new_height - page.height * scale_y
    return Transform(scale_x, scale_y, 0.0, translate_y, new_width, new_height)


class CanvasPolicy(str, Enum):
    FIRST = "first"
    LARGEST = "largest"
    SMALLEST = "smallest"
    EXPLICIT_WIDTH = "explicit-width"
    CUSTOM = "custom"


_POLICY_ALIASES = {
    "explicitwidth": CanvasPolicy.EXPLICIT_WIDTH,
    "explicit_width": CanvasPolicy.EXPLICIT_WIDTH,
    "width": CanvasPolicy.EXPLICIT_WIDTH,
    "customwh": CanvasPolicy.CUSTOM,
    "custom-wh": CanvasPolicy.CUSTOM,
    "custom_wh": CanvasPolicy.CUSTOM,
}


def parse_canvas_policy(value: str | CanvasPolicy | None) -> CanvasPolicy:
    """Parse a canvas policy tag, defaulting to ``first``."""
    if isinstance(value, CanvasPolicy):
        return value
    if value is None or not str(value).strip():
        return CanvasPolicy.FIRST
    cleaned = str(value).strip().lower()
    try:
        return CanvasPolicy(cleaned)
    except ValueError:
        pass
    if cleaned in _POLICY_ALIASES:
        return _POLICY_ALIASES[cleaned]
    valid = ", ".join(policy.value for policy in CanvasPolicy)
    raise InvalidInput(f"Unknown canvas policy: {value!r}. Valid options: {valid}")


def resolve_canvas(
    candidates: Sequence[PageSize],
    policy: CanvasPolicy,
    width: float | None = None,
    height: float | None = None,
) -> PageSize:
    """
    Resolve the single target size used for a batch of pages.

    ``largest`` and ``smallest`` compare by area and keep the first page on
    ties. ``explicit-width`` fixes the width and reports the height of the
    first candidate at that width; it is informational, since each page keeps
    its own aspect ratio. ``custom`` is the exact size for every page.

    Raises:
        NoPagesAvailable: If ``candidates`` is empty.
        InvalidTarget: If a required dimension is missing or not positive.
    """
    if not candidates:
        raise NoPagesAvailable("No pages available to size the canvas")
    if policy is CanvasPolicy.FIRST:
        return candidates[0]
    if policy is CanvasPolicy.LARGEST:
        best = candidates[0]
        for candidate in candidates[1:]:
            if candidate.area > best.area:
                best = candidate
        return best
    if policy is CanvasPolicy.SMALLEST:
        best = candidates[0]
        for candidate in candidates[1:]:
            if candidate.area < best.area:
                best = candidate
        return best
    if policy is CanvasPolicy.EXPLICIT_WIDTH:
        target_width = require_positive(width, "Target width")
        return resolve_transform(candidates[0], UniformWidth(target_width)).size
    if policy is CanvasPolicy.CUSTOM:
        return PageSize(
            require_positive(width, "Target width"),
            require_positive(height, "Target height"),
        )
    raise InvalidInput(f"Unsupported canvas policy: {policy!r}")
