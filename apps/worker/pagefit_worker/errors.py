"""Error taxonomy for page composition requests."""

from dataclasses import dataclass
from typing import ClassVar, Optional


@dataclass
class PageFitError(ValueError):
    """Base error for a rejected composition request."""

    message: str

    code: ClassVar[str] = "INVALID_INPUT"

    def __post_init__(self) -> None:
        """Initialize the base exception with the message."""
        super().__init__(self.message)


class InvalidInput(PageFitError):
    """Raised when the request shape is wrong (missing files, bad plan)."""


class InvalidTarget(InvalidInput):
    """Raised when a target width or height is not a positive number."""

    code = "INVALID_TARGET"


class InvalidSourceGeometry(PageFitError):
    """Raised when a source page has a zero or non-finite size."""

    code = "INVALID_SOURCE_GEOMETRY"


@dataclass
class MalformedDocument(PageFitError):
    """Raised when a source document cannot be parsed or copied."""

    source: Optional[str] = None

    code: ClassVar[str] = "MALFORMED_DOCUMENT"


class EmptyPagePlan(PageFitError):
    """Raised when no requested page survives validation."""

    code = "EMPTY_PAGE_PLAN"


class NoPagesAvailable(EmptyPagePlan):
    """Raised when a canvas size is requested from zero candidate pages."""

    code = "NO_PAGES_AVAILABLE"
