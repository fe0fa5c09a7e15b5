"""PDF document codec built on pypdf."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import List, Tuple

from pypdf import PageObject, PdfReader, PdfWriter, Transformation
from pypdf.errors import DependencyError, PdfReadError, PyPdfError

from .errors import MalformedDocument
from .geometry import PageSize

logger = logging.getLogger(__name__)

_COPY_ERRORS = (PyPdfError, KeyError, TypeError, ValueError, AttributeError)


class PdfSource:
    """A loaded source document and its page boxes."""

    def __init__(self, reader: PdfReader, name: str, source_id: int = 0) -> None:
        """Wrap a parsed reader; ``name`` is used in errors and output names."""
        self.reader = reader
        self.name = name
        self.source_id = source_id
        self._page_count = len(reader.pages)

    @property
    def page_count(self) -> int:
        return self._page_count

    def page(self, index: int) -> PageObject:
        return self.reader.pages[index]

    def page_size(self, index: int) -> PageSize:
        """Return the mediabox size of page ``index`` (0-based)."""
        mediabox = self.page(index).mediabox
        return PageSize(float(mediabox.width), float(mediabox.height))

    def page_sizes(self) -> List[PageSize]:
        return [self.page_size(index) for index in range(self.page_count)]


def load_document(data: bytes, name: str = "document.pdf", source_id: int = 0) -> PdfSource:
    """
    Parse PDF bytes into a ``PdfSource``.

    Page sizes are read eagerly so a broken page tree fails here rather than
    halfway through a composition.

    Raises:
        MalformedDocument: If the bytes are not a readable PDF, the document is
            encrypted (including AES documents pypdf cannot open without its
            crypto extra), or a page box cannot be read.
    """
    try:
        reader = PdfReader(BytesIO(data))
        encrypted = reader.is_encrypted
        source = None if encrypted else PdfSource(reader, name, source_id)
        if source is not None:
            source.page_sizes()
    except DependencyError as error:
        raise MalformedDocument(f"{name} is encrypted", source=name) from error
    except (PdfReadError, *_COPY_ERRORS, OSError) as error:
        raise MalformedDocument(
            f"{name} appears to be corrupted or unreadable.", source=name
        ) from error
    if source is None:
        raise MalformedDocument(f"{name} is encrypted", source=name)
    return source


@dataclass
class PageHandle:
    """A page copied from a source, waiting to be appended to an output."""

    source: PdfSource
    index: int
    width: float
    height: float
    operations: List[Tuple[str, float, float]] = field(default_factory=list)

    def set_size(self, width: float, height: float) -> None:
        """Set the page box of the copy."""
        self.width = float(width)
        self.height = float(height)

    def scale_content(self, scale_x: float, scale_y: float) -> None:
        """Scale the copied content about the page origin."""
        if scale_x != 1 or scale_y != 1:
            self.operations.append(("scale", scale_x, scale_y))

    def translate_content(self, dx: float, dy: float) -> None:
        """Shift the copied content; applied after earlier operations."""
        if dx or dy:
            self.operations.append(("translate", dx, dy))

    @property
    def is_identity(self) -> bool:
        return not self.operations and self.source.page_size(self.index).matches(
            PageSize(self.width, self.height), epsilon=1e-6
        )

    def transformation(self) -> Transformation:
        """Build the content matrix, moving the source box origin to (0, 0) first."""
        mediabox = self.source.page(self.index).mediabox
        transformation = Transformation().translate(
            -float(mediabox.left), -float(mediabox.bottom)
        )
        for kind, first, second in self.operations:
            if kind == "scale":
                transformation = transformation.scale(first, second)
            else:
                transformation = transformation.translate(first, second)
        return transformation


class PdfOutput:
    """An output document assembled page by page in append order."""

    def __init__(self) -> None:
        self._writer = PdfWriter()

    @property
    def page_count(self) -> int:
        return len(self._writer.pages)

    def page_size(self, index: int) -> PageSize:
        mediabox = self._writer.pages[index].mediabox
        return PageSize(float(mediabox.width), float(mediabox.height))

    def copy_page(self, source: PdfSource, index: int) -> PageHandle:
        """Start a copy of ``source`` page ``index`` at its current size."""
        size = source.page_size(index)
        return PageHandle(source=source, index=index, width=size.width, height=size.height)

    def append(self, handle: PageHandle) -> PageObject:
        """
        Write a copied page at the end of the output.

        Untransformed pages are added as they are. Transformed pages are drawn
        onto a fresh blank page of the handle's size, so two copies of one
        source page never share rewritten content. The source ``/Rotate`` is
        carried over because the content matrix works in unrotated space.

        Raises:
            MalformedDocument: If pypdf cannot copy the source page.
        """
        page = handle.source.page(handle.index)
        try:
            if handle.is_identity:
                return self._writer.add_page(page)
            target = self._writer.add_blank_page(width=handle.width, height=handle.height)
            target.merge_transformed_page(page, handle.transformation(), over=True, expand=False)
            rotation = page.rotation % 360
            if rotation:
                target.rotate(rotation)
            return target
        except _COPY_ERRORS as error:
            raise MalformedDocument(
                f"Failed to copy page {handle.index + 1} of {handle.source.name}",
                source=handle.source.name,
            ) from error

    def copy_metadata(self, source: PdfSource) -> None:
        """Copy document metadata from a source into the output."""
        metadata = source.reader.metadata or {}
        if metadata:
            self._writer.add_metadata(metadata)

    def save(self) -> bytes:
        buffer = BytesIO()
        self._writer.write(buffer)
        return buffer.getvalue()


def extract_page(source: PdfSource, index: int) -> bytes:
    """Return a single-page PDF holding page ``index`` of ``source`` unchanged."""
    output = PdfOutput()
    output.append(output.copy_page(source, index))
    return output.save()
