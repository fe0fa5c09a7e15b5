"""Page thumbnails rendered with PyMuPDF."""

from __future__ import annotations

import fitz

from .codec import extract_page, load_document
from .errors import InvalidInput, MalformedDocument, PageFitError

DEFAULT_THUMBNAIL_SIZE = 200


def _assert_fitz_unencrypted(document: fitz.Document) -> None:
    """Raise if a PyMuPDF document is encrypted."""
    is_encrypted = bool(
        getattr(document, "is_encrypted", False)
        or getattr(document, "isEncrypted", False)
    )
    if is_encrypted:
        raise MalformedDocument("PDF is encrypted")


def render_thumbnail(
    pdf_bytes: bytes,
    max_width: int = DEFAULT_THUMBNAIL_SIZE,
    max_height: int = DEFAULT_THUMBNAIL_SIZE,
) -> bytes:
    """
    Render the first page of a PDF to PNG bytes.

    The page is fitted inside ``max_width`` x ``max_height`` pixels with its
    aspect ratio kept, so landscape pages stay landscape.

    Raises:
        InvalidInput: If a bound is not positive.
        MalformedDocument: If PyMuPDF cannot open or render the page.
    """
    if max_width <= 0 or max_height <= 0:
        raise InvalidInput("Thumbnail size must be positive")
    try:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as document:
            _assert_fitz_unencrypted(document)
            if document.page_count == 0:
                raise InvalidInput("PDF has no pages")
            page = document.load_page(0)
            rect = page.rect
            scale = min(max_width / rect.width, max_height / rect.height)
            pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
            return pix.tobytes("png")
    except PageFitError:
        raise
    except (RuntimeError, ValueError) as error:
        raise MalformedDocument("Thumbnail rendering failed") from error


def render_page_thumbnail(
    pdf_bytes: bytes,
    page_index: int,
    name: str = "document.pdf",
    max_width: int = DEFAULT_THUMBNAIL_SIZE,
    max_height: int = DEFAULT_THUMBNAIL_SIZE,
) -> bytes:
    """Render page ``page_index`` (0-based) of a document to a PNG thumbnail."""
    source = load_document(pdf_bytes, name)
    if page_index < 0 or page_index >= source.page_count:
        raise InvalidInput(
            f"Page index {page_index} is out of range for {source.page_count} pages"
        )
    return render_thumbnail(extract_page(source, page_index), max_width, max_height)
