from typing import Callable, Optional, Sequence, Tuple

import fitz
import pytest


def build_pdf(
    sizes: Sequence[Tuple[float, float]],
    labels: Optional[Sequence[str]] = None,
    rotation: int = 0,
    title: Optional[str] = None,
) -> bytes:
    """Create a PDF with one labelled page per size."""
    document = fitz.open()
    for index, (width, height) in enumerate(sizes):
        page = document.new_page(width=width, height=height)
        label = labels[index] if labels else f"Page {index + 1}"
        page.insert_text((4, min(12, height - 2)), label, fontsize=6)
        if rotation:
            page.set_rotation(rotation)
    if title:
        document.set_metadata({"title": title})
    data = document.tobytes()
    document.close()
    return data


@pytest.fixture
def make_pdf() -> Callable[..., bytes]:
    """Factory fixture for in-memory test PDFs."""
    return build_pdf
