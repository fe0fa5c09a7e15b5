"""Command line for the page tools."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .compose import CompositionResult, ScaleResult
from .errors import PageFitError
from .geometry import CanvasPolicy
from .history import DEFAULT_HISTORY_LIMIT, JsonlHistoryStore
from .thumbnails import DEFAULT_THUMBNAIL_SIZE
from .tools import (
    merge_output_name,
    merge_pdfs,
    mix_output_name,
    mix_pdfs,
    normalize_output_name,
    normalize_pdf,
    remove_output_name,
    remove_pages,
    reorder_output_name,
    reorder_pages,
    scale_output_name,
    scale_pdf,
    thumbnail_output_name,
    thumbnail_png,
)
from .worker import configure_logging

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all subcommands."""
    p = argparse.ArgumentParser(
        prog="pagefit",
        description="Rescale, merge, mix, normalize and reorder PDF pages.",
    )
    p.add_argument("--log-level", default=None, help="Logging level (default: PAGEFIT_LOG_LEVEL or INFO).")
    sub = p.add_subparsers(dest="command", required=True)

    scale = sub.add_parser("scale", help="Scale every page to a target width.")
    scale.add_argument("input", type=Path)
    scale.add_argument("--width", required=True, help="Target width in points.")
    scale.add_argument("--out", type=Path, default=None, help="Output file (default: <stem>_<W>px.pdf).")
    scale.add_argument("--history", type=Path, default=None, help="Append a record to this JSON-lines file.")

    merge = sub.add_parser("merge", help="Concatenate PDFs, each scaled to the target width.")
    merge.add_argument("inputs", type=Path, nargs="+")
    merge.add_argument("--width", required=True)
    merge.add_argument("--out", type=Path, default=None)

    mix = sub.add_parser("mix", help="Pick pages across PDFs in an explicit order.")
    mix.add_argument("inputs", type=Path, nargs="+")
    mix.add_argument("--width", required=True)
    mix.add_argument(
        "--order",
        required=True,
        help='JSON list of [fileIndex, pageIndex] pairs or {"fileIndex", "pageIndex"} objects (0-based).',
    )
    mix.add_argument("--out", type=Path, default=None)

    normalize = sub.add_parser("normalize", help="Give every page the same size.")
    normalize.add_argument("input", type=Path)
    normalize.add_argument(
        "--canvas",
        choices=[policy.value for policy in CanvasPolicy if policy is not CanvasPolicy.EXPLICIT_WIDTH],
        default=CanvasPolicy.CUSTOM.value,
    )
    normalize.add_argument("--width", default=None)
    normalize.add_argument("--height", default=None)
    normalize.add_argument("--out", type=Path, default=None)

    reorder = sub.add_parser("reorder", help="Copy pages in a new order (unlisted pages are dropped).")
    reorder.add_argument("input", type=Path)
    reorder.add_argument("--order", required=True, help='1-based pages like "3,1-2" or "[3,1,2]".')
    reorder.add_argument("--out", type=Path, default=None)

    remove = sub.add_parser("remove", help="Remove pages.")
    remove.add_argument("input", type=Path)
    remove.add_argument("--pages", required=True, help='1-based pages like "2,4-5".')
    remove.add_argument("--out", type=Path, default=None)

    thumb = sub.add_parser("thumbnail", help="Render one page to a PNG thumbnail.")
    thumb.add_argument("input", type=Path)
    thumb.add_argument("--page-index", type=int, default=0, help="0-based page index.")
    thumb.add_argument("--size", type=int, default=DEFAULT_THUMBNAIL_SIZE)
    thumb.add_argument("--out", type=Path, default=None)

    history = sub.add_parser("history", help="List recent scale records.")
    history.add_argument("path", type=Path, help="JSON-lines history file.")
    history.add_argument("--limit", type=int, default=DEFAULT_HISTORY_LIMIT)
    return p


def _summary(output: Path, result: CompositionResult) -> str:
    """Describe a written output in one line."""
    line = f"{output}: {result.page_count} pages, {round(result.width)} x {round(result.height)}"
    if isinstance(result, ScaleResult):
        line += (
            f" (source {round(result.source_width)} x {round(result.source_height)},"
            f" scale {result.scale:.4f})"
        )
    return line


def _run(args: argparse.Namespace) -> None:
    """Run one parsed subcommand and print its result."""
    if args.command == "history":
        for record in JsonlHistoryStore(args.path).recent(args.limit):
            print(
                f"{record.created_at}  {record.filename}  {round(record.source_width)} -> "
                f"{round(record.target_width)} ({record.scale:.4f}x)  "
                f"{record.original_size} -> {record.output_size} bytes"
            )
        return

    if args.command == "thumbnail":
        out = args.out or Path(thumbnail_output_name(args.input.name, args.page_index))
        print(thumbnail_png(args.input, out, args.page_index, args.size))
        return

    # The output name depends on the result size, so compose to a staging path first.
    staging = args.out or Path(".pagefit-output.pdf")
    if args.command == "scale":
        history = JsonlHistoryStore(args.history) if args.history else None
        result = scale_pdf(args.input, staging, args.width, history)
        name = scale_output_name(args.input.name, result)
    elif args.command == "merge":
        result = merge_pdfs(args.inputs, staging, args.width)
        name = merge_output_name(result)
    elif args.command == "mix":
        result = mix_pdfs(args.inputs, staging, args.order, args.width)
        name = mix_output_name(result)
    elif args.command == "normalize":
        result = normalize_pdf(args.input, staging, args.canvas, args.width, args.height)
        name = normalize_output_name(args.input.name, result)
    elif args.command == "reorder":
        result = reorder_pages(args.input, staging, args.order)
        name = reorder_output_name(args.input.name)
    else:
        result = remove_pages(args.input, staging, args.pages)
        name = remove_output_name(args.input.name)

    output = args.out or staging.replace(name)
    print(_summary(output, result))


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the command line; returns the process exit code."""
    args = build_arg_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        _run(args)
    except PageFitError as error:
        logger.error("%s: %s", error.code, error.message)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
