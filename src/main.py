# src/main.py — v3
"""CLI entry point: analyze, chat, export, history commands.

Usage:
    mediaquote analyze <file> [--chat]
    mediaquote export <quotation.json> [-o DIR]
    mediaquote history
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from mediaquote.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        _setup_logging(args.verbose)
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="mediaquote",
        description=f"mediaquote v{__version__} - media measurement analysis and quotations",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- analyze ---
    p_analyze = subparsers.add_parser(
        "analyze", help="Upload a video or image and run the full analysis",
    )
    p_analyze.add_argument("file", type=Path, help="Path to video or image")
    p_analyze.add_argument(
        "--chat", action="store_true",
        help="Open an interactive chat on the session after the analysis",
    )
    p_analyze.set_defaults(func=_cmd_analyze)

    # --- export ---
    p_export = subparsers.add_parser(
        "export", help="Render a quotation JSON file to a document",
    )
    p_export.add_argument("quotation", type=Path, help="QuotationResult JSON file")
    p_export.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Output directory (default: MEDIAQUOTE_EXPORT_DIR)",
    )
    p_export.set_defaults(func=_cmd_export)

    # --- history ---
    p_history = subparsers.add_parser(
        "history", help="List previous successful analyses",
    )
    p_history.set_defaults(func=_cmd_history)

    return parser


async def _cmd_analyze(args: argparse.Namespace) -> int:
    """Run the four-stage pipeline on one file."""
    from mediaquote.api.facade import MediaAnalysisWorkspace
    from mediaquote.config.settings import load_settings
    from mediaquote.core.errors import PipelineError, ValidationError
    from mediaquote.upload.gate import MediaCandidate

    file_path: Path = args.file
    if not file_path.is_file():
        logger.error("File not found: %s", file_path)
        return 1

    settings = load_settings()
    workspace = MediaAnalysisWorkspace.from_settings(settings)

    try:
        await workspace.upload(MediaCandidate.from_path(file_path))
    except ValidationError as e:
        print(str(e), file=sys.stderr)
        return 2

    try:
        state = await workspace.start_analysis()
    except PipelineError as e:
        _print_stages(workspace.state)
        print(f"\nAnalysis failed: {e}", file=sys.stderr)
        await workspace.clear()
        return 1

    _print_stages(state)
    print("\nMeasurement Results:\n")
    print(state.final_report)

    if args.chat:
        await _chat_loop(workspace)

    await workspace.clear()
    return 0


async def _chat_loop(workspace) -> None:
    print("\nChat with the analysis session (empty line to quit).")
    while True:
        text = await asyncio.to_thread(input, "> ")
        if not text.strip():
            return
        reply = await workspace.send_chat(text)
        if reply is not None:
            print(reply.content)


async def _cmd_export(args: argparse.Namespace) -> int:
    """Render a QuotationResult JSON file."""
    from mediaquote.config.settings import load_settings
    from mediaquote.core.models import QuotationResult
    from mediaquote.export.exporter_factory import create_exporter

    path: Path = args.quotation
    if not path.is_file():
        logger.error("File not found: %s", path)
        return 1

    overrides = {"export_dir": args.output} if args.output else {}
    settings = load_settings(**overrides)
    result = QuotationResult.model_validate_json(path.read_text(encoding="utf-8"))

    artifact = await create_exporter(settings).export(result)
    print(f"Exported {artifact.filename} ({artifact.content_type})")
    if artifact.degraded:
        print("  Document rendering failed; plain-text fallback written.")
    if artifact.path:
        print(f"  Path: {artifact.path}")
    return 0


async def _cmd_history(args: argparse.Namespace) -> int:
    """List stored analyses."""
    from mediaquote.config.settings import load_settings
    from mediaquote.history.store import HistoryStore

    entries = HistoryStore(load_settings().history_path).read()
    if not entries:
        print("No analyses recorded yet.")
        return 0
    for entry in entries:
        preview = entry.result.replace("\n", " ")[:80]
        print(f"{entry.timestamp:%Y-%m-%d %H:%M}  {entry.display_name:30s}  {preview}")
    return 0


def _print_stages(state) -> None:
    for stage in state.stages:
        print(f"  {stage.name:35s} {stage.status.value:10s} {round(stage.progress):3d}%")


def _setup_logging(verbose: bool) -> None:
    """Configure logging for CLI usage from settings."""
    from mediaquote.config.settings import load_settings
    from mediaquote.logging.logger import setup_logging

    settings = load_settings()
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
