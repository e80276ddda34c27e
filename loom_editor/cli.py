"""Command-line interface for Loom Editor.

``plan`` prints the export ranges and ffmpeg commands an edit state resolves
to without running anything. ``export`` renders the edit with ffmpeg.
Status messages go to stderr so stdout can be piped.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from loom_editor.editor.export_ranges import NothingToExport, resolve_export
from loom_editor.editor.timeline import create_initial_state, with_silence_segments
from loom_editor.editor.timeline_schema import Caption, CaptionExportOptions, EditorState, ExportOptions
from loom_editor.lib.export_config import EXPORT_FORMAT_OPTIONS, EXPORT_QUALITY_OPTIONS, resolve_export_config
from loom_editor.video.encoding_plan import build_encoding_plan
from loom_editor.video.export import ExportFailed, export_video
from loom_editor.video.utils import get_media_duration


def _status(msg: str) -> None:
    print(msg, file=sys.stderr, flush=True)


def _load_state(args: argparse.Namespace) -> EditorState:
    if args.state:
        state = EditorState.model_validate_json(Path(args.state).read_text(encoding="utf-8"))
    else:
        duration = args.duration if args.duration else get_media_duration(args.source)
        state = create_initial_state(duration)
    if args.silence:
        entries = json.loads(Path(args.silence).read_text(encoding="utf-8"))
        state = with_silence_segments(state, entries)
    return state


def _load_captions(path: Optional[str]) -> list[Caption]:
    if not path:
        return []
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return [Caption.model_validate(item) for item in payload]


def _export_options(args: argparse.Namespace, has_captions: bool) -> ExportOptions:
    return ExportOptions(
        format=args.format,
        quality=args.quality,
        captions=CaptionExportOptions(
            enabled=has_captions and (args.burn_in or args.sidecar is not None),
            burn_in=args.burn_in,
            sidecar_format=args.sidecar,
        ),
    )


def _cmd_plan(args: argparse.Namespace) -> int:
    state = _load_state(args)
    resolution = resolve_export(state)
    if isinstance(resolution, NothingToExport):
        _status(f"Nothing to export: {resolution.reason}")
        return 2

    options = _export_options(args, has_captions=False)
    plan = build_encoding_plan(
        resolution,
        options,
        source_path=args.source,
        output_path=Path(args.out_dir) / f"output.{options.format}",
        work_dir=Path(args.out_dir) / "work",
    )
    for item in resolution.ranges:
        print(f"range {item.start_time:.3f} -> {item.end_time:.3f} ({item.duration:.3f}s)")
    for cmd in plan.commands():
        print(" ".join(cmd))
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    state = _load_state(args)
    captions = _load_captions(args.captions)
    options = _export_options(args, has_captions=bool(captions))

    def _on_progress(progress) -> None:
        _status(f"[{progress.stage:>10}] {progress.progress:5.1f}% {progress.message}")

    outcome = export_video(args.source, state, options, args.out_dir, captions=captions, on_progress=_on_progress)
    if isinstance(outcome, NothingToExport):
        _status(f"Nothing to export: {outcome.reason}")
        return 2
    if isinstance(outcome, ExportFailed):
        _status(f"Export failed: {outcome.message}")
        return 1
    print(outcome.output_path)
    if outcome.subtitle_path:
        print(outcome.subtitle_path)
    return 0


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    config = resolve_export_config()
    parser.add_argument("source", help="Path to the source recording.")
    parser.add_argument("--state", default=None, help="Editor state JSON. Defaults to an unedited timeline.")
    parser.add_argument("--duration", type=float, default=None, help="Recording duration when no state is given.")
    parser.add_argument("--silence", default=None, help="Silence analysis JSON (list of segments).")
    parser.add_argument("--format", choices=EXPORT_FORMAT_OPTIONS, default=config.default_format)
    parser.add_argument("--quality", choices=EXPORT_QUALITY_OPTIONS, default=config.default_quality)
    parser.add_argument("--out-dir", default=".", help="Directory for the exported files (default: %(default)s).")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="loom_editor",
        description="Resolve timeline edits and silence cuts into an ffmpeg export.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    plan_parser = subparsers.add_parser("plan", help="Print export ranges and ffmpeg commands.")
    _add_common_arguments(plan_parser)
    plan_parser.set_defaults(handler=_cmd_plan, burn_in=False, sidecar=None)

    export_parser = subparsers.add_parser("export", help="Render the edited recording.")
    _add_common_arguments(export_parser)
    export_parser.add_argument("--captions", default=None, help="Captions JSON (list of caption objects).")
    export_parser.add_argument("--burn-in", action="store_true", help="Burn captions into the video.")
    export_parser.add_argument("--sidecar", choices=["srt", "vtt", "txt"], default=None, help="Also write a subtitle file.")
    export_parser.set_defaults(handler=_cmd_export)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.handler(args)
    except (ValueError, OSError) as exc:
        _status(f"Error: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
