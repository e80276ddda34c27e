"""Run an export: resolve ranges, plan the encode, drive ffmpeg, report progress.

This is the only place where failures of the external encoder are caught; they
come back as :class:`ExportFailed` rather than as exceptions.
"""
from __future__ import annotations

import logging
import subprocess
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from loom_editor.editor.export_ranges import NothingToExport, resolve_export
from loom_editor.editor.timeline_schema import Caption, EditorState, ExportOptions, ExportProgress, ExportRange
from loom_editor.lib.export_config import resolve_export_config

from .caption_style import force_style_for_captions
from .captions import SUBTITLE_EXTENSIONS, shift_captions_to_ranges, write_subtitle_file
from .encoding_plan import EncodingPlan, SinglePassPlan, TwoPhasePlan, build_encoding_plan
from .ffmpeg_runner import progress_fraction
from .utils import ensure_ffmpeg_exists, run_cmd

_logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ExportProgress], None]


@dataclass(frozen=True)
class ExportSucceeded:
    output_path: Path
    ranges: tuple[ExportRange, ...]
    subtitle_path: Optional[Path] = None
    stage: str = "complete"


@dataclass(frozen=True)
class ExportFailed:
    message: str
    stage: str = "error"


ExportOutcome = Union[ExportSucceeded, ExportFailed, NothingToExport]


class _ProgressReporter:
    """Forwards progress updates, never letting the percentage go backwards."""

    def __init__(self, callback: Optional[ProgressCallback]) -> None:
        self._callback = callback
        self._last = 0.0

    def emit(self, stage: str, progress: float, message: str) -> None:
        if stage != "error":
            progress = max(self._last, min(100.0, progress))
            self._last = progress
        else:
            progress = self._last
        if self._callback is not None:
            self._callback(ExportProgress(stage=stage, progress=round(progress, 1), message=message))

    def ffmpeg_listener(self, start: float, end: float, total_duration: float, message: str):
        def _on_progress(snapshot: dict[str, str]) -> None:
            fraction = progress_fraction(snapshot, total_duration)
            if fraction is not None:
                self.emit("encoding", start + (end - start) * fraction, message)

        return _on_progress


def get_export_filename(fmt: str, now: Optional[datetime] = None, prefix: Optional[str] = None) -> str:
    now = now or datetime.now(timezone.utc)
    prefix = prefix or resolve_export_config().filename_prefix
    return f"{prefix}-{now.strftime('%Y-%m-%dT%H-%M-%S')}.{fmt}"


def _burn_in_captions(options: ExportOptions, captions: Optional[Sequence[Caption]]) -> list[Caption]:
    if not captions or not options.captions.enabled or not options.captions.burn_in:
        return []
    return list(captions)


def _describe_failure(exc: Exception) -> str:
    if isinstance(exc, subprocess.CalledProcessError):
        stderr_tail = (exc.stderr or "").strip().splitlines()[-5:]
        detail = " | ".join(line.strip() for line in stderr_tail if line.strip())
        message = f"ffmpeg exited with status {exc.returncode}"
        return f"{message}: {detail}" if detail else message
    return str(exc) or exc.__class__.__name__


def _run_single_pass(
    plan: SinglePassPlan,
    reporter: _ProgressReporter,
    log_path: Optional[Path],
    timeout_sec: float | None,
    workdir: Path,
) -> None:
    reporter.emit("encoding", 50, "Encoding video...")
    (cmd,) = plan.commands()
    run_cmd(
        cmd,
        log_path=log_path,
        timeout_sec=timeout_sec,
        on_progress=reporter.ffmpeg_listener(50, 90, plan.export_range.duration, "Encoding video..."),
        workdir=workdir,
    )


def _run_two_phase(
    plan: TwoPhasePlan,
    reporter: _ProgressReporter,
    log_path: Optional[Path],
    timeout_sec: float | None,
    workdir: Path,
) -> None:
    total = len(plan.ranges)
    for idx, cmd in enumerate(plan.extract_commands()):
        reporter.emit("processing", 20 + (idx / total) * 40, f"Processing segment {idx + 1} of {total}...")
        run_cmd(cmd, log_path=log_path, timeout_sec=timeout_sec, workdir=workdir)
        if not plan.intermediate_paths[idx].exists():
            raise RuntimeError(f"Segment extraction produced no output: {plan.intermediate_paths[idx]}")

    plan.concat_list_path.write_text(plan.concat_list_text(), encoding="utf-8")
    reporter.emit("encoding", 70, "Merging segments...")
    exported_duration = sum(item.duration for item in plan.ranges)
    run_cmd(
        plan.encode_command(),
        log_path=log_path,
        timeout_sec=timeout_sec,
        on_progress=reporter.ffmpeg_listener(70, 90, exported_duration, "Merging segments..."),
        workdir=workdir,
    )


def _run_plan(plan: EncodingPlan, reporter: _ProgressReporter, log_path: Optional[Path], timeout_sec: float | None, workdir: Path) -> None:
    if isinstance(plan, SinglePassPlan):
        _run_single_pass(plan, reporter, log_path, timeout_sec, workdir)
    else:
        _run_two_phase(plan, reporter, log_path, timeout_sec, workdir)


def export_video(
    source_path: str | Path,
    state: EditorState,
    options: ExportOptions,
    output_dir: str | Path,
    captions: Optional[Sequence[Caption]] = None,
    on_progress: Optional[ProgressCallback] = None,
    log_path: str | Path | None = None,
    timeout_sec: float | None = None,
    now: Optional[datetime] = None,
) -> ExportOutcome:
    config = resolve_export_config()
    reporter = _ProgressReporter(on_progress)

    resolution = resolve_export(state)
    if isinstance(resolution, NothingToExport):
        _logger.warning("Export skipped: %s.", resolution.reason)
        return resolution

    reporter.emit("preparing", 10, "Preparing video...")
    source = Path(source_path).resolve()
    if not source.exists():
        message = f"Source recording not found: {source}"
        reporter.emit("error", 0, message)
        return ExportFailed(message=message)

    out_dir = Path(output_dir).resolve()
    out_dir.mkdir(parents=True, exist_ok=True)
    output_path = out_dir / get_export_filename(options.format, now=now, prefix=config.filename_prefix)
    tmp_output_path = output_path.with_name(f"{output_path.stem}_tmp{output_path.suffix}")
    log_file = Path(log_path).resolve() if log_path else None
    timeout = timeout_sec if timeout_sec is not None else config.ffmpeg_timeout_sec
    burn_in = _burn_in_captions(options, captions)
    subtitle_path: Optional[Path] = None

    try:
        ensure_ffmpeg_exists()
        with tempfile.TemporaryDirectory(prefix="loom_editor_export_") as tmp_dir:
            work = Path(tmp_dir)
            burn_path: Optional[Path] = None
            if burn_in:
                # Concatenated output restarts at zero, so two-phase exports need re-timed cues.
                cues = burn_in if len(resolution.ranges) == 1 else shift_captions_to_ranges(burn_in, resolution.ranges)
                burn_path = write_subtitle_file(work / "captions.srt", cues, "srt")

            plan = build_encoding_plan(
                resolution,
                options,
                source_path=source,
                output_path=tmp_output_path,
                work_dir=work,
                subtitle_path=burn_path,
                force_style=force_style_for_captions(burn_in) if burn_path else None,
            )
            if plan is None:
                raise RuntimeError("No encoding plan could be built for the resolved ranges.")

            reporter.emit("processing", 20, "Processing segments...")
            _run_plan(plan, reporter, log_file, timeout, work / "logs")

        reporter.emit("encoding", 90, "Finalizing video...")
        if not tmp_output_path.exists() or tmp_output_path.stat().st_size == 0:
            raise RuntimeError(f"Expected export output was not created: {tmp_output_path}")
        tmp_output_path.replace(output_path)

        sidecar_format = options.captions.sidecar_format
        if captions and options.captions.enabled and sidecar_format:
            subtitle_path = write_subtitle_file(
                output_path.with_suffix(SUBTITLE_EXTENSIONS[sidecar_format]),
                shift_captions_to_ranges(captions, resolution.ranges),
                sidecar_format,
            )
    except (subprocess.CalledProcessError, RuntimeError, OSError) as exc:
        message = _describe_failure(exc)
        _logger.error("Export failed: %s", message)
        if tmp_output_path.exists():
            tmp_output_path.unlink()
        reporter.emit("error", 0, message)
        return ExportFailed(message=message)

    reporter.emit("complete", 100, "Export complete!")
    _logger.info("Exported %d range(s) to %s.", len(resolution.ranges), output_path)
    return ExportSucceeded(output_path=output_path, ranges=resolution.ranges, subtitle_path=subtitle_path)
