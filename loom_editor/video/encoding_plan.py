"""Encoding strategy selection and ffmpeg argument planning.

One export range is cut and encoded in a single ffmpeg pass. Several ranges
are stream-copied out of the source one by one, joined with the concat
demuxer and re-encoded exactly once, so encode cost follows the exported
duration rather than the number of ranges.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from loom_editor.editor.export_ranges import ExportRanges, ExportResolution
from loom_editor.editor.timeline_schema import ExportOptions, ExportRange

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QualityPreset:
    speed_preset: str
    crf: int


@dataclass(frozen=True)
class FormatProfile:
    extension: str
    mime_type: str
    video_codec: str
    audio_codec: str
    uses_speed_preset: bool
    video_args: tuple[str, ...] = ()
    audio_args: tuple[str, ...] = ()


QUALITY_PRESETS = {
    "low": QualityPreset(speed_preset="veryfast", crf=28),
    "medium": QualityPreset(speed_preset="fast", crf=23),
    "high": QualityPreset(speed_preset="medium", crf=18),
}

FORMAT_PROFILES = {
    "mp4": FormatProfile(
        extension=".mp4",
        mime_type="video/mp4",
        video_codec="libx264",
        audio_codec="aac",
        uses_speed_preset=True,
        audio_args=("-b:a", "128k", "-movflags", "+faststart"),
    ),
    "webm": FormatProfile(
        extension=".webm",
        mime_type="video/webm",
        video_codec="libvpx-vp9",
        audio_codec="libopus",
        uses_speed_preset=False,
        video_args=("-b:v", "0"),
    ),
}


def encode_args(fmt: str, quality: str) -> list[str]:
    profile = FORMAT_PROFILES[fmt]
    preset = QUALITY_PRESETS[quality]
    args = ["-c:v", profile.video_codec]
    if profile.uses_speed_preset:
        args.extend(["-preset", preset.speed_preset])
    args.extend(["-crf", str(preset.crf)])
    args.extend(profile.video_args)
    args.extend(["-c:a", profile.audio_codec])
    args.extend(profile.audio_args)
    return args


def subtitle_filter(subtitle_path: str | Path, force_style: str | None = None) -> str:
    path_str = Path(subtitle_path).as_posix()
    escaped = path_str.replace("\\", "\\\\").replace(":", "\\:").replace("'", "\\'")
    vf = f"subtitles={escaped}:charenc=UTF-8"
    if force_style:
        vf += f":force_style='{force_style}'"
    return vf


def _seek_args(export_range: ExportRange) -> list[str]:
    return ["-ss", f"{export_range.start_time:.3f}", "-to", f"{export_range.end_time:.3f}"]


def _with_filter(args: list[str], video_filter: Optional[str]) -> list[str]:
    if video_filter:
        return [*args, "-vf", video_filter]
    return args


@dataclass(frozen=True)
class SinglePassPlan:
    source_path: Path
    output_path: Path
    export_range: ExportRange
    encode_args: tuple[str, ...]
    video_filter: Optional[str] = None

    # Output-side seeking keeps source timestamps in the filter graph, so a
    # burned-in track stays on source time.
    captions_follow_source_time = True
    reencode_passes = 1

    @property
    def ranges(self) -> tuple[ExportRange, ...]:
        return (self.export_range,)

    def commands(self) -> list[list[str]]:
        cmd = ["ffmpeg", "-y", "-i", str(self.source_path), *_seek_args(self.export_range)]
        cmd = _with_filter([*cmd, *self.encode_args], self.video_filter)
        cmd.append(str(self.output_path))
        return [cmd]


@dataclass(frozen=True)
class TwoPhasePlan:
    source_path: Path
    output_path: Path
    ranges: tuple[ExportRange, ...]
    intermediate_paths: tuple[Path, ...]
    concat_list_path: Path
    encode_args: tuple[str, ...]
    video_filter: Optional[str] = None

    captions_follow_source_time = False
    reencode_passes = 1

    def extract_commands(self) -> list[list[str]]:
        return [
            ["ffmpeg", "-y", "-i", str(self.source_path), *_seek_args(item), "-c", "copy", str(path)]
            for item, path in zip(self.ranges, self.intermediate_paths)
        ]

    def concat_list_text(self) -> str:
        return "\n".join(f"file '{path.as_posix()}'" for path in self.intermediate_paths) + "\n"

    def encode_command(self) -> list[str]:
        cmd = ["ffmpeg", "-y", "-f", "concat", "-safe", "0", "-i", str(self.concat_list_path)]
        cmd = _with_filter([*cmd, *self.encode_args], self.video_filter)
        cmd.append(str(self.output_path))
        return cmd

    def commands(self) -> list[list[str]]:
        return [*self.extract_commands(), self.encode_command()]


EncodingPlan = Union[SinglePassPlan, TwoPhasePlan]


def build_encoding_plan(
    resolution: ExportResolution,
    options: ExportOptions,
    source_path: str | Path,
    output_path: str | Path,
    work_dir: str | Path,
    subtitle_path: str | Path | None = None,
    force_style: str | None = None,
) -> Optional[EncodingPlan]:
    """Pick the encoding strategy for resolved ranges.

    Returns ``None`` when there is nothing to export; the encoder must not run.
    """
    if not isinstance(resolution, ExportRanges) or not resolution.ranges:
        return None

    source = Path(source_path)
    output = Path(output_path)
    args = tuple(encode_args(options.format, options.quality))
    video_filter = subtitle_filter(subtitle_path, force_style) if subtitle_path else None

    if len(resolution.ranges) == 1:
        _logger.info("Planning single-pass export of %.3f-%.3fs.", resolution.ranges[0].start_time, resolution.ranges[0].end_time)
        return SinglePassPlan(
            source_path=source,
            output_path=output,
            export_range=resolution.ranges[0],
            encode_args=args,
            video_filter=video_filter,
        )

    work = Path(work_dir)
    suffix = source.suffix or FORMAT_PROFILES[options.format].extension
    intermediates = tuple(work / f"segment_{idx}{suffix}" for idx in range(len(resolution.ranges)))
    _logger.info("Planning two-phase export of %d ranges (%.3fs total).", len(resolution.ranges), resolution.total_duration)
    return TwoPhasePlan(
        source_path=source,
        output_path=output,
        ranges=resolution.ranges,
        intermediate_paths=intermediates,
        concat_list_path=work / "concat.txt",
        encode_args=args,
        video_filter=video_filter,
    )
