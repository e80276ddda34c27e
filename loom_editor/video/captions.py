from __future__ import annotations

from pathlib import Path
from typing import Sequence

from loom_editor.editor.timeline_schema import Caption, ExportRange

SUBTITLE_EXTENSIONS = {"srt": ".srt", "vtt": ".vtt", "txt": ".txt"}


def _split_ms(seconds: float) -> tuple[int, int, int, int]:
    total_ms = int(round(max(0.0, seconds) * 1000))
    hours = total_ms // 3_600_000
    minutes = (total_ms % 3_600_000) // 60_000
    secs = (total_ms % 60_000) // 1000
    ms = total_ms % 1000
    return hours, minutes, secs, ms


def _format_srt_time(seconds: float) -> str:
    hours, minutes, secs, ms = _split_ms(seconds)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{ms:03d}"


def _format_vtt_time(seconds: float) -> str:
    hours, minutes, secs, ms = _split_ms(seconds)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{ms:03d}"


def _format_timestamp(seconds: float) -> str:
    total = int(max(0.0, seconds))
    return f"{total // 60:02d}:{total % 60:02d}"


def _cue_text(caption: Caption) -> str:
    return (caption.text or "").strip()


def build_srt(captions: Sequence[Caption]) -> str:
    lines: list[str] = []
    index = 1
    for caption in captions:
        text = _cue_text(caption)
        if not text:
            continue
        start = _format_srt_time(caption.start_time)
        end = _format_srt_time(caption.end_time)
        lines.extend([str(index), f"{start} --> {end}", text, ""])
        index += 1
    return "\n".join(lines).strip() + ("\n" if lines else "")


def build_vtt(captions: Sequence[Caption]) -> str:
    lines: list[str] = ["WEBVTT", ""]
    for caption in captions:
        text = _cue_text(caption)
        if not text:
            continue
        start = _format_vtt_time(caption.start_time)
        end = _format_vtt_time(caption.end_time)
        lines.extend([f"{start} --> {end}", text, ""])
    return "\n".join(lines) + "\n"


def build_txt(captions: Sequence[Caption]) -> str:
    return "\n".join(
        f"[{_format_timestamp(caption.start_time)}] {_cue_text(caption)}" for caption in captions if _cue_text(caption)
    )


_BUILDERS = {"srt": build_srt, "vtt": build_vtt, "txt": build_txt}


def build_subtitles(captions: Sequence[Caption], fmt: str) -> str:
    try:
        builder = _BUILDERS[fmt]
    except KeyError:
        raise ValueError(f"Unsupported subtitle format {fmt!r}; expected one of {sorted(_BUILDERS)}") from None
    return builder(captions)


def write_subtitle_file(output_path: str | Path, captions: Sequence[Caption], fmt: str = "srt") -> Path:
    text = build_subtitles(captions, fmt)
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(text, encoding="utf-8")
    return output_path


def shift_captions_to_ranges(captions: Sequence[Caption], ranges: Sequence[ExportRange]) -> list[Caption]:
    """Re-time captions from source time onto the concatenated export timeline.

    A caption straddling a cut is clipped to the kept parts, which sit next to
    each other once the ranges are joined. Captions that fall entirely inside
    removed time are dropped.
    """
    offsets: list[float] = []
    elapsed = 0.0
    for item in ranges:
        offsets.append(elapsed)
        elapsed += item.duration

    shifted: list[Caption] = []
    for caption in captions:
        mapped_start: float | None = None
        mapped_end: float | None = None
        for item, offset in zip(ranges, offsets):
            overlap_start = max(caption.start_time, item.start_time)
            overlap_end = min(caption.end_time, item.end_time)
            if overlap_end <= overlap_start:
                continue
            if mapped_start is None:
                mapped_start = offset + (overlap_start - item.start_time)
            mapped_end = offset + (overlap_end - item.start_time)
        if mapped_start is None or mapped_end is None:
            continue
        shifted.append(caption.model_copy(update={"start_time": mapped_start, "end_time": mapped_end}))
    return shifted
