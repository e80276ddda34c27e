"""Silence ledger: detected silent intervals and the user's keep/cut decisions.

The ledger is a tuple of :class:`SilenceSegment` sorted by ``start_time``.
:func:`ingest_silence` is the only way entries get in, and it establishes that
ordering, so navigation helpers can walk the tuple front to back.
"""
from __future__ import annotations

import logging
import math
import uuid
from typing import Iterable, Mapping, Optional, Sequence, Union

from .timeline_schema import SilenceSegment, SilenceStats

_logger = logging.getLogger(__name__)


def _pick(entry: Mapping, *keys, default=None):
    for key in keys:
        if key in entry and entry[key] is not None:
            return entry[key]
    return default


def _coerce_entry(entry: Union[SilenceSegment, Mapping], recording_id: Optional[str]) -> Optional[SilenceSegment]:
    if isinstance(entry, SilenceSegment):
        data = entry.model_dump()
    else:
        data = {
            "id": _pick(entry, "id"),
            "recording_id": _pick(entry, "recording_id", "recordingId", default=""),
            "start_time": _pick(entry, "start_time", "startTime"),
            "end_time": _pick(entry, "end_time", "endTime"),
            "average_decibels": _pick(entry, "average_decibels", "averageDecibels", default=0.0),
            "deleted": bool(_pick(entry, "deleted", default=False)),
            "reviewed": bool(_pick(entry, "reviewed", default=False)),
        }

    try:
        start = float(data["start_time"])
        end = float(data["end_time"])
    except (TypeError, ValueError):
        _logger.warning("Skipping silence entry with unreadable bounds: %r", entry)
        return None
    if not (math.isfinite(start) and math.isfinite(end)) or end <= start:
        _logger.warning("Skipping silence entry with empty or invalid interval [%s, %s].", start, end)
        return None

    data["id"] = str(data.get("id") or uuid.uuid4())
    data["start_time"] = start
    data["end_time"] = end
    data["duration"] = end - start
    if recording_id is not None:
        data["recording_id"] = recording_id
    return SilenceSegment(**data)


def ingest_silence(
    entries: Iterable[Union[SilenceSegment, Mapping]],
    recording_id: Optional[str] = None,
) -> tuple[SilenceSegment, ...]:
    """Validate analysis output and return it as a ledger sorted by start time.

    Accepts camelCase keys from the analysis service as well as snake_case.
    Entries without a usable interval are dropped with a warning.
    """
    segments = [seg for seg in (_coerce_entry(entry, recording_id) for entry in entries) if seg is not None]
    segments.sort(key=lambda seg: (seg.start_time, seg.end_time))
    _logger.debug("Ingested %d silence segments.", len(segments))
    return tuple(segments)


def mark_for_deletion(
    segments: Sequence[SilenceSegment], segment_id: str, deleted: bool
) -> tuple[SilenceSegment, ...]:
    # Keeping and cutting are both review decisions.
    return tuple(
        seg.model_copy(update={"deleted": bool(deleted), "reviewed": True}) if seg.id == segment_id else seg
        for seg in segments
    )


def batch_set_deleted(segments: Sequence[SilenceSegment], deleted: bool) -> tuple[SilenceSegment, ...]:
    return tuple(seg.model_copy(update={"deleted": bool(deleted), "reviewed": True}) for seg in segments)


def mark_reviewed(segments: Sequence[SilenceSegment], segment_id: str) -> tuple[SilenceSegment, ...]:
    return tuple(seg.model_copy(update={"reviewed": True}) if seg.id == segment_id else seg for seg in segments)


def next_after(segments: Sequence[SilenceSegment], time: float) -> Optional[SilenceSegment]:
    for seg in segments:
        if seg.start_time > time:
            return seg
    return None


def previous_before(segments: Sequence[SilenceSegment], time: float) -> Optional[SilenceSegment]:
    """Nearest segment starting before ``time``."""
    for seg in reversed(segments):
        if seg.start_time < time:
            return seg
    return None


def at(segments: Sequence[SilenceSegment], time: float) -> Optional[SilenceSegment]:
    for seg in segments:
        if seg.start_time <= time <= seg.end_time:
            return seg
    return None


def get_cuts(segments: Sequence[SilenceSegment]) -> tuple[SilenceSegment, ...]:
    return tuple(seg for seg in segments if seg.deleted)


def should_delete(segment: SilenceSegment) -> bool:
    return segment.deleted and segment.reviewed


def total_silence_duration(segments: Sequence[SilenceSegment]) -> float:
    return sum(seg.duration for seg in segments)


def time_saved(segments: Sequence[SilenceSegment]) -> float:
    return sum(seg.duration for seg in segments if seg.deleted)


def silence_stats(segments: Sequence[SilenceSegment], total_duration: float) -> SilenceStats:
    total = total_silence_duration(segments)
    percentage = (total / total_duration * 100.0) if total_duration > 0 else 0.0
    return SilenceStats(
        total_silence_time=total,
        silence_percentage=percentage,
        longest_silence=max((seg.duration for seg in segments), default=0.0),
        segment_count=len(segments),
        deleted_count=sum(1 for seg in segments if seg.deleted),
        time_saved=time_saved(segments),
    )
