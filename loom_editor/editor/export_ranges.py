from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Union

from .silence import get_cuts
from .timeline import get_active_segments
from .timeline_schema import EditorState, ExportRange, SilenceSegment, TimelineSegment

MIN_EXPORT_RANGE_SEC = 0.1

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportRanges:
    ranges: tuple[ExportRange, ...]

    @property
    def total_duration(self) -> float:
        return sum(item.duration for item in self.ranges)


@dataclass(frozen=True)
class NothingToExport:
    reason: str = "No segments to export"


ExportResolution = Union[ExportRanges, NothingToExport]


def _long_enough(start: float, end: float) -> bool:
    # Rounded so 5.1 - 5.0 still counts as a tenth of a second.
    return round(end - start, 6) >= MIN_EXPORT_RANGE_SEC


def _overlaps(cut: SilenceSegment, segment: TimelineSegment) -> bool:
    return cut.end_time > segment.start_time and cut.start_time < segment.end_time


def _subtract_cuts(segment: TimelineSegment, cuts: Sequence[SilenceSegment]) -> list[tuple[float, float]]:
    """Split one active segment around the (sorted) cuts that overlap it."""
    pieces: list[tuple[float, float]] = []
    cursor = segment.start_time
    for cut in cuts:
        if not _overlaps(cut, segment):
            continue
        if cut.start_time > cursor:
            pieces.append((cursor, min(cut.start_time, segment.end_time)))
        cursor = max(cursor, min(cut.end_time, segment.end_time))
    if cursor < segment.end_time:
        pieces.append((cursor, segment.end_time))
    return pieces


def resolve_export_ranges(
    active_segments: Sequence[TimelineSegment],
    cuts: Sequence[SilenceSegment],
) -> ExportResolution:
    """Merge active timeline segments with silence cuts into disjoint export ranges.

    ``active_segments`` must be non-overlapping and in chronological order.
    ``cuts`` may arrive in any order.
    """
    if not active_segments:
        return NothingToExport()

    if not cuts:
        return ExportRanges(
            ranges=tuple(ExportRange(start_time=seg.start_time, end_time=seg.end_time) for seg in active_segments)
        )

    ordered_cuts = sorted(cuts, key=lambda cut: (cut.start_time, cut.end_time))
    ranges: list[ExportRange] = []
    dropped = 0
    for segment in active_segments:
        for start, end in _subtract_cuts(segment, ordered_cuts):
            if _long_enough(start, end):
                ranges.append(ExportRange(start_time=start, end_time=end))
            else:
                dropped += 1

    if dropped:
        _logger.debug("Dropped %d export sub-ranges shorter than %.1fs.", dropped, MIN_EXPORT_RANGE_SEC)

    if not ranges:
        return NothingToExport(reason="Silence cuts remove the entire timeline")
    return ExportRanges(ranges=tuple(ranges))


def resolve_export(state: EditorState) -> ExportResolution:
    return resolve_export_ranges(get_active_segments(state), get_cuts(state.silence_segments))
