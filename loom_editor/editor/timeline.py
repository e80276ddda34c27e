"""Pure edit operations over an :class:`EditorState`.

Every function returns a new state and leaves its input untouched. Invalid
requests (unknown ids, out-of-range times, NaN) return the input state
unchanged so callers can wire them straight to scrubbing/drag input.

The segment sequence always tiles ``[0, duration]``. Trims move the boundary a
segment shares with its neighbour; when there is no neighbour on that side the
trimmed-off region is kept as a deleted segment so it can be restored later.
"""
from __future__ import annotations

import math
import uuid
from typing import Iterable, Mapping, Optional, Union

from . import silence
from .timeline_schema import EditorState, SilenceSegment, TimelineSegment

MIN_SEGMENT_SEC = 0.1


def _new_id() -> str:
    return str(uuid.uuid4())


def _is_time(value) -> bool:
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def _first_active_index(segments) -> Optional[int]:
    for idx, segment in enumerate(segments):
        if not segment.deleted:
            return idx
    return None


def _last_active_index(segments) -> Optional[int]:
    for idx in range(len(segments) - 1, -1, -1):
        if not segments[idx].deleted:
            return idx
    return None


def _index_of(segments, segment_id: str) -> Optional[int]:
    for idx, segment in enumerate(segments):
        if segment.id == segment_id:
            return idx
    return None


def create_initial_state(duration: float) -> EditorState:
    duration = float(duration)
    if not math.isfinite(duration) or duration <= 0:
        raise ValueError(f"Recording duration must be a positive number of seconds, got {duration!r}.")
    return EditorState(
        segments=(TimelineSegment(id=_new_id(), start_time=0.0, end_time=duration),),
        duration=duration,
    )


def _fit_leading(leading, boundary: float) -> list[TimelineSegment]:
    """Re-tile the deleted run before the first active segment so it ends at ``boundary``."""
    fitted = []
    for seg in leading:
        if seg.start_time >= boundary:
            break
        fitted.append(seg if seg.end_time <= boundary else seg.model_copy(update={"end_time": boundary}))
    if not fitted:
        return [TimelineSegment(id=_new_id(), start_time=0.0, end_time=boundary, deleted=True)] if boundary > 0 else []
    if fitted[-1].end_time < boundary:
        fitted[-1] = fitted[-1].model_copy(update={"end_time": boundary})
    return fitted


def _fit_trailing(trailing, boundary: float, duration: float) -> list[TimelineSegment]:
    """Re-tile the deleted run after the last active segment so it starts at ``boundary``."""
    fitted = []
    for seg in reversed(trailing):
        if seg.end_time <= boundary:
            break
        fitted.append(seg if seg.start_time >= boundary else seg.model_copy(update={"start_time": boundary}))
    fitted.reverse()
    if not fitted:
        if boundary < duration:
            return [TimelineSegment(id=_new_id(), start_time=boundary, end_time=duration, deleted=True)]
        return []
    if fitted[0].start_time > boundary:
        fitted[0] = fitted[0].model_copy(update={"start_time": boundary})
    return fitted


def trim_start(state: EditorState, new_start_time: float) -> EditorState:
    index = _first_active_index(state.segments)
    if index is None or not _is_time(new_start_time):
        return state

    segment = state.segments[index]
    clamped = max(0.0, min(float(new_start_time), segment.end_time - MIN_SEGMENT_SEC))
    if clamped == segment.start_time:
        return state

    # Everything before the first active segment is deleted; it absorbs the move.
    leading = _fit_leading(state.segments[:index], clamped)
    trimmed = segment.model_copy(update={"start_time": clamped})
    segments = (*leading, trimmed, *state.segments[index + 1:])
    return state.model_copy(update={"segments": segments})


def trim_end(state: EditorState, new_end_time: float) -> EditorState:
    index = _last_active_index(state.segments)
    if index is None or not _is_time(new_end_time):
        return state

    segment = state.segments[index]
    clamped = min(state.duration, max(float(new_end_time), segment.start_time + MIN_SEGMENT_SEC))
    if clamped == segment.end_time:
        return state

    trailing = _fit_trailing(state.segments[index + 1:], clamped, state.duration)
    trimmed = segment.model_copy(update={"end_time": clamped})
    segments = (*state.segments[:index], trimmed, *trailing)
    return state.model_copy(update={"segments": segments})


def split_segment(state: EditorState, segment_id: str, split_time: float) -> EditorState:
    index = _index_of(state.segments, segment_id)
    if index is None or not _is_time(split_time):
        return state

    segment = state.segments[index]
    split_time = float(split_time)
    if segment.deleted:
        return state
    if split_time <= segment.start_time or split_time >= segment.end_time:
        return state

    left = segment.model_copy(update={"end_time": split_time})
    right = TimelineSegment(id=_new_id(), start_time=split_time, end_time=segment.end_time)

    segments = list(state.segments)
    segments[index : index + 1] = [left, right]
    return state.model_copy(update={"segments": tuple(segments)})


def delete_segment(state: EditorState, segment_id: str) -> EditorState:
    index = _index_of(state.segments, segment_id)
    if index is None or state.segments[index].deleted:
        return state
    if len(get_active_segments(state)) <= 1:
        return state

    segments = list(state.segments)
    segments[index] = segments[index].model_copy(update={"deleted": True})
    return state.model_copy(update={"segments": tuple(segments)})


def restore_segment(state: EditorState, segment_id: str) -> EditorState:
    # Segments never overlap, so bringing one back cannot break the tiling.
    index = _index_of(state.segments, segment_id)
    if index is None or not state.segments[index].deleted:
        return state

    segments = list(state.segments)
    segments[index] = segments[index].model_copy(update={"deleted": False})
    return state.model_copy(update={"segments": tuple(segments)})


def seek(state: EditorState, time: float) -> EditorState:
    if not _is_time(time):
        return state
    clamped = max(0.0, min(float(time), state.duration))
    if clamped == state.current_time:
        return state
    return state.model_copy(update={"current_time": clamped})


def set_playing(state: EditorState, is_playing: bool) -> EditorState:
    if bool(is_playing) == state.is_playing:
        return state
    return state.model_copy(update={"is_playing": bool(is_playing)})


def get_active_segments(state: EditorState) -> tuple[TimelineSegment, ...]:
    return tuple(segment for segment in state.segments if not segment.deleted)


def get_total_active_duration(state: EditorState) -> float:
    return sum(segment.duration for segment in get_active_segments(state))


def get_segment_at_time(state: EditorState, time: float) -> Optional[TimelineSegment]:
    for segment in state.segments:
        if not segment.deleted and segment.start_time <= time <= segment.end_time:
            return segment
    return None


def is_time_in_active_segment(state: EditorState, time: float) -> bool:
    return get_segment_at_time(state, time) is not None


def get_next_active_time(state: EditorState, current_time: float) -> float:
    """Return ``current_time`` if it is playable, else the start of the next active segment.

    Wraps to the first active segment when playback has run past the last one.
    """
    active = sorted(get_active_segments(state), key=lambda segment: segment.start_time)
    for segment in active:
        if current_time < segment.start_time:
            return segment.start_time
        if segment.start_time <= current_time < segment.end_time:
            return current_time
    return active[0].start_time if active else 0.0


def format_time(seconds: float) -> str:
    seconds = max(0.0, float(seconds))
    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    tenths = int((seconds % 1) * 10)
    return f"{minutes}:{secs:02d}.{tenths}"


# ---------------------------------------------------------------------------
# Silence ledger on the editor state
# ---------------------------------------------------------------------------

def with_silence_segments(
    state: EditorState,
    entries: Iterable[Union[SilenceSegment, Mapping]],
    recording_id: Optional[str] = None,
) -> EditorState:
    """Replace the state's silence ledger; timeline segments are left as they are."""
    return state.model_copy(update={"silence_segments": silence.ingest_silence(entries, recording_id=recording_id)})


def mark_silence_for_deletion(state: EditorState, silence_id: str, deleted: bool) -> EditorState:
    updated = silence.mark_for_deletion(state.silence_segments, silence_id, deleted)
    if updated == state.silence_segments:
        return state
    return state.model_copy(update={"silence_segments": updated})


def batch_delete_silence(state: EditorState, deleted: bool) -> EditorState:
    if not state.silence_segments:
        return state
    return state.model_copy(update={"silence_segments": silence.batch_set_deleted(state.silence_segments, deleted)})
