import random

import pytest

from loom_editor.editor.export_ranges import (
    MIN_EXPORT_RANGE_SEC,
    ExportRanges,
    NothingToExport,
    resolve_export,
    resolve_export_ranges,
)
from loom_editor.editor.silence import ingest_silence
from loom_editor.editor.timeline import (
    create_initial_state,
    delete_segment,
    get_active_segments,
    mark_silence_for_deletion,
    split_segment,
    with_silence_segments,
)
from loom_editor.editor.timeline_schema import SilenceSegment, TimelineSegment


def _cut(start: float, end: float, cut_id: str | None = None) -> SilenceSegment:
    return SilenceSegment(
        id=cut_id or f"cut-{start}-{end}",
        start_time=start,
        end_time=end,
        duration=end - start,
        deleted=True,
        reviewed=True,
    )


def _active(*bounds: tuple[float, float]) -> list[TimelineSegment]:
    return [TimelineSegment(id=f"seg-{i}", start_time=s, end_time=e) for i, (s, e) in enumerate(bounds)]


def _pairs(resolution) -> list[tuple[float, float]]:
    assert isinstance(resolution, ExportRanges)
    return [(r.start_time, r.end_time) for r in resolution.ranges]


def test_unedited_recording_exports_whole_duration() -> None:
    assert _pairs(resolve_export(create_initial_state(30))) == [(0.0, 30.0)]


def test_deleted_second_half_is_left_out() -> None:
    state = create_initial_state(30)
    state = split_segment(state, state.segments[0].id, 10)
    state = delete_segment(state, state.segments[1].id)

    assert _pairs(resolve_export(state)) == [(0.0, 10.0)]


def test_silence_cuts_are_removed_from_single_segment() -> None:
    resolution = resolve_export_ranges(_active((0.0, 30.0)), [_cut(5, 8), _cut(15, 18.5)])

    assert _pairs(resolution) == [(0.0, 5.0), (8.0, 15.0), (18.5, 30.0)]


def test_sliver_left_next_to_a_cut_is_dropped() -> None:
    resolution = resolve_export_ranges(_active((0.0, 30.0)), [_cut(0.05, 10), _cut(20, 29.95)])

    assert _pairs(resolution) == [(10.0, 20.0)]


def test_cuts_covering_everything_mean_nothing_to_export() -> None:
    resolution = resolve_export_ranges(_active((0.0, 10.0), (20.0, 30.0)), [_cut(0, 12), _cut(18, 31)])

    assert isinstance(resolution, NothingToExport)
    assert resolution.reason


def test_no_active_segments_means_nothing_to_export() -> None:
    assert isinstance(resolve_export_ranges([], [_cut(1, 2)]), NothingToExport)


def test_zero_cuts_returns_active_segments_verbatim() -> None:
    active = _active((0.0, 4.0), (4.0, 4.05), (9.0, 12.0))

    assert _pairs(resolve_export_ranges(active, [])) == [(0.0, 4.0), (4.0, 4.05), (9.0, 12.0)]


def test_cut_spanning_segment_boundary_is_clipped_per_segment() -> None:
    resolution = resolve_export_ranges(_active((0.0, 10.0), (10.0, 30.0)), [_cut(8, 12)])

    assert _pairs(resolution) == [(0.0, 8.0), (12.0, 30.0)]


def test_cut_touching_segment_edge_does_not_overlap() -> None:
    resolution = resolve_export_ranges(_active((10.0, 20.0)), [_cut(0, 10), _cut(20, 25)])

    assert _pairs(resolution) == [(10.0, 20.0)]


def test_overlapping_cuts_are_merged() -> None:
    resolution = resolve_export_ranges(_active((0.0, 30.0)), [_cut(5, 10), _cut(7, 12)])

    assert _pairs(resolution) == [(0.0, 5.0), (12.0, 30.0)]


def test_cut_order_does_not_change_output() -> None:
    active = _active((0.0, 10.0), (12.0, 40.0))
    cuts = [_cut(2, 3), _cut(9, 13), _cut(20, 21.5), _cut(30, 30.5), _cut(39.95, 45)]
    expected = _pairs(resolve_export_ranges(active, cuts))

    assert _pairs(resolve_export_ranges(active, list(reversed(cuts)))) == expected
    shuffled = list(cuts)
    random.Random(7).shuffle(shuffled)
    assert _pairs(resolve_export_ranges(active, shuffled)) == expected


def test_only_deleted_silence_counts_as_a_cut() -> None:
    state = with_silence_segments(
        create_initial_state(30),
        [
            {"id": "keep", "startTime": 3.0, "endTime": 6.0},
            {"id": "drop", "startTime": 12.0, "endTime": 14.0},
        ],
    )
    state = mark_silence_for_deletion(state, "drop", True)

    assert _pairs(resolve_export(state)) == [(0.0, 12.0), (14.0, 30.0)]


def test_random_inputs_produce_ordered_disjoint_ranges() -> None:
    rng = random.Random(99)
    for _ in range(200):
        state = create_initial_state(rng.uniform(5.0, 90.0))
        for _ in range(rng.randint(0, 6)):
            target = rng.choice(state.segments).id
            state = split_segment(state, target, rng.uniform(0, state.duration))
        for _ in range(rng.randint(0, 3)):
            state = delete_segment(state, rng.choice(state.segments).id)

        entries = []
        for _ in range(rng.randint(0, 8)):
            start = rng.uniform(0, state.duration)
            entries.append({"startTime": start, "endTime": start + rng.uniform(0.01, 6.0), "deleted": True})
        cuts = [seg for seg in ingest_silence(entries)]
        active = get_active_segments(state)

        resolution = resolve_export_ranges(active, cuts)
        if isinstance(resolution, NothingToExport):
            continue
        ranges = resolution.ranges
        for item in ranges:
            assert item.start_time < item.end_time
            if cuts:
                assert item.end_time - item.start_time >= MIN_EXPORT_RANGE_SEC - 1e-6
            assert any(seg.start_time <= item.start_time and item.end_time <= seg.end_time for seg in active)
            for cut in cuts:
                assert not (cut.end_time > item.start_time and cut.start_time < item.end_time)
        for left, right in zip(ranges, ranges[1:]):
            assert left.start_time < right.start_time
            assert left.end_time <= right.start_time


def test_total_duration_of_resolved_ranges() -> None:
    resolution = resolve_export_ranges(_active((0.0, 30.0)), [_cut(5, 8), _cut(15, 18.5)])

    assert resolution.total_duration == pytest.approx(23.5)
