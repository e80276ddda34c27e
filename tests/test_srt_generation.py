import pytest

from loom_editor.editor.timeline_schema import Caption, ExportRange
from loom_editor.video.captions import (
    build_srt,
    build_subtitles,
    build_txt,
    build_vtt,
    shift_captions_to_ranges,
    write_subtitle_file,
)


def _captions() -> list[Caption]:
    return [
        Caption(id="c1", text="Hello there", start_time=1.0, end_time=3.5),
        Caption(id="c2", text="   ", start_time=3.5, end_time=3.9),
        Caption(id="c3", text="Second line", start_time=4.0, end_time=5.25),
    ]


def test_build_srt_numbers_cues_sequentially_with_comma_millis() -> None:
    srt_text = build_srt(_captions())

    assert srt_text == (
        "1\n00:00:01,000 --> 00:00:03,500\nHello there\n\n"
        "2\n00:00:04,000 --> 00:00:05,250\nSecond line\n"
    )


def test_build_srt_formats_hours() -> None:
    srt_text = build_srt([Caption(id="x", text="late", start_time=3723.5, end_time=3725.0)])

    assert "01:02:03,500 --> 01:02:05,000" in srt_text


def test_build_srt_empty_is_empty_string() -> None:
    assert build_srt([]) == ""


def test_build_vtt_has_header_and_period_millis() -> None:
    vtt_text = build_vtt(_captions())

    assert vtt_text.startswith("WEBVTT\n\n")
    assert "00:00:01.000 --> 00:00:03.500\nHello there\n" in vtt_text
    assert vtt_text.count(" --> ") == 2
    assert build_vtt([]) == "WEBVTT\n\n"


def test_build_txt_prefixes_minute_second_timestamp() -> None:
    assert build_txt(_captions()) == "[00:01] Hello there\n[00:04] Second line"


def test_build_subtitles_rejects_unknown_format() -> None:
    with pytest.raises(ValueError, match="Unsupported subtitle format"):
        build_subtitles(_captions(), "ass")


def test_write_subtitle_file_writes_utf8(tmp_path) -> None:
    out_path = write_subtitle_file(tmp_path / "nested" / "captions.vtt", _captions(), "vtt")

    content = out_path.read_text(encoding="utf-8")
    assert content.startswith("WEBVTT")
    assert "Second line" in content


def test_shift_captions_to_ranges_follows_exported_timeline() -> None:
    captions = [
        Caption(id="a", text="before cut", start_time=1.0, end_time=3.0),
        Caption(id="b", text="straddles cut", start_time=4.0, end_time=9.0),
        Caption(id="c", text="inside cut", start_time=6.0, end_time=7.0),
        Caption(id="d", text="after cut", start_time=9.0, end_time=12.0),
    ]
    ranges = [ExportRange(start_time=0.0, end_time=5.0), ExportRange(start_time=8.0, end_time=15.0)]

    shifted = shift_captions_to_ranges(captions, ranges)

    assert [(c.id, c.start_time, c.end_time) for c in shifted] == [
        ("a", 1.0, 3.0),
        ("b", 4.0, 6.0),
        ("d", 6.0, 9.0),
    ]
    assert captions[1].end_time == 9.0


def test_shift_captions_respects_trimmed_start() -> None:
    captions = [Caption(id="a", text="hi", start_time=6.0, end_time=8.0)]

    shifted = shift_captions_to_ranges(captions, [ExportRange(start_time=5.0, end_time=20.0)])

    assert (shifted[0].start_time, shifted[0].end_time) == (1.0, 3.0)
