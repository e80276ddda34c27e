"""Tests for the ffmpeg command runner."""
from __future__ import annotations

import subprocess

import pytest

from loom_editor.video import utils
from loom_editor.video.ffmpeg_runner import (
    CommandResult,
    _ensure_ffmpeg_args,
    _ProgressParser,
    progress_fraction,
    tail_text,
)


# ---------------------------------------------------------------------------
# _ensure_ffmpeg_args
# ---------------------------------------------------------------------------

def test_ensure_ffmpeg_args_adds_progress_reporting() -> None:
    cmd = _ensure_ffmpeg_args(["ffmpeg", "-y", "-i", "in.webm", "out.mp4"])

    assert cmd[:8] == ["ffmpeg", "-loglevel", "level+info", "-progress", "pipe:1", "-nostats", "-hide_banner", "-y"]
    assert cmd[-1] == "out.mp4"


def test_ensure_ffmpeg_args_keeps_existing_flags() -> None:
    cmd = ["ffmpeg", "-hide_banner", "-loglevel", "error", "-progress", "pipe:1", "-nostats", "-i", "a", "b"]

    assert _ensure_ffmpeg_args(cmd) == cmd


def test_ensure_ffmpeg_args_verbose_in_debug_mode() -> None:
    cmd = _ensure_ffmpeg_args(["ffmpeg", "-i", "a", "b"], debug_verbose=True)

    assert cmd[cmd.index("-loglevel") + 1] == "verbose"


# ---------------------------------------------------------------------------
# progress_fraction
# ---------------------------------------------------------------------------

def test_progress_fraction_from_out_time() -> None:
    assert progress_fraction({"out_time_us": "2500000", "progress": "continue"}, 10.0) == pytest.approx(0.25)
    assert progress_fraction({"out_time_ms": "5000000"}, 10.0) == pytest.approx(0.5)


def test_progress_fraction_is_clamped_and_end_is_complete() -> None:
    assert progress_fraction({"out_time_us": "99000000"}, 10.0) == 1.0
    assert progress_fraction({"out_time_us": "N/A", "progress": "end"}, 10.0) == 1.0


def test_progress_fraction_without_usable_data() -> None:
    assert progress_fraction({"frame": "10"}, 10.0) is None
    assert progress_fraction({"out_time_us": "N/A"}, 10.0) is None
    assert progress_fraction({"out_time_us": "1000"}, 0) is None


# ---------------------------------------------------------------------------
# run_cmd
# ---------------------------------------------------------------------------

def _result(ok: bool, stderr: str = "", timed_out: bool = False) -> CommandResult:
    return CommandResult(returncode=None if timed_out else (0 if ok else 1), stderr=stderr, timed_out=timed_out)


def test_run_cmd_writes_log_and_raises_on_failure(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(utils, "run_ffmpeg", lambda cmd, **kwargs: _result(False, "moov atom not found"))
    log_path = tmp_path / "logs" / "export.log"

    with pytest.raises(subprocess.CalledProcessError) as excinfo:
        utils.run_cmd(["ffmpeg", "-i", "broken.webm", "out.mp4"], log_path=log_path)

    assert excinfo.value.stderr == "moov atom not found"
    log_text = log_path.read_text(encoding="utf-8")
    assert "$ ffmpeg -i broken.webm out.mp4" in log_text
    assert "moov atom not found" in log_text


def test_run_cmd_raises_runtime_error_on_timeout(monkeypatch) -> None:
    monkeypatch.setattr(utils, "run_ffmpeg", lambda cmd, **kwargs: _result(False, timed_out=True))

    with pytest.raises(RuntimeError, match="timed out after 5"):
        utils.run_cmd(["ffmpeg", "-i", "a", "b"], timeout_sec=5)


def test_run_cmd_without_check_returns_result(monkeypatch) -> None:
    monkeypatch.setattr(utils, "run_ffmpeg", lambda cmd, **kwargs: _result(False, "bad"))

    result = utils.run_cmd(["ffmpeg", "-i", "a", "b"], check=False)

    assert result.ok is False
    assert result.returncode == 1


def test_run_ffmpeg_rejects_empty_command() -> None:
    with pytest.raises(ValueError):
        utils.run_ffmpeg([])


def test_get_media_duration_missing_file_is_zero(tmp_path) -> None:
    assert utils.get_media_duration(tmp_path / "nope.webm") == 0.0


def test_get_media_duration_parses_ffprobe_output(monkeypatch, tmp_path) -> None:
    media = tmp_path / "clip.webm"
    media.write_bytes(b"x")
    monkeypatch.setattr(
        utils, "run_ffmpeg", lambda cmd, **kwargs: CommandResult(returncode=0, stdout="12.480000\n")
    )

    assert utils.get_media_duration(media) == pytest.approx(12.48)


def test_tail_text_keeps_last_lines(tmp_path) -> None:
    path = tmp_path / "stderr.log"
    path.write_text("".join(f"line {i}\n" for i in range(10)), encoding="utf-8")

    assert tail_text(path, max_lines=2) == "line 8\nline 9\n"
    assert tail_text(tmp_path / "missing.log") == ""


def test_progress_parser_emits_one_snapshot_per_block() -> None:
    snapshots = []
    parser = _ProgressParser(snapshots.append)
    for line in ["frame=10\n", "out_time_us=500000\n", "progress=continue\n", "banner line\n", "out_time_us=900000\n", "progress=end\n"]:
        parser.feed(line)

    assert snapshots == [
        {"frame": "10", "out_time_us": "500000", "progress": "continue"},
        {"out_time_us": "900000", "progress": "end"},
    ]
