"""Run one ffmpeg process while streaming its ``-progress`` output.

stdout carries the machine-readable progress blocks and stderr the human log.
Both are teed to files in ``log_dir`` so a failed export can be diagnosed
after the temporary work directory is gone.
"""
from __future__ import annotations

import os
import subprocess
import threading
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

ProgressListener = Callable[[dict[str, str]], None]

_PROGRESS_FLAGS = ("-progress", "pipe:1", "-nostats")


@dataclass(frozen=True)
class CommandResult:
    returncode: Optional[int]
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    stdout_path: Optional[Path] = None
    stderr_path: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out


def tail_text(path: Path, max_lines: int = 200) -> str:
    if not path.exists():
        return ""
    with path.open("r", encoding="utf-8", errors="ignore") as handle:
        return "".join(deque(handle, maxlen=max_lines))


def _ensure_ffmpeg_args(cmd: list[str], debug_verbose: bool = False) -> list[str]:
    """Insert logging and progress flags right after the executable.

    Flags the caller already set are left alone.
    """
    if not cmd:
        return []
    head: list[str] = []
    if "-loglevel" not in cmd:
        head += ["-loglevel", "verbose" if debug_verbose else "level+info"]
    if "-progress" not in cmd:
        head += list(_PROGRESS_FLAGS[:2])
    if "-nostats" not in cmd:
        head.append(_PROGRESS_FLAGS[2])
    if "-hide_banner" not in cmd:
        head.append("-hide_banner")
    return [cmd[0], *head, *cmd[1:]]


def progress_fraction(snapshot: dict[str, str], total_duration: float) -> Optional[float]:
    """Fraction of ``total_duration`` covered by an ffmpeg ``-progress`` snapshot."""
    if total_duration <= 0:
        return None
    if snapshot.get("progress") == "end":
        return 1.0
    # ffmpeg reports out_time_ms in microseconds too.
    raw = snapshot.get("out_time_us") or snapshot.get("out_time_ms")
    if raw is None:
        return None
    try:
        seconds = int(raw) / 1_000_000
    except ValueError:
        return None
    return max(0.0, min(1.0, seconds / total_duration))


class _ProgressParser:
    """Collects ``key=value`` lines into one snapshot per ``progress=`` line."""

    def __init__(self, listener: Optional[ProgressListener]) -> None:
        self._listener = listener
        self._snapshot: dict[str, str] = {}

    def feed(self, line: str) -> None:
        key, sep, value = line.strip().partition("=")
        if not sep:
            return
        self._snapshot[key] = value
        if key == "progress":
            if self._listener is not None:
                self._listener(dict(self._snapshot))
            self._snapshot = {}


def _pump(stream, sink, on_line: Optional[Callable[[str], None]] = None) -> None:
    for line in stream:
        sink.write(line)
        sink.flush()
        if on_line is not None:
            on_line(line)


def _wait(process: subprocess.Popen, timeout_sec: Optional[float]) -> bool:
    """Wait for ``process``; terminate it and return True if it overran."""
    try:
        process.wait(timeout=timeout_sec)
        return False
    except subprocess.TimeoutExpired:
        process.terminate()
        try:
            process.wait(timeout=3)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
        return True


def run_ffmpeg_streaming(
    cmd: list[str],
    log_dir: Path,
    timeout_sec: float | None = None,
    on_progress: ProgressListener | None = None,
    debug_verbose: bool = False,
    cwd: Path | None = None,
) -> CommandResult:
    if not cmd or not cmd[0]:
        raise ValueError(f"Invalid ffmpeg command: {cmd!r}")

    # Lazy import to avoid a cycle with utils.
    from .utils import resolve_ffmpeg_exe

    argv = _ensure_ffmpeg_args([resolve_ffmpeg_exe(), *cmd[1:]], debug_verbose=debug_verbose)

    log_dir.mkdir(parents=True, exist_ok=True)
    stdout_path = log_dir / "ffmpeg-stdout.log"
    stderr_path = log_dir / "ffmpeg-stderr.log"
    parser = _ProgressParser(on_progress)

    with stdout_path.open("a", encoding="utf-8") as stdout_log, stderr_path.open("a", encoding="utf-8") as stderr_log:
        process = subprocess.Popen(
            argv,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            bufsize=1,
            env=os.environ.copy(),
            cwd=str(cwd or log_dir),
        )
        readers = [
            threading.Thread(target=_pump, args=(process.stdout, stdout_log, parser.feed), daemon=True),
            threading.Thread(target=_pump, args=(process.stderr, stderr_log), daemon=True),
        ]
        for reader in readers:
            reader.start()
        timed_out = _wait(process, timeout_sec)
        for reader in readers:
            reader.join(timeout=2)

    return CommandResult(
        returncode=process.returncode,
        stdout=tail_text(stdout_path),
        stderr=tail_text(stderr_path),
        timed_out=timed_out,
        stdout_path=stdout_path,
        stderr_path=stderr_path,
    )
