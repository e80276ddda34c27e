from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Iterable, Optional

from .ffmpeg_runner import CommandResult, ProgressListener, run_ffmpeg_streaming

_logger = logging.getLogger(__name__)


class FFmpegNotFoundError(RuntimeError):
    pass


def _first_existing(candidates: Iterable[Optional[str]]) -> Optional[str]:
    for candidate in candidates:
        if candidate and Path(candidate).exists():
            return candidate
    return None


def _bundled_ffmpeg() -> Optional[str]:
    try:
        import imageio_ffmpeg

        return imageio_ffmpeg.get_ffmpeg_exe()
    except Exception:
        _logger.debug("imageio-ffmpeg could not provide an ffmpeg binary.", exc_info=True)
        return None


def resolve_ffmpeg_exe() -> str:
    """FFMPEG_PATH, then PATH, then the binary shipped with imageio-ffmpeg."""
    exe = _first_existing([os.environ.get("FFMPEG_PATH"), shutil.which("ffmpeg")])
    exe = exe or _first_existing([_bundled_ffmpeg()])
    if exe is None:
        raise FileNotFoundError("ffmpeg executable not found. Install ffmpeg or set FFMPEG_PATH.")
    return exe


def resolve_ffprobe_exe() -> str:
    exe = _first_existing([os.environ.get("FFPROBE_PATH"), shutil.which("ffprobe")])
    if exe is None:
        try:
            exe = _first_existing([str(Path(resolve_ffmpeg_exe()).with_name("ffprobe"))])
        except FileNotFoundError:
            exe = None
    if exe is None:
        raise FileNotFoundError("ffprobe executable not found. Install ffmpeg or set FFPROBE_PATH.")
    return exe


def ensure_ffmpeg_exists() -> None:
    try:
        subprocess.run([resolve_ffmpeg_exe(), "-version"], check=True, capture_output=True, text=True)
    except (FileNotFoundError, OSError) as exc:
        raise FFmpegNotFoundError("FFmpeg is not installed. Install ffmpeg or set FFMPEG_PATH.") from exc
    except subprocess.CalledProcessError as exc:
        raise FFmpegNotFoundError(f"FFmpeg could not be executed (exit status {exc.returncode}).") from exc


def _run_captured(cmd: list[str], timeout_sec: float | None, cwd: str | Path | None) -> CommandResult:
    argv = list(cmd)
    if Path(str(argv[0])).name == "ffprobe":
        argv[0] = resolve_ffprobe_exe()
    try:
        completed = subprocess.run(
            argv,
            timeout=timeout_sec,
            capture_output=True,
            text=True,
            cwd=str(Path(cwd).resolve()) if cwd is not None else None,
        )
    except subprocess.TimeoutExpired as exc:
        return CommandResult(returncode=None, stdout=str(exc.stdout or ""), stderr=str(exc.stderr or ""), timed_out=True)
    return CommandResult(returncode=completed.returncode, stdout=completed.stdout or "", stderr=completed.stderr or "")


def run_ffmpeg(
    cmd: list[str],
    timeout_sec: float | None = None,
    workdir: str | Path | None = None,
    on_progress: ProgressListener | None = None,
    cwd: str | Path | None = None,
) -> CommandResult:
    """Run ffmpeg (streamed, with progress) or any other tool (captured).

    A missing executable is reported as a failed result, not raised.
    """
    if not cmd or not cmd[0]:
        raise ValueError(f"Invalid ffmpeg/ffprobe command: {cmd!r}")
    try:
        if Path(str(cmd[0])).name == "ffmpeg":
            log_dir = Path(workdir) if workdir is not None else Path(tempfile.mkdtemp(prefix="loom_ffmpeg_"))
            return run_ffmpeg_streaming(
                list(cmd),
                log_dir=log_dir,
                timeout_sec=timeout_sec,
                on_progress=on_progress,
                debug_verbose=os.getenv("DEBUG_FFMPEG") == "1",
                cwd=Path(cwd) if cwd is not None else None,
            )
        return _run_captured(cmd, timeout_sec, cwd)
    except FileNotFoundError as exc:
        return CommandResult(returncode=None, stderr=f"Executable not found for {cmd[0]!r}: {exc}")


def _append_log(log_path: Path, cmd: list[str], result: CommandResult, timeout_sec: float | None) -> None:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    lines = ["$ " + " ".join(cmd), "cmd_json=" + json.dumps(cmd, ensure_ascii=False)]
    if result.stderr_path is not None:
        lines.append(f"stderr_log_path={result.stderr_path}")
    if result.stderr:
        lines.append(result.stderr.rstrip("\n"))
    if result.timed_out:
        lines.append(f"Command timed out after {timeout_sec}s")
    with log_path.open("a", encoding="utf-8") as handle:
        handle.write("\n".join(lines) + "\n")


def run_cmd(
    cmd: list[str],
    log_path: str | Path | None = None,
    check: bool = True,
    timeout_sec: float | None = None,
    on_progress: ProgressListener | None = None,
    workdir: str | Path | None = None,
    cwd: str | Path | None = None,
) -> CommandResult:
    """Run a command, append its transcript to ``log_path`` and raise on failure when ``check``."""
    _logger.debug("Running %s", " ".join(cmd))
    result = run_ffmpeg(cmd, timeout_sec=timeout_sec, on_progress=on_progress, workdir=workdir, cwd=cwd)
    if log_path:
        _append_log(Path(log_path), cmd, result, timeout_sec)
    if check and not result.ok:
        if result.timed_out:
            raise RuntimeError(f"Command timed out after {timeout_sec}s: {' '.join(cmd)}")
        raise subprocess.CalledProcessError(
            returncode=result.returncode or 1,
            cmd=cmd,
            output=result.stdout,
            stderr=result.stderr,
        )
    return result


def get_media_duration(path: str | Path) -> float:
    """Container duration in seconds via ffprobe, or 0.0 when it cannot be read."""
    media_path = Path(path).resolve()
    if not media_path.exists():
        return 0.0
    result = run_ffmpeg(
        ["ffprobe", "-v", "error", "-show_entries", "format=duration", "-of", "csv=p=0", str(media_path)]
    )
    if not result.ok:
        return 0.0
    try:
        return float(result.stdout.strip())
    except ValueError:
        return 0.0
