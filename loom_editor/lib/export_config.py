import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable

DEFAULT_EXPORT_FORMAT = "webm"
DEFAULT_EXPORT_QUALITY = "medium"
DEFAULT_FILENAME_PREFIX = "loom-editor"

EXPORT_FORMAT_OPTIONS = ["webm", "mp4"]
EXPORT_QUALITY_OPTIONS = ["low", "medium", "high"]

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportConfig:
    default_format: str
    default_quality: str
    ffmpeg_timeout_sec: float | None
    filename_prefix: str


def _parse_timeout(raw: str) -> float | None:
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"LOOM_FFMPEG_TIMEOUT_SEC must be a number of seconds, got {raw!r}") from exc
    if value <= 0:
        return None
    return value


@lru_cache(maxsize=1)
def resolve_export_config(get_secret: Callable[[str, str], str] | None = None) -> ExportConfig:
    """Resolve and validate export defaults from the environment.

    `get_secret` should have the same signature as loom_editor.config.get_secret.
    """

    if get_secret is None:
        from loom_editor.config import get_secret as reader
    else:
        reader = get_secret

    fmt = reader("loom_export_format", DEFAULT_EXPORT_FORMAT).strip().lower() or DEFAULT_EXPORT_FORMAT
    quality = reader("loom_export_quality", DEFAULT_EXPORT_QUALITY).strip().lower() or DEFAULT_EXPORT_QUALITY
    timeout = _parse_timeout(reader("loom_ffmpeg_timeout_sec", "").strip())
    prefix = reader("loom_filename_prefix", DEFAULT_FILENAME_PREFIX).strip() or DEFAULT_FILENAME_PREFIX

    if fmt not in EXPORT_FORMAT_OPTIONS:
        raise ValueError(f"LOOM_EXPORT_FORMAT must be one of {EXPORT_FORMAT_OPTIONS}, got {fmt!r}")
    if quality not in EXPORT_QUALITY_OPTIONS:
        raise ValueError(f"LOOM_EXPORT_QUALITY must be one of {EXPORT_QUALITY_OPTIONS}, got {quality!r}")

    _logger.info(
        "Export configuration loaded (format=%s, quality=%s, ffmpeg_timeout_sec=%s).",
        fmt,
        quality,
        timeout,
    )

    return ExportConfig(
        default_format=fmt,
        default_quality=quality,
        ffmpeg_timeout_sec=timeout,
        filename_prefix=prefix,
    )
