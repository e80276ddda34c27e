from __future__ import annotations

import re
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, validator

_HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")

EXPORT_STAGES = {"preparing", "processing", "encoding", "complete", "error"}


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class TimelineSegment(_Frozen):
    id: str
    start_time: float
    end_time: float
    deleted: bool = False

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


class SilenceSegment(_Frozen):
    id: str
    recording_id: str = ""
    start_time: float
    end_time: float
    duration: float
    average_decibels: float = 0.0
    deleted: bool = False
    reviewed: bool = False


class EditorState(_Frozen):
    segments: Tuple[TimelineSegment, ...]
    silence_segments: Tuple[SilenceSegment, ...] = ()
    current_time: float = 0.0
    duration: float
    is_playing: bool = False


class ExportRange(_Frozen):
    start_time: float
    end_time: float

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


class SilenceStats(_Frozen):
    total_silence_time: float
    silence_percentage: float
    longest_silence: float
    segment_count: int
    deleted_count: int
    time_saved: float


def _validate_hex_color(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    if not _HEX_COLOR_RE.match(value):
        raise ValueError(f"color must be formatted like #RRGGBB or #RRGGBBAA, got {value!r}")
    return value.upper()


class CaptionStyle(_Frozen):
    font_family: str = "Arial"
    font_size: int = 24
    font_color: str = "#FFFFFF"
    background_color: str = "#000000AA"
    bold: bool = False
    italic: bool = False
    outline: bool = True
    outline_color: Optional[str] = "#000000"

    @validator("font_color", "background_color", "outline_color")
    def validate_color(cls, value: Optional[str]) -> Optional[str]:
        return _validate_hex_color(value)

    @validator("font_size")
    def validate_font_size(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("font_size must be positive")
        return value


class CaptionPosition(_Frozen):
    horizontal: str = "center"
    vertical: str = "bottom"
    offset_x: Optional[float] = None
    offset_y: Optional[float] = None

    @validator("horizontal")
    def validate_horizontal(cls, value: str) -> str:
        if value not in {"left", "center", "right"}:
            raise ValueError("horizontal must be 'left', 'center', or 'right'")
        return value

    @validator("vertical")
    def validate_vertical(cls, value: str) -> str:
        if value not in {"top", "middle", "bottom"}:
            raise ValueError("vertical must be 'top', 'middle', or 'bottom'")
        return value


class Caption(_Frozen):
    id: str
    recording_id: str = ""
    transcript_id: str = ""
    text: str
    start_time: float
    end_time: float
    position: CaptionPosition = Field(default_factory=CaptionPosition)
    style: CaptionStyle = Field(default_factory=CaptionStyle)


class CaptionExportOptions(_Frozen):
    enabled: bool = False
    burn_in: bool = False
    sidecar_format: Optional[str] = None

    @validator("sidecar_format")
    def validate_sidecar_format(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in {"srt", "vtt", "txt"}:
            raise ValueError("sidecar_format must be 'srt', 'vtt', or 'txt'")
        return value


class ExportOptions(_Frozen):
    format: str = "webm"
    quality: str = "medium"
    captions: CaptionExportOptions = Field(default_factory=CaptionExportOptions)

    @validator("format")
    def validate_format(cls, value: str) -> str:
        if value not in {"webm", "mp4"}:
            raise ValueError("format must be 'webm' or 'mp4'")
        return value

    @validator("quality")
    def validate_quality(cls, value: str) -> str:
        if value not in {"low", "medium", "high"}:
            raise ValueError("quality must be 'low', 'medium', or 'high'")
        return value


class ExportProgress(_Frozen):
    stage: str
    progress: float
    message: str

    @validator("stage")
    def validate_stage(cls, value: str) -> str:
        if value not in EXPORT_STAGES:
            raise ValueError(f"stage must be one of {sorted(EXPORT_STAGES)}")
        return value
