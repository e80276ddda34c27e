"""Encoding plans, caption artifacts and the ffmpeg export runner."""

from .caption_style import build_force_style, hex_to_ass_color
from .captions import build_srt, build_vtt, shift_captions_to_ranges, write_subtitle_file
from .encoding_plan import SinglePassPlan, TwoPhasePlan, build_encoding_plan
from .export import ExportFailed, ExportSucceeded, export_video, get_export_filename

__all__ = [
    "build_force_style",
    "hex_to_ass_color",
    "build_srt",
    "build_vtt",
    "shift_captions_to_ranges",
    "write_subtitle_file",
    "SinglePassPlan",
    "TwoPhasePlan",
    "build_encoding_plan",
    "ExportFailed",
    "ExportSucceeded",
    "export_video",
    "get_export_filename",
]
