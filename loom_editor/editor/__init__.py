"""Timeline edit model and export range resolution."""

from .timeline_schema import Caption, CaptionPosition, CaptionStyle, EditorState, ExportOptions, ExportRange
from .timeline import (
    create_initial_state,
    delete_segment,
    restore_segment,
    split_segment,
    trim_end,
    trim_start,
)
from .export_ranges import ExportRanges, NothingToExport, resolve_export, resolve_export_ranges

__all__ = [
    "Caption",
    "CaptionPosition",
    "CaptionStyle",
    "EditorState",
    "ExportOptions",
    "ExportRange",
    "create_initial_state",
    "delete_segment",
    "restore_segment",
    "split_segment",
    "trim_end",
    "trim_start",
    "ExportRanges",
    "NothingToExport",
    "resolve_export",
    "resolve_export_ranges",
]
