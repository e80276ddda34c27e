"""Translate caption style settings into libass ``force_style`` overrides."""
from __future__ import annotations

from typing import Optional, Sequence

from loom_editor.editor.timeline_schema import Caption, CaptionPosition, CaptionStyle

# Numpad layout used by ASS: 1-3 bottom row, 4-6 middle, 7-9 top.
_ALIGNMENT_ROWS = {"bottom": 1, "middle": 4, "top": 7}
_ALIGNMENT_COLUMNS = {"left": 0, "center": 1, "right": 2}

OUTLINE_WIDTH = 2


def hex_to_ass_color(hex_color: str) -> str:
    """Convert ``#RRGGBB``/``#RRGGBBAA`` into ASS ``&HAABBGGRR``.

    ASS alpha counts transparency (00 opaque, FF invisible), the reverse of CSS,
    so the alpha byte is inverted. Six-digit colors are treated as opaque.
    """
    clean = hex_color.lstrip("#")
    if len(clean) not in (6, 8):
        raise ValueError(f"Expected #RRGGBB or #RRGGBBAA, got {hex_color!r}")
    r, g, b = clean[0:2], clean[2:4], clean[4:6]
    a = clean[6:8] if len(clean) == 8 else "FF"
    alpha = 255 - int(a, 16)
    return f"&H{alpha:02X}{b.upper()}{g.upper()}{r.upper()}"


def ass_alignment(position: CaptionPosition) -> int:
    row = _ALIGNMENT_ROWS.get(position.vertical, 1)
    column = _ALIGNMENT_COLUMNS.get(position.horizontal, 1)
    return row + column


def build_force_style(style: CaptionStyle, position: CaptionPosition) -> str:
    styles = [
        f"FontName={style.font_family}",
        f"FontSize={style.font_size}",
        f"PrimaryColour={hex_to_ass_color(style.font_color)}",
        f"BackColour={hex_to_ass_color(style.background_color)}",
    ]
    if style.bold:
        styles.append("Bold=1")
    if style.italic:
        styles.append("Italic=1")
    if style.outline and style.outline_color:
        styles.append(f"OutlineColour={hex_to_ass_color(style.outline_color)}")
        styles.append(f"Outline={OUTLINE_WIDTH}")
    styles.append(f"Alignment={ass_alignment(position)}")
    return ",".join(styles)


def force_style_for_captions(captions: Sequence[Caption]) -> Optional[str]:
    # libass applies one force_style to the whole track; the first caption's
    # style stands in for all of them.
    if not captions:
        return None
    reference = captions[0]
    return build_force_style(reference.style, reference.position)
