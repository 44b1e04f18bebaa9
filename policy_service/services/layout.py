"""Page-flow layout of policy documents onto fixed-size pages.

Blocks are placed top to bottom with a single running cursor. Before a
block (and before each wrapped line) is drawn, ``check_page_break`` starts
a new page when the content would run past the bottom margin. The space
thresholds below are fixed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from policy_service.core.logging import get_logger
from policy_service.services.markdown_tree import (
    BULLET,
    Block,
    Generic,
    Heading,
    LineBreak,
    ListBlock,
    Paragraph,
    Table,
    markdown_to_plain_text,
    parse_markdown,
)
from policy_service.services.pdf_document import PT_TO_UNIT, PolicyDocument

logger = get_logger(__name__)

HEADING_SPACE = 15
HEADING_GAP = 5
TEXT_SPACE = 8
LIST_ITEM_SPACE = 8
TABLE_SPACE = 30

PARAGRAPH_GAP = 3
LIST_GAP = 3
LIST_ITEM_GAP = 2
TABLE_GAP = 10

LIST_INDENT = 5
LIST_WRAP_INSET = 10

PLAIN_TEXT_BOTTOM_RESERVE = 20

HEADING_SIZES = {1: 14, 2: 12}
DEFAULT_HEADING_SIZE = 11

# Heading underlines left behind by markdown_to_plain_text.
_SEPARATOR_RE = re.compile(r"^={10,}$")


class LayoutMode(str, Enum):
    """Layout path used when exporting policies to PDF."""

    RICH = "rich"  # Block tree from the markdown parser (default)
    PLAIN = "plain"  # Formatting-stripped text, line by line


@dataclass(frozen=True)
class LayoutOptions:
    margin: float = 20.0
    font_size: float = 10.0
    line_height: float = 1.4
    page_height: float = 297.0  # A4 height in mm
    page_width: float = 210.0  # A4 width in mm

    @property
    def content_width(self) -> float:
        return self.page_width - 2 * self.margin

    @property
    def bottom(self) -> float:
        return self.page_height - self.margin


@dataclass
class RenderContext:
    """Cursor state for laying out one document."""

    document: PolicyDocument
    options: LayoutOptions
    y: float


def check_page_break(
    ctx: RenderContext, required_space: float, bottom_reserve: float | None = None
) -> bool:
    """Start a new page if ``required_space`` does not fit below the cursor.

    Returns True when a page break was inserted.
    """
    options = ctx.options
    limit = options.bottom if bottom_reserve is None else options.page_height - bottom_reserve
    if ctx.y + required_space <= limit:
        return False
    ctx.document.add_page()
    ctx.y = options.margin
    return True


def wrap_text(
    document: PolicyDocument, text: str, width: float, font_size: float, bold: bool = False
) -> list[str]:
    """Split text into lines that fit the given width."""
    if not text:
        return [""]
    return document.split_lines(text, width, font_size, bold)


def _draw_lines(
    ctx: RenderContext,
    lines: list[str],
    x: float,
    font_size: float,
    *,
    bold: bool = False,
    line_advance: float | None = None,
    bottom_reserve: float | None = None,
) -> None:
    advance = line_advance if line_advance is not None else font_size * PT_TO_UNIT
    for line in lines:
        check_page_break(ctx, advance, bottom_reserve)
        if line.strip():
            ctx.document.draw_text(line, x, ctx.y, font_size, bold=bold)
        ctx.y += advance


def _layout_text(ctx: RenderContext, text: str, gap: float) -> None:
    options = ctx.options
    lines = wrap_text(ctx.document, text, options.content_width, options.font_size)
    _draw_lines(ctx, lines, options.margin, options.font_size)
    ctx.y += gap


def _layout_heading(ctx: RenderContext, block: Heading) -> None:
    text = block.text.strip()
    if not text:
        return
    size = HEADING_SIZES.get(block.level, DEFAULT_HEADING_SIZE)
    check_page_break(ctx, HEADING_SPACE)
    ctx.y += HEADING_GAP
    lines = wrap_text(ctx.document, text, ctx.options.content_width, size, bold=True)
    _draw_lines(ctx, lines, ctx.options.margin, size, bold=True)
    ctx.y += HEADING_GAP


def _layout_paragraph(ctx: RenderContext, block: Paragraph) -> None:
    text = block.text.strip()
    if not text:
        return
    _layout_text(ctx, text, PARAGRAPH_GAP)


def _layout_list(ctx: RenderContext, block: ListBlock) -> None:
    if not block.items:
        return
    options = ctx.options
    indent = LIST_INDENT * (block.depth + 1)
    width = options.content_width - LIST_WRAP_INSET - LIST_INDENT * block.depth

    ctx.y += LIST_GAP
    for index, item in enumerate(block.items):
        check_page_break(ctx, LIST_ITEM_SPACE)
        prefix = f"{block.start + index}." if block.ordered else BULLET
        lines = wrap_text(ctx.document, f"{prefix} {item.strip()}", width, options.font_size)
        _draw_lines(ctx, lines, options.margin + indent, options.font_size)
        ctx.y += LIST_ITEM_GAP
    ctx.y += LIST_GAP


def _layout_table(ctx: RenderContext, block: Table) -> None:
    rows = [list(row) for row in block.rows]
    if not rows or not any(rows):
        return
    options = ctx.options
    check_page_break(ctx, TABLE_SPACE)
    final_y = ctx.document.draw_table(
        rows, options.margin, ctx.y, options.content_width, options.font_size
    )
    ctx.y = final_y + TABLE_GAP


def _layout_line_break(ctx: RenderContext, block: LineBreak) -> None:
    ctx.y += ctx.options.font_size * PT_TO_UNIT


def _layout_generic(ctx: RenderContext, block: Generic) -> None:
    if block.children:
        for child in block.children:
            layout_block(ctx, child)
        return
    text = block.text.strip()
    if not text:
        return
    check_page_break(ctx, TEXT_SPACE)
    _layout_text(ctx, text, PARAGRAPH_GAP)


_BLOCK_LAYOUTS: dict[type, Callable[[RenderContext, Block], None]] = {
    Heading: _layout_heading,
    Paragraph: _layout_paragraph,
    ListBlock: _layout_list,
    Table: _layout_table,
    LineBreak: _layout_line_break,
    Generic: _layout_generic,
}


def layout_block(ctx: RenderContext, block: Block) -> None:
    """Render one block completely, advancing the cursor."""
    handler = _BLOCK_LAYOUTS.get(type(block))
    if handler is None:
        logger.warning("Skipping unsupported block type %s", type(block).__name__)
        return
    handler(ctx, block)


def layout_document(
    blocks: list[Block],
    options: LayoutOptions,
    document: PolicyDocument,
    start_y: float | None = None,
) -> float:
    """Lay out a block tree and return the final cursor position.

    Args:
        blocks: Top-level blocks in document order
        options: Page geometry and font settings
        document: Sink receiving the draw operations
        start_y: Cursor to continue from; defaults to the top margin

    Returns:
        Cursor y after the last block, for chaining further layout
    """
    ctx = RenderContext(
        document=document,
        options=options,
        y=options.margin if start_y is None else start_y,
    )
    for block in blocks:
        layout_block(ctx, block)
    return ctx.y


def layout_plain_text(
    text: str,
    options: LayoutOptions,
    document: PolicyDocument,
    start_y: float | None = None,
) -> float:
    """Lay out already-stripped plain text line by line.

    Underline lines of ``=`` produced by the stripping step are skipped.
    Overflow uses a fixed bottom reserve instead of per-block estimates.
    """
    ctx = RenderContext(
        document=document,
        options=options,
        y=options.margin if start_y is None else start_y,
    )
    line_advance = options.font_size * PT_TO_UNIT * options.line_height
    for raw_line in (text or "").splitlines():
        line = raw_line.rstrip()
        if not line.strip():
            ctx.y += options.font_size * 0.5
            continue
        if _SEPARATOR_RE.match(line.strip()):
            continue
        lines = wrap_text(document, line, options.content_width, options.font_size)
        _draw_lines(
            ctx,
            lines,
            options.margin,
            options.font_size,
            line_advance=line_advance,
            bottom_reserve=PLAIN_TEXT_BOTTOM_RESERVE,
        )
    return ctx.y


def layout_markdown(
    markdown: str,
    options: LayoutOptions,
    document: PolicyDocument,
    mode: LayoutMode = LayoutMode.RICH,
    start_y: float | None = None,
) -> float:
    """Lay out markdown with the selected layout path."""
    if mode == LayoutMode.PLAIN:
        return layout_plain_text(markdown_to_plain_text(markdown), options, document, start_y)
    return layout_document(parse_markdown(markdown), options, document, start_y)
