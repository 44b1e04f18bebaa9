"""Markdown to block-element tree conversion with markdown-it-py."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode

from policy_service.core.logging import get_logger

logger = get_logger(__name__)

BULLET = "•"
HEADING_UNDERLINE = "=" * 50

_HEADING_RE = re.compile(r"^\s{0,3}(#{1,6})\s+(.*?)\s*#*\s*$")
_BULLET_RE = re.compile(r"^(\s*)[-*+]\s+")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")
_RULE_RE = re.compile(r"^\s*([-*_])(\s*\1){2,}\s*$")
_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_BOLD_RE = re.compile(r"(?<![\w*])(\*\*|__)(?!\s)(.+?)(?<!\s)\1(?![\w*])")
_ITALIC_RE = re.compile(r"(?<![\w*])(\*|_)(?!\s)(.+?)(?<!\s)\1(?![\w*])")
_CODE_RE = re.compile(r"`([^`]+)`")
_TABLE_DELIMITER_RE = re.compile(r"^\s*\|?\s*:?-+:?\s*(\|\s*:?-+:?\s*)+\|?\s*$")
_TABLE_ROW_RE = re.compile(r"^\s*\|(.*?)\|?\s*$")


@dataclass(frozen=True)
class Heading:
    level: int
    text: str


@dataclass(frozen=True)
class Paragraph:
    text: str


@dataclass(frozen=True)
class ListBlock:
    ordered: bool
    items: list[str]
    start: int = 1  # first number of an ordered list
    depth: int = 0  # nesting level, 0 for top-level lists


@dataclass(frozen=True)
class Table:
    rows: list[list[str]]  # row 0 is the header


@dataclass(frozen=True)
class LineBreak:
    pass


@dataclass(frozen=True)
class Generic:
    children: list["Block"] = field(default_factory=list)
    text: str = ""


Block = Heading | Paragraph | ListBlock | Table | LineBreak | Generic


_MD_PARSER: MarkdownIt | None = None


def _get_markdown_parser() -> MarkdownIt:
    global _MD_PARSER
    if _MD_PARSER is None:
        _MD_PARSER = MarkdownIt("commonmark", {"html": False}).enable("table")
    return _MD_PARSER


def parse_markdown(markdown: str) -> list[Block]:
    """Convert markdown text into an ordered list of block elements."""
    tokens = _get_markdown_parser().parse(markdown or "")
    root = SyntaxTreeNode(tokens)
    blocks: list[Block] = []
    for node in root.children:
        blocks.extend(_convert_node(node))
    logger.debug("Parsed markdown into %d top-level blocks", len(blocks))
    return blocks


def inline_text(node: SyntaxTreeNode) -> str:
    """Flatten inline content to plain text, dropping emphasis and links."""
    if node.type in {"text", "code_inline", "html_inline"}:
        return node.content
    if node.type == "softbreak":
        return " "
    if node.type == "hardbreak":
        return "\n"
    if node.type == "inline" and not node.children:
        return node.content
    return "".join(inline_text(child) for child in node.children)


def _convert_node(node: SyntaxTreeNode) -> list[Block]:
    if node.type == "heading":
        return [Heading(level=int(node.tag[1]), text=_block_text(node))]
    if node.type == "paragraph":
        return [Paragraph(text=_block_text(node))]
    if node.type in {"bullet_list", "ordered_list"}:
        return _convert_list(node, depth=0)
    if node.type == "table":
        return [Table(rows=_table_rows(node))]
    if node.type == "hr":
        return [LineBreak()]
    if node.type in {"fence", "code_block", "html_block"}:
        return [Generic(text=node.content.rstrip("\n"))]
    if node.children:
        children: list[Block] = []
        for child in node.children:
            children.extend(_convert_node(child))
        return [Generic(children=children)]
    return [Generic(text=node.content)]


def _block_text(node: SyntaxTreeNode) -> str:
    return "".join(inline_text(child) for child in node.children).strip()


def _convert_list(node: SyntaxTreeNode, depth: int) -> list[Block]:
    """Convert a list, splitting it around nested lists.

    A nested list becomes its own ``ListBlock`` one level deeper, placed
    right after the item that contains it; numbering of the outer list
    continues after it.
    """
    ordered = node.type == "ordered_list"
    start = _list_start(node) if ordered else 1
    blocks: list[Block] = []
    items: list[str] = []
    segment_start = start

    for item in node.children:
        texts: list[str] = []
        nested: list[Block] = []
        for child in item.children:
            if child.type in {"bullet_list", "ordered_list"}:
                nested.extend(_convert_list(child, depth + 1))
            elif child.children:
                texts.append(_block_text(child))
            else:
                texts.append(child.content.strip())
        items.append(" ".join(t for t in texts if t))
        if nested:
            blocks.append(ListBlock(ordered=ordered, items=items, start=segment_start, depth=depth))
            blocks.extend(nested)
            segment_start += len(items)
            items = []

    if items:
        blocks.append(ListBlock(ordered=ordered, items=items, start=segment_start, depth=depth))
    return blocks


def _list_start(node: SyntaxTreeNode) -> int:
    raw = node.attrs.get("start") if node.attrs else None
    if raw is None:
        return 1
    try:
        return int(raw)
    except (TypeError, ValueError):
        return 1


def _table_rows(node: SyntaxTreeNode) -> list[list[str]]:
    rows: list[list[str]] = []
    for section in node.children:  # thead, tbody
        for row in section.children:
            rows.append([_block_text(cell) for cell in row.children])
    return rows


def _strip_inline(text: str) -> str:
    text = _IMAGE_RE.sub(lambda m: m.group(1), text)
    text = _LINK_RE.sub(lambda m: m.group(1), text)
    text = _CODE_RE.sub(lambda m: m.group(1), text)
    text = _BOLD_RE.sub(lambda m: m.group(2), text)
    text = _ITALIC_RE.sub(lambda m: m.group(2), text)
    return text


def markdown_to_plain_text(markdown: str) -> str:
    """Strip markdown formatting for the degraded plain-text layout.

    Headings are kept as text followed by an underline of ``=``; emphasis
    markers, code fences and link targets are removed; bullets become ``•``.
    Table rows keep their cell text and the delimiter row is dropped.
    """
    lines: list[str] = []
    for raw_line in (markdown or "").splitlines():
        if _FENCE_RE.match(raw_line) or _TABLE_DELIMITER_RE.match(raw_line):
            continue
        row = _TABLE_ROW_RE.match(raw_line)
        if row:
            cells = [_strip_inline(cell.strip()) for cell in row.group(1).split("|")]
            lines.append("  ".join(cell for cell in cells if cell))
            continue
        if _RULE_RE.match(raw_line):
            lines.append("")
            continue
        heading = _HEADING_RE.match(raw_line)
        if heading:
            lines.append(_strip_inline(heading.group(2)))
            lines.append(HEADING_UNDERLINE)
            continue
        line = _BULLET_RE.sub(lambda m: f"{m.group(1)}{BULLET} ", raw_line)
        lines.append(_strip_inline(line))
    return "\n".join(lines)
