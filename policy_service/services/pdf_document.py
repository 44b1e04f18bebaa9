"""PDF document sink backed by fpdf2.

Records every draw operation it performs so a layout can be inspected
without parsing the serialized PDF.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from fpdf import FPDF
from fpdf.enums import MethodReturnValue, TextEmphasis
from fpdf.fonts import FontFace

from policy_service.core.logging import get_logger

if TYPE_CHECKING:
    from policy_service.services.layout import LayoutOptions

logger = get_logger(__name__)

# Points to millimetres, rounded the way the layout constants were tuned.
PT_TO_UNIT = 0.35

FONT_FAMILY = "Helvetica"
HEADER_FILL = (242, 242, 242)

# Core PDF fonts only cover latin-1.
_LATIN1_REPLACEMENTS = {
    "\u00a0": " ",
    "\u200b": "",
    "\u2010": "-",
    "\u2011": "-",
    "\u2013": "-",
    "\u2014": "--",
    "\u2212": "-",
    "\u2018": "'",
    "\u2019": "'",
    "\u201c": '"',
    "\u201d": '"',
    "\u2022": "\u00b7",
    "\u2026": "...",
    "\u2192": "->",
    "\u2264": "<=",
    "\u2265": ">=",
}


@dataclass(frozen=True)
class TextRun:
    page: int
    x: float
    y: float  # top of the line
    text: str
    font_size: float
    bold: bool = False


@dataclass(frozen=True)
class TableGrid:
    page: int
    x: float
    y: float
    rows: tuple[tuple[str, ...], ...]
    final_y: float
    final_page: int
    header_bold: bool = False
    header_fill: tuple[int, int, int] | None = None


DrawOperation = TextRun | TableGrid


def sanitize_pdf_text(text: str) -> str:
    cleaned = text
    for key, val in _LATIN1_REPLACEMENTS.items():
        cleaned = cleaned.replace(key, val)
    return cleaned.encode("latin-1", "replace").decode("latin-1")


def _sanitize_with_owners(text: str) -> tuple[str, list[int]]:
    """Sanitize text and map each output character to its source index."""
    pieces: list[str] = []
    owners: list[int] = []
    for index, char in enumerate(text):
        piece = sanitize_pdf_text(char)
        pieces.append(piece)
        owners.extend([index] * len(piece))
    return "".join(pieces), owners


class PolicyDocument:
    """A single PDF being laid out, one per policy."""

    def __init__(
        self,
        options: "LayoutOptions",
        *,
        title: str = "",
        author: str = "",
        subject: str = "",
    ) -> None:
        self.options = options
        self.operations: list[DrawOperation] = []
        self.pdf = FPDF(
            orientation="P",
            unit="mm",
            format=(options.page_width, options.page_height),
        )
        self.pdf.set_margins(options.margin, options.margin, options.margin)
        # Only table grids rely on fpdf2's own pagination; text runs are
        # placed with absolute coordinates.
        self.pdf.set_auto_page_break(True, margin=options.margin)
        self.pdf.set_creator("Compliance Policy Service")
        if title:
            self.pdf.set_title(sanitize_pdf_text(title))
        if author:
            self.pdf.set_author(sanitize_pdf_text(author))
        if subject:
            self.pdf.set_subject(sanitize_pdf_text(subject))
        self.pdf.set_draw_color(0, 0, 0)
        self.pdf.add_page()

    @property
    def page(self) -> int:
        """Current 1-based page index."""
        return self.pdf.page

    @property
    def page_count(self) -> int:
        return self.pdf.pages_count

    def add_page(self) -> None:
        self.pdf.add_page()
        logger.debug("Started page %d", self.pdf.page)

    def _set_font(self, font_size: float, bold: bool) -> None:
        self.pdf.set_font(FONT_FAMILY, "B" if bold else "", font_size)

    def string_width(self, text: str, font_size: float, bold: bool = False) -> float:
        """Width of text as it will be drawn, in page units."""
        self._set_font(font_size, bold)
        return self.pdf.get_string_width(sanitize_pdf_text(text))

    def split_lines(self, text: str, width: float, font_size: float, bold: bool = False) -> list[str]:
        """Wrap text to ``width`` the way fpdf2 breaks a multi_cell.

        fpdf2 measures the latin-1 substitutes, but the returned lines hold
        the caller's original characters. Explicit newlines are kept and
        words wider than a whole line are broken between characters.
        """
        drawn, owners = _sanitize_with_owners(text)
        self._set_font(font_size, bold)
        lines = self.pdf.multi_cell(
            width + 2 * self.pdf.c_margin,
            font_size * PT_TO_UNIT,
            drawn,
            align="L",
            dry_run=True,
            output=MethodReturnValue.LINES,
        )
        logical: list[str] = []
        cursor = 0
        for line in lines:
            start = drawn.find(line, cursor) if line else -1
            if start < 0:
                logical.append(line)
                continue
            end = start + len(line)
            logical.append(text[owners[start] : owners[end - 1] + 1])
            cursor = end
        return logical

    def draw_text(self, text: str, x: float, y: float, font_size: float, bold: bool = False) -> TextRun:
        """Draw one line of text whose top edge sits at ``y``."""
        run = TextRun(page=self.page, x=x, y=y, text=text, font_size=font_size, bold=bold)
        self._set_font(font_size, bold)
        baseline = y + font_size * PT_TO_UNIT * 0.8
        self.pdf.text(x, baseline, sanitize_pdf_text(text))
        self.operations.append(run)
        return run

    def draw_table(self, rows: list[list[str]], x: float, y: float, width: float, font_size: float) -> float:
        """Draw a bordered grid with a shaded header row.

        fpdf2 paginates the grid itself and repeats the header on every
        page it spans. Returns the y position below the last row.
        """
        columns = max(len(row) for row in rows)
        padded = [
            [sanitize_pdf_text(cell) for cell in row] + [""] * (columns - len(row))
            for row in rows
        ]
        start_page = self.page
        header_style = FontFace(emphasis="BOLD", fill_color=HEADER_FILL)
        self._set_font(font_size, False)
        self.pdf.set_xy(x, y)
        with self.pdf.table(
            width=width,
            align="LEFT",
            borders_layout="ALL",
            first_row_as_headings=True,
            headings_style=header_style,
            line_height=font_size * PT_TO_UNIT * self.options.line_height,
            text_align="LEFT",
        ) as table:
            for data_row in padded:
                row = table.row()
                for datum in data_row:
                    row.cell(datum)
        final_y = self.pdf.get_y()
        self.operations.append(
            TableGrid(
                page=start_page,
                x=x,
                y=y,
                rows=tuple(tuple(row) for row in rows),
                final_y=final_y,
                final_page=self.page,
                header_bold=TextEmphasis.B in header_style.emphasis,
                header_fill=HEADER_FILL,
            )
        )
        return final_y

    def text_runs(self) -> list[TextRun]:
        return [op for op in self.operations if isinstance(op, TextRun)]

    def output(self) -> bytes:
        """Serialize the document to PDF bytes."""
        return bytes(self.pdf.output())
