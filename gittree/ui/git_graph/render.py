"""
Row rendering for the commit graph.

render_row() is a pure function of a GraphRow and its display options, so rows
can be rendered ahead of the viewport and cached. ASCII and Unicode output
differ only in the glyphs; every column keeps the same cell width.
"""

import time
from collections import OrderedDict
from collections.abc import Iterable
from datetime import datetime
from enum import Enum

from rich.cells import cell_len, set_cell_size
from rich.style import Style
from rich.text import Text

from gittree.constants import AUTHOR_COLUMN_WIDTH, RELATIVE_DATE_FORMAT
from gittree.ui.git_graph.types import ConnectorKind, GraphRow, get_lane_color

DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M"


class GlyphMode(Enum):
    ASCII = "ascii"
    UNICODE = "unicode"


GLYPHS: dict[GlyphMode, dict[ConnectorKind, str]] = {
    GlyphMode.ASCII: {
        ConnectorKind.NONE: " ",
        ConnectorKind.VERTICAL: "|",
        ConnectorKind.HORIZONTAL: "-",
        ConnectorKind.FORK: "/",
        ConnectorKind.MERGE: "\\",
        ConnectorKind.COMMIT: "*",
        ConnectorKind.BOUNDARY: "~",
    },
    GlyphMode.UNICODE: {
        ConnectorKind.NONE: " ",
        ConnectorKind.VERTICAL: "│",
        ConnectorKind.HORIZONTAL: "─",
        ConnectorKind.FORK: "╱",
        ConnectorKind.MERGE: "╲",
        ConnectorKind.COMMIT: "●",
        ConnectorKind.BOUNDARY: "⋯",
    },
}

HASH_STYLE = Style(color="yellow")
AUTHOR_STYLE = Style(color="blue")
DATE_STYLE = Style(color="green", dim=True)
HEAD_STYLE = Style(color="cyan", bold=True)
BRANCH_STYLE = Style(color="green", bold=True)
TAG_STYLE = Style(color="yellow", bold=True)


def glyph(kind: ConnectorKind, mode: GlyphMode) -> str:
    return GLYPHS[mode][kind]


def format_relative(timestamp: int, now: float) -> str:
    """Format a timestamp as '3 days ago'."""
    delta = int(now - timestamp)
    if delta < 60:
        return "just now"

    for unit, seconds in (
        ("year", 365 * 86400),
        ("month", 30 * 86400),
        ("week", 7 * 86400),
        ("day", 86400),
        ("hour", 3600),
        ("minute", 60),
    ):
        if delta >= seconds:
            count = delta // seconds
            return f"{count} {unit}{'s' if count != 1 else ''} ago"
    return "just now"


def format_date(timestamp: int, date_format: str, now: float | None = None) -> str:
    if date_format == RELATIVE_DATE_FORMAT:
        return format_relative(timestamp, time.time() if now is None else now)
    return datetime.fromtimestamp(timestamp).strftime(date_format)


REF_STYLES = {"head": HEAD_STYLE, "branch": BRANCH_STYLE, "tag": TAG_STYLE}


def ref_styles_from(colors: dict[str, str]) -> dict[str, Style]:
    """Build ref badge styles from settings ("bold green" style strings)."""
    styles = dict(REF_STYLES)
    for key, value in colors.items():
        if key in styles and value:
            styles[key] = Style.parse(value)
    return styles


def ref_style(ref: str, styles: dict[str, Style] | None = None) -> Style:
    styles = styles or REF_STYLES
    if ref.startswith("HEAD"):
        return styles["head"]
    if ref.startswith("tag: "):
        return styles["tag"]
    return styles["branch"]


def render_graph(row: GraphRow, max_lane: int, mode: GlyphMode, color: bool = True) -> Text:
    """
    Render the graph column of a row: one glyph per lane 0..max_lane, then a
    tail cell that shows a boundary glyph when the commit's own history is cut
    off (the commit marker itself is never replaced).
    """
    text = Text(no_wrap=True)
    for lane in range(max(max_lane, row.width - 1) + 1):
        kind = row.cell(lane)
        style: Style | None = None
        if color and kind is not ConnectorKind.NONE:
            # Horizontal runs belong to the commit's lane
            owner = row.lane if kind is ConnectorKind.HORIZONTAL else lane
            style = Style(color=get_lane_color(owner), bold=kind is ConnectorKind.COMMIT)
        text.append(glyph(kind, mode), style=style)

    tail = ConnectorKind.BOUNDARY if row.truncated else ConnectorKind.NONE
    tail_style = Style(color=get_lane_color(row.lane)) if color and row.truncated else None
    text.append(glyph(tail, mode), style=tail_style)
    return text


def render_row(
    row: GraphRow,
    max_lane: int,
    mode: GlyphMode,
    width: int,
    date_format: str = DEFAULT_DATE_FORMAT,
    color: bool = True,
    now: float | None = None,
    ref_styles: dict[str, Style] | None = None,
) -> Text:
    """Render a full row: graph, hash, author, date, ref badges and subject."""
    record = row.record
    text = render_graph(row, max_lane, mode, color)
    text.append(" ")

    def styled(style: Style) -> Style | None:
        return style if color else None

    text.append(record.short_id, style=styled(HASH_STYLE))
    text.append(" ")
    author = set_cell_size(record.author_name, AUTHOR_COLUMN_WIDTH)
    text.append(author, style=styled(AUTHOR_STYLE))
    text.append(" ")
    text.append(format_date(record.author_time, date_format, now), style=styled(DATE_STYLE))
    text.append(" ")

    if record.refs:
        text.append("(")
        for i, ref in enumerate(record.refs):
            if i:
                text.append(", ")
            text.append(ref, style=styled(ref_style(ref, ref_styles)))
        text.append(") ")

    remaining = width - cell_len(text.plain)
    if remaining > 0:
        text.append(record.subject)
    text.truncate(max(width, 0), overflow="crop")
    return text


class RowRenderCache:
    """LRU cache of rendered rows for one set of display options."""

    def __init__(
        self,
        date_format: str = DEFAULT_DATE_FORMAT,
        color: bool = True,
        capacity: int = 2048,
        ref_styles: dict[str, Style] | None = None,
    ) -> None:
        self.date_format = date_format
        self.color = color
        self.ref_styles = ref_styles
        self.capacity = capacity
        self._entries: OrderedDict[tuple, Text] = OrderedDict()

    def render(self, row: GraphRow, max_lane: int, mode: GlyphMode, width: int) -> Text:
        now = time.time()
        # Relative dates go stale; bucket them by minute
        bucket = int(now // 60) if self.date_format == RELATIVE_DATE_FORMAT else 0
        key = (row.generation, row.index, max_lane, mode, width, bucket)

        cached = self._entries.get(key)
        if cached is not None:
            self._entries.move_to_end(key)
            return cached.copy()

        text = render_row(
            row, max_lane, mode, width, self.date_format, self.color, now, self.ref_styles
        )
        self._entries[key] = text
        if len(self._entries) > self.capacity:
            self._entries.popitem(last=False)
        return text.copy()

    def warm(self, rows: Iterable[GraphRow], max_lane: int, mode: GlyphMode, width: int) -> None:
        """Render rows ahead of the viewport."""
        for row in rows:
            self.render(row, max_lane, mode, width)

    def clear(self) -> None:
        self._entries.clear()
