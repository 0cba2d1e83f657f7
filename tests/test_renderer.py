"""Tests for row rendering."""

from rich.cells import cell_len
from rich.style import Style

from gittree.git_backend.commit_source import MemoryCommitSource
from gittree.git_backend.filters import FilterEngine, FilterParams
from gittree.ui.git_graph.builder import GraphBuilder
from gittree.ui.git_graph.render import (
    GLYPHS,
    GlyphMode,
    RowRenderCache,
    format_relative,
    ref_style,
    ref_styles_from,
    render_graph,
    render_row,
)
from gittree.ui.git_graph.types import ConnectorKind


def merge_rows(make_record):
    builder = GraphBuilder()
    records = [
        make_record("m000000", ("a000000", "b000000"), refs=("HEAD -> main", "tag: v1")),
        make_record("a000000", ("base000",)),
        make_record("b000000", ("base000",)),
        make_record("base000"),
    ]
    return [builder.advance(r) for r in records]


class TestGlyphs:
    """Glyph tables for both modes."""

    def test_every_connector_has_a_single_cell_glyph(self):
        for mode in GlyphMode:
            assert set(GLYPHS[mode]) == set(ConnectorKind)
            for text in GLYPHS[mode].values():
                assert cell_len(text) == 1

    def test_ascii_glyphs(self):
        ascii_glyphs = GLYPHS[GlyphMode.ASCII]
        assert ascii_glyphs[ConnectorKind.COMMIT] == "*"
        assert ascii_glyphs[ConnectorKind.VERTICAL] == "|"
        assert ascii_glyphs[ConnectorKind.MERGE] == "\\"
        assert ascii_glyphs[ConnectorKind.FORK] == "/"

    def test_graph_column_for_merge(self, make_record):
        rows = merge_rows(make_record)
        rendered = [render_graph(row, 1, GlyphMode.ASCII, color=False).plain for row in rows]

        assert rendered == ["*\\ ", "*| ", "|* ", "*/ "]

    def test_graph_column_pads_to_max_lane(self, make_record):
        rows = merge_rows(make_record)
        assert render_graph(rows[3], 3, GlyphMode.UNICODE, color=False).plain == "●╱   "


class TestRenderRow:
    """Full rows: graph, hash, author, date, refs, subject."""

    def test_columns(self, make_record):
        row = GraphBuilder().advance(make_record("abc1234def", subject="Fix"))
        text = render_row(row, 0, GlyphMode.ASCII, 200, date_format="%Y", color=False)

        assert text.plain == "*  abc1234 Ann              2023 Fix"

    def test_refs_are_shown_before_subject(self, make_record):
        row = merge_rows(make_record)[0]
        text = render_row(row, 1, GlyphMode.ASCII, 200, color=False)

        assert "(HEAD -> main, tag: v1) commit m000000" in text.plain

    def test_ascii_and_unicode_have_same_width(self, make_record):
        for row in merge_rows(make_record):
            ascii_text = render_row(row, 1, GlyphMode.ASCII, 120, color=False, now=0)
            unicode_text = render_row(row, 1, GlyphMode.UNICODE, 120, color=False, now=0)

            assert cell_len(ascii_text.plain) == cell_len(unicode_text.plain)
            assert ascii_text.plain[2:] == unicode_text.plain[2:]

    def test_truncated_to_width(self, make_record):
        row = merge_rows(make_record)[0]
        for width in (0, 5, 20, 40):
            text = render_row(row, 1, GlyphMode.UNICODE, width)
            assert cell_len(text.plain) <= width

    def test_wide_author_names_keep_alignment(self, make_record):
        narrow = GraphBuilder().advance(make_record("a000000", author="Ann"))
        wide = GraphBuilder().advance(make_record("b000000", author="山田太郎"))

        narrow_text = render_row(narrow, 0, GlyphMode.ASCII, 200, date_format="%Y", color=False)
        wide_text = render_row(wide, 0, GlyphMode.ASCII, 200, date_format="%Y", color=False)

        assert cell_len(narrow_text.plain) == cell_len(wide_text.plain)

    def test_relative_dates(self):
        now = 1_700_000_000
        assert format_relative(now - 30, now) == "just now"
        assert format_relative(now - 3600, now) == "1 hour ago"
        assert format_relative(now - 3 * 86400, now) == "3 days ago"
        assert format_relative(now - 400 * 86400, now) == "1 year ago"


class TestRefStyles:
    """Ref badge colors come from settings."""

    def test_defaults(self):
        assert ref_style("HEAD -> main").bold
        assert ref_style("tag: v1") != ref_style("main")

    def test_overrides(self):
        styles = ref_styles_from({"tag": "magenta", "unknown": "red"})

        assert ref_style("tag: v1", styles) == Style.parse("magenta")
        assert "unknown" not in styles


class TestRowRenderCache:
    """Rendered rows are cached per generation and display options."""

    def test_returns_independent_copies(self, make_record):
        row = merge_rows(make_record)[0]
        cache = RowRenderCache(color=False)

        first = cache.render(row, 1, GlyphMode.ASCII, 80)
        first.stylize("reverse")
        second = cache.render(row, 1, GlyphMode.ASCII, 80)

        assert first.plain == second.plain
        assert not second.spans

    def test_evicts_oldest_entries(self, make_record):
        rows = merge_rows(make_record)
        cache = RowRenderCache(capacity=2)
        cache.warm(rows, 1, GlyphMode.ASCII, 80)

        assert len(cache._entries) == 2
        cache.clear()
        assert len(cache._entries) == 0


class TestCappedHistory:
    """A max-commits cap ends the graph in a boundary next to the last commit."""

    def test_cap_of_two_on_linear_history(self, make_linear):
        config = FilterEngine().build(FilterParams(max_commits=2))
        batch = MemoryCommitSource(make_linear(5), config).pull(10)
        assert batch.exhausted

        builder = GraphBuilder()
        records = batch.records
        rows = [
            builder.advance(record, final=i == len(records) - 1)
            for i, record in enumerate(records)
        ]

        assert len(rows) == 2
        assert all(row.cells == (ConnectorKind.COMMIT,) for row in rows)
        assert [render_graph(row, 0, GlyphMode.ASCII, color=False).plain for row in rows] == [
            "* ",
            "*~",
        ]
        assert render_graph(rows[1], 0, GlyphMode.UNICODE, color=False).plain == "●⋯"
