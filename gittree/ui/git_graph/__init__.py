"""Git graph layout and rendering components."""

from gittree.ui.git_graph.builder import GraphBuilder
from gittree.ui.git_graph.lanes import LaneAllocator, LaneSlot
from gittree.ui.git_graph.render import GlyphMode, RowRenderCache, render_row
from gittree.ui.git_graph.types import CommitRecord, ConnectorKind, GraphRow

__all__ = [
    "CommitRecord",
    "ConnectorKind",
    "GlyphMode",
    "GraphBuilder",
    "GraphRow",
    "LaneAllocator",
    "LaneSlot",
    "RowRenderCache",
    "render_row",
]
