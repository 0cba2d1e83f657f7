"""Types and constants for git graph layout."""

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class CommitRecord:
    """A commit as produced by a commit source."""

    oid: str
    short_id: str
    parent_oids: tuple[str, ...]
    author_name: str
    author_email: str
    author_time: int
    commit_time: int
    subject: str
    refs: tuple[str, ...] = ()
    # Parents known to lie outside the loaded/filtered window
    boundary_parents: tuple[str, ...] = ()


class ConnectorKind(Enum):
    """What a single lane cell of a row draws."""

    NONE = "none"
    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"
    FORK = "fork"  # diagonal from upper-right to lower-left
    MERGE = "merge"  # diagonal from upper-left to lower-right
    COMMIT = "commit"
    BOUNDARY = "boundary"


@dataclass(frozen=True)
class GraphRow:
    """
    The laid-out form of one commit.

    `cells` holds one connector per lane from 0 up to the widest lane this row
    touches. `merges` lists the lanes that carry a merge-in connector, `forks`
    the lanes that converge into this commit and end here, and `boundaries` the
    lanes whose history continues outside the loaded window.
    """

    generation: int
    index: int
    lane: int
    cells: tuple[ConnectorKind, ...]
    record: CommitRecord
    merges: tuple[int, ...] = ()
    forks: tuple[int, ...] = ()
    boundaries: tuple[int, ...] = field(default=())

    @property
    def oid(self) -> str:
        return self.record.oid

    @property
    def truncated(self) -> bool:
        """True when the commit's own line of history continues outside the window."""
        return self.lane in self.boundaries

    @property
    def width(self) -> int:
        return len(self.cells)

    def cell(self, lane: int) -> ConnectorKind:
        if 0 <= lane < len(self.cells):
            return self.cells[lane]
        return ConnectorKind.NONE


# Colors for different lanes, as rich style colors
LANE_COLORS = [
    "#4CAF50",  # Green
    "#2196F3",  # Blue
    "#FF9800",  # Orange
    "#9C27B0",  # Purple
    "#F44336",  # Red
    "#00BCD4",  # Cyan
    "#E91E63",  # Pink
    "#795548",  # Brown
]


def get_lane_color(lane: int) -> str:
    """Get color for a lane."""
    return LANE_COLORS[lane % len(LANE_COLORS)]
