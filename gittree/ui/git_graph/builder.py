"""
Incremental commit graph layout.

GraphBuilder consumes commit records in source order (children before parents)
and turns each one into a GraphRow. Lane bookkeeping is delegated to a
LaneAllocator: a lane's occupant is the commit expected next in that column.

Per commit:
1. If some lane already waits for the commit, the commit takes the lowest such
   lane. Any other lanes waiting for it converge into it (fork) and are freed.
   Otherwise the commit enters the graph in the lowest free lane.
2. The first parent inherits the commit's lane.
3. Each further parent draws a merge-in connector: to the lane already waiting
   for that parent, or else to the lowest free lane other than the commit's.
4. A root commit frees its lane.
5. Lanes not involved in the row pass straight through.

Parents that the source reports as outside the loaded window, and every lane
still open when the final record of an exhausted source is laid out, end with
a boundary connector instead of an error. A commit's own lane always keeps the
commit marker; when that lane is cut off the row is flagged as truncated.
"""

import logging

from gittree.errors import MalformedRecord
from gittree.ui.git_graph.lanes import LaneAllocator
from gittree.ui.git_graph.types import CommitRecord, ConnectorKind, GraphRow

logger = logging.getLogger(__name__)


class GraphBuilder:
    """Lays out one generation of the commit graph, one record at a time."""

    def __init__(self, generation: int = 0) -> None:
        self.generation = generation
        self.lanes = LaneAllocator()
        self.max_lane = 0
        self.closed = False
        self._seen: set[str] = set()
        self._count = 0

    @property
    def row_count(self) -> int:
        return self._count

    @property
    def active_lanes(self) -> int:
        return self.lanes.active_count

    def advance(self, record: CommitRecord, final: bool = False) -> GraphRow:
        """Lay out the next record.

        Raises MalformedRecord without touching any state if the record has no
        identifier or repeats one already laid out in this generation.
        """
        self._validate(record)

        oid = record.oid
        cells: dict[int, ConnectorKind] = {}
        spans: list[int] = []

        waiting = self.lanes.lanes_of(oid)
        if waiting:
            lane, converging = waiting[0], waiting[1:]
        else:
            lane, converging = self.lanes.allocate(oid), []

        for index in converging:
            cells[index] = ConnectorKind.FORK
            spans.append(index)
            self.lanes.release(index)
        cells[lane] = ConnectorKind.COMMIT

        parents = self._parents(record)
        outside = set(record.boundary_parents)
        merges: list[int] = []
        boundaries: list[int] = []

        if not parents:
            self.lanes.release(lane)
        elif parents[0] in outside:
            # The commit keeps its marker; the renderer draws the cut-off tail
            boundaries.append(lane)
            self.lanes.release(lane)
        else:
            self.lanes.assign(lane, parents[0])

        for parent in parents[1:]:
            if parent in outside:
                # Stub toward a parent we will never see
                stub = self.lanes.allocate(parent, exclude=cells)
                self.lanes.release(stub)
                cells[stub] = ConnectorKind.BOUNDARY
                boundaries.append(stub)
                spans.append(stub)
                continue

            existing = self.lanes.lanes_of(parent)
            target = existing[0] if existing else self.lanes.allocate(parent, exclude=cells)
            cells[target] = ConnectorKind.MERGE if target > lane else ConnectorKind.FORK
            merges.append(target)
            spans.append(target)

        for index in self.lanes.active_lanes():
            cells.setdefault(index, ConnectorKind.VERTICAL)

        for target in spans:
            low, high = sorted((lane, target))
            for index in range(low + 1, high):
                cells.setdefault(index, ConnectorKind.HORIZONTAL)

        if final:
            for index in self.lanes.release_all():
                if index != lane:
                    cells[index] = ConnectorKind.BOUNDARY
                boundaries.append(index)
            self.closed = True

        width = max(cells) + 1
        row = GraphRow(
            generation=self.generation,
            index=self._count,
            lane=lane,
            cells=tuple(cells.get(i, ConnectorKind.NONE) for i in range(width)),
            record=record,
            merges=tuple(merges),
            forks=tuple(converging),
            boundaries=tuple(sorted(set(boundaries))),
        )

        self._seen.add(oid)
        self._count += 1
        self.max_lane = max(self.max_lane, width - 1)
        return row

    def close(self) -> list[int]:
        """Mark the end of the stream without a final row.

        Returns the lanes that were still waiting for commits; they are freed.
        """
        self.closed = True
        return self.lanes.release_all()

    def _validate(self, record: CommitRecord) -> None:
        if self.closed:
            raise MalformedRecord("Record arrived after the end of the stream")
        if not isinstance(record.oid, str) or not record.oid:
            raise MalformedRecord("Record has no identifier")
        if record.oid in self._seen:
            raise MalformedRecord(f"Duplicate record {record.oid}")

    @staticmethod
    def _parents(record: CommitRecord) -> list[str]:
        parents: list[str] = []
        for parent in record.parent_oids:
            if not parent or parent == record.oid or parent in parents:
                logger.debug("Ignoring parent %r of %s", parent, record.oid)
                continue
            parents.append(parent)
        return parents
