"""
Viewport navigation state machine.

The Navigator owns NavigatorState, the materialized rows of the current
generation and the GraphBuilder laying them out. Only the UI loop calls into
it: handle() for commands and drain_inbox() once per frame. Background work
(commit pulls, details loads, mutations) reports back through the inbox with
generation-stamped messages; results for an older generation are dropped.

Rows are materialized on demand: enough to fill the viewport plus a read-ahead
margin, or more when a move, jump or Bottom needs rows that aren't loaded yet.
"""

import logging
import queue
import sys
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from gittree.constants import DEFAULT_BATCH_SIZE, DEFAULT_READ_AHEAD
from gittree.errors import DispatcherBusy, InvalidFilter, MalformedRecord
from gittree.git_backend.actions import ActionKind, ActionRequest
from gittree.git_backend.commit_source import Batch, CommitSource
from gittree.git_backend.filters import FilterEngine, FilterParams, SourceConfig
from gittree.git_backend.repository import CommitDetails
from gittree.ui.commands import ACTION_COMMANDS, Command
from gittree.ui.dispatcher import ActionDispatcher, ActionFinished
from gittree.ui.git_graph.builder import GraphBuilder
from gittree.ui.git_graph.render import GlyphMode
from gittree.ui.git_graph.types import GraphRow
from gittree.ui.tasks import TaskRunner

logger = logging.getLogger(__name__)

SourceFactory = Callable[[SourceConfig], CommitSource]
DetailsLoader = Callable[[str], CommitDetails | None]


class Mode(Enum):
    IDLE = "idle"
    LOADING = "loading"
    CONFIRM_PENDING = "confirm_pending"
    EXITING = "exiting"


@dataclass
class NavigatorState:
    """Everything the view needs to draw a frame."""

    generation: int = 0
    selected: int = 0
    top: int = 0
    height: int = 20
    width: int = 80
    filter: FilterParams = field(default_factory=FilterParams)
    unicode: bool = False
    pending: ActionRequest | None = None
    mode: Mode = Mode.IDLE
    dispatching: bool = False
    show_help: bool = False
    show_details: bool = False
    details: CommitDetails | None = None
    status: str = ""

    @property
    def glyph_mode(self) -> GlyphMode:
        return GlyphMode.UNICODE if self.unicode else GlyphMode.ASCII


@dataclass(frozen=True)
class RowsLoaded:
    generation: int
    batch: Batch


@dataclass(frozen=True)
class LoadFailed:
    generation: int
    error: str


@dataclass(frozen=True)
class DetailsLoaded:
    generation: int
    oid: str
    details: CommitDetails | None


class Navigator:
    """Input-driven state machine over the lazily materialized graph."""

    def __init__(
        self,
        source_factory: SourceFactory,
        filter_engine: FilterEngine,
        dispatcher: ActionDispatcher,
        runner: TaskRunner,
        details_loader: DetailsLoader | None = None,
        confirm_dangerous: bool = True,
        read_ahead: int = DEFAULT_READ_AHEAD,
        batch_size: int = DEFAULT_BATCH_SIZE,
        state: NavigatorState | None = None,
    ) -> None:
        self.source_factory = source_factory
        self.filter_engine = filter_engine
        self.dispatcher = dispatcher
        self.runner = runner
        self.details_loader = details_loader
        self.confirm_dangerous = confirm_dangerous
        self.read_ahead = max(0, read_ahead)
        self.batch_size = max(1, batch_size)
        self.state = state or NavigatorState()

        self.inbox: queue.SimpleQueue[Any] = queue.SimpleQueue()
        self.rows: list[GraphRow] = []
        self.builder = GraphBuilder(self.state.generation)
        self.exhausted = False

        self._index: dict[str, int] = {}
        self._source: CommitSource | None = None
        self._loading_generation: int | None = None
        self._wanted = 0
        # Deferred selection work, resolved as rows arrive
        self._target: int | None = None
        self._jump_oid: str | None = None
        self._reselect_oid: str | None = None
        self._reselect_limit = 0

        self._handlers: dict[Command, Callable[[Any], None]] = {
            Command.MOVE_UP: lambda _: self._move_to(self.state.selected - 1),
            Command.MOVE_DOWN: lambda _: self._move_to(self.state.selected + 1),
            Command.JUMP_TO_PARENT: self._jump_to_parent,
            Command.JUMP_TO_CHILD: self._jump_to_child,
            Command.PAGE_UP: lambda _: self._move_to(self.state.selected - self.state.height),
            Command.PAGE_DOWN: lambda _: self._move_to(self.state.selected + self.state.height),
            Command.TOP: lambda _: self._move_to(0),
            Command.BOTTOM: lambda _: self._move_to(sys.maxsize),
            Command.OPEN_DETAILS: self._toggle_details,
            Command.START_FILTER: self._start_filter,
            Command.TOGGLE_FOLLOW_FILE: self._toggle_follow,
            Command.TOGGLE_UNICODE: self._toggle_unicode,
            Command.HELP: self._toggle_help,
            Command.QUIT: self._quit,
            Command.CONFIRM: self._confirm,
            Command.CANCEL: self._cancel,
        }
        for command, kind in ACTION_COMMANDS.items():
            self._handlers[command] = self._action_handler(kind)

        missing = set(Command) - set(self._handlers)
        if missing:
            raise RuntimeError(f"Commands without handler: {sorted(c.value for c in missing)}")

    # --- Public API -------------------------------------------------------

    @property
    def current_row(self) -> GraphRow | None:
        if 0 <= self.state.selected < len(self.rows):
            return self.rows[self.state.selected]
        return None

    @property
    def loading(self) -> bool:
        return self._loading_generation == self.state.generation

    def start(self, params: FilterParams | None = None, source: CommitSource | None = None) -> None:
        """Build the first generation. Raises InvalidFilter for a bad filter."""
        params = params or self.filter_engine.defaults()
        if source is None:
            self.apply_filter(params)
        else:
            self._switch_generation(params, source)

    def handle(self, command: Command, argument: Any = None) -> None:
        """Process one logical command from the input loop."""
        state = self.state
        if state.mode is Mode.EXITING:
            return
        if state.dispatching:
            # Mutations can't be interrupted; input waits until they resolve
            request = self.dispatcher.outstanding
            state.status = f"Busy: {request.describe()}" if request else "Busy"
            return
        if state.mode is Mode.CONFIRM_PENDING and command not in (
            Command.CONFIRM,
            Command.CANCEL,
            Command.QUIT,
        ):
            return

        self._handlers[command](argument)
        self._update_mode()

    def drain_inbox(self) -> bool:
        """Apply all queued background results. Returns True if any arrived."""
        changed = False
        while True:
            try:
                message = self.inbox.get_nowait()
            except queue.Empty:
                break
            changed = True
            if isinstance(message, RowsLoaded):
                self._on_rows_loaded(message)
            elif isinstance(message, LoadFailed):
                self._on_load_failed(message)
            elif isinstance(message, DetailsLoaded):
                self._on_details_loaded(message)
            elif isinstance(message, ActionFinished):
                self._on_action_finished(message)
            else:
                logger.warning("Unknown inbox message %r", message)
        if changed:
            self._update_mode()
        return changed

    def resize(self, height: int, width: int) -> None:
        self.state.height = max(1, height)
        self.state.width = max(1, width)
        self._scroll()

    def visible_rows(self) -> list[GraphRow]:
        top = self.state.top
        return self.rows[top : top + self.state.height]

    def window_max_lane(self) -> int:
        rows = self.visible_rows()
        return max((row.width - 1 for row in rows), default=0)

    def apply_filter(self, params: FilterParams) -> None:
        """Start a new generation for params. Raises InvalidFilter, changing nothing."""
        config = self.filter_engine.build(params)
        source = self.source_factory(config)
        self._switch_generation(params, source)

    def refresh(self) -> None:
        """Rebuild the graph with the active filter, keeping the selected commit."""
        row = self.current_row
        try:
            source = self.source_factory(self.filter_engine.build(self.state.filter))
        except InvalidFilter as e:
            self.state.status = f"Cannot refresh: {e}"
            return
        # New commits can push the old selection down; look a batch past where it was
        self._switch_generation(
            self.state.filter,
            source,
            reselect=row.oid if row else None,
            reselect_limit=self.state.selected + self.batch_size + 1,
        )

    # --- Generations and loading -------------------------------------------

    def _switch_generation(
        self,
        params: FilterParams,
        source: CommitSource,
        reselect: str | None = None,
        reselect_limit: int = 0,
    ) -> None:
        state = self.state
        state.generation += 1
        state.filter = params
        state.selected = 0
        state.top = 0
        state.details = None

        self.builder = GraphBuilder(state.generation)
        self.rows = []
        self._index = {}
        self.exhausted = False
        self._source = source
        self._loading_generation = None
        self._wanted = 0
        self._target = None
        self._jump_oid = None
        self._reselect_oid = reselect
        self._reselect_limit = reselect_limit

        logger.debug("Generation %d: %s", state.generation, params.describe() or "no filter")
        self._request(state.height + self.read_ahead)
        self._update_mode()

    def _request(self, count: int) -> None:
        self._wanted = max(self._wanted, count)
        self._pump()

    def _pump(self) -> None:
        if self.exhausted or self._source is None or self.loading:
            return
        missing = self._wanted - len(self.rows)
        if missing <= 0:
            return

        count = min(max(missing, self.read_ahead, 1), self.batch_size)
        generation = self.state.generation
        source = self._source
        self._loading_generation = generation

        def task() -> None:
            try:
                batch = source.pull(count)
            except Exception as e:
                logger.exception("Loading commits failed")
                self.inbox.put(LoadFailed(generation, str(e)))
                return
            self.inbox.put(RowsLoaded(generation, batch))

        self.runner.spawn(task, name=f"pull-{generation}")

    def _on_rows_loaded(self, message: RowsLoaded) -> None:
        if message.generation != self.state.generation:
            logger.debug("Dropping rows from stale generation %d", message.generation)
            return
        self._loading_generation = None

        records = message.batch.records
        for i, record in enumerate(records):
            final = message.batch.exhausted and i == len(records) - 1
            try:
                row = self.builder.advance(record, final=final)
            except MalformedRecord as e:
                logger.warning("Skipping malformed record: %s", e)
                continue
            self._index[row.oid] = len(self.rows)
            self.rows.append(row)

        if message.batch.exhausted:
            self.exhausted = True
            if not self.builder.closed:
                self.builder.close()
            if not self.rows:
                self.state.status = "No commits match the current filter"

        self._settle()

    def _on_load_failed(self, message: LoadFailed) -> None:
        if message.generation != self.state.generation:
            return
        self._loading_generation = None
        self.exhausted = True
        self.state.status = f"Loading failed: {message.error}"
        self._target = None
        self._jump_oid = None

    def _settle(self) -> None:
        """Resolve deferred selection work against the rows loaded so far."""
        if self._reselect_oid is not None:
            index = self._index.get(self._reselect_oid)
            if index is not None:
                self._reselect_oid = None
                self._select(index)
            elif self.exhausted or len(self.rows) >= self._reselect_limit:
                logger.debug("Commit %s not found after refresh", self._reselect_oid)
                self._reselect_oid = None
            else:
                self._request(min(self._reselect_limit, len(self.rows) + self.batch_size))

        if self._jump_oid is not None:
            index = self._index.get(self._jump_oid)
            if index is not None:
                self._jump_oid = None
                self._select(index)
            elif self.exhausted:
                self._jump_oid = None
                self.state.status = "Parent is outside the loaded history"
            else:
                self._request(len(self.rows) + self.batch_size)

        if self._target is not None:
            if self._target < len(self.rows):
                target, self._target = self._target, None
                self._select(target)
            elif self.exhausted:
                self._target = None
                if self.rows:
                    self._select(len(self.rows) - 1)
            else:
                self._request(min(self._target + 1, len(self.rows) + self.batch_size))

        self._pump()

    # --- Selection ---------------------------------------------------------

    def _select(self, index: int) -> None:
        previous = self.current_row
        self.state.selected = index
        self._scroll()
        row = self.current_row
        if self.state.show_details and row is not previous:
            self._load_details()

    def _scroll(self) -> None:
        state = self.state
        if state.selected < state.top:
            state.top = state.selected
        elif state.selected >= state.top + state.height:
            state.top = state.selected - state.height + 1
        self._request(state.top + state.height + self.read_ahead)

    def _move_to(self, target: int) -> None:
        target = max(0, target)
        self._target = None
        if target < len(self.rows):
            self._select(target)
        elif self.exhausted:
            if self.rows:
                self._select(len(self.rows) - 1)
        else:
            # Past the materialized tail: load, then move
            self._target = target
            self._request(min(target + 1, len(self.rows) + self.batch_size))

    def _jump_to_parent(self, _: Any) -> None:
        row = self.current_row
        if row is None:
            return
        parents = row.record.parent_oids
        if not parents:
            self.state.status = "Root commit has no parent"
            return
        parent = parents[0]
        if parent in row.record.boundary_parents:
            self.state.status = "Parent is outside the loaded history"
            return

        index = self._index.get(parent)
        if index is not None:
            self._select(index)
        elif self.exhausted:
            self.state.status = "Parent is outside the loaded history"
        else:
            self._jump_oid = parent
            self._request(len(self.rows) + self.batch_size)

    def _jump_to_child(self, _: Any) -> None:
        row = self.current_row
        if row is None:
            return
        # Children always precede their parents in source order
        for index in range(self.state.selected - 1, -1, -1):
            if row.oid in self.rows[index].record.parent_oids:
                self._select(index)
                return
        self.state.status = "No child in the loaded history"

    # --- View toggles ------------------------------------------------------

    def _toggle_details(self, _: Any) -> None:
        self.state.show_details = not self.state.show_details
        self.state.details = None
        if self.state.show_details:
            self._load_details()

    def _load_details(self) -> None:
        row = self.current_row
        self.state.details = None
        if row is None or self.details_loader is None:
            return
        generation = self.state.generation
        oid = row.oid
        loader = self.details_loader

        def task() -> None:
            try:
                details = loader(oid)
            except Exception:
                logger.exception("Loading details for %s failed", oid)
                details = None
            self.inbox.put(DetailsLoaded(generation, oid, details))

        self.runner.spawn(task, name="details")

    def _on_details_loaded(self, message: DetailsLoaded) -> None:
        row = self.current_row
        if message.generation != self.state.generation or row is None or row.oid != message.oid:
            return
        self.state.details = message.details

    def _toggle_unicode(self, _: Any) -> None:
        self.state.unicode = not self.state.unicode

    def _toggle_help(self, _: Any) -> None:
        self.state.show_help = not self.state.show_help

    def _start_filter(self, argument: Any) -> None:
        if argument is None:
            return
        try:
            if isinstance(argument, FilterParams):
                params = argument
            else:
                params = self.filter_engine.parse_query(str(argument))
                current = self.state.filter
                if current.follow and params.paths and params.paths == current.paths:
                    params = replace(params, follow=True)
            self.apply_filter(params)
        except InvalidFilter as e:
            self.state.status = f"Invalid filter: {e}"
            return
        described = params.describe()
        self.state.status = f"Filter: {described}" if described else "Filter cleared"

    def _toggle_follow(self, _: Any) -> None:
        if len(self.state.filter.paths) != 1:
            self.state.status = "Following needs exactly one path filter (path:<file>)"
            return
        params = self.state.filter.toggled_follow()
        try:
            self.apply_filter(params)
        except InvalidFilter as e:
            self.state.status = f"Invalid filter: {e}"
            return
        self.state.status = "Following renames" if params.follow else "Not following renames"

    def _quit(self, _: Any) -> None:
        self.state.pending = None
        self.state.mode = Mode.EXITING

    # --- Actions -----------------------------------------------------------

    def _action_handler(self, kind: ActionKind) -> Callable[[Any], None]:
        return lambda argument: self._invoke(kind, argument)

    def _invoke(self, kind: ActionKind, argument: Any) -> None:
        row = self.current_row
        if row is None:
            self.state.status = "No commit selected"
            return
        name = str(argument).strip() if argument else None
        if kind.needs_name and not name:
            self.state.status = f"{kind.value}: a name is required"
            return

        request = ActionRequest(kind, row.oid, name)
        if kind.destructive and self.confirm_dangerous:
            self.state.pending = request
            self.state.status = f"Really {request.describe()}? (y/n)"
            return
        self._dispatch(request)

    def _confirm(self, _: Any) -> None:
        request = self.state.pending
        if request is None:
            return
        self.state.pending = None
        self._dispatch(request)

    def _cancel(self, _: Any) -> None:
        if self.state.pending is None:
            return
        self.state.pending = None
        self.state.status = "Cancelled"

    def _dispatch(self, request: ActionRequest) -> None:
        try:
            self.dispatcher.submit(request, self.inbox.put)
        except DispatcherBusy as e:
            self.state.status = str(e)
            return
        self.state.dispatching = True
        self.state.status = f"Running {request.describe()}..."

    def _on_action_finished(self, message: ActionFinished) -> None:
        self.dispatcher.complete(message.request)
        self.state.dispatching = False
        if message.error is not None:
            self.state.status = f"{message.request.kind.value} failed: {message.error}"
            return
        self.state.status = message.message or "Done"
        self.refresh()

    def _update_mode(self) -> None:
        state = self.state
        if state.mode is Mode.EXITING:
            return
        if state.pending is not None:
            state.mode = Mode.CONFIRM_PENDING
        elif self.loading:
            state.mode = Mode.LOADING
        else:
            state.mode = Mode.IDLE
