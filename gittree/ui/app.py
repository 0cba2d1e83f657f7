"""
Textual application: graph view, details pane and status line.

The app owns no navigation logic. Keys are translated into Commands through the
CommandRegistry and handed to the Navigator; a frame timer drains the
navigator's inbox and repaints when background results arrived.
"""

import logging
from collections.abc import Callable

from rich.console import RenderableType
from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.widget import Widget
from textual.widgets import Static

from gittree.constants import FRAMES_PER_SECOND
from gittree.git_backend.commit_source import CommitSource
from gittree.git_backend.filters import FilterParams
from gittree.ui.commands import Command, CommandRegistry
from gittree.ui.git_graph.render import RowRenderCache
from gittree.ui.navigator import Mode, Navigator
from gittree.ui.screens import HelpScreen, PromptScreen, format_details
from gittree.ui.tasks import TaskRunner, WorkerTaskRunner

logger = logging.getLogger(__name__)

# Commands that need text from the user before they reach the navigator
PROMPTS = {
    Command.NEW_BRANCH: "New branch name",
    Command.NEW_TAG: "New tag name",
    Command.START_FILTER: "Filter (author:<re> path:<p>... since:<t> until:<t> range:<r> max:<n> words)",
}


class GraphView(Widget):
    """The visible window of graph rows, selection in reverse video."""

    DEFAULT_CSS = """
    GraphView {
        height: 1fr;
        width: 1fr;
    }
    """

    def __init__(self, navigator: Navigator, cache: RowRenderCache, **kwargs) -> None:
        super().__init__(**kwargs)
        self.navigator = navigator
        self.cache = cache

    def render(self) -> RenderableType:
        navigator = self.navigator
        state = navigator.state
        rows = navigator.visible_rows()
        if not rows:
            if navigator.loading:
                return Text("Loading commits...", style="dim")
            return Text("No commits to show", style="dim")

        max_lane = navigator.window_max_lane()
        width = self.size.width
        lines = []
        for offset, row in enumerate(rows):
            line = self.cache.render(row, max_lane, state.glyph_mode, width)
            if state.top + offset == state.selected:
                line.stylize("reverse")
            lines.append(line)

        # Render one page ahead so scrolling down hits the cache
        end = state.top + len(rows)
        self.cache.warm(navigator.rows[end : end + len(rows)], max_lane, state.glyph_mode, width)
        return Text("\n").join(lines)

    def on_resize(self, event: events.Resize) -> None:
        self.navigator.resize(event.size.height, event.size.width)


class GitTreeApp(App):
    """Interactive commit graph browser."""

    TITLE = "gittree"
    CSS = """
    Screen {
        layout: vertical;
        overflow: hidden;
    }
    #main {
        layout: horizontal;
        height: 1fr;
    }
    #details {
        width: 45%;
        border-left: solid $accent;
        padding: 0 1;
        overflow-y: auto;
    }
    #status {
        height: 1;
        padding: 0 1;
        background: $panel;
    }
    """

    def __init__(
        self,
        navigator_factory: Callable[[TaskRunner], Navigator],
        registry: CommandRegistry,
        cache: RowRenderCache,
        params: FilterParams,
        source: CommitSource | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.navigator = navigator_factory(WorkerTaskRunner(self))
        self.registry = registry
        self.cache = cache
        self.params = params
        self.source = source
        self._keymap = self._build_keymap()
        self._help_open = False
        self._graph: GraphView | None = None
        self._details: Static | None = None
        self._status: Static | None = None

    def _build_keymap(self) -> dict[str, Command]:
        keymap: dict[str, Command] = {}
        for spec in self.registry.get_all():
            for key in self.registry.keys_for(spec.command).split(","):
                key = key.strip()
                if key:
                    keymap[key] = spec.command
        return keymap

    def compose(self) -> ComposeResult:
        with Horizontal(id="main"):
            yield GraphView(self.navigator, self.cache, id="graph")
            yield Static(id="details")
        yield Static(id="status")

    def on_mount(self) -> None:
        self._graph = self.query_one("#graph", GraphView)
        self._details = self.query_one("#details", Static)
        self._status = self.query_one("#status", Static)
        self.navigator.start(self.params, self.source)
        self.source = None
        self.set_interval(1 / FRAMES_PER_SECOND, self._drain)
        self._refresh_view()

    def _drain(self) -> None:
        if self.navigator.drain_inbox():
            self._refresh_view()

    def on_key(self, event: events.Key) -> None:
        if len(self.screen_stack) > 1:
            return
        command = self._keymap.get(event.key)
        if command is None and event.character:
            command = self._keymap.get(event.character)
        if command is None:
            return
        event.stop()
        self.action_command(command.value)

    def action_command(self, command_id: str) -> None:
        """Run a command by id, prompting for its argument where one is needed."""
        command = Command(command_id)
        state = self.navigator.state
        prompt = PROMPTS.get(command)
        idle = not state.dispatching and state.mode is not Mode.CONFIRM_PENDING
        has_target = command is Command.START_FILTER or self.navigator.current_row is not None
        if prompt is not None and idle and has_target:
            value = state.filter.to_query() if command is Command.START_FILTER else ""

            def submitted(text: str | None) -> None:
                if text is not None:
                    self._run(command, text)

            self.push_screen(PromptScreen(prompt, value=value), submitted)
            return
        self._run(command)

    def _run(self, command: Command, argument: str | None = None) -> None:
        logger.debug("Command %s %r", command.value, argument)
        self.navigator.handle(command, argument)
        self._refresh_view()

    def _refresh_view(self) -> None:
        state = self.navigator.state
        if state.mode is Mode.EXITING:
            self.exit()
            return

        if state.show_help and not self._help_open:
            self._help_open = True
            self.push_screen(HelpScreen(self.registry.help_text()), self._help_closed)

        if self._graph is None or self._details is None or self._status is None:
            return
        self._details.display = state.show_details
        if state.show_details:
            self._details.update(format_details(state.details))
        self._graph.refresh()
        self._status.update(self._status_line())

    def _help_closed(self, _: None) -> None:
        self._help_open = False
        if self.navigator.state.show_help:
            self.navigator.handle(Command.HELP)
        self._refresh_view()

    def _status_line(self) -> Text:
        navigator = self.navigator
        state = navigator.state
        text = Text(no_wrap=True, overflow="ellipsis")

        if state.mode is Mode.CONFIRM_PENDING:
            text.append(state.status, style="bold red")
            return text

        loaded = len(navigator.rows)
        position = f"{state.selected + 1 if loaded else 0}/{loaded}{'' if navigator.exhausted else '+'}"
        text.append(position, style="bold")
        if navigator.loading:
            text.append(" loading", style="dim")
        text.append(f"  gen {state.generation}", style="dim")
        described = state.filter.describe()
        if described:
            text.append(f"  [{described}]", style="cyan")
        if state.status:
            style = "yellow" if state.dispatching else ""
            text.append(f"  {state.status}", style=style)
        text.append("  ?:help", style="dim")
        return text
