"""
Logical commands for gittree.

Commands form a closed set; the navigator has exactly one handler per command.
Key bindings are registered per command with defaults that settings can
override, and the help screen is generated from the same registry.
"""

from dataclasses import dataclass
from enum import Enum

from gittree.git_backend.actions import ActionKind


class Command(Enum):
    MOVE_UP = "move_up"
    MOVE_DOWN = "move_down"
    JUMP_TO_PARENT = "jump_to_parent"
    JUMP_TO_CHILD = "jump_to_child"
    PAGE_UP = "page_up"
    PAGE_DOWN = "page_down"
    TOP = "top"
    BOTTOM = "bottom"
    OPEN_DETAILS = "open_details"
    CHECKOUT = "checkout"
    RESET = "reset"
    CHERRY_PICK = "cherry_pick"
    REVERT = "revert"
    NEW_BRANCH = "new_branch"
    NEW_TAG = "new_tag"
    START_FILTER = "start_filter"
    TOGGLE_FOLLOW_FILE = "toggle_follow_file"
    TOGGLE_UNICODE = "toggle_unicode"
    HELP = "help"
    QUIT = "quit"
    CONFIRM = "confirm"
    CANCEL = "cancel"


ACTION_COMMANDS: dict[Command, ActionKind] = {
    Command.CHECKOUT: ActionKind.CHECKOUT,
    Command.RESET: ActionKind.RESET,
    Command.CHERRY_PICK: ActionKind.CHERRY_PICK,
    Command.REVERT: ActionKind.REVERT,
    Command.NEW_BRANCH: ActionKind.NEW_BRANCH,
    Command.NEW_TAG: ActionKind.NEW_TAG,
}


@dataclass(frozen=True)
class CommandSpec:
    """Display name, default keys and help category of a command."""

    command: Command
    name: str
    keys: str  # comma separated textual key names
    category: str = "Navigation"


DEFAULT_COMMANDS = [
    CommandSpec(Command.MOVE_UP, "Move up", "k,up"),
    CommandSpec(Command.MOVE_DOWN, "Move down", "j,down"),
    CommandSpec(Command.JUMP_TO_PARENT, "Jump to parent", "h,left"),
    CommandSpec(Command.JUMP_TO_CHILD, "Jump to child", "l,right"),
    CommandSpec(Command.PAGE_UP, "Page up", "pageup"),
    CommandSpec(Command.PAGE_DOWN, "Page down", "pagedown"),
    CommandSpec(Command.TOP, "Top", "g,home"),
    CommandSpec(Command.BOTTOM, "Bottom", "G,end"),
    CommandSpec(Command.OPEN_DETAILS, "Commit details", "enter", "View"),
    CommandSpec(Command.CHECKOUT, "Checkout selected", "c", "Actions"),
    CommandSpec(Command.RESET, "Reset --hard to selected", "x", "Actions"),
    CommandSpec(Command.CHERRY_PICK, "Cherry-pick selected", "p", "Actions"),
    CommandSpec(Command.REVERT, "Revert selected", "r", "Actions"),
    CommandSpec(Command.NEW_BRANCH, "New branch at selected", "b", "Actions"),
    CommandSpec(Command.NEW_TAG, "New tag at selected", "t", "Actions"),
    CommandSpec(Command.START_FILTER, "Filter (author/path/message/date/range)", "slash", "View"),
    CommandSpec(Command.TOGGLE_FOLLOW_FILE, "Toggle follow file", "f", "View"),
    CommandSpec(Command.TOGGLE_UNICODE, "Toggle Unicode lanes", "u", "View"),
    CommandSpec(Command.HELP, "Help", "question_mark", "View"),
    CommandSpec(Command.QUIT, "Quit", "q,escape", "General"),
    CommandSpec(Command.CONFIRM, "Confirm", "y", "General"),
    CommandSpec(Command.CANCEL, "Cancel", "n", "General"),
]


class CommandRegistry:
    """Default key bindings per command plus user overrides."""

    def __init__(self, custom_keys: dict[str, str] | None = None) -> None:
        self._specs: dict[Command, CommandSpec] = {spec.command: spec for spec in DEFAULT_COMMANDS}
        self._custom_keys: dict[Command, str] = {}
        if custom_keys:
            self.load_custom_keys(custom_keys)

    def load_custom_keys(self, keys: dict[str, str]) -> None:
        """Load overrides from settings: {"move_down": "j,down,ctrl+n"}."""
        for command_id, binding in keys.items():
            try:
                command = Command(command_id)
            except ValueError:
                continue
            self._custom_keys[command] = binding

    def keys_for(self, command: Command) -> str:
        return self._custom_keys.get(command, self._specs[command].keys)

    def get(self, command: Command) -> CommandSpec:
        return self._specs[command]

    def get_all(self) -> list[CommandSpec]:
        return list(self._specs.values())

    def get_by_category(self) -> dict[str, list[CommandSpec]]:
        """Get commands grouped by category."""
        result: dict[str, list[CommandSpec]] = {}
        for spec in self._specs.values():
            result.setdefault(spec.category, []).append(spec)
        return result

    def help_text(self) -> str:
        lines = []
        for category, specs in self.get_by_category().items():
            lines.append(category.upper())
            for spec in specs:
                keys = " / ".join(self.keys_for(spec.command).split(","))
                lines.append(f"  {keys:<22} {spec.name}")
            lines.append("")
        return "\n".join(lines).rstrip()
