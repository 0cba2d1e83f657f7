"""
Modal screens: help overlay and single-line prompts.
"""

from datetime import datetime

from rich.text import Text
from textual import events
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Input, Label, Static

from gittree.git_backend.repository import CommitDetails


class HelpScreen(ModalScreen[None]):
    """Key reference generated from the command registry. Closes on any key."""

    DEFAULT_CSS = """
    HelpScreen {
        align: center middle;
    }
    #help-body {
        width: auto;
        height: auto;
        max-height: 90%;
        border: heavy $accent;
        padding: 1 2;
        background: $surface;
    }
    """

    def __init__(self, help_text: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.help_text = help_text

    def compose(self) -> ComposeResult:
        yield Static(Text(self.help_text), id="help-body")

    def on_key(self, event: events.Key) -> None:
        event.stop()
        self.dismiss(None)


class PromptScreen(ModalScreen[str | None]):
    """Ask for one line of text. Enter submits, escape cancels (None)."""

    DEFAULT_CSS = """
    PromptScreen {
        align: center bottom;
    }
    #prompt-box {
        width: 100%;
        height: auto;
        border-top: solid $accent;
        background: $surface;
    }
    #prompt-input {
        border: none;
    }
    """

    def __init__(self, prompt: str, value: str = "", placeholder: str = "", **kwargs) -> None:
        super().__init__(**kwargs)
        self.prompt = prompt
        self.value = value
        self.placeholder = placeholder

    def compose(self) -> ComposeResult:
        with Vertical(id="prompt-box"):
            yield Label(Text(self.prompt, style="bold"))
            yield Input(value=self.value, placeholder=self.placeholder, id="prompt-input")

    def on_mount(self) -> None:
        self.query_one("#prompt-input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.dismiss(event.value)

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            event.stop()
            self.dismiss(None)


def format_details(details: CommitDetails | None) -> Text:
    """Details pane contents for one commit."""
    if details is None:
        return Text("Loading details...", style="dim")

    text = Text()
    text.append("commit ", style="bold")
    text.append(details.oid + "\n", style="yellow")
    if len(details.parent_oids) > 1:
        text.append("Merge: " + " ".join(p[:7] for p in details.parent_oids) + "\n")
    text.append(f"Author: {details.author}\n")
    text.append(f"Date:   {datetime.fromtimestamp(details.author_time):%Y-%m-%d %H:%M:%S}\n")
    if details.committer != details.author:
        text.append(f"Commit: {details.committer}\n", style="dim")
    text.append("\n")
    for line in details.message.rstrip().splitlines():
        text.append(f"    {line}\n")
    text.append("\n")
    for path in details.files:
        text.append(f" {path}\n", style="cyan")
    text.append(
        f" {len(details.files)} files changed, "
        f"{details.insertions} insertions(+), {details.deletions} deletions(-)",
        style="bold",
    )
    return text
