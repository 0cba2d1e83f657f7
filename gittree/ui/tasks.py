"""
Background task runners.

Commit pulls, details loads and mutations run as independent units of work.
They never touch navigator or layout state; they post their results to the
navigator's inbox, which the UI loop drains once per frame.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from textual.app import App


class TaskRunner(Protocol):
    def spawn(self, task: Callable[[], None], name: str = "") -> None: ...


class WorkerTaskRunner:
    """Runs tasks as textual thread workers."""

    def __init__(self, app: "App") -> None:
        self.app = app

    def spawn(self, task: Callable[[], None], name: str = "") -> None:
        self.app.run_worker(task, name=name or "task", group="gittree", thread=True)
