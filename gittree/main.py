#!/usr/bin/env python3
"""
gittree - browse a repository's commit graph in the terminal
"""

import argparse
import logging
import sys
from pathlib import Path

from gittree import __version__
from gittree.config.settings import Settings
from gittree.constants import APP_NAME
from gittree.errors import InvalidFilter, RepositoryNotFound
from gittree.git_backend.actions import RepositoryBackend
from gittree.git_backend.commit_source import RepositoryCommitSource
from gittree.git_backend.filters import FilterEngine, FilterParams, SourceConfig
from gittree.git_backend.repository import GitTreeRepository
from gittree.ui.app import GitTreeApp
from gittree.ui.commands import CommandRegistry
from gittree.ui.dispatcher import ActionDispatcher
from gittree.ui.git_graph.render import RowRenderCache, ref_styles_from
from gittree.ui.navigator import Navigator, NavigatorState
from gittree.ui.tasks import TaskRunner

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Interactive commit graph browser for git repositories",
    )
    parser.add_argument("repo", nargs="?", help="Repository path (default: current directory)")
    parser.add_argument("--unicode", action="store_true", help="Draw lanes with Unicode glyphs")
    parser.add_argument("--no-color", action="store_true", help="Disable colors")
    parser.add_argument("--since", help="Only commits newer than DATE (2024-05-01, 2w, 3d)")
    parser.add_argument("--until", help="Only commits older than DATE")
    parser.add_argument("--author", help="Only commits whose author matches PATTERN")
    parser.add_argument("--grep", help="Only commits whose message matches PATTERN")
    parser.add_argument(
        "--path", action="append", help="Only commits touching PATH (repeatable)"
    )
    parser.add_argument("--follow", action="store_true", help="Follow renames of --path")
    parser.add_argument("--range", dest="rev_range", help="Rev range (A, A..B, A...B, ^A B)")
    parser.add_argument("--max-commits", type=int, help="Show at most N commits")
    parser.add_argument("--yes", action="store_true", help="Don't confirm destructive actions")
    parser.add_argument("--config", type=Path, help="Settings file")
    parser.add_argument("--log-file", help="Write a debug log to FILE")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def setup_logging(log_file: str, level: str) -> None:
    """Log to a file if one is configured. The terminal belongs to the UI."""
    root = logging.getLogger()
    if not log_file:
        root.addHandler(logging.NullHandler())
        return

    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))


def filter_params(args: argparse.Namespace, engine: FilterEngine) -> FilterParams:
    defaults = engine.defaults()
    return FilterParams(
        author=args.author,
        message=args.grep,
        paths=tuple(args.path or ()),
        since=args.since,
        until=args.until,
        rev_range=args.rev_range or defaults.rev_range,
        max_commits=defaults.max_commits if args.max_commits is None else args.max_commits,
        follow=args.follow,
    )


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    try:
        settings = Settings(args.config)
    except (OSError, ValueError) as e:
        print(f"{APP_NAME}: cannot read settings: {e}", file=sys.stderr)
        sys.exit(1)

    if args.log_file:
        settings.set("logging.file", args.log_file)
    setup_logging(str(settings.get("logging.file", "")), str(settings.get("logging.level", "WARNING")))

    try:
        repo = GitTreeRepository(args.repo)
    except RepositoryNotFound as e:
        print(f"{APP_NAME}: {e}", file=sys.stderr)
        sys.exit(1)

    all_refs = bool(settings.get("git.all_refs", True))
    scan_budget = settings.get_scan_budget()
    engine = FilterEngine(
        default_range=str(settings.get("git.default_range", "")),
        default_max_commits=settings.get_max_commits(),
    )

    def source_factory(config: SourceConfig) -> RepositoryCommitSource:
        return RepositoryCommitSource(repo, config, all_refs=all_refs, scan_budget=scan_budget)

    params = filter_params(args, engine)
    try:
        source = source_factory(engine.build(params))
    except InvalidFilter as e:
        print(f"{APP_NAME}: {e}", file=sys.stderr)
        sys.exit(2)

    confirm = bool(settings.get("actions.confirm_dangerous", True)) and not args.yes
    color = not (args.no_color or settings.get("display.no_color", False))
    unicode = args.unicode or bool(settings.get("display.unicode", False))
    backend = RepositoryBackend(repo)

    def navigator_factory(runner: TaskRunner) -> Navigator:
        return Navigator(
            source_factory,
            engine,
            ActionDispatcher(backend, runner),
            runner,
            details_loader=repo.commit_details,
            confirm_dangerous=confirm,
            read_ahead=settings.get_read_ahead(),
            batch_size=settings.get_batch_size(),
            state=NavigatorState(unicode=unicode),
        )

    cache = RowRenderCache(
        date_format=str(settings.get("display.date_format", "%Y-%m-%d %H:%M")),
        color=color,
        ref_styles=ref_styles_from(settings.get("colors", {}) or {}),
    )
    app = GitTreeApp(
        navigator_factory,
        CommandRegistry(settings.get_custom_keys()),
        cache,
        params,
        source,
    )
    logger.info("Starting in %s", repo.workdir or repo.repo.path)
    app.run()


if __name__ == "__main__":
    main()
