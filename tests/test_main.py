"""Tests for command line handling."""

from unittest.mock import patch

import pytest

from gittree.git_backend.filters import FilterEngine
from gittree.main import filter_params, main, parse_args


class TestParseArgs:
    """Flags map onto filter parameters."""

    def test_filter_flags(self):
        args = parse_args(
            ["--author", "ann", "--path", "src", "--follow", "--max-commits", "10", "repo"]
        )
        params = filter_params(args, FilterEngine(default_range="main"))

        assert args.repo == "repo"
        assert params.author == "ann"
        assert params.paths == ("src",)
        assert params.follow
        assert params.max_commits == 10
        assert params.rev_range == "main"

    def test_defaults(self):
        args = parse_args([])
        params = filter_params(args, FilterEngine(default_max_commits=7))

        assert args.repo is None
        assert not args.unicode
        assert params.max_commits == 7
        assert params.rev_range is None


class TestMain:
    """Fatal startup errors exit before the UI starts."""

    def test_not_a_repository(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc:
            main([str(tmp_path), "--config", str(tmp_path / "settings.json")])

        assert exc.value.code == 1
        assert "Not a git repository" in capsys.readouterr().err

    def test_invalid_filter(self, repo_builder, tmp_path, capsys):
        repo_builder.commit("first", {"a.txt": "one"})

        with pytest.raises(SystemExit) as exc:
            main([str(repo_builder.path), "--since", "someday", "--config", str(tmp_path / "s.json")])

        assert exc.value.code == 2
        assert "someday" in capsys.readouterr().err

    def test_starts_app(self, repo_builder, tmp_path):
        repo_builder.commit("first", {"a.txt": "one"})

        with patch("gittree.main.GitTreeApp") as app_class:
            main([str(repo_builder.path), "--unicode", "--yes", "--config", str(tmp_path / "s.json")])

        app_class.return_value.run.assert_called_once()
        navigator_factory = app_class.call_args.args[0]
        navigator = navigator_factory(None)
        assert navigator.state.unicode
        assert not navigator.confirm_dangerous

    def test_flags_are_not_persisted(self, repo_builder, tmp_path):
        repo_builder.commit("first", {"a.txt": "one"})
        config = tmp_path / "s.json"

        with patch("gittree.main.GitTreeApp"):
            main([str(repo_builder.path), "--unicode", "--no-color", "--config", str(config)])

        assert not config.exists()

    def test_scan_budget_from_settings(self, repo_builder, tmp_path):
        repo_builder.commit("first", {"a.txt": "one"})
        config = tmp_path / "s.json"
        config.write_text('{"navigation": {"scan_budget": 25}}')

        with patch("gittree.main.GitTreeApp") as app_class:
            main([str(repo_builder.path), "--config", str(config)])

        source = app_class.call_args.args[4]
        assert source.scan_budget == 25
