"""Tests for the bookstack-sync command line interface."""

from unittest.mock import patch

import pytest

from bookstack_sync.cli import (
    EXIT_CONFIG_ERROR,
    EXIT_OK,
    EXIT_SYNC_ERRORS,
    build_parser,
    main,
    prompt_conflict,
)
from bookstack_sync.config_schema import build_config
from bookstack_sync.core.client import BookStackAPIError
from bookstack_sync.sync.models import ConflictDecision, ConflictInfo
from bookstack_sync.sync.resolver import PendingDecision


@pytest.fixture
def cli_env(fake_client, monkeypatch):
    """Run main() against the in-memory BookStack with logging untouched."""
    for name in ("BOOKSTACK_URL", "BOOKSTACK_TOKEN_ID", "BOOKSTACK_TOKEN_SECRET", "BOOKSTACK_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    with (
        patch("bookstack_sync.cli.setup_logging"),
        patch("bookstack_sync.cli.BookStackClient", return_value=fake_client),
    ):
        yield fake_client


def _unified(tmp_path, books, **sync):
    return build_config(
        {
            "bookstack": {
                "url": "https://docs.example.com",
                "token_id": "id",
                "token_secret": "secret",
            },
            "sync": {"folder": str(tmp_path / "vault"), "books": books, **sync},
        }
    )


def _run(argv, unified):
    with patch("bookstack_sync.cli._load_unified", return_value=unified):
        return main(argv)


def _conflict() -> ConflictInfo:
    return ConflictInfo(
        page_id=42,
        page_name="Install",
        local_path="/vault/Handbook/Install.md",
        local_content="local body",
        last_synced="2024-05-02T10:00:00+00:00",
        local_modified="2024-05-02T11:00:00+00:00",
        remote_updated="2024-05-02T12:00:00Z",
    )


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class TestParser:
    def test_sync_defaults(self):
        args = build_parser().parse_args(["sync"])

        assert args.mode is None
        assert args.interval is None
        assert args.conflict_strategy is None

    def test_interval_without_value_uses_config(self):
        assert build_parser().parse_args(["sync", "--interval"]).interval == 0
        assert build_parser().parse_args(["sync", "--interval", "30"]).interval == 30

    def test_unknown_mode_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["sync", "--mode", "mirror"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestInit:
    def test_writes_starter_config(self, tmp_path, monkeypatch, capsys):
        monkeypatch.delenv("BOOKSTACK_SYNC_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        target = tmp_path / "conf" / "config.yml"

        with patch("bookstack_sync.cli.setup_logging"):
            assert main(["init", "--path", str(target)]) == EXIT_OK

        assert target.is_file()
        assert f"Config file: {target}" in capsys.readouterr().out


class TestBooks:
    def test_lists_books_with_selection(self, cli_env, tmp_path, capsys):
        handbook = cli_env.add_book("Handbook")
        cli_env.add_book("Runbooks")

        assert _run(["books"], _unified(tmp_path, [handbook])) == EXIT_OK

        out = capsys.readouterr().out
        assert f"* {handbook:>5}  Handbook" in out
        assert "Runbooks" in out

    def test_no_books(self, cli_env, tmp_path, capsys):
        assert _run(["books"], _unified(tmp_path, [])) == EXIT_OK

        assert "No books visible" in capsys.readouterr().out

    def test_api_error(self, cli_env, tmp_path, capsys):
        with patch.object(
            cli_env, "list_books", side_effect=BookStackAPIError(401, "Bad token")
        ):
            assert _run(["books"], _unified(tmp_path, [])) == EXIT_SYNC_ERRORS

        assert "ERROR: HTTP 401: Bad token" in capsys.readouterr().err


class TestSync:
    def test_pull(self, cli_env, tmp_path, capsys):
        book = cli_env.add_book("Handbook")
        cli_env.add_page(book, "Welcome", "Hello team")

        code = _run(["sync", "--mode", "pull-only"], _unified(tmp_path, [book]))

        assert code == EXIT_OK
        page = tmp_path / "vault" / "Handbook" / "Welcome.md"
        assert page.read_text(encoding="utf-8").endswith("Hello team")
        assert "Sync report (pull-only)" in capsys.readouterr().out

    def test_folder_override(self, cli_env, tmp_path):
        book = cli_env.add_book("Handbook")
        cli_env.add_page(book, "Welcome", "Hello team")
        other = tmp_path / "other"

        _run(["sync", "--folder", str(other)], _unified(tmp_path, [book]))

        assert (other / "Handbook" / "Welcome.md").exists()
        assert not (tmp_path / "vault").exists()

    def test_errors_give_exit_code_one(self, cli_env, tmp_path):
        assert _run(["sync"], _unified(tmp_path, [999])) == EXIT_SYNC_ERRORS

    def test_no_books_selected(self, cli_env, tmp_path, capsys):
        assert _run(["sync"], _unified(tmp_path, [])) == EXIT_CONFIG_ERROR

        assert "No books selected" in capsys.readouterr().err

    def test_negative_interval(self, cli_env, tmp_path, capsys):
        assert _run(["sync", "--interval", "-5"], _unified(tmp_path, [1])) == EXIT_CONFIG_ERROR

        assert "--interval cannot be negative" in capsys.readouterr().err

    def test_missing_credentials(self, cli_env, tmp_path, capsys):
        unified = build_config({"sync": {"books": [1]}})

        assert _run(["sync"], unified) == EXIT_CONFIG_ERROR

        assert "BookStack URL not found" in capsys.readouterr().err

    def test_unreadable_configuration(self, capsys):
        with (
            patch("bookstack_sync.cli.setup_logging"),
            patch("bookstack_sync.cli._load_unified", side_effect=ValueError("bad yaml")),
        ):
            assert main(["sync"]) == EXIT_CONFIG_ERROR

        assert "Cannot load configuration: bad yaml" in capsys.readouterr().err

    def test_interactive_without_terminal(self, cli_env, tmp_path, capsys):
        book = cli_env.add_book("Handbook")

        with patch("bookstack_sync.cli.sys.stdin") as stdin:
            stdin.isatty.return_value = False
            code = _run(
                ["sync", "--conflict-strategy", "interactive"],
                _unified(tmp_path, [book]),
            )

        assert code == EXIT_OK
        assert "using preserve-local" in capsys.readouterr().err

    def test_interval_repeats(self, cli_env, tmp_path):
        book = cli_env.add_book("Handbook")

        with patch("bookstack_sync.cli.time.sleep", side_effect=KeyboardInterrupt) as sleep:
            with pytest.raises(KeyboardInterrupt):
                _run(
                    ["sync", "--interval"],
                    _unified(tmp_path, [book], interval_minutes=15),
                )

        sleep.assert_called_once_with(15 * 60)


# ---------------------------------------------------------------------------
# Conflict prompt
# ---------------------------------------------------------------------------


class TestPromptConflict:
    def test_answer_after_retry(self, capsys):
        pending = PendingDecision(_conflict())

        with patch("builtins.input", side_effect=["x", "R"]):
            prompt_conflict(pending)

        assert pending.wait(0) is ConflictDecision.KEEP_REMOTE
        err = capsys.readouterr().err
        assert "Conflict: 'Install' (42)" in err
        assert "Please answer l, r or d." in err

    def test_enter_defers(self):
        pending = PendingDecision(_conflict())

        with patch("builtins.input", return_value=""):
            prompt_conflict(pending)

        assert pending.wait(0) is ConflictDecision.DEFER

    def test_end_of_input_defers(self):
        pending = PendingDecision(_conflict())

        with patch("builtins.input", side_effect=EOFError):
            prompt_conflict(pending)

        assert pending.wait(0) is ConflictDecision.DEFER
