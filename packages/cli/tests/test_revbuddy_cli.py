"""Tests for the CLI entry point, the file host and the commands."""

import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest
import yaml
from click.testing import CliRunner

from revbuddy_cli.cli import _build_store, main
from revbuddy_cli.host import FileHost, Workspace, document_id, persisted_to_state, state_to_persisted
from revbuddy_core.models import NormalizeError
from revbuddy_core.providers.base import FixResult
from revbuddy_core.revision import RevisionState
from revbuddy_store.gist import GistStore
from revbuddy_store.memory import MemoryStore
from revbuddy_store.sqlite import SQLiteStore

SIMPLE_SESSION = {"session_id": "s1", "findings": [{"comment": "fix typo", "patch": {"from": "teh", "to": "the"}}]}

V1_SESSION = {
    "protocol_version": "rb_session_v1",
    "session_id": "v1",
    "summary": {"big_picture": "Readable draft.", "top_risks": ["Ending is abrupt"]},
    "doc_comments": [{"comment": "Strong opening", "anchor_quote": "I saw"}],
    "findings": [
        {
            "finding_id": "F1",
            "severity": "minor",
            "comment": "Pick a better word",
            "location": {"anchor_quote": "cat"},
            "patch_options": [{"to": "kitten"}, {"to": "tabby"}],
        },
        {
            "comment": "Sentence is flat",
            "location": {"anchor_quote": "I saw"},
            "suggestions": ["Open with the action"],
        },
    ],
}


def _make_config(**overrides):
    config = {
        "autofix_provider": "anthropic",
        "autofix_model": None,
        "snippet_context_chars": 50,
        "fix_context_chars": 300,
        "store": "memory",
        "store_path": None,
        "gist_id": None,
        "github_token": None,
        "anthropic_api_key": None,
        "openai_api_key": None,
        "google_api_key": None,
    }
    config.update(overrides)
    return config


def _patch_common(mocker, config=None):
    """Patch load_config, logging setup and _build_store; return the shared store."""
    cfg = config or _make_config()
    mocker.patch("revbuddy_core.config.load_config", return_value=cfg)
    mocker.patch("revbuddy_cli.cli._configure_logging")
    store = MemoryStore()
    mocker.patch("revbuddy_cli.cli._build_store", return_value=store)
    return cfg, store


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """A working directory holding notes.md and two session files."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "notes.md").write_text("I saw teh cat.", encoding="utf-8")
    (tmp_path / "simple.json").write_text(json.dumps(SIMPLE_SESSION), encoding="utf-8")
    (tmp_path / "v1.json").write_text(json.dumps(V1_SESSION), encoding="utf-8")
    return tmp_path


def _invoke(*args, input=None):
    return CliRunner().invoke(main, list(args), input=input)


# ---------------------------------------------------------------------------
# host.py
# ---------------------------------------------------------------------------


class TestDocumentId:
    def test_normalizes_spelling(self):
        assert document_id("./docs/../notes.md") == "notes.md"
        assert document_id("docs//a.md") == "docs/a.md"


class TestStateMapping:
    def test_round_trip(self):
        state = RevisionState(accepted=frozenset({0}), ignored=frozenset({1}), accepted_options={2: 1})
        persisted = state_to_persisted("{}", state, selected_index=2)
        assert persisted.accepted_indices == [0, 2]
        assert persisted.ignored_indices == [1]
        assert persisted_to_state(persisted) == state


class TestWorkspace:
    def test_load_accept_and_restore(self, workdir):
        store = MemoryStore()
        review = Workspace(FileHost(store)).load_session("notes.md", json.dumps(SIMPLE_SESSION))
        decision = review.accept(0)
        assert decision.ok
        assert review.selected_index == 0

        restored = Workspace(FileHost(store)).open("./notes.md")
        assert restored.state.status(0) == "accepted"
        assert restored.effective_text() == "I saw the cat."
        # Decisions never touch the file itself.
        assert (workdir / "notes.md").read_text() == "I saw teh cat."

    def test_load_invalid_session(self, workdir):
        store = MemoryStore()
        result = Workspace(FileHost(store)).load_session("notes.md", "[]")
        assert isinstance(result, NormalizeError)
        assert store.list_documents() == []

    def test_refused_decision_is_not_saved(self, workdir):
        store = MemoryStore()
        (workdir / "notes.md").write_text("teh teh", encoding="utf-8")
        review = Workspace(FileHost(store)).load_session("notes.md", json.dumps(SIMPLE_SESSION))
        assert not review.accept(0).ok
        assert store.load_state("notes.md").accepted_indices == []

    def test_open_unknown_document(self, workdir):
        assert Workspace(FileHost(MemoryStore())).open("notes.md") is None

    def test_open_with_unparseable_stored_session(self, workdir):
        store = MemoryStore()
        Workspace(FileHost(store)).load_session("notes.md", json.dumps(SIMPLE_SESSION))
        record = store.load_state("notes.md")
        record.raw_json = "garbage"
        store.save_state("notes.md", record)
        assert Workspace(FileHost(store)).open("notes.md") is None

    def test_close_forget_deletes_state(self, workdir):
        store = MemoryStore()
        workspace = Workspace(FileHost(store))
        workspace.load_session("notes.md", json.dumps(SIMPLE_SESSION))
        workspace.close("notes.md", forget=True)
        assert store.list_documents() == []
        assert workspace.open("notes.md") is None


# ---------------------------------------------------------------------------
# load / list / status / show / summary
# ---------------------------------------------------------------------------


class TestLoadCommand:
    def test_load_saves_state(self, mocker, workdir):
        _, store = _patch_common(mocker)
        result = _invoke("load", "notes.md", "simple.json")
        assert result.exit_code == 0, result.output
        assert "Loaded session" in result.output
        assert store.load_state("notes.md").selected_index == 0

    def test_load_from_stdin(self, mocker, workdir):
        _, store = _patch_common(mocker)
        result = _invoke("load", "notes.md", "-", input=json.dumps(SIMPLE_SESSION))
        assert result.exit_code == 0, result.output
        assert store.list_documents() == ["notes.md"]

    def test_invalid_session_is_reported(self, mocker, workdir):
        _patch_common(mocker)
        (workdir / "bad.json").write_text('{"findings": []}')
        result = _invoke("load", "notes.md", "bad.json")
        assert result.exit_code != 0
        assert "Invalid session" in result.output
        assert "session_id" in result.output

    def test_replacing_asks_for_confirmation(self, mocker, workdir):
        _patch_common(mocker)
        _invoke("load", "notes.md", "simple.json")
        _invoke("accept", "notes.md", "0")

        declined = _invoke("load", "notes.md", "v1.json", input="n\n")
        assert declined.exit_code == 1
        assert "Replace it?" in declined.output

        forced = _invoke("load", "notes.md", "v1.json", "--force")
        assert forced.exit_code == 0
        assert "2 finding(s)" in forced.output

    def test_missing_document(self, mocker, workdir):
        _patch_common(mocker)
        result = _invoke("load", "missing.md", "simple.json")
        assert result.exit_code == 2

    def test_latin1_document_is_reported(self, mocker, workdir):
        _, store = _patch_common(mocker)
        (workdir / "latin1.md").write_bytes("I saw teh caf\u00e9.".encode("latin-1"))
        result = _invoke("load", "latin1.md", "simple.json")
        assert result.exit_code == 1
        assert "latin1.md: it is not UTF-8 text" in result.output
        assert store.list_documents() == []

    def test_latin1_session_file_is_reported(self, mocker, workdir):
        _patch_common(mocker)
        (workdir / "latin1.json").write_bytes('{"session_id": "caf\u00e9", "findings": []}'.encode("latin-1"))
        result = _invoke("load", "notes.md", "latin1.json")
        assert result.exit_code == 1
        assert "not UTF-8 text" in result.output


class TestListCommand:
    def test_empty(self, mocker, workdir):
        _patch_common(mocker)
        result = _invoke("list")
        assert result.exit_code == 0
        assert "No reviews in progress" in result.output

    def test_lists_documents(self, mocker, workdir):
        _patch_common(mocker)
        _invoke("load", "notes.md", "simple.json")
        result = _invoke("list")
        assert result.exit_code == 0
        assert "notes.md" in result.output


class TestStatusCommand:
    def test_requires_loaded_session(self, mocker, workdir):
        _patch_common(mocker)
        result = _invoke("status", "notes.md")
        assert result.exit_code == 2
        assert "No review session for notes.md" in result.output

    def test_document_no_longer_utf8(self, mocker, workdir):
        _patch_common(mocker)
        _invoke("load", "notes.md", "simple.json")
        (workdir / "notes.md").write_bytes("I saw teh caf\u00e9.".encode("latin-1"))
        for command in ("status", "accept"):
            args = ["notes.md"] if command == "status" else ["notes.md", "0"]
            result = _invoke(command, *args)
            assert result.exit_code == 1
            assert "notes.md: it is not UTF-8 text" in result.output

    def test_shows_findings_and_counts(self, mocker, workdir):
        _patch_common(mocker)
        _invoke("load", "notes.md", "v1.json")
        result = _invoke("status", "notes.md")
        assert result.exit_code == 0, result.output
        assert "Pick a better" in result.output
        assert "suggestion" in result.output
        assert "0 accepted, 0 ignored, 2 pending" in result.output

    def test_text_flag_highlights_anchors_in_current_text(self, mocker, workdir):
        from revbuddy_core.utils import preview

        _patch_common(mocker)
        spy = mocker.patch("revbuddy_cli.commands.review.highlight_ranges", wraps=preview.highlight_ranges)
        _invoke("load", "notes.md", "v1.json")
        _invoke("accept", "notes.md", "0", "--option", "1")

        result = _invoke("status", "notes.md", "--text")

        assert result.exit_code == 0, result.output
        assert "I saw teh tabby." in result.output
        assert spy.call_args.args[0] == "I saw teh tabby."

    def test_reports_ambiguous_anchor(self, mocker, workdir):
        _patch_common(mocker)
        (workdir / "notes.md").write_text("teh and teh")
        _invoke("load", "notes.md", "simple.json")
        result = _invoke("status", "notes.md")
        assert "ambiguous (2)" in result.output


class TestShowCommand:
    def test_shows_finding_and_selects_it(self, mocker, workdir):
        _, store = _patch_common(mocker)
        _invoke("load", "notes.md", "v1.json")
        result = _invoke("show", "notes.md", "1")
        assert result.exit_code == 0, result.output
        assert "Sentence is flat" in result.output
        assert "Open with the action" in result.output
        assert "notes.md:1:1" in result.output
        assert store.load_state("notes.md").selected_index == 1

    def test_lists_options(self, mocker, workdir):
        _patch_common(mocker)
        _invoke("load", "notes.md", "v1.json")
        result = _invoke("show", "notes.md")
        assert "Option A" in result.output
        assert "tabby" in result.output

    def test_index_out_of_range(self, mocker, workdir):
        _patch_common(mocker)
        _invoke("load", "notes.md", "simple.json")
        result = _invoke("show", "notes.md", "5")
        assert result.exit_code == 2
        assert "between 0 and 0" in result.output


class TestSummaryCommand:
    def test_prints_summary_and_doc_comments(self, mocker, workdir):
        _patch_common(mocker)
        _invoke("load", "notes.md", "v1.json")
        result = _invoke("summary", "notes.md")
        assert result.exit_code == 0, result.output
        assert "Readable draft." in result.output
        assert "Ending is abrupt" in result.output
        assert "Strong opening" in result.output

    def test_simple_session_has_no_summary(self, mocker, workdir):
        _patch_common(mocker)
        _invoke("load", "notes.md", "simple.json")
        result = _invoke("summary", "notes.md")
        assert "no summary" in result.output


# ---------------------------------------------------------------------------
# accept / ignore / export
# ---------------------------------------------------------------------------


class TestDecisionCommands:
    def test_accept_then_export(self, mocker, workdir):
        _, store = _patch_common(mocker)
        _invoke("load", "notes.md", "simple.json")

        result = _invoke("accept", "notes.md", "0")
        assert result.exit_code == 0, result.output
        assert "Accepted finding 0" in result.output
        assert store.load_state("notes.md").accepted_indices == [0]

        exported = _invoke("export", "notes.md")
        assert exported.exit_code == 0
        assert exported.output == "I saw the cat."

    def test_ambiguous_accept_is_refused(self, mocker, workdir):
        _, store = _patch_common(mocker)
        (workdir / "notes.md").write_text("teh and teh")
        _invoke("load", "notes.md", "simple.json")

        result = _invoke("accept", "notes.md", "0")
        assert result.exit_code == 1
        assert "cannot apply safely" in result.output
        assert store.load_state("notes.md").accepted_indices == []

    def test_accept_option(self, mocker, workdir):
        _, store = _patch_common(mocker)
        _invoke("load", "notes.md", "v1.json")

        plain = _invoke("accept", "notes.md", "0")
        assert plain.exit_code == 1
        assert "choose one" in plain.output

        result = _invoke("accept", "notes.md", "0", "--option", "1")
        assert result.exit_code == 0, result.output
        assert store.load_state("notes.md").accepted_option_by_index == {0: 1}
        assert _invoke("export", "notes.md").output == "I saw teh tabby."

    def test_ignore_is_final(self, mocker, workdir):
        _patch_common(mocker)
        _invoke("load", "notes.md", "simple.json")

        assert _invoke("ignore", "notes.md", "0").exit_code == 0
        assert _invoke("ignore", "notes.md", "0").exit_code == 0
        refused = _invoke("accept", "notes.md", "0")
        assert refused.exit_code == 1
        assert "already ignored" in refused.output
        assert _invoke("export", "notes.md").output == "I saw teh cat."

    def test_suggestion_only_can_only_be_ignored(self, mocker, workdir):
        _patch_common(mocker)
        _invoke("load", "notes.md", "v1.json")
        assert "Suggestion only" in _invoke("accept", "notes.md", "1").output
        result = _invoke("ignore", "notes.md", "1")
        assert result.exit_code == 0
        assert "1 pending; next is 0" in result.output

    def test_export_to_file(self, mocker, workdir):
        _patch_common(mocker)
        _invoke("load", "notes.md", "simple.json")
        _invoke("accept", "notes.md", "0")

        result = _invoke("export", "notes.md", "--output", "out.md")
        assert result.exit_code == 0, result.output
        assert (workdir / "out.md").read_text() == "I saw the cat."
        assert (workdir / "notes.md").read_text() == "I saw teh cat."

    def test_export_in_place_ends_review(self, mocker, workdir):
        _, store = _patch_common(mocker)
        _invoke("load", "notes.md", "simple.json")
        _invoke("accept", "notes.md", "0")

        result = _invoke("export", "notes.md", "--in-place")
        assert result.exit_code == 0, result.output
        assert (workdir / "notes.md").read_text() == "I saw the cat."
        assert store.list_documents() == []

    def test_export_options_are_exclusive(self, mocker, workdir):
        _patch_common(mocker)
        _invoke("load", "notes.md", "simple.json")
        result = _invoke("export", "notes.md", "--in-place", "--output", "out.md")
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# fix
# ---------------------------------------------------------------------------


class TestFixCommand:
    def test_missing_api_key(self, mocker, workdir):
        _patch_common(mocker)
        _invoke("load", "notes.md", "v1.json")
        result = _invoke("fix", "notes.md", "1")
        assert result.exit_code == 2
        assert "ANTHROPIC_API_KEY" in result.output

    def test_quick_fix_preview_does_not_write(self, mocker, workdir):
        _patch_common(mocker)
        fixer = MagicMock()
        fixer.quick_fix.return_value = FixResult(ok=True, from_="teh cat", to="the cat")
        mocker.patch("revbuddy_cli.commands.fix.get_fixer", return_value=fixer)
        _invoke("load", "notes.md", "simple.json")

        result = _invoke("fix", "notes.md", "0")
        assert result.exit_code == 0, result.output
        assert "the cat" in result.output
        assert "--write" in result.output
        assert (workdir / "notes.md").read_text() == "I saw teh cat."
        request = fixer.quick_fix.call_args.args[0]
        assert request.text == "teh"

    def test_write_applies_suggestion(self, mocker, workdir):
        _, store = _patch_common(mocker)
        fixer = MagicMock()
        fixer.apply_suggestion.return_value = FixResult(ok=True, from_="I saw", to="Suddenly I saw")
        mocker.patch("revbuddy_cli.commands.fix.get_fixer", return_value=fixer)
        _invoke("load", "notes.md", "v1.json")

        result = _invoke("fix", "notes.md", "1", "--suggestion", "0", "--write")
        assert result.exit_code == 0, result.output
        assert (workdir / "notes.md").read_text() == "Suddenly I saw teh cat."
        assert store.load_state("notes.md").ignored_indices == [1]
        edit = fixer.apply_suggestion.call_args.args[0]
        assert edit["replacement"] == "Open with the action"

    def test_unknown_suggestion(self, mocker, workdir):
        _patch_common(mocker)
        mocker.patch("revbuddy_cli.commands.fix.get_fixer", return_value=MagicMock())
        _invoke("load", "notes.md", "v1.json")
        result = _invoke("fix", "notes.md", "1", "--suggestion", "3")
        assert result.exit_code == 2

    def test_unusable_model_answer(self, mocker, workdir):
        _patch_common(mocker)
        fixer = MagicMock()
        fixer.quick_fix.return_value = FixResult(ok=False, reason="Model did not return valid JSON")
        mocker.patch("revbuddy_cli.commands.fix.get_fixer", return_value=fixer)
        _invoke("load", "notes.md", "simple.json")

        result = _invoke("fix", "notes.md", "0")
        assert result.exit_code == 1
        assert "valid JSON" in result.output


# ---------------------------------------------------------------------------
# auth.py
# ---------------------------------------------------------------------------


class TestResolveGithubToken:
    def test_returns_env_var_when_set(self, monkeypatch):
        from revbuddy_cli.auth import resolve_github_token

        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        assert resolve_github_token() == "env-token"

    def test_falls_back_to_gh_cli(self, monkeypatch):
        from revbuddy_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="gh-token\n")
            result = resolve_github_token()
        assert result == "gh-token"

    def test_returns_none_when_gh_not_installed(self, monkeypatch):
        from revbuddy_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=FileNotFoundError):
            result = resolve_github_token()
        assert result is None

    def test_returns_none_when_gh_times_out(self, monkeypatch):
        from revbuddy_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="gh", timeout=5)):
            result = resolve_github_token()
        assert result is None

    def test_returns_none_when_gh_returns_error(self, monkeypatch):
        from revbuddy_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=1, stdout="")
            result = resolve_github_token()
        assert result is None


# ---------------------------------------------------------------------------
# _build_store
# ---------------------------------------------------------------------------


class TestBuildStore:
    def test_returns_sqlite_by_default(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        store = _build_store({})
        assert isinstance(store, SQLiteStore)
        store.close()
        assert (tmp_path / ".revbuddy.db").exists()

    def test_sqlite_uses_configured_path(self, tmp_path):
        store = _build_store({"store": "sqlite", "store_path": str(tmp_path / "test.db")})
        assert isinstance(store, SQLiteStore)
        store.close()
        assert (tmp_path / "test.db").exists()

    def test_returns_memory_store(self):
        assert isinstance(_build_store({"store": "memory"}), MemoryStore)

    def test_returns_gist_store_when_configured(self):
        with patch("github.Github"):  # Github is a local import inside GistStore.__init__
            store = _build_store({"store": "gist", "gist_id": "abc123", "github_token": "tok"})
        assert isinstance(store, GistStore)

    def test_falls_back_to_sqlite_when_gist_id_missing(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        store = _build_store({"store": "gist", "github_token": "tok"})
        assert isinstance(store, SQLiteStore)
        store.close()


class TestMainGroup:
    def test_gist_store_resolves_token(self, mocker, workdir):
        mocker.patch("revbuddy_core.config.load_config", return_value=_make_config(store="gist", gist_id="g"))
        mocker.patch("revbuddy_cli.cli._configure_logging")
        resolve = mocker.patch("revbuddy_cli.auth.resolve_github_token", return_value="tok")
        build = mocker.patch("revbuddy_cli.cli._build_store", return_value=MemoryStore())

        _invoke("list")

        resolve.assert_called_once()
        assert build.call_args.args[0]["github_token"] == "tok"

    def test_bad_config_is_a_usage_error(self, mocker, workdir):
        mocker.patch(
            "revbuddy_core.config.load_config",
            side_effect=ValueError(".revbuddy.yml must contain a YAML mapping"),
        )
        mocker.patch("revbuddy_cli.cli._configure_logging")
        result = _invoke("list")
        assert result.exit_code == 2
        assert "YAML mapping" in result.output


# ---------------------------------------------------------------------------
# init command
# ---------------------------------------------------------------------------


class TestInitCommand:
    def test_writes_config_with_provider(self, mocker, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        _patch_common(mocker)

        result = CliRunner().invoke(main, ["init"], input="openai\nsqlite\n.revbuddy.db\n")

        assert result.exit_code == 0, result.output
        config = yaml.safe_load((tmp_path / ".revbuddy.yml").read_text())
        assert config["autofix_provider"] == "openai"
        assert config["store"] == "sqlite"
        assert "store_path" not in config

    def test_google_provider_names_its_key(self, mocker, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        _patch_common(mocker)

        result = CliRunner().invoke(main, ["init"], input="google\nsqlite\n.revbuddy.db\n")

        assert result.exit_code == 0, result.output
        assert yaml.safe_load((tmp_path / ".revbuddy.yml").read_text())["autofix_provider"] == "google"
        assert "GOOGLE_API_KEY" in result.output

    def test_custom_sqlite_path(self, mocker, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        _patch_common(mocker)

        CliRunner().invoke(main, ["init"], input="anthropic\nsqlite\nreviews.db\n")

        config = yaml.safe_load((tmp_path / ".revbuddy.yml").read_text())
        assert config["store_path"] == "reviews.db"

    def test_gist_store(self, mocker, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        _patch_common(mocker)
        mocker.patch("revbuddy_cli.commands.init._create_state_gist", return_value="abc123")

        CliRunner().invoke(main, ["init"], input="anthropic\ngist\n")

        config = yaml.safe_load((tmp_path / ".revbuddy.yml").read_text())
        assert config["store"] == "gist"
        assert config["gist_id"] == "abc123"

    def test_preserves_existing_keys(self, mocker, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        _patch_common(mocker)
        (tmp_path / ".revbuddy.yml").write_text("fix_context_chars: 120\n")

        CliRunner().invoke(main, ["init"], input="anthropic\nsqlite\n.revbuddy.db\n")

        config = yaml.safe_load((tmp_path / ".revbuddy.yml").read_text())
        assert config["fix_context_chars"] == 120
        assert config["autofix_provider"] == "anthropic"

    def test_gist_creation_uses_state_filename(self, mocker):
        from revbuddy_cli.commands.init import _create_state_gist

        run = mocker.patch(
            "subprocess.run", return_value=MagicMock(returncode=0, stdout="https://gist.github.com/u/abc123\n")
        )
        assert _create_state_gist() == "abc123"
        assert run.call_args.args[0][-1].endswith("revbuddy_state.json")
