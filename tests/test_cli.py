"""Integration tests for CLI commands (using grouped command hierarchy)."""

import hashlib
import hmac
import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from conftest import FakeLLM, verdict_json
from impactgraph import __version__, config_manager
from impactgraph.cli import app
from impactgraph.storage import GraphStore


runner = CliRunner()


@pytest.fixture
def breaking_llm(monkeypatch):
    """Every LocalLLM built by the CLI answers 'breaking, getUser changed'."""
    llm = FakeLLM(verdict_json(True, ["getUser"]))
    monkeypatch.setattr("impactgraph.cli.LocalLLM", lambda **kwargs: llm)
    return llm


@pytest.fixture
def content_files(tmp_path: Path):
    old = tmp_path / "old.ts"
    new = tmp_path / "new.ts"
    old.write_text("export function getUser(id) {}", encoding="utf-8")
    new.write_text("export function getUser(id, opts) {}", encoding="utf-8")
    return old, new


class TestAppBasics:

    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "graph" in result.output


class TestGraphCommands:
    """Tests for 'ig graph ...' commands."""

    def test_list_empty(self):
        """Test listing when no graphs exist."""
        result = runner.invoke(app, ["graph", "list"])

        assert result.exit_code == 0
        assert "No project graphs" in result.stdout

    def test_add_node_and_edge_then_show(self):
        """Nodes and edges added from the CLI are persisted."""
        runner.invoke(app, ["graph", "add-node", "proj", "A", "src/api.ts"])
        runner.invoke(app, ["graph", "add-node", "proj", "B", "src/client.ts"])
        result = runner.invoke(app, ["graph", "add-edge", "proj", "B:src/client.ts", "A:src/api.ts"])
        assert result.exit_code == 0
        assert "Added" in result.stdout

        result = runner.invoke(app, ["graph", "show", "proj"])

        assert result.exit_code == 0
        assert "Nodes: 2 | Edges: 1" in result.stdout
        assert "Repos: A, B" in result.stdout

        listing = runner.invoke(app, ["graph", "list"])
        assert "proj" in listing.stdout

    def test_add_node_twice(self):
        runner.invoke(app, ["graph", "add-node", "proj", "A", "src/api.ts"])
        result = runner.invoke(app, ["graph", "add-node", "proj", "A", "src/api.ts"])

        assert "Already present" in result.stdout
        assert len(GraphStore("proj").nodes) == 1

    def test_add_node_unknown_kind(self):
        result = runner.invoke(app, ["graph", "add-node", "proj", "A", "x.ts", "--kind", "widget"])
        assert result.exit_code != 0

    def test_import_document(self, sample_graph_path: Path):
        result = runner.invoke(app, ["graph", "import", "proj", str(sample_graph_path)])

        assert result.exit_code == 0
        assert "Nodes added: 6 | Edges added: 4" in result.stdout
        assert GraphStore("proj").stats()["repos"] == ["mobile", "server", "web"]

    def test_import_invalid_json(self, tmp_path: Path):
        bad = tmp_path / "bad.json"
        bad.write_text("{ nope", encoding="utf-8")

        result = runner.invoke(app, ["graph", "import", "proj", str(bad)])
        assert result.exit_code != 0

    def test_remove_repo(self, sample_graph_path: Path):
        runner.invoke(app, ["graph", "import", "proj", str(sample_graph_path)])

        result = runner.invoke(app, ["graph", "remove-repo", "proj", "web"])

        assert result.exit_code == 0
        assert "Removed 2 nodes for repo 'web'" in result.stdout
        assert len(GraphStore("proj").edges) == 2

    def test_clear_and_delete(self, two_repo_store):
        result = runner.invoke(app, ["graph", "clear", "proj", "--yes"])
        assert result.exit_code == 0
        assert GraphStore("proj").nodes == []

        result = runner.invoke(app, ["graph", "delete", "proj"])
        assert result.exit_code == 0
        assert runner.invoke(app, ["graph", "delete", "proj"]).exit_code != 0

    def test_show_missing_project(self):
        result = runner.invoke(app, ["graph", "show", "ghost"])
        assert result.exit_code != 0


class TestAnalyzeFileCommand:
    """Tests for 'ig analyze file'."""

    def test_breaking_change_json(self, two_repo_store, breaking_llm, content_files):
        old, new = content_files
        result = runner.invoke(
            app,
            ["analyze", "file", "proj", "A", "src/api.ts", "--old", str(old), "--new", str(new), "--json"],
        )

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["severity"] == "HIGH"
        assert payload["isBreaking"] is True
        assert payload["affectedFiles"][0]["filePath"] == "src/client.ts"
        assert payload["classification"]["degraded"] is False
        assert "getUser(id, opts)" in breaking_llm.prompts[0]

    def test_breaking_change_table(self, two_repo_store, breaking_llm, content_files):
        old, new = content_files
        result = runner.invoke(app, ["analyze", "file", "proj", "A", "src/api.ts", "--old", str(old), "--new", str(new)])

        assert result.exit_code == 0
        assert "HIGH" in result.stdout
        assert "src/client.ts" in result.stdout

    def test_without_ai_nothing_is_breaking(self, two_repo_store, content_files):
        old, new = content_files
        result = runner.invoke(
            app,
            ["analyze", "file", "proj", "A", "src/api.ts", "--old", str(old), "--new", str(new), "--no-ai", "--json"],
        )

        payload = json.loads(result.stdout)
        assert payload["affectedFiles"] == []
        assert payload["severity"] == "LOW"
        assert payload["classification"]["failure"] == "no classifier configured"

    def test_file_not_in_graph(self, two_repo_store):
        result = runner.invoke(app, ["analyze", "file", "proj", "A", "src/nope.ts", "--no-ai", "--json"])

        assert json.loads(result.stdout)["explanation"] == "File not found in dependency graph"

    def test_unknown_project(self):
        result = runner.invoke(app, ["analyze", "file", "ghost", "A", "a.ts"])
        assert result.exit_code != 0


class TestAnalyzePushCommand:
    """Tests for 'ig analyze push'."""

    @pytest.fixture
    def payload_file(self, tmp_path: Path) -> Path:
        path = tmp_path / "push.json"
        path.write_text(
            json.dumps({
                "before": "abc",
                "after": "def",
                "repository": {"name": "A"},
                "commits": [{"modified": ["src/api.ts", "docs/notes.md"], "added": []}],
            }),
            encoding="utf-8",
        )
        return path

    def test_no_revisions_means_no_impact(self, two_repo_store, payload_file: Path, breaking_llm):
        result = runner.invoke(app, ["analyze", "push", "proj", "A", str(payload_file)])

        assert result.exit_code == 0
        assert "No cross-repository impact in 2 changed files." in result.stdout

    def test_json_output_is_a_list(self, two_repo_store, payload_file: Path):
        result = runner.invoke(app, ["analyze", "push", "proj", "A", str(payload_file), "--no-ai", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == []

    def test_rejects_bad_signature(self, two_repo_store, payload_file: Path):
        result = runner.invoke(
            app,
            ["analyze", "push", "proj", "A", str(payload_file), "--signature", "sha256=00", "--secret", "s3cret"],
        )
        assert result.exit_code == 1

    def test_accepts_good_signature(self, two_repo_store, payload_file: Path):
        digest = hmac.new(b"s3cret", payload_file.read_bytes(), hashlib.sha256).hexdigest()
        result = runner.invoke(
            app,
            [
                "analyze", "push", "proj", "A", str(payload_file),
                "--signature", f"sha256={digest}", "--secret", "s3cret", "--no-ai",
            ],
        )
        assert result.exit_code == 0


class TestConfigCommands:
    """Tests for 'ig config ...'."""

    def test_set_show_unset(self):
        result = runner.invoke(app, ["config", "set-llm", "groq", "--api-key", "gsk_abcdefgh"])
        assert result.exit_code == 0
        assert "LLM provider set to 'groq' (llama-3.3-70b-versatile)." in result.stdout
        assert config_manager.load_config()["api_key"] == "gsk_abcdefgh"

        shown = runner.invoke(app, ["config", "show-llm"])
        assert "groq" in shown.stdout
        assert "gsk_" in shown.stdout
        assert "gsk_abcdefgh" not in shown.stdout

        runner.invoke(app, ["config", "unset-llm"])
        assert config_manager.load_config()["provider"] == "ollama"

    def test_unknown_provider(self):
        result = runner.invoke(app, ["config", "set-llm", "mystery"])
        assert result.exit_code != 0


class TestResultRendering:

    def test_structured_explanation_renders(self, two_repo_store, content_files, monkeypatch):
        """A classifier reply with an object as explanation still prints a table."""
        reply = json.dumps({"isBreaking": True, "changedIdentifiers": [], "explanation": {"why": "renamed"}})
        monkeypatch.setattr("impactgraph.cli.LocalLLM", lambda **kwargs: FakeLLM(reply))
        old, new = content_files

        result = runner.invoke(app, ["analyze", "file", "proj", "A", "src/api.ts", "--old", str(old), "--new", str(new)])

        assert result.exit_code == 0
        assert "Analyzed by AI" in result.stdout
        assert "src/client.ts" in result.stdout
