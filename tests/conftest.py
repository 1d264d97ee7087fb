"""Pytest configuration and fixtures for impactgraph tests."""

import json
from pathlib import Path
from typing import Callable, List, Optional

import pytest

from impactgraph.models import GraphEdge, GraphNode
from impactgraph.paths import make_node_id
from impactgraph.storage import GraphStore

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch):
    """Point every impactgraph path at a temporary home.

    Modules read ``config.GRAPHS_DIR`` / ``config.REPOS_DIR`` at call time,
    so patching the config module is enough.
    """
    home = tmp_path / "home"
    monkeypatch.setattr("impactgraph.config.BASE_DIR", home)
    monkeypatch.setattr("impactgraph.config.GRAPHS_DIR", home / "graphs")
    monkeypatch.setattr("impactgraph.config.REPOS_DIR", home / "repos")
    monkeypatch.setattr("impactgraph.config.CONFIG_FILE", home / "config.toml")
    return home


@pytest.fixture
def graphs_dir(_isolated_home: Path) -> Path:
    return _isolated_home / "graphs"


@pytest.fixture
def repos_dir(_isolated_home: Path) -> Path:
    return _isolated_home / "repos"


class FakeLLM:
    """Stands in for LocalLLM; returns a canned response and records prompts."""

    def __init__(self, response: Optional[str] = None, error: Optional[Exception] = None):
        self.response = response
        self.error = error
        self.prompts: List[str] = []

    def generate(self, prompt: str) -> Optional[str]:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response


def verdict_json(is_breaking: bool, identifiers=(), explanation: str = "Signature changed") -> str:
    return json.dumps({
        "changedIdentifiers": list(identifiers),
        "isBreaking": is_breaking,
        "explanation": explanation,
    })


@pytest.fixture
def fake_llm_factory() -> Callable[..., FakeLLM]:
    return FakeLLM


def file_node(repo_id: str, file_path: str) -> GraphNode:
    return GraphNode(
        id=make_node_id(repo_id, file_path),
        kind="FILE",
        label=file_path.replace("\\", "/").rsplit("/", 1)[-1],
        repo_id=repo_id,
    )


def imports(source: str, target: str) -> GraphEdge:
    return GraphEdge(source=source, target=target, kind="IMPORTS")


@pytest.fixture
def make_store(graphs_dir: Path) -> Callable[..., GraphStore]:
    """Build and persist a project graph from nodes and edges."""

    def _make(project_id: str = "proj", nodes=(), edges=()) -> GraphStore:
        store = GraphStore(project_id)
        for node in nodes:
            store.add_node(node)
        for edge in edges:
            store.add_edge(edge)
        store.save()
        return store

    return _make


@pytest.fixture
def two_repo_store(make_store) -> GraphStore:
    """Repo A exposes src/api.ts; repo B's src/client.ts imports it."""
    return make_store(
        "proj",
        nodes=[file_node("A", "src/api.ts"), file_node("B", "src/client.ts")],
        edges=[imports("B:src/client.ts", "A:src/api.ts")],
    )


@pytest.fixture
def write_working_copy(repos_dir: Path) -> Callable[[str, str, str], Path]:
    """Write a file into ``<repos_dir>/<repo>/<path>``."""

    def _write(repo_id: str, file_path: str, content: str) -> Path:
        path = repos_dir / repo_id / file_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sample_graph_path() -> Path:
    return FIXTURES_DIR / "sample_graph.json"


@pytest.fixture
def push_payload_path() -> Path:
    return FIXTURES_DIR / "push_payload.json"
