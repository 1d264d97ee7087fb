"""Persistence layer for per-project dependency graphs.

Each project owns one JSON document, ``graph-<projectId>.json``, holding
``{"nodes": [...], "edges": [...]}``. The store keeps the whole graph in
memory and rewrites the document in full on :meth:`GraphStore.save`.

There is no locking inside :class:`GraphStore`. Callers that mutate a
project's graph from more than one thread wrap the load/mutate/save cycle
in :func:`project_lock` so that a save never drops another writer's nodes.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from . import config
from .models import GraphEdge, GraphNode

logger = logging.getLogger(__name__)

_locks_guard = threading.Lock()
_project_locks: Dict[str, threading.Lock] = {}


@contextmanager
def project_lock(project_id: str) -> Iterator[None]:
    """Serialize graph mutations for one project within this process."""
    with _locks_guard:
        lock = _project_locks.setdefault(project_id, threading.Lock())
    with lock:
        yield


def graph_file_for(project_id: str, graphs_dir: Optional[Path] = None) -> Path:
    return (graphs_dir or config.GRAPHS_DIR) / f"graph-{project_id}.json"


# ===================================================================
# GraphDirectory  (lists / deletes persisted project graphs)
# ===================================================================

class GraphDirectory:
    """Manage the directory of persisted project graphs."""

    def __init__(self, graphs_dir: Optional[Path] = None) -> None:
        self.graphs_dir = graphs_dir or config.GRAPHS_DIR

    def list_projects(self) -> List[str]:
        if not self.graphs_dir.exists():
            return []
        return sorted(
            p.stem[len("graph-"):]
            for p in self.graphs_dir.glob("graph-*.json")
            if p.is_file()
        )

    def exists(self, project_id: str) -> bool:
        return graph_file_for(project_id, self.graphs_dir).exists()

    def delete_project(self, project_id: str) -> bool:
        path = graph_file_for(project_id, self.graphs_dir)
        if not path.exists():
            return False
        path.unlink()
        return True


# ===================================================================
# GraphStore
# ===================================================================

class GraphStore:
    """Node/edge collection for one project, backed by a JSON document."""

    def __init__(self, project_id: str, graphs_dir: Optional[Path] = None) -> None:
        if not project_id:
            raise ValueError("project_id is required")
        self.project_id = project_id
        self.graph_file = graph_file_for(project_id, graphs_dir)
        self._nodes: Dict[str, GraphNode] = {}
        self._edges: List[GraphEdge] = []
        self._edge_keys: set = set()
        self._load()

    # ------------------------------------------------------------------
    # Load / save
    # ------------------------------------------------------------------

    def _load(self) -> None:
        if not self.graph_file.exists():
            return
        try:
            payload = json.loads(self.graph_file.read_text(encoding="utf-8"))
            nodes = [GraphNode.from_dict(item) for item in payload.get("nodes", [])]
            edges = [GraphEdge.from_dict(item) for item in payload.get("edges", [])]
        except (OSError, json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning(
                "Graph document %s is unreadable (%s); starting from an empty graph",
                self.graph_file, exc,
            )
            self._preserve_corrupt_document()
            return

        for node in nodes:
            self.add_node(node)
        for edge in edges:
            self.add_edge(edge)
        logger.debug(
            "Loaded graph for project %s: %d nodes, %d edges",
            self.project_id, len(self._nodes), len(self._edges),
        )

    def _preserve_corrupt_document(self) -> None:
        backup = self.graph_file.with_name(self.graph_file.name + ".corrupt")
        try:
            shutil.copyfile(self.graph_file, backup)
            logger.warning("Kept a copy of the unreadable graph at %s", backup)
        except OSError as exc:
            logger.warning("Could not back up unreadable graph %s: %s", self.graph_file, exc)

    def save(self) -> None:
        """Replace the persisted document with the full in-memory graph."""
        self.graph_file.parent.mkdir(parents=True, exist_ok=True)
        text = json.dumps(self.get_graph(), indent=2)
        fd, tmp_name = tempfile.mkstemp(
            prefix=self.graph_file.name, suffix=".tmp", dir=str(self.graph_file.parent),
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            os.replace(tmp_name, self.graph_file)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def clear(self) -> None:
        self._nodes.clear()
        self._edges = []
        self._edge_keys = set()
        self.save()

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_node(self, node: GraphNode) -> bool:
        """Insert *node* unless its id is taken. Returns True when inserted."""
        if node.id in self._nodes:
            return False
        self._nodes[node.id] = node
        return True

    def add_edge(self, edge: GraphEdge) -> bool:
        """Insert *edge* unless an edge with the same key exists.

        Endpoints do not have to be present as nodes.
        """
        if edge.key in self._edge_keys:
            return False
        self._edge_keys.add(edge.key)
        self._edges.append(edge)
        return True

    def remove_nodes_by_repo_id(self, repo_id: str) -> int:
        """Drop every node owned by *repo_id* and every edge touching one.

        Persists the result and returns the number of nodes removed.
        """
        doomed = {node_id for node_id, node in self._nodes.items() if node.repo_id == repo_id}
        for node_id in doomed:
            del self._nodes[node_id]

        kept = [e for e in self._edges if e.source not in doomed and e.target not in doomed]
        self._edges = kept
        self._edge_keys = {e.key for e in kept}

        self.save()
        logger.info("Removed %d nodes for repo %s", len(doomed), repo_id)
        return len(doomed)

    def merge_document(self, payload: Dict[str, Any]) -> Dict[str, int]:
        """Add the nodes and edges of an indexer document.

        Existing ids and edge keys are left untouched. Does not save.
        """
        added_nodes = sum(
            1 for item in payload.get("nodes", []) if self.add_node(GraphNode.from_dict(item))
        )
        added_edges = sum(
            1 for item in payload.get("edges", []) if self.add_edge(GraphEdge.from_dict(item))
        )
        return {"nodes": added_nodes, "edges": added_edges}

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> List[GraphNode]:
        return list(self._nodes.values())

    @property
    def edges(self) -> List[GraphEdge]:
        return list(self._edges)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def get_graph(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            "nodes": [node.to_dict() for node in self._nodes.values()],
            "edges": [edge.to_dict() for edge in self._edges],
        }

    def stats(self) -> Dict[str, Any]:
        by_kind: Dict[str, int] = {}
        for node in self._nodes.values():
            by_kind[node.kind] = by_kind.get(node.kind, 0) + 1
        repos = sorted({node.repo_id for node in self._nodes.values() if node.repo_id})
        return {
            "nodes": len(self._nodes),
            "edges": len(self._edges),
            "nodes_by_kind": by_kind,
            "repos": repos,
        }
