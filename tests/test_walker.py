"""Tests for ReverseDependencyWalker."""

from conftest import imports
from impactgraph.models import GraphEdge
from impactgraph.walker import ReverseDependencyWalker


def _walk(edges, start="A:src/api.ts", repo="A"):
    return ReverseDependencyWalker().walk(edges, start, repo)


class TestReverseDependencyWalker:

    def test_direct_cross_repo_importer(self):
        hits = _walk([imports("B:src/client.ts", "A:src/api.ts")])

        assert len(hits) == 1
        assert hits[0].repo_id == "B"
        assert hits[0].file_path == "src/client.ts"
        assert hits[0].reason == "Imports api.ts"
        assert hits[0].context is None

    def test_same_repo_dependents_are_walked_not_reported(self):
        """A client reached through a same-repo file is still found."""
        edges = [
            imports("A:src/routes.ts", "A:src/api.ts"),
            imports("B:src/client.ts", "A:src/routes.ts"),
        ]
        hits = _walk(edges)

        assert [(h.repo_id, h.file_path) for h in hits] == [("B", "src/client.ts")]
        assert all(h.repo_id != "A" for h in hits)

    def test_transitive_and_reason_names_changed_file(self):
        edges = [
            imports("B:src/client.ts", "A:src/api.ts"),
            imports("C:app/screen.tsx", "B:src/client.ts"),
        ]
        hits = _walk(edges)

        assert {h.file_path for h in hits} == {"src/client.ts", "app/screen.tsx"}
        assert {h.reason for h in hits} == {"Imports api.ts"}

    def test_only_imports_edges_are_followed(self):
        edges = [
            GraphEdge("B:src/client.ts", "A:src/api.ts", "CALLS"),
            GraphEdge("A:src/api.ts", "B:src/client.ts", "IMPORTS"),
        ]
        assert _walk(edges) == []

    def test_cycle_through_start_terminates(self):
        """A cycle back to the changed file neither loops nor re-emits it."""
        edges = [
            imports("B:src/client.ts", "A:src/api.ts"),
            imports("A:src/api.ts", "B:src/client.ts"),
            imports("C:x.ts", "B:src/client.ts"),
            imports("B:src/client.ts", "C:x.ts"),
        ]
        hits = _walk(edges)

        assert sorted(h.file_path for h in hits) == ["src/client.ts", "x.ts"]

    def test_each_node_visited_once(self):
        """Diamond-shaped graphs report the shared dependent once."""
        edges = [
            imports("B:left.ts", "A:src/api.ts"),
            imports("C:right.ts", "A:src/api.ts"),
            imports("D:bottom.ts", "B:left.ts"),
            imports("D:bottom.ts", "C:right.ts"),
        ]
        hits = _walk(edges)

        assert sorted(h.file_path for h in hits) == ["bottom.ts", "left.ts", "right.ts"]

    def test_paths_with_colons_and_backslashes(self):
        edges = [imports("B:C:\\web\\client.ts", "A:src\\api.ts")]
        hits = _walk(edges, start="A:src\\api.ts")

        assert hits[0].repo_id == "B"
        assert hits[0].file_path == "C:\\web\\client.ts"
        assert hits[0].reason == "Imports api.ts"

    def test_no_dependents(self):
        assert _walk([]) == []

    def test_dangling_sources(self):
        """Sources missing from the node set are still walked; id-only sources are not reported."""
        edges = [
            imports("orphan", "A:src/api.ts"),
            imports("C:app/screen.tsx", "orphan"),
        ]
        hits = _walk(edges)

        assert [(h.repo_id, h.file_path) for h in hits] == [("C", "app/screen.tsx")]
