"""Reverse-dependency traversal over IMPORTS edges."""

from __future__ import annotations

import logging
from collections import deque
from typing import Dict, Iterable, List

from .models import AffectedFile, GraphEdge
from .paths import basename, split_node_id

logger = logging.getLogger(__name__)


class ReverseDependencyWalker:
    """Find files in other repositories that import a changed file.

    Dependents in the changed file's own repository are walked through, so
    a chain ``client -> server/b -> server/a`` still reports the client,
    but they are never reported themselves.

    Edge sources need not exist as nodes. A dangling ``<repo>:<path>``
    source is still reported; an id with no path part is walked through
    but not reported.
    """

    def __init__(self, edge_kind: str = "IMPORTS"):
        self.edge_kind = edge_kind

    def _importers_by_target(self, edges: Iterable[GraphEdge]) -> Dict[str, List[str]]:
        importers: Dict[str, List[str]] = {}
        for edge in edges:
            if edge.kind == self.edge_kind:
                importers.setdefault(edge.target, []).append(edge.source)
        return importers

    def walk(self, edges: Iterable[GraphEdge], start_node_id: str, source_repo_id: str) -> List[AffectedFile]:
        importers = self._importers_by_target(edges)
        _, changed_path = split_node_id(start_node_id)
        reason = f"Imports {basename(changed_path)}"

        affected: List[AffectedFile] = []
        seen = {start_node_id}
        queue = deque([start_node_id])

        while queue:
            current = queue.popleft()
            for dependent in importers.get(current, []):
                if dependent in seen:
                    continue
                seen.add(dependent)
                queue.append(dependent)

                repo_id, file_path = split_node_id(dependent)
                if file_path and repo_id != source_repo_id:
                    affected.append(AffectedFile(repo_id=repo_id, file_path=file_path, reason=reason))

        logger.debug(
            "Walked %d reverse dependencies of %s, %d in other repos",
            len(seen) - 1, start_node_id, len(affected),
        )
        return affected
