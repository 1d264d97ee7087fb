"""Change-impact analysis: graph walk + classifier + usage scan + severity."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional

from .classifier import ChangeClassifier
from .models import AffectedFile, ClassifierVerdict, FileDiff, ImpactResult, Severity
from .paths import candidate_node_ids, dedupe_key
from .scanner import UsageScanner
from .storage import GraphStore
from .walker import ReverseDependencyWalker

logger = logging.getLogger(__name__)

NOT_FOUND_EXPLANATION = "File not found in dependency graph"
DEFAULT_EXPLANATION = "File modified"


def resolve_node_id(store: GraphStore, repo_id: str, file_path: str) -> Optional[str]:
    """Map a changed path to the id the indexer stored, whatever its slashes."""
    for node_id in candidate_node_ids(repo_id, file_path):
        if store.has_node(node_id):
            return node_id
    return None


def dedupe_affected(files: Iterable[AffectedFile]) -> List[AffectedFile]:
    """Keep the first hit per repo + case/slash-normalized path."""
    unique = {}
    for item in files:
        unique.setdefault(dedupe_key(item.repo_id, item.file_path), item)
    return list(unique.values())


def determine_severity(affected_count: int, is_breaking: bool) -> Severity:
    # The two non-breaking rows cannot be reached through analyze_file_change,
    # which clears affected files for non-breaking changes first.
    if is_breaking and affected_count > 5:
        return "CRITICAL"
    if is_breaking and affected_count > 0:
        return "HIGH"
    if affected_count > 10:
        return "HIGH"
    if affected_count > 5:
        return "MEDIUM"
    return "LOW"


class ImpactAnalyzer:
    """Orchestrates one analysis per changed file.

    Each call loads the project graph afresh through ``store_factory``, so
    concurrent analyses never share a store instance.
    """

    def __init__(
        self,
        classifier: Optional[ChangeClassifier] = None,
        scanner: Optional[UsageScanner] = None,
        walker: Optional[ReverseDependencyWalker] = None,
        store_factory: Callable[[str], GraphStore] = GraphStore,
    ):
        self.classifier = classifier
        self.scanner = scanner or UsageScanner()
        self.walker = walker or ReverseDependencyWalker()
        self.store_factory = store_factory

    def analyze_file_change(
        self,
        project_id: str,
        repo_id: str,
        file_path: str,
        old_content: Optional[str] = None,
        new_content: Optional[str] = None,
    ) -> ImpactResult:
        if not project_id or not repo_id or not file_path:
            raise ValueError("project_id, repo_id and file_path are required")

        logger.info("Analyzing impact for %s in repo %s", file_path, repo_id)
        store = self.store_factory(project_id)

        node_id = resolve_node_id(store, repo_id, file_path)
        if node_id is None:
            logger.info("%s:%s not found in the dependency graph", repo_id, file_path)
            return ImpactResult(
                project_id=project_id,
                changed_file=file_path,
                changed_repo=repo_id,
                affected_files=[],
                is_breaking=False,
                severity="LOW",
                explanation=NOT_FOUND_EXPLANATION,
            )

        structural = self.walker.walk(store.edges, node_id, repo_id)

        has_diff = bool(old_content) and bool(new_content)
        verdict = self._classify(old_content, new_content) if has_diff else None

        semantic: List[AffectedFile] = []
        if verdict is not None and verdict.changed_identifiers:
            semantic = self.scanner.scan(store.nodes, repo_id, verdict.changed_identifiers)

        affected = dedupe_affected(structural + semantic)
        is_breaking = verdict.is_breaking if verdict is not None else False
        explanation = verdict.explanation if verdict is not None else DEFAULT_EXPLANATION

        if not is_breaking:
            logger.info(
                "Change to %s classified as non-breaking; dropping %d candidate files",
                file_path, len(affected),
            )
            return ImpactResult(
                project_id=project_id,
                changed_file=file_path,
                changed_repo=repo_id,
                affected_files=[],
                is_breaking=False,
                severity="LOW",
                explanation=explanation or "Non-breaking change detected",
                classification=verdict,
            )

        severity = determine_severity(len(affected), is_breaking)
        logger.info(
            "Found %d affected files (%d from graph + %d from usage scan), severity %s",
            len(affected), len(structural), len(semantic), severity,
        )
        for item in affected:
            logger.debug("  > Affected: %s:%s [%s]", item.repo_id, item.file_path, item.reason)

        return ImpactResult(
            project_id=project_id,
            changed_file=file_path,
            changed_repo=repo_id,
            affected_files=affected,
            is_breaking=True,
            severity=severity,
            explanation=explanation,
            diff=FileDiff(old_content, new_content),
            classification=verdict,
        )

    def _classify(self, old_content: str, new_content: str) -> ClassifierVerdict:
        if self.classifier is None:
            return ClassifierVerdict.fallback("no classifier configured")
        return self.classifier.classify(old_content, new_content)
