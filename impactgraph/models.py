"""Core data models shared by the graph store, the walkers and the analyzer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Tuple

NodeKind = Literal["FILE", "FUNCTION", "API", "COMPONENT"]
EdgeKind = Literal["IMPORTS", "CALLS", "DEFINES", "EXPOSES", "USED_BY"]
Severity = Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]

NODE_KINDS = ("FILE", "FUNCTION", "API", "COMPONENT")
EDGE_KINDS = ("IMPORTS", "CALLS", "DEFINES", "EXPOSES", "USED_BY")
SEVERITIES = ("LOW", "MEDIUM", "HIGH", "CRITICAL")


@dataclass
class GraphNode:
    """A file, function, API endpoint or UI component in a project graph.

    ``repo_id`` is kept out of ``metadata`` so the one field every indexed
    FILE node carries can be read without digging through a loose map.
    """
    id: str
    kind: NodeKind
    label: str
    repo_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.id:
            raise ValueError("GraphNode id must be a non-empty string")
        if self.kind not in NODE_KINDS:
            raise ValueError(f"Unknown node kind: {self.kind!r}")

    def to_dict(self) -> Dict[str, Any]:
        metadata = dict(self.metadata)
        if self.repo_id is not None:
            metadata["repoId"] = self.repo_id
        return {"id": self.id, "kind": self.kind, "label": self.label, "metadata": metadata}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "GraphNode":
        metadata = dict(payload.get("metadata") or {})
        repo_id = metadata.pop("repoId", None)
        return cls(
            id=payload["id"],
            kind=payload.get("kind") or payload.get("type"),
            label=payload.get("label", payload["id"]),
            repo_id=repo_id,
            metadata=metadata,
        )


@dataclass
class GraphEdge:
    source: str
    target: str
    kind: EdgeKind
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.kind not in EDGE_KINDS:
            raise ValueError(f"Unknown edge kind: {self.kind!r}")

    @property
    def key(self) -> Tuple[str, str, str]:
        """Identity of the edge; two edges with the same key are duplicates."""
        return (self.source, self.target, self.kind)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "kind": self.kind,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "GraphEdge":
        return cls(
            source=payload["source"],
            target=payload["target"],
            kind=payload.get("kind") or payload.get("type"),
            metadata=dict(payload.get("metadata") or {}),
        )


@dataclass
class AffectedFile:
    """A file in another repository that a change may break."""
    repo_id: str
    file_path: str
    reason: str
    context: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "repoId": self.repo_id,
            "filePath": self.file_path,
            "reason": self.reason,
        }
        if self.context is not None:
            payload["context"] = self.context
        return payload


@dataclass
class FileDiff:
    old_content: str
    new_content: str

    def to_dict(self) -> Dict[str, str]:
        return {"oldContent": self.old_content, "newContent": self.new_content}


@dataclass
class ClassifierVerdict:
    """Outcome of asking the change classifier about a diff.

    ``degraded`` separates "the classifier said non-breaking" from "the
    classifier failed and the defaults were used"; ``failure`` says why.
    """
    is_breaking: bool
    explanation: str
    changed_identifiers: List[str] = field(default_factory=list)
    degraded: bool = False
    failure: Optional[str] = None

    @classmethod
    def fallback(cls, failure: str, explanation: str = "File modified") -> "ClassifierVerdict":
        return cls(
            is_breaking=False,
            explanation=explanation,
            changed_identifiers=[],
            degraded=True,
            failure=failure,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isBreaking": self.is_breaking,
            "explanation": self.explanation,
            "changedIdentifiers": list(self.changed_identifiers),
            "degraded": self.degraded,
            "failure": self.failure,
        }


@dataclass
class ImpactResult:
    """Value object describing the downstream impact of one file change.

    Not persisted here; the caller decides how to store or broadcast it.
    """
    project_id: str
    changed_file: str
    changed_repo: str
    affected_files: List[AffectedFile]
    is_breaking: bool
    severity: Severity
    explanation: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    diff: Optional[FileDiff] = None
    classification: Optional[ClassifierVerdict] = None

    def __post_init__(self):
        if self.severity not in SEVERITIES:
            raise ValueError(f"Unknown severity: {self.severity!r}")

    @property
    def affected_count(self) -> int:
        return len(self.affected_files)

    def to_dict(self, include_classification: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "projectId": self.project_id,
            "changedFile": self.changed_file,
            "changedRepo": self.changed_repo,
            "affectedFiles": [item.to_dict() for item in self.affected_files],
            "isBreaking": self.is_breaking,
            "severity": self.severity,
            "explanation": self.explanation,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.diff is not None:
            payload["diff"] = self.diff.to_dict()
        if include_classification and self.classification is not None:
            payload["classification"] = self.classification.to_dict()
        return payload
