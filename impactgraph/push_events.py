"""Turn a source-control push payload into per-file impact results."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from . import config
from .analyzer import ImpactAnalyzer
from .models import ImpactResult
from .paths import has_source_extension
from .revisions import RevisionSource

logger = logging.getLogger(__name__)


@dataclass
class PushEvent:
    repo_url: Optional[str]
    repo_name: Optional[str]
    before: Optional[str]
    after: Optional[str]
    changed_files: List[str] = field(default_factory=list)


def parse_push_payload(payload: Dict[str, Any]) -> PushEvent:
    """Read a GitHub-style push payload.

    Tunnels that forward form-encoded webhooks wrap the JSON body in a
    ``payload`` string; that wrapper is unwrapped first. Changed files are
    the ordered union of ``modified`` and ``added`` across commits.
    """
    inner = payload.get("payload")
    if isinstance(inner, str):
        payload = json.loads(inner)

    repository = payload.get("repository") or {}
    repo_url = repository.get("clone_url") or repository.get("html_url") or repository.get("url")

    changed: Dict[str, None] = {}
    for commit in payload.get("commits") or []:
        for path in (commit.get("modified") or []) + (commit.get("added") or []):
            changed.setdefault(path, None)

    return PushEvent(
        repo_url=repo_url,
        repo_name=repository.get("name"),
        before=payload.get("before"),
        after=payload.get("after"),
        changed_files=list(changed),
    )


def verify_github_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    """Check an ``X-Hub-Signature-256`` header. No secret means no check."""
    if not secret:
        return True
    if not signature:
        return False
    digest = "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature, digest)


def analyze_push(
    event: PushEvent,
    project_id: str,
    repo_id: str,
    analyzer: ImpactAnalyzer,
    revisions: Optional[RevisionSource] = None,
    extensions: Optional[Iterable[str]] = None,
) -> List[ImpactResult]:
    """Analyze every changed source file; keep results with affected files."""
    extensions = tuple(extensions) if extensions is not None else config.SOURCE_EXTENSIONS
    if not event.changed_files:
        logger.info("Push to %s has no changed files", event.repo_name or repo_id)
        return []

    impacts: List[ImpactResult] = []
    for file_path in event.changed_files:
        if not has_source_extension(file_path, extensions):
            continue

        old_content = new_content = None
        if revisions is not None:
            old_content = revisions.get_file_content(file_path, event.before or "")
            new_content = revisions.get_file_content(file_path, event.after or "")
            logger.debug(
                "Content for %s: old %d chars, new %d chars",
                file_path, len(old_content or ""), len(new_content or ""),
            )

        impact = analyzer.analyze_file_change(project_id, repo_id, file_path, old_content, new_content)
        if impact.affected_files:
            logger.info("Impact detected for %s: %d files affected", file_path, impact.affected_count)
            impacts.append(impact)
    return impacts
