"""Textual usage scan of other repositories' working copies.

The scan catches dependents the indexer never linked with an IMPORTS edge,
e.g. a mobile client calling ``/api/v1/login`` over HTTP.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from . import config
from .models import AffectedFile, GraphNode
from .paths import dedupe_key, has_source_extension, split_node_id, to_forward_slashes

logger = logging.getLogger(__name__)

CONTEXT_RADIUS = 2


class UsageMatcher:
    """Base class for deciding where an identifier is used in a file."""

    def first_match(self, identifier: str, lines: Sequence[str]) -> Optional[int]:
        """Return the 0-based index of the first line using *identifier*."""
        raise NotImplementedError


class RegexUsageMatcher(UsageMatcher):
    """Literal match with a word boundary only on word-character ends.

    ``getUser`` gets ``\\bgetUser\\b`` and so does not match inside
    ``getUserById``; ``/api/users`` gets ``/api/users\\b`` because a
    boundary before ``/`` would demand a word character in front of it.
    This is a heuristic, not tokenization.
    """

    _WORD_CHAR = re.compile(r"\w")

    def pattern_for(self, identifier: str) -> re.Pattern:
        prefix = r"\b" if self._WORD_CHAR.match(identifier[0]) else ""
        suffix = r"\b" if self._WORD_CHAR.match(identifier[-1]) else ""
        return re.compile(f"{prefix}{re.escape(identifier)}{suffix}")

    def first_match(self, identifier: str, lines: Sequence[str]) -> Optional[int]:
        pattern = self.pattern_for(identifier)
        for index, line in enumerate(lines):
            if pattern.search(line):
                return index
        return None


def source_lines(text: str) -> List[str]:
    """Split on ``\\n`` only, so line numbers match what editors show.

    ``str.splitlines`` also breaks on form feeds and ``\\u2028``, which
    shifts every later line number.
    """
    lines = [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def context_snippet(lines: Sequence[str], index: int, radius: int = CONTEXT_RADIUS) -> str:
    """Lines around *index*, numbered from 1, with ``>`` on the match."""
    start = max(0, index - radius)
    end = min(len(lines) - 1, index + radius)
    out = []
    for i in range(start, end + 1):
        marker = "> " if i == index else "  "
        out.append(f"{marker}{i + 1}: {lines[i]}")
    return "\n".join(out)


class UsageScanner:
    """Find files in other repositories that mention changed identifiers."""

    def __init__(
        self,
        repos_dir: Optional[Path] = None,
        matcher: Optional[UsageMatcher] = None,
        scan_limit: Optional[int] = None,
        min_identifier_length: Optional[int] = None,
        extensions: Optional[Iterable[str]] = None,
    ):
        self.repos_dir = repos_dir or config.REPOS_DIR
        self.matcher = matcher or RegexUsageMatcher()
        self.scan_limit = config.SCAN_LIMIT if scan_limit is None else scan_limit
        self.min_identifier_length = (
            config.MIN_IDENTIFIER_LENGTH if min_identifier_length is None else min_identifier_length
        )
        self.extensions = tuple(extensions) if extensions is not None else config.SOURCE_EXTENSIONS

    def usable_identifiers(self, identifiers: Iterable[str]) -> List[str]:
        cleaned = (ident.strip() for ident in identifiers)
        return [ident for ident in cleaned if len(ident) >= self.min_identifier_length]

    def candidate_files(self, nodes: Iterable[GraphNode], source_repo_id: str) -> List[GraphNode]:
        candidates = [
            node for node in nodes
            if node.kind == "FILE"
            and split_node_id(node.id)[0] != source_repo_id
            and has_source_extension(node.id, self.extensions)
        ]
        return candidates[: self.scan_limit]

    def working_copy_path(self, repo_id: str, file_path: str) -> Path:
        return self.repos_dir.joinpath(repo_id, *to_forward_slashes(file_path).split("/"))

    def scan(
        self,
        nodes: Iterable[GraphNode],
        source_repo_id: str,
        identifiers: Iterable[str],
    ) -> List[AffectedFile]:
        wanted = self.usable_identifiers(identifiers)
        if not wanted:
            return []

        candidates = self.candidate_files(nodes, source_repo_id)
        logger.info(
            "Scanning up to %d files for usages of: %s",
            len(candidates), ", ".join(wanted),
        )

        affected: List[AffectedFile] = []
        processed = set()
        for node in candidates:
            repo_id, file_path = split_node_id(node.id)
            key = dedupe_key(repo_id, file_path)
            if key in processed:
                continue
            processed.add(key)

            path = self.working_copy_path(repo_id, file_path)
            try:
                lines = source_lines(path.read_bytes().decode("utf-8"))
            except (OSError, UnicodeDecodeError) as exc:
                logger.debug("Skipping %s: %s", path, exc)
                continue

            for identifier in wanted:
                index = self.matcher.first_match(identifier, lines)
                if index is None:
                    continue
                affected.append(
                    AffectedFile(
                        repo_id=repo_id,
                        file_path=to_forward_slashes(file_path),
                        reason=f"Uses modified function: {identifier}",
                        context=context_snippet(lines, index),
                    )
                )
        return affected
