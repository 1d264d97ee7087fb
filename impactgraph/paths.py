"""Helpers for node ids of the form ``<repoId>:<filePath>``."""

from __future__ import annotations

from typing import Iterable, List, Tuple

NODE_ID_SEPARATOR = ":"


def make_node_id(repo_id: str, file_path: str) -> str:
    return f"{repo_id}{NODE_ID_SEPARATOR}{file_path}"


def split_node_id(node_id: str) -> Tuple[str, str]:
    """Split on the first separator only; file paths may contain ``:``.

    An id without a separator has an empty path.
    """
    repo_id, _, file_path = node_id.partition(NODE_ID_SEPARATOR)
    return repo_id, file_path


def to_forward_slashes(path: str) -> str:
    return path.replace("\\", "/")


def basename(path: str) -> str:
    return to_forward_slashes(path).rsplit("/", 1)[-1]


def candidate_node_ids(repo_id: str, file_path: str) -> List[str]:
    """Ids to try, in order, when resolving a changed file to a graph node.

    Indexers may have stored either separator convention.
    """
    candidates = [
        make_node_id(repo_id, to_forward_slashes(file_path)),
        make_node_id(repo_id, file_path),
        make_node_id(repo_id, file_path.replace("/", "\\")),
    ]
    # keep order, drop repeats
    return list(dict.fromkeys(candidates))


def dedupe_key(repo_id: str, file_path: str) -> str:
    """Case- and separator-insensitive identity of an affected file."""
    return make_node_id(repo_id, to_forward_slashes(file_path).lower())


def has_source_extension(path: str, extensions: Iterable[str]) -> bool:
    lowered = path.lower()
    return any(lowered.endswith(ext.lower()) for ext in extensions)
