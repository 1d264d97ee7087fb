"""Configuration paths and analysis defaults for impactgraph."""

from __future__ import annotations

import os
from pathlib import Path

from .config_manager import load_analysis_config, load_config

BASE_DIR = Path(os.environ.get("IMPACTGRAPH_HOME", str(Path.home() / ".impactgraph"))).expanduser()
GRAPHS_DIR = BASE_DIR / "graphs"
REPOS_DIR = BASE_DIR / "repos"
CONFIG_FILE = BASE_DIR / "config.toml"

DEFAULT_SCAN_LIMIT = 500
DEFAULT_MIN_IDENTIFIER_LENGTH = 3
DEFAULT_SNIPPET_CHARS = 2000
DEFAULT_SOURCE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")

_llm_config = load_config()
_analysis_config = load_analysis_config()

# LLM provider used by the change classifier (set via `ig config set-llm`)
LLM_PROVIDER = _llm_config.get("provider", "ollama")
LLM_API_KEY = _llm_config.get("api_key", "")
LLM_MODEL = _llm_config.get("model", "qwen2.5-coder:7b")
LLM_ENDPOINT = _llm_config.get("endpoint", "")

SCAN_LIMIT = int(_analysis_config.get("scan_limit", DEFAULT_SCAN_LIMIT))
MIN_IDENTIFIER_LENGTH = int(_analysis_config.get("min_identifier_length", DEFAULT_MIN_IDENTIFIER_LENGTH))
SNIPPET_CHARS = int(_analysis_config.get("snippet_chars", DEFAULT_SNIPPET_CHARS))
SOURCE_EXTENSIONS = tuple(_analysis_config.get("source_extensions", DEFAULT_SOURCE_EXTENSIONS))
