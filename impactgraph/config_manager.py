"""Configuration manager for impactgraph using a TOML file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import toml

logger = logging.getLogger(__name__)


# Default configurations for each provider
DEFAULT_CONFIGS = {
    "ollama": {
        "provider": "ollama",
        "model": "qwen2.5-coder:7b",
        "endpoint": "http://127.0.0.1:11434/api/generate",
    },
    "groq": {
        "provider": "groq",
        "model": "llama-3.3-70b-versatile",
        "api_key": "",
    },
    "openai": {
        "provider": "openai",
        "model": "gpt-4o-mini",
        "api_key": "",
    },
    "anthropic": {
        "provider": "anthropic",
        "model": "claude-3-5-sonnet-20241022",
        "api_key": "",
    },
    "gemini": {
        "provider": "gemini",
        "model": "gemini-2.0-flash",
        "api_key": "",
    },
    "openrouter": {
        "provider": "openrouter",
        "model": "google/gemini-2.0-flash-exp:free",
        "api_key": "",
        "endpoint": "https://openrouter.ai/api/v1/chat/completions",
    },
}

ANALYSIS_KEYS = {"scan_limit", "min_identifier_length", "snippet_chars", "source_extensions"}


def _config_file(path: Optional[Path]) -> Path:
    if path is not None:
        return path
    from . import config

    return config.CONFIG_FILE


def load_full_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the entire TOML config (all sections).

    A missing or unreadable file yields an empty dict.
    """
    config_file = _config_file(path)
    if not config_file.exists():
        return {}
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", config_file, exc)
        return {}


def _save_full_config(data: Dict[str, Any], path: Optional[Path] = None) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    config_file = _config_file(path)
    try:
        config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(config_file, "w", encoding="utf-8") as f:
            toml.dump(data, f)
        return True
    except OSError as exc:
        logger.warning("Could not write config file %s: %s", config_file, exc)
        return False


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the ``[llm]`` section.

    Falls back to Ollama defaults when the file or section is missing.
    """
    section = load_full_config(path).get("llm")
    if not isinstance(section, dict):
        return DEFAULT_CONFIGS["ollama"].copy()
    return section


def save_llm_config(
    provider: str,
    model: str,
    api_key: str = "",
    endpoint: str = "",
    path: Optional[Path] = None,
) -> bool:
    """Save LLM configuration, preserving other sections (e.g. ``[analysis]``)."""
    data = load_full_config(path)
    data["llm"] = {"provider": provider, "model": model}
    if api_key:
        data["llm"]["api_key"] = api_key
    if endpoint:
        data["llm"]["endpoint"] = endpoint
    return _save_full_config(data, path)


def clear_llm_config(path: Optional[Path] = None) -> bool:
    """Remove the ``[llm]`` section, resetting to the Ollama default."""
    data = load_full_config(path)
    data.pop("llm", None)
    return _save_full_config(data, path)


def load_analysis_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load tuning knobs from the ``[analysis]`` section.

    Unknown keys are dropped so a typo never reaches the scanner.
    """
    section = load_full_config(path).get("analysis")
    if not isinstance(section, dict):
        return {}
    return {key: value for key, value in section.items() if key in ANALYSIS_KEYS}


def get_provider_config(provider: str) -> Dict[str, Any]:
    """Get default configuration for a specific provider."""
    return DEFAULT_CONFIGS.get(provider, DEFAULT_CONFIGS["ollama"]).copy()
