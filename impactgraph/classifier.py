"""LLM-backed judgement of whether a diff breaks consumers.

The classifier only reports; the analyzer trusts ``isBreaking`` as an opaque
boolean and uses ``changedIdentifiers`` as search strings for the usage scan.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, List, Optional

from . import config
from .models import ClassifierVerdict

logger = logging.getLogger(__name__)

_JSON_BLOCK_RE = re.compile(r"\{.*\}", re.DOTALL)

PROMPT_TEMPLATE = """Analyze these code changes and provide two things:
1. A list of changed identifiers (function names, class names, or API paths).
2. Whether this is a breaking API change.

STRICT DEFINITION OF BREAKING CHANGE:
- Renaming an exported function.
- Changing the runtime structure of the return value (e.g., returning an object instead of an array).
- Adding a required argument.
- Removing an argument.
- Modifying an API endpoint response structure.

NON-BREAKING CHANGES (DO NOT REPORT AS BREAKING):
- Changing a specific type to 'any' or 'unknown' (type widening is NOT breaking).
- Adding an optional argument.
- Internal logic changes that do not affect the output structure.
- Refactoring or code cleanup.

IMPORTANT FOR "changedIdentifiers":
- Return EXACT SEARCHABLE STRINGS that other files would use to call this code.
- If a named function changed, return the exact function name (e.g. "getUser").
- If an API endpoint changed, return the exact URL path used in the route definition (e.g. "/api/v1/login").
- Do not return descriptive names like "POST /users handler" or generic terms like "anonymous function".

OLD CODE:
```
{old}
```

NEW CODE:
```
{new}
```

Respond ONLY with valid JSON in this format:
{{
  "changedIdentifiers": ["funcName1", "/api/path"],
  "isBreaking": true,
  "explanation": "Brief explanation of why it is breaking or not"
}}
If no identifiers changed, set "changedIdentifiers" to []."""


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _as_identifiers(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item.strip()]


def parse_verdict(raw: Optional[str]) -> ClassifierVerdict:
    """Parse a classifier response that may be wrapped in prose or fences."""
    if not raw:
        return ClassifierVerdict.fallback("empty classifier response")

    match = _JSON_BLOCK_RE.search(raw)
    if not match:
        return ClassifierVerdict.fallback("no JSON object in classifier response")
    try:
        result = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        return ClassifierVerdict.fallback(f"invalid JSON in classifier response: {exc}")
    if not isinstance(result, dict):
        return ClassifierVerdict.fallback("classifier response is not a JSON object")

    identifiers = result.get("changedIdentifiers", result.get("changedFunctions"))
    explanation = result.get("explanation")
    if not isinstance(explanation, str) or not explanation.strip():
        explanation = "Analyzed by AI"
    return ClassifierVerdict(
        is_breaking=_as_bool(result.get("isBreaking", False)),
        explanation=explanation,
        changed_identifiers=_as_identifiers(identifiers),
    )


class ChangeClassifier:
    """Ask an LLM whether old -> new content is a breaking change."""

    def __init__(self, llm, snippet_chars: Optional[int] = None):
        self.llm = llm
        self.snippet_chars = config.SNIPPET_CHARS if snippet_chars is None else snippet_chars

    def build_prompt(self, old_content: str, new_content: str) -> str:
        return PROMPT_TEMPLATE.format(
            old=old_content[: self.snippet_chars],
            new=new_content[: self.snippet_chars],
        )

    def classify(self, old_content: str, new_content: str) -> ClassifierVerdict:
        prompt = self.build_prompt(old_content, new_content)
        try:
            raw = self.llm.generate(prompt)
        except Exception as exc:
            logger.warning("Change classifier call failed: %s", exc)
            return ClassifierVerdict.fallback(f"classifier call failed: {exc}")

        logger.debug("Classifier raw response: %s", raw)
        verdict = parse_verdict(raw)
        if verdict.degraded:
            logger.warning("Classifier output unusable (%s); treating change as non-breaking", verdict.failure)
        else:
            logger.info(
                "Classifier verdict: breaking=%s identifiers=%s",
                verdict.is_breaking, verdict.changed_identifiers,
            )
        return verdict
