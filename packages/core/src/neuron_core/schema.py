"""JSON Schema contract for suggestion plans.

The schema is data, not code: it is sent to the provider verbatim (so the
model sees the exact contract it is held to) and checked locally with
jsonschema's Draft 2020-12 validator. Validation is purely structural.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from jsonschema import Draft202012Validator

from neuron_core.models import MERGE_MODES, SEVERITIES

TITLE_MAX = 120
BODY_MAX = 2000

_COMMENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "path": {"type": "string", "minLength": 1},
        "line": {"type": "integer", "minimum": 1},
        "severity": {"type": "string", "enum": list(SEVERITIES)},
        "title": {"type": "string", "minLength": 1, "maxLength": TITLE_MAX},
        "body": {"type": "string", "maxLength": BODY_MAX},
    },
    "required": ["path", "line", "severity", "title", "body"],
}

_TEST_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "language": {"type": "string", "minLength": 1},
        "framework": {"type": "string", "minLength": 1},
        "path": {"type": "string", "minLength": 1},
        "mode": {"type": "string", "enum": list(MERGE_MODES)},
        "content": {"type": "string", "minLength": 1},
    },
    "required": ["language", "framework", "path", "mode", "content"],
}


def plan_schema(max_comments: int = 3, max_tests: int = 2) -> dict[str, Any]:
    """Return the plan schema with the given list caps."""
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "title": "SuggestionPlan",
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "comments": {"type": "array", "maxItems": max_comments, "items": copy.deepcopy(_COMMENT_SCHEMA)},
            "tests": {"type": "array", "maxItems": max_tests, "items": copy.deepcopy(_TEST_SCHEMA)},
        },
        "required": ["comments", "tests"],
    }


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


def normalize_plan(candidate: Any) -> Any:
    """Coerce missing or null ``comments``/``tests`` keys to empty lists.

    Non-dict candidates are returned unchanged so the validator can reject
    them with a precise message.
    """
    if not isinstance(candidate, dict):
        return candidate
    shaped = dict(candidate)
    for key in ("comments", "tests"):
        if shaped.get(key) is None:
            shaped[key] = []
    return shaped


class PlanValidator:
    """Structural validator for a (normalised) plan candidate."""

    def __init__(self, max_comments: int = 3, max_tests: int = 2):
        self.schema = plan_schema(max_comments, max_tests)
        self._validator = Draft202012Validator(self.schema)

    def validate(self, candidate: Any) -> ValidationResult:
        errors = sorted(self._validator.iter_errors(candidate), key=lambda e: [str(p) for p in e.path])
        messages = [f"{'/'.join(map(str, e.path)) or '<root>'}: {e.message}" for e in errors]
        return ValidationResult(valid=not messages, errors=messages)
