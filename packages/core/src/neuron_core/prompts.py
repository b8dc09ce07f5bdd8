"""Chat messages for plan acquisition.

No rules file is required: the model gets a compact view of the repository
signals and the diff, and is held to the plan schema it is shown.
"""

from __future__ import annotations

import json

from neuron_core.models import PlanRequest

# Per-section character ceilings for the user payload.
_SIGNALS_CHAR_LIMIT = 5_000
_CHANGES_CHAR_LIMIT = 12_000
_EXISTING_TESTS_CHAR_LIMIT = 4_000
_FINDINGS_LIMIT = 10
_INVALID_ECHO_LIMIT = 6_000

_SYSTEM_PROMPT = """You are Neuron, a senior software reviewer.
Goal: infer product intent and business logic directly from repository signals and the PR diff.
Then produce:
  (1) Up to {max_comments} high-impact REVIEW COMMENTS tied to specific changed lines, framed in business terms (who breaks, why).
  (2) Up to {max_tests} RUNNABLE TESTS in the detected framework that validate the risky behavior or guard against regression.
Constraints:
- Return ONLY valid JSON that matches the provided schema.
- Prefer precision over breadth; do NOT exceed the caps.
- If you cannot produce a runnable test with the detected framework, return an empty 'tests' array.
- For each comment, cite exact reasoning based on DIFF HUNKS and repository signals; avoid generic claims.
- Avoid repeats: do not suggest the same fix multiple ways; merge them into one best suggestion.
- Optimization is allowed (e.g., slow payment window, blocking IO, missing timeout/circuit breaker/idempotency).
- When suggesting code, target the actual stack and imports present in the changed files; do not invent foreign APIs."""  # noqa: E501

# Few-shot anchor for tone and shape. Kept small on purpose.
_EXAMPLE = {
    "comments": [
        {
            "path": "src/payments/authorize.ts",
            "line": 87,
            "severity": "HIGH",
            "title": "Payment authorize path may stall under load",
            "body": (
                "Checkout users can hang when the gateway is slow: three sequential network calls without timeouts.\n"
                "Suggested remediation: set a per-call 2s timeout, run customer lookup and tokenization in parallel, "
                "and use gateway idempotency keys.\n"
                "Business impact: higher cart abandonment during spikes."
            ),
        }
    ],
    "tests": [
        {
            "language": "javascript",
            "framework": "jest",
            "path": "__tests__/neuron.generated.test.js",
            "mode": "append_or_create",
            "content": (
                "import { authorizePayment } from '../src/payments/authorize';\n"
                "test('authorize times out fast on a slow gateway', async () => {\n"
                "  const slowGateway = { charge: jest.fn(() => new Promise(() => {})) };\n"
                "  await expect(authorizePayment(slowGateway, { amount: 100 })).rejects.toThrow();\n"
                "});\n"
            ),
        }
    ],
}


def _compact(value, limit: int) -> str:
    return json.dumps(value)[:limit]


def _repo_sketch(request: PlanRequest) -> str:
    signals = request.signals
    frameworks = ", ".join(f"{k}:{v}" for k, v in signals.test_frameworks.items())
    return "\n".join(
        [
            f"repo: {request.owner}/{request.repo} @ {request.head_ref}",
            f"languages: {', '.join(signals.languages) or '(unknown)'}",
            f"tests: {frameworks or '(unknown)'}",
            f"package_manager: {signals.package_manager}",
        ]
    )


def build_messages(request: PlanRequest, schema: dict) -> list[dict]:
    """Build the system + user messages for a plan request."""
    system = _SYSTEM_PROMPT.format(max_comments=request.max_comments, max_tests=request.max_tests)

    signals = request.signals.to_dict()
    existing_tests = signals.pop("test_files", [])
    payload = {
        "instructions": {
            "format": "Return ONLY JSON. Do not include prose outside of JSON.",
            "caps": {"max_comments": request.max_comments, "max_tests": request.max_tests},
            "json_schema": schema,
        },
        "repo_sketch": _repo_sketch(request),
        "repo_signals": _compact(signals, _SIGNALS_CHAR_LIMIT),
        "changed_files": _compact([c.to_prompt() for c in request.changes], _CHANGES_CHAR_LIMIT),
        "existing_tests": _compact(existing_tests, _EXISTING_TESTS_CHAR_LIMIT),
        "static_findings": [f.to_prompt() for f in request.findings[:_FINDINGS_LIMIT]],
        "example": _EXAMPLE,
    }

    return [
        {"role": "system", "content": system},
        {"role": "user", "content": json.dumps(payload)},
    ]


def build_correction_messages(messages: list[dict], invalid: str, errors: list[str], schema: dict) -> list[dict]:
    """Append the rejected response and one corrective instruction."""
    correction = (
        "Your previous response did not match the required JSON schema.\n"
        "Validation errors:\n"
        + "\n".join(f"- {e}" for e in errors)
        + "\n\nReturn ONLY a corrected JSON object that satisfies this schema:\n"
        + json.dumps(schema)
    )
    return messages + [
        {"role": "assistant", "content": invalid[:_INVALID_ECHO_LIMIT]},
        {"role": "user", "content": correction},
    ]


def build_fallback_messages(messages: list[dict]) -> list[dict]:
    """Same conversation, with an explicit reminder for free-text mode."""
    reminder = (
        "Respond with a single JSON object containing 'comments' and 'tests'. "
        "If you must add prose, put the JSON inside a ```json fenced block."
    )
    return messages + [{"role": "user", "content": reminder}]
