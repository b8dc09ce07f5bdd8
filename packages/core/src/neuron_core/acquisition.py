"""Plan acquisition protocol.

Drives an unreliable text-generation provider to a validated SuggestionPlan:

    structured attempt (JSON mode)
        ├─ valid                      → OK_STRUCTURED
        ├─ parsed but invalid → one correction attempt
        │       ├─ valid              → OK_STRUCTURED
        │       └─ anything else      → SCHEMA_INVALID
        └─ unparseable / raised → free-text fallback
                ├─ no JSON object     → JSON_MISSING
                ├─ invalid            → SCHEMA_INVALID
                ├─ valid              → OK_FALLBACK
                └─ raised             → classified transport failure

acquire_plan never raises. Callers get an AcquisitionResult and surface its
outcome code to the user instead of a stack trace.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field

from neuron_core.models import Outcome, SuggestionPlan
from neuron_core.prompts import build_correction_messages, build_fallback_messages
from neuron_core.schema import PlanValidator, normalize_plan

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)

# Ordered: the first group whose marker appears in the exception text wins.
_FAILURE_PATTERNS: list[tuple[Outcome, tuple[str, ...]]] = [
    (
        Outcome.AUTH_FAILURE,
        ("unauthorized", "authentication", "invalid api key", "incorrect api key", "access denied"),
    ),
    (
        Outcome.QUOTA_EXCEEDED,
        ("quota", "rate limit", "ratelimit", "too many requests", "insufficient_quota"),
    ),
    (
        Outcome.DEPLOYMENT_MISCONFIGURED,
        ("deployment", "model_not_found", "does not exist", "not found", "not configured"),
    ),
]

_STATUS_OUTCOMES = {
    401: Outcome.AUTH_FAILURE,
    403: Outcome.AUTH_FAILURE,
    429: Outcome.QUOTA_EXCEEDED,
    404: Outcome.DEPLOYMENT_MISCONFIGURED,
}
# SDK messages such as "Error code: 429 - {...}" or "status code 401".
_STATUS_IN_TEXT_RE = re.compile(r"\b(?:error code|status(?: code)?)[:= ]+(\d{3})\b", re.IGNORECASE)

_DETAIL_LIMIT = 300


@dataclass
class AcquisitionResult:
    plan: SuggestionPlan | None
    outcome: Outcome
    detail: list[str] = field(default_factory=list)
    # One line per attempt, in order, for the run event log.
    attempts: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.plan is not None


def classify_error(exc: Exception) -> Outcome:
    """Map a provider/transport exception onto a diagnostic outcome.

    HTTP status codes count only when the SDK exposes them as ``status_code``
    or labels them in the message; bare digits elsewhere are ignored.
    """
    status = getattr(exc, "status_code", None)
    if not isinstance(status, int):
        match = _STATUS_IN_TEXT_RE.search(str(exc))
        status = int(match.group(1)) if match else None
    if status in _STATUS_OUTCOMES:
        return _STATUS_OUTCOMES[status]

    text = f"{type(exc).__name__} {exc}".lower()
    for outcome, markers in _FAILURE_PATTERNS:
        if any(marker in text for marker in markers):
            return outcome
    return Outcome.PROVIDER_REJECTED


def _describe(exc: Exception) -> str:
    return f"{type(exc).__name__}: {str(exc)[:_DETAIL_LIMIT]}"


def extract_json_object(text: str) -> dict | None:
    """Return the first well-formed JSON object embedded in free text.

    Fenced blocks are preferred; otherwise the outermost ``{...}`` span; as a
    last resort every ``{`` is tried as the start of an object.
    """
    if not text:
        return None

    for block in _FENCE_RE.findall(text):
        parsed = _loads_object(block.strip())
        if parsed is not None:
            return parsed

    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        return None
    parsed = _loads_object(text[start : end + 1])
    if parsed is not None:
        return parsed

    decoder = json.JSONDecoder()
    for match in re.finditer(r"\{", text):
        try:
            obj, _ = decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict):
            return obj
    return None


def _loads_object(text: str) -> dict | None:
    try:
        obj = json.loads(text)
    except json.JSONDecodeError:
        return None
    return obj if isinstance(obj, dict) else None


def acquire_plan(provider, messages: list[dict], validator: PlanValidator) -> AcquisitionResult:
    """Run the structured → correction → fallback sequence. Never raises."""
    try:
        return _acquire(provider, messages, validator)
    except Exception as e:
        # Anything escaping the state machine is still a provider-side failure.
        logger.error("Plan acquisition failed unexpectedly: %s", e)
        return AcquisitionResult(None, classify_error(e), [_describe(e)], ["unexpected failure"])


def _acquire(provider, messages: list[dict], validator: PlanValidator) -> AcquisitionResult:
    attempts: list[str] = []

    # 1. Structured attempt.
    raw: str | None = None
    candidate = None
    try:
        raw = provider.complete(messages, json_mode=True)
        candidate = json.loads(raw)
    except json.JSONDecodeError as e:
        attempts.append(f"structured: response was not JSON ({e.msg})")
    except Exception as e:
        attempts.append(f"structured: provider error, {_describe(e)}")
        logger.warning("Structured plan request failed: %s", e)
    else:
        shaped = normalize_plan(candidate)
        result = validator.validate(shaped)
        if result.valid:
            attempts.append("structured: valid plan")
            return AcquisitionResult(SuggestionPlan.from_dict(shaped), Outcome.OK_STRUCTURED, [], attempts)
        attempts.append(f"structured: {len(result.errors)} schema error(s)")
        return _correct(provider, messages, validator, raw, result.errors, attempts)

    # 3. Free-text fallback.
    return _fallback(provider, messages, validator, attempts)


def _correct(
    provider,
    messages: list[dict],
    validator: PlanValidator,
    invalid: str,
    errors: list[str],
    attempts: list[str],
) -> AcquisitionResult:
    """2. Exactly one corrective follow-up; no further retries."""
    follow_up = build_correction_messages(messages, invalid, errors, validator.schema)
    try:
        raw = provider.complete(follow_up, json_mode=True)
    except Exception as e:
        attempts.append(f"correction: provider error, {_describe(e)}")
        return AcquisitionResult(None, classify_error(e), [_describe(e)], attempts)

    candidate = _loads_object(raw) if raw else None
    if candidate is None:
        candidate = extract_json_object(raw or "")
    if candidate is None:
        attempts.append("correction: response was not a JSON object")
        return AcquisitionResult(None, Outcome.SCHEMA_INVALID, errors, attempts)

    shaped = normalize_plan(candidate)
    result = validator.validate(shaped)
    if not result.valid:
        attempts.append(f"correction: {len(result.errors)} schema error(s)")
        return AcquisitionResult(None, Outcome.SCHEMA_INVALID, result.errors, attempts)

    attempts.append("correction: valid plan")
    return AcquisitionResult(SuggestionPlan.from_dict(shaped), Outcome.OK_STRUCTURED, [], attempts)


def _fallback(provider, messages: list[dict], validator: PlanValidator, attempts: list[str]) -> AcquisitionResult:
    try:
        raw = provider.complete(build_fallback_messages(messages), json_mode=False)
    except Exception as e:
        attempts.append(f"fallback: provider error, {_describe(e)}")
        return AcquisitionResult(None, classify_error(e), [_describe(e)], attempts)

    candidate = extract_json_object(raw or "")
    if candidate is None:
        attempts.append("fallback: no JSON object in response")
        return AcquisitionResult(None, Outcome.JSON_MISSING, [(raw or "")[:_DETAIL_LIMIT]], attempts)

    shaped = normalize_plan(candidate)
    result = validator.validate(shaped)
    if not result.valid:
        attempts.append(f"fallback: {len(result.errors)} schema error(s)")
        return AcquisitionResult(None, Outcome.SCHEMA_INVALID, result.errors, attempts)

    attempts.append("fallback: valid plan")
    return AcquisitionResult(SuggestionPlan.from_dict(shaped), Outcome.OK_FALLBACK, [], attempts)
