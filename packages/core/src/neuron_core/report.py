"""Render the single PR comment posted per run."""

from __future__ import annotations

from neuron_core.events import EventLog
from neuron_core.gh.pull_request import FAILED_SHA_MARKER, SHA_MARKER
from neuron_core.models import Comment, Outcome

_SEVERITY_BADGE = {"CRITICAL": "🔴", "HIGH": "🟠", "MEDIUM": "🟡", "LOW": "🔵"}

_FAILURE_HINTS = {
    Outcome.SCHEMA_INVALID: "The model's plan did not match the required schema, even after one correction.",
    Outcome.JSON_MISSING: "The model did not return a JSON plan.",
    Outcome.AUTH_FAILURE: "The text-generation provider rejected the credentials. Check the API key.",
    Outcome.QUOTA_EXCEEDED: "The provider's quota or rate limit was exceeded. Try again later.",
    Outcome.DEPLOYMENT_MISCONFIGURED: "The model or deployment name is missing or does not exist.",
    Outcome.PROVIDER_REJECTED: "The provider request failed.",
}

_DETAIL_LINES = 10


def _run_log_section(log: EventLog) -> list[str]:
    if not len(log):
        return []
    return ["", "<details><summary>Run log</summary>", "", log.render(), "", "</details>"]


def render_comment(comment: Comment) -> str:
    badge = _SEVERITY_BADGE.get(comment.severity, "•")
    return f"#### {badge} **{comment.severity}** `{comment.path}:{comment.line}` {comment.title}\n\n{comment.body}"


def render_report(
    comments: list[Comment],
    written_tests: list[str],
    suppressed: int,
    outcome: Outcome,
    head_sha: str,
    log: EventLog,
) -> str:
    """Summary + comments + generated test paths + run log."""
    lines = ["## 🧠 Neuron review\n"]

    if not comments and not written_tests:
        verdict = "Nothing to report: no new suggestions and no new tests for this change."
    else:
        parts = []
        if comments:
            parts.append(f"{len(comments)} suggestion(s)")
        if written_tests:
            parts.append(f"{len(written_tests)} generated test file(s)")
        verdict = " and ".join(parts) + "."
    lines.append(f"> {verdict}\n")

    stats = f"Plan source: `{outcome.value}`"
    if suppressed:
        stats += f" · **{suppressed}** repeat suggestion(s) suppressed (file unchanged since last surfaced)"
    lines.append(stats + "\n")

    if comments:
        lines.append("### Suggestions\n")
        lines.extend(render_comment(c) + "\n" for c in comments)

    if written_tests:
        lines.append("### Generated tests\n")
        lines.extend(f"- `{path}`" for path in written_tests)
        lines.append("")

    lines.extend(_run_log_section(log))
    lines.append(SHA_MARKER.format(sha=head_sha))
    return "\n".join(lines)


def failure_hint(code: str) -> str:
    try:
        return _FAILURE_HINTS[Outcome(code)]
    except (KeyError, ValueError):
        return "The run stopped early."


def render_failure(code: str, detail: list[str], head_sha: str, log: EventLog, hint: str | None = None) -> str:
    """Comment for a run that stopped before producing a plan."""
    lines = [
        "## ⚠️ Neuron could not produce a review\n",
        f"Diagnostic code: `{code}`\n",
        (hint or failure_hint(code)) + "\n",
    ]
    if detail:
        lines.append("```")
        lines.extend(d[:300] for d in detail[:_DETAIL_LINES])
        lines.append("```")
    lines.extend(_run_log_section(log))
    lines.append(FAILED_SHA_MARKER.format(sha=head_sha))
    return "\n".join(lines)
