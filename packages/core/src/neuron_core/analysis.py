"""Optional Semgrep pass whose normalised findings enrich the plan prompt.

Semgrep is an external binary, not a Python dependency. When it is missing,
slow, or emits unusable output the run continues without findings.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
from pathlib import Path

from neuron_core.models import Finding

logger = logging.getLogger(__name__)

_SEMGREP_TIMEOUT = 300
_SEVERITY_MAP = {"WARNING": "MEDIUM", "ERROR": "HIGH", "INFO": "LOW"}
_KNOWN_SEVERITIES = {"LOW", "MEDIUM", "HIGH", "CRITICAL"}


def map_severity(raw) -> str:
    value = str(raw or "").upper()
    if value in _KNOWN_SEVERITIES:
        return value
    return _SEVERITY_MAP.get(value, "MEDIUM")


def normalize_semgrep(raw: dict) -> list[Finding]:
    """Convert Semgrep's ``--json`` document into Findings."""
    results = raw.get("results") if isinstance(raw, dict) else None
    if not isinstance(results, list):
        return []

    findings: list[Finding] = []
    for r in results:
        if not isinstance(r, dict):
            continue
        extra = r.get("extra") or {}
        metadata = extra.get("metadata") or {}
        rule_id = r.get("check_id") or "unknown"
        message = str(extra.get("message") or "")
        title = metadata.get("title") or (message.split("\n")[0] if message else rule_id)
        try:
            line = int((r.get("start") or {}).get("line") or 0)
        except (TypeError, ValueError):
            line = 0
        findings.append(
            Finding(
                rule_id=rule_id,
                severity=map_severity(extra.get("severity")),
                file=r.get("path") or "unknown",
                line=line,
                message=message or title,
                title=title,
            )
        )
    return findings


def _clean_env() -> dict[str, str]:
    env = {k: v for k, v in os.environ.items() if not k.upper().startswith("SEMGREP_")}
    env["SEMGREP_SEND_TELEMETRY"] = "0"
    env["SEMGREP_ENABLE_VERSION_CHECK"] = "0"
    return env


def resolve_rules(workspace: Path, configured: str | None) -> Path | None:
    """Prefer a rules file inside the reviewed repo, then the configured path."""
    if not configured:
        return None
    in_repo = workspace / Path(configured).name
    if in_repo.is_file():
        return in_repo
    local = Path(configured)
    return local if local.is_file() else None


def run_semgrep(workspace: str | Path, rules_path: str | Path) -> list[Finding]:
    """Run Semgrep over the workspace. Returns [] on any failure."""
    binary = shutil.which("semgrep")
    if binary is None:
        logger.info("semgrep not installed; skipping static analysis.")
        return []

    # No --error: that flag turns "findings exist" into a non-zero exit.
    cmd = [binary, "scan", "--config", str(rules_path), "--json", "."]
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(workspace),
            capture_output=True,
            text=True,
            env=_clean_env(),
            timeout=_SEMGREP_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning("semgrep failed to run: %s", e)
        return []

    # Semgrep may exit non-zero yet still print a complete JSON report.
    try:
        raw = json.loads(proc.stdout)
    except json.JSONDecodeError:
        logger.warning("semgrep exited %d without JSON output: %s", proc.returncode, proc.stderr[:500])
        return []
    return normalize_semgrep(raw)
