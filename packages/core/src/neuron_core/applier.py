"""Apply a filtered plan to the workspace.

Generated test files carry a first-line idempotence marker holding a checksum
of the file body. Re-applying an unchanged proposal to a file that already
contains it is a no-op, so repeated runs never pile up duplicate tests.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from neuron_core.fingerprint import fingerprint, text_checksum
from neuron_core.models import Comment, TestArtifact
from neuron_core.utils.paths import resolve_within

logger = logging.getLogger(__name__)

MARKER_TAG = "neuron-generated"
_MARKER_RE = re.compile(rf"^\s*(?:#|//|--|;)\s*{MARKER_TAG} checksum=([0-9a-f]+)\s*$", re.MULTILINE)

_HASH_COMMENT_SUFFIXES = {".py", ".rb", ".sh", ".bash", ".pl", ".r", ".yml", ".yaml", ".toml", ".ex", ".exs"}
_DASH_COMMENT_SUFFIXES = {".sql", ".lua", ".hs"}


def _comment_prefix(path: str) -> str:
    suffix = PurePosixPath(path).suffix.lower()
    if suffix in _HASH_COMMENT_SUFFIXES:
        return "#"
    if suffix in _DASH_COMMENT_SUFFIXES:
        return "--"
    return "//"


def marker_line(path: str, body: str) -> str:
    return f"{_comment_prefix(path)} {MARKER_TAG} checksum={text_checksum(body)}"


def has_marker(text: str) -> bool:
    return _MARKER_RE.search(text) is not None


def strip_marker(text: str) -> str:
    """Remove marker lines so a previously generated body can be extended."""
    return _MARKER_RE.sub("", text).lstrip("\n")


@dataclass
class ApplyResult:
    written: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    # Artifacts whose declared path was unusable (outside the workspace or
    # reserved): declared → used.
    substituted: dict[str, str] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)


def _read_existing(path: Path) -> str | None:
    """Current file text, or None when the file is absent.

    Raises OSError or UnicodeDecodeError when the file exists but cannot be
    read as UTF-8 text.
    """
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8")


def render_content(artifact: TestArtifact, relative: str, existing: str | None) -> str:
    """Final file text for an artifact: marker line + merged body."""
    proposed = artifact.content
    if artifact.mode == "append_or_create" and existing is not None:
        prior = strip_marker(existing).rstrip("\n")
        body = f"{prior}\n\n{proposed}" if prior else proposed
    else:
        body = proposed
    if not body.endswith("\n"):
        body += "\n"
    return f"{marker_line(relative, body)}\n{body}"


def _is_reserved(workspace: Path, target: Path, reserved: set[Path]) -> bool:
    """Git internals and neuron's own state files are never test targets."""
    if target in reserved:
        return True
    return target.relative_to(workspace).parts[0] == ".git"


def _usable(workspace: Path, relative: str, reserved: set[Path]) -> Path | None:
    target = resolve_within(workspace, relative)
    if target is None or _is_reserved(workspace, target, reserved):
        return None
    return target


def _resolve_target(workspace: Path, artifact: TestArtifact, default_path: str, reserved: set[Path], result):
    target = _usable(workspace, artifact.path, reserved)
    if target is not None:
        return target
    logger.warning("Test path %r is not writable by neuron; using %r instead.", artifact.path, default_path)
    target = _usable(workspace, default_path, reserved)
    if target is not None:
        result.substituted[artifact.path] = default_path
    return target


def apply_tests(
    workspace: str | Path,
    tests: list[TestArtifact],
    default_path: str,
    reserved_paths: tuple[str, ...] = (),
) -> ApplyResult:
    """Write test artifacts into the workspace. Each artifact is independent.

    Paths that leave the workspace, point into ``.git/`` or name one of
    ``reserved_paths`` are replaced by ``default_path``.
    """
    root = Path(workspace).resolve()
    result = ApplyResult()
    reserved = {(root / p).resolve() for p in reserved_paths}

    for artifact in tests:
        target = _resolve_target(root, artifact, default_path, reserved, result)
        if target is None:
            result.failed[artifact.path] = "no usable path inside the workspace"
            continue
        relative = target.relative_to(root).as_posix()

        try:
            existing = _read_existing(target)
        except (OSError, UnicodeDecodeError) as e:
            if artifact.mode == "append_or_create":
                logger.warning("Could not read %s to append to it: %s", relative, e)
                result.failed[relative] = f"existing file is unreadable: {e}"
                continue
            existing = None
        if existing is not None and has_marker(existing) and artifact.content in existing:
            logger.debug("%s already contains this proposal; skipping.", relative)
            if relative not in result.written:
                result.unchanged.append(relative)
            continue

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(render_content(artifact, relative, existing), encoding="utf-8")
        except OSError as e:
            logger.warning("Failed to write %s: %s", relative, e)
            result.failed[relative] = str(e)
            continue

        if relative not in result.written:
            result.written.append(relative)

    return result


def select_comments(comments: list[Comment], max_posted: int) -> list[Comment]:
    """Deduplicate by fingerprint within a run and cap what gets posted."""
    seen: set[str] = set()
    selected: list[Comment] = []
    for comment in comments:
        if len(selected) >= max_posted:
            break
        fp = fingerprint(comment)
        if fp in seen:
            continue
        seen.add(fp)
        selected.append(comment)
    return selected
