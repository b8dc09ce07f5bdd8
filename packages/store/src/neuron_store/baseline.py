"""BaselineStore: suppress suggestions already surfaced for unchanged files.

The baseline lives inside the reviewed repository (``.neuron/baseline.json``
by default) and is committed back to the branch alongside generated tests, so
it travels with the code it describes. Format:

    {"suggestions": [{"fp": ..., "path": ..., "file_sha": ...,
                      "first_seen_at": ..., "updated_at": ...}, ...]}

Lifecycle per run: load once, query and mutate in memory, flush at most once
and only if record() reported a change. A missing or corrupt file is an empty
baseline, never an error.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable

from neuron_core.fingerprint import content_hash, fingerprint
from neuron_core.utils.paths import resolve_within
from neuron_store.models import BaselineEntry

logger = logging.getLogger(__name__)

DEFAULT_BASELINE_PATH = ".neuron/baseline.json"


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class BaselineStore:
    """In-memory view of one workspace's baseline file."""

    def __init__(
        self,
        workspace: str | Path,
        entries: Iterable[BaselineEntry] = (),
        relative_path: str = DEFAULT_BASELINE_PATH,
        clock: Callable[[], str] = _utcnow,
    ):
        self.workspace = Path(workspace)
        self.relative_path = relative_path
        self._clock = clock
        self._entries: dict[str, BaselineEntry] = {}
        for entry in entries:
            self._entries[entry.fingerprint] = entry

    # ------------------------------------------------------------------ #
    # Persistence                                                          #
    # ------------------------------------------------------------------ #

    @property
    def file_path(self) -> Path:
        return self.workspace / self.relative_path

    @classmethod
    def load(
        cls,
        workspace: str | Path,
        relative_path: str = DEFAULT_BASELINE_PATH,
        clock: Callable[[], str] = _utcnow,
    ) -> BaselineStore:
        """Read the baseline for a workspace; empty on absence or corruption."""
        store = cls(workspace, relative_path=relative_path, clock=clock)
        path = store.file_path
        if not path.exists():
            return store
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Baseline at %s is unreadable (%s); starting empty.", path, e)
            return store

        suggestions = data.get("suggestions") if isinstance(data, dict) else None
        if not isinstance(suggestions, list):
            logger.warning("Baseline at %s has no 'suggestions' array; starting empty.", path)
            return store

        for raw in suggestions:
            try:
                entry = BaselineEntry.from_dict(raw)
            except (KeyError, TypeError, AttributeError):
                logger.debug("Dropping malformed baseline entry: %r", raw)
                continue
            store._entries[entry.fingerprint] = entry
        return store

    def flush(self) -> Path:
        """Write the baseline, creating its directory. Returns the file path.

        Writes to a sibling temp file and renames it into place so a crash
        mid-write leaves the previous file intact.
        """
        path = self.file_path
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps({"suggestions": [e.to_dict() for e in self._entries.values()]}, indent=2) + "\n"
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".baseline-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        return path

    # ------------------------------------------------------------------ #
    # Queries and updates                                                  #
    # ------------------------------------------------------------------ #

    @property
    def entries(self) -> list[BaselineEntry]:
        return list(self._entries.values())

    def get(self, fp: str) -> BaselineEntry | None:
        return self._entries.get(fp)

    def current_hash(self, path: str) -> str:
        """Content hash of a workspace file; "" if missing or outside the root."""
        resolved = resolve_within(self.workspace, path)
        if resolved is None:
            return ""
        return content_hash(resolved)

    def should_skip(self, comment) -> bool:
        """True only when the same suggestion was surfaced against identical bytes.

        Both hashes must be known: an unreadable file never counts as a match.
        """
        entry = self._entries.get(fingerprint(comment))
        if entry is None:
            return False
        current = self.current_hash(comment.path)
        return bool(entry.content_hash) and bool(current) and entry.content_hash == current

    def record(self, comments: Iterable) -> bool:
        """Record posted comments. Returns True if anything changed."""
        changed = False
        for comment in comments:
            fp = fingerprint(comment)
            current = self.current_hash(comment.path)
            existing = self._entries.get(fp)
            if existing is None:
                now = self._clock()
                self._entries[fp] = BaselineEntry(
                    fingerprint=fp,
                    path=comment.path,
                    content_hash=current,
                    first_seen_at=now,
                    updated_at=now,
                )
                changed = True
            elif current and existing.content_hash != current:
                existing.content_hash = current
                existing.updated_at = self._clock()
                changed = True
        return changed

    def __len__(self) -> int:
        return len(self._entries)
