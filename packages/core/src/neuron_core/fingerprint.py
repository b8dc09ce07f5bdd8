"""Stable identities for suggestions and files.

A suggestion's fingerprint deliberately excludes severity and body: rewording
an already-surfaced comment must not make it look new. Only a change to the
file's bytes (tracked separately via content_hash) lets it resurface.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

_DELIMITER = ":"
_CHUNK_SIZE = 64 * 1024


def fingerprint(comment) -> str:
    """Return the identity key for a comment built from path, line and title.

    Accepts a Comment or any dict-like carrying the same keys so the baseline
    store can fingerprint records without importing the core models.
    """
    if isinstance(comment, dict):
        path, line, title = comment["path"], comment["line"], comment["title"]
    else:
        path, line, title = comment.path, comment.line, comment.title
    return _DELIMITER.join((str(path), str(line), str(title)))


def content_hash(path: str | Path) -> str:
    """Return the SHA-256 hex digest of a file, or "" when it cannot be read.

    Callers must treat "" as unknown, never as a match.
    """
    digest = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
                digest.update(chunk)
    except OSError as e:
        logger.debug("Could not hash %s: %s", path, e)
        return ""
    return digest.hexdigest()


def text_checksum(text: str) -> str:
    """Short SHA-256 checksum of a text body, used by idempotence markers."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]
