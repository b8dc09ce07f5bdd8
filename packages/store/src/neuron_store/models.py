"""Baseline data models.

The on-disk keys (``fp``, ``file_sha``, ...) are part of the persisted format
committed to target repositories; rename attributes freely but not keys.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class BaselineEntry:
    """A suggestion that has already been surfaced once."""

    fingerprint: str
    path: str
    content_hash: str  # file SHA-256 when last surfaced or updated; "" = unknown
    first_seen_at: str  # ISO-8601 UTC timestamp
    updated_at: str  # ISO-8601 UTC timestamp

    def to_dict(self) -> dict:
        return {
            "fp": self.fingerprint,
            "path": self.path,
            "file_sha": self.content_hash,
            "first_seen_at": self.first_seen_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> BaselineEntry:
        return cls(
            fingerprint=str(d["fp"]),
            path=str(d.get("path", "")),
            content_hash=str(d.get("file_sha") or ""),
            first_seen_at=str(d.get("first_seen_at", "")),
            updated_at=str(d.get("updated_at", "")),
        )
