from __future__ import annotations

from pathlib import Path


def resolve_within(root: str | Path, relative: str) -> Path | None:
    """Resolve ``relative`` against ``root``; None if the result escapes root.

    Absolute paths, ``..`` segments and symlinks pointing outside the root are
    all rejected.
    """
    base = Path(root).resolve()
    try:
        candidate = (base / relative).resolve()
    except (OSError, ValueError):
        return None
    if candidate == base or base not in candidate.parents:
        return None
    return candidate
