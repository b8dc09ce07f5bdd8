"""Per-run isolated workspace.

Each run owns a fresh temporary directory holding a shallow clone of the PR's
head branch. The directory is removed on every exit path.
"""

from __future__ import annotations

import contextlib
import logging
import subprocess
import tempfile
from pathlib import Path

from neuron_core.errors import WorkspaceError

logger = logging.getLogger(__name__)

_CLONE_TIMEOUT = 300


def authenticated_url(clone_url: str, token: str | None) -> str:
    if not token or not clone_url.startswith("https://"):
        return clone_url
    return clone_url.replace("https://", f"https://x-access-token:{token}@", 1)


@contextlib.contextmanager
def isolated_workspace(prefix: str = "neuron-"):
    with tempfile.TemporaryDirectory(prefix=prefix) as tmp:
        yield Path(tmp)


def clone_branch(clone_url: str, branch: str, dest: Path, token: str | None = None) -> Path:
    """Shallow-clone ``branch`` into ``dest/repo`` and return that path."""
    repo_dir = dest / "repo"
    cmd = ["git", "clone", "--depth", "1", "--branch", branch, authenticated_url(clone_url, token), str(repo_dir)]
    try:
        subprocess.run(cmd, capture_output=True, text=True, check=True, timeout=_CLONE_TIMEOUT)
    except FileNotFoundError as e:
        raise WorkspaceError("git is not installed") from e
    except subprocess.TimeoutExpired as e:
        raise WorkspaceError(f"git clone timed out after {_CLONE_TIMEOUT}s") from e
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        if token:
            stderr = stderr.replace(token, "***")
        raise WorkspaceError(f"git clone failed: {stderr[:500]}") from e
    logger.debug("Cloned %s@%s into %s", clone_url, branch, repo_dir)
    return repo_dir
