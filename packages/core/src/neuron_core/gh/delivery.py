"""Delivery to GitHub: conditioned file upserts and the single run comment.

Every write is conditioned on the blob SHA read immediately before it, so a
concurrent change to the same path makes GitHub reject the update (409/422)
instead of silently overwriting it. Paths that do not exist yet are created
unconditionally. Nothing here retries; callers log failures.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from github import GithubException

from neuron_core.errors import DeliveryError

logger = logging.getLogger(__name__)


@dataclass
class RemoteFile:
    sha: str
    content: bytes


@dataclass
class CommitResult:
    committed: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


def read_remote(repo, path: str, branch: str) -> RemoteFile | None:
    """Current content and version of a path on a branch; None when absent."""
    try:
        contents = repo.get_contents(path, ref=branch)
    except GithubException as e:
        if e.status == 404:
            return None
        raise DeliveryError("read", path, e) from e
    if isinstance(contents, list):
        # A directory occupies the path; there is no file version to condition on.
        raise DeliveryError("read", path, ValueError("path is a directory"))
    return RemoteFile(sha=contents.sha, content=contents.decoded_content or b"")


def upsert_file(repo, branch: str, path: str, content: bytes, message: str) -> bool:
    """Create or update one path. Returns False when the remote already matches."""
    current = read_remote(repo, path, branch)
    try:
        if current is None:
            repo.create_file(path, message, content, branch=branch)
        elif current.content == content:
            return False
        else:
            repo.update_file(path, message, content, current.sha, branch=branch)
    except GithubException as e:
        raise DeliveryError("commit", path, e) from e
    return True


def commit_files(repo, branch: str, workspace: str | Path, paths: list[str], message: str) -> CommitResult:
    """Upsert each workspace-relative path onto the branch, independently."""
    root = Path(workspace)
    result = CommitResult()
    for path in paths:
        try:
            content = (root / path).read_bytes()
        except OSError as e:
            result.failed[path] = f"could not read local file: {e}"
            continue
        try:
            changed = upsert_file(repo, branch, path, content, message)
        except DeliveryError as e:
            logger.warning("%s", e)
            result.failed[path] = str(e.cause)
            continue
        (result.committed if changed else result.unchanged).append(path)
    return result


def post_comment(pr, body: str):
    try:
        return pr.create_issue_comment(body)
    except GithubException as e:
        raise DeliveryError("comment", f"PR #{pr.number}", e) from e
