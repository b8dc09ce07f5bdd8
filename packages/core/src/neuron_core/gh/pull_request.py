from __future__ import annotations

import re

from github import Github

from neuron_core.models import CHANGE_STATUSES, ChangeRecord

SHA_MARKER = "<!-- neuron-sha: {sha} -->"
# Failed runs record the head they tried without marking it reviewed.
FAILED_SHA_MARKER = "<!-- neuron-failed-sha: {sha} -->"
_SHA_MARKER_RE = re.compile(r"<!-- neuron-sha: ([0-9a-f]{40}) -->")


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_pull_requests(repo, state: str = "open"):
    return repo.get_pulls(state=state)


def get_change_records(pr, max_files: int = 50, max_patch_chars: int = 4000) -> list[ChangeRecord]:
    """Return the PR's changed files as ChangeRecords, capped in count and patch size."""
    records: list[ChangeRecord] = []
    for i, f in enumerate(pr.get_files()):
        if i >= max_files:
            break
        patch = f.patch or ""
        if len(patch) > max_patch_chars:
            patch = patch[:max_patch_chars] + "\n... [diff truncated]"
        status = f.status if f.status in CHANGE_STATUSES else "modified"
        records.append(
            ChangeRecord(
                path=f.filename,
                status=status,
                patch=patch,
                additions=f.additions or 0,
                deletions=f.deletions or 0,
            )
        )
    return records


def get_last_reviewed_sha(pr) -> str | None:
    """Return the most recent head SHA recorded by neuron in a PR comment, or None."""
    last_sha = None
    for comment in pr.get_issue_comments():
        match = _SHA_MARKER_RE.search(comment.body or "")
        if match:
            last_sha = match.group(1)
    return last_sha
