"""Core run orchestration: acquire → filter → apply → deliver."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from github import GithubException
from rich.console import Console

from neuron_core.acquisition import acquire_plan, classify_error
from neuron_core.analysis import resolve_rules, run_semgrep
from neuron_core.applier import ApplyResult, apply_tests, select_comments
from neuron_core.config import Config
from neuron_core.errors import DeliveryError, WorkspaceError
from neuron_core.events import EventLog
from neuron_core.gh.delivery import commit_files, post_comment
from neuron_core.gh.pull_request import get_change_records, get_last_reviewed_sha, get_pull, get_repo
from neuron_core.models import Comment, Outcome, PlanRequest
from neuron_core.plan_filter import filter_plan
from neuron_core.prompts import build_messages
from neuron_core.providers.anthropic import AnthropicProvider
from neuron_core.providers.openai import AzureOpenAIProvider, OpenAIProvider
from neuron_core.report import render_failure, render_report
from neuron_core.schema import PlanValidator
from neuron_core.signals import gather_signals
from neuron_core.workspace import clone_branch, isolated_workspace
from neuron_store.baseline import BaselineStore

console = Console()
logger = logging.getLogger(__name__)

WORKSPACE_UNAVAILABLE = "WORKSPACE_UNAVAILABLE"


@dataclass
class WorkspaceResult:
    """Outcome of the local part of a run (no network besides the provider)."""

    outcome: Outcome
    log: EventLog
    detail: list[str] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)
    applied: ApplyResult = field(default_factory=ApplyResult)
    suppressed: int = 0
    baseline_changed: bool = False

    @property
    def ok(self) -> bool:
        return self.outcome.ok


@dataclass
class RunSummary:
    repo: str
    pr_number: int
    head_sha: str
    outcome: str
    comments: list[dict] = field(default_factory=list)
    written_tests: list[str] = field(default_factory=list)
    committed: list[str] = field(default_factory=list)
    suppressed: int = 0
    posted: bool = False
    reviewed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


def get_provider(config: Config):
    """Instantiate the configured text-generation provider."""
    name = config.provider
    if name == "azure":
        if not config.azure_endpoint or not config.azure_api_key:
            raise ValueError("Azure OpenAI authentication not configured (AZURE_OPENAI_ENDPOINT / AZURE_OPENAI_KEY).")
        if not config.model:
            raise ValueError("Azure OpenAI deployment not configured (AZURE_OPENAI_DEPLOYMENT or model).")
        return AzureOpenAIProvider(
            endpoint=config.azure_endpoint,
            api_key=config.azure_api_key,
            deployment=config.model,
            api_version=config.azure_api_version,
            timeout=config.provider_timeout,
        )
    if name == "openai":
        if not config.openai_api_key:
            raise ValueError("OpenAI authentication not configured (OPENAI_API_KEY).")
        return OpenAIProvider(api_key=config.openai_api_key, model=config.model, timeout=config.provider_timeout)
    if name == "anthropic":
        if not config.anthropic_api_key:
            raise ValueError("Anthropic authentication not configured (ANTHROPIC_API_KEY).")
        return AnthropicProvider(api_key=config.anthropic_api_key, model=config.model, timeout=config.provider_timeout)
    raise ValueError(f"Unknown provider: {name!r}. Choose 'azure', 'openai' or 'anthropic'.")


def process_workspace(
    workspace: str | Path,
    request: PlanRequest,
    provider,
    config: Config,
    log: EventLog | None = None,
) -> WorkspaceResult:
    """Acquire a plan, filter it against the baseline and apply it locally.

    Touches only the workspace: generated tests are written and the baseline
    file is flushed if it changed. Committing and commenting happen later.
    """
    log = log or EventLog()
    validator = PlanValidator(config.max_comments, config.max_tests)
    messages = build_messages(request, validator.schema)

    acquired = acquire_plan(provider, messages, validator)
    log = log.extend("plan", acquired.attempts)
    if not acquired.ok:
        log = log.append("plan", f"stopped with {acquired.outcome.value}", level="error")
        return WorkspaceResult(outcome=acquired.outcome, log=log, detail=acquired.detail)

    plan = acquired.plan
    baseline = BaselineStore.load(workspace, config.baseline_path)
    suppressed = sum(1 for c in plan.comments if baseline.should_skip(c))
    filtered = filter_plan(baseline, plan, config.max_comments)
    log = log.append(
        "filter",
        f"{len(plan.comments)} proposed, {suppressed} suppressed by baseline, {len(filtered.comments)} kept",
    )

    applied = apply_tests(
        workspace, filtered.tests, config.default_test_path, reserved_paths=(config.baseline_path,)
    )
    for declared, used in applied.substituted.items():
        log = log.append("apply", f"`{declared}` is not writable; wrote `{used}` instead", level="warning")
    for path, reason in applied.failed.items():
        log = log.append("apply", f"could not write `{path}`: {reason}", level="warning")
    log = log.append("apply", f"{len(applied.written)} test file(s) written, {len(applied.unchanged)} unchanged")

    comments = select_comments(filtered.comments, config.max_posted_comments)
    changed = baseline.record(comments)
    if changed:
        baseline.flush()
        log = log.append("baseline", f"updated ({len(baseline)} entries)")

    return WorkspaceResult(
        outcome=acquired.outcome,
        log=log,
        comments=comments,
        applied=applied,
        suppressed=suppressed,
        baseline_changed=changed,
    )


def _print_shadow(body: str, paths: list[str]) -> None:
    console.print("\n[bold]Shadow run: nothing committed or posted[/bold]\n")
    if paths:
        console.print("[cyan]Would commit:[/cyan] " + ", ".join(paths))
    console.print(body, markup=False)


def _deliver_comment(pr, body: str, shadow: bool) -> bool:
    """Post the run comment; returns whether it was posted."""
    if shadow:
        _print_shadow(body, [])
        return False
    try:
        post_comment(pr, body)
    except DeliveryError as e:
        logger.error("%s", e)
        console.print(f"[red]Could not post the PR comment: {e.cause}[/red]")
        return False
    console.print(f"[green]Posted Neuron comment on PR #{pr.number}.[/green]")
    return True


def run_pipeline(
    repo: str,
    pr_number: int,
    config: Config,
    repo_obj=None,
    provider=None,
    shadow: bool = False,
    force: bool = False,
) -> RunSummary | None:
    """Run one review of a pull request end to end.

    Returns None on early exits (draft skip, head already reviewed). Returns a
    RunSummary in all other cases, including acquisition failures and shadow
    runs. Exactly one PR comment is posted per non-shadow run.
    """
    this_repo = repo_obj if repo_obj is not None else get_repo(repo, token=config.github_token)

    try:
        this_pr = get_pull(this_repo, pr_number)
    except GithubException:
        raise ValueError(f"PR #{pr_number} not found in {repo}.")

    if this_pr.draft and not config.review_draft_prs:
        console.print("[yellow]Skipping draft PR. Set review_draft_prs: true in .neuron.yml to review drafts.[/yellow]")
        return None

    head_sha = this_pr.head.sha
    head_ref = this_pr.head.ref
    if not force and get_last_reviewed_sha(this_pr) == head_sha:
        console.print("[yellow]This head commit was already reviewed. Nothing to do.[/yellow]")
        return None

    summary = RunSummary(repo=repo, pr_number=pr_number, head_sha=head_sha, outcome="")
    log = EventLog().append("start", f"reviewing `{head_ref}` @ `{head_sha[:7]}`")

    changes = get_change_records(this_pr, config.max_files, config.max_patch_chars)
    log = log.append("changes", f"{len(changes)} changed file(s)")

    if provider is None:
        try:
            provider = get_provider(config)
        except (ValueError, ImportError) as e:
            outcome = classify_error(e)
            log = log.append("plan", str(e), level="error")
            summary.outcome = outcome.value
            body = render_failure(outcome.value, [str(e)], head_sha, log)
            summary.posted = _deliver_comment(this_pr, body, shadow)
            return summary

    head_repo = this_pr.head.repo
    with isolated_workspace() as tmp:
        try:
            workspace = clone_branch(head_repo.clone_url, head_ref, tmp, token=config.github_token)
        except WorkspaceError as e:
            logger.error("%s", e)
            log = log.append("workspace", str(e), level="error")
            summary.outcome = WORKSPACE_UNAVAILABLE
            body = render_failure(
                WORKSPACE_UNAVAILABLE, [str(e)], head_sha, log, hint="The branch could not be checked out."
            )
            summary.posted = _deliver_comment(this_pr, body, shadow)
            return summary

        console.print(f"[dim]Checked out {head_ref} into an isolated workspace.[/dim]")
        signals = gather_signals(workspace)
        findings = []
        rules = resolve_rules(workspace, config.semgrep_rules)
        if rules is not None:
            findings = run_semgrep(workspace, rules)
            log = log.append("analysis", f"{len(findings)} static finding(s)")

        request = PlanRequest(
            owner=this_repo.owner.login,
            repo=this_repo.name,
            head_ref=head_ref,
            changes=changes,
            signals=signals,
            findings=findings,
            max_comments=config.max_comments,
            max_tests=config.max_tests,
        )
        console.print(f"Requesting suggestion plan from {provider.name}...")
        result = process_workspace(workspace, request, provider, config, log)
        log = result.log
        summary.outcome = result.outcome.value

        if not result.ok:
            console.print(f"[red]Plan acquisition failed: {result.outcome.value}[/red]")
            body = render_failure(result.outcome.value, result.detail, head_sha, log)
            summary.posted = _deliver_comment(this_pr, body, shadow)
            return summary

        summary.comments = [c.to_dict() for c in result.comments]
        summary.written_tests = list(result.applied.written)
        summary.suppressed = result.suppressed

        to_commit = list(result.applied.written)
        if result.baseline_changed:
            to_commit.append(config.baseline_path)

        if to_commit and not shadow:
            committed = commit_files(head_repo, head_ref, workspace, to_commit, config.commit_message)
            summary.committed = committed.committed
            log = log.append(
                "commit",
                f"{len(committed.committed)} committed, {len(committed.unchanged)} already up to date",
            )
            for path, reason in committed.failed.items():
                log = log.append("commit", f"`{path}` not committed: {reason}", level="warning")

    if not result.comments and not result.applied.written and not config.post_empty_summary:
        console.print("[yellow]Nothing to report; empty summaries are disabled.[/yellow]")
        return summary

    body = render_report(
        result.comments,
        result.applied.written,
        result.suppressed,
        result.outcome,
        head_sha,
        log,
    )
    if shadow:
        _print_shadow(body, to_commit)
        return summary
    summary.posted = _deliver_comment(this_pr, body, shadow)
    return summary
