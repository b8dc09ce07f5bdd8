"""Run the suggestion pipeline on a pull request."""

from __future__ import annotations

import click
from rich.console import Console

from neuron_core.gh.pull_request import get_pull_requests, get_repo
from neuron_core.pipeline import RunSummary, run_pipeline

console = Console()

_REQUIRED_CREDENTIALS = {
    "openai": [("openai_api_key", "OPENAI_API_KEY")],
    "anthropic": [("anthropic_api_key", "ANTHROPIC_API_KEY")],
    "azure": [("azure_endpoint", "AZURE_OPENAI_ENDPOINT"), ("azure_api_key", "AZURE_OPENAI_KEY")],
}
_SUCCESS_OUTCOMES = ("OK_STRUCTURED", "OK_FALLBACK")


def _print_summary(summary: RunSummary) -> None:
    console.print(
        f"\n[bold]PR #{summary.pr_number}[/bold] @ {summary.head_sha[:7]}: "
        f"{len(summary.comments)} suggestion(s), {len(summary.written_tests)} test file(s), "
        f"{summary.suppressed} suppressed · outcome [cyan]{summary.outcome}[/cyan]"
    )


@click.command("review")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option(
    "--pr",
    "pr_number",
    type=int,
    default=None,
    help="Pull request number. Omit to list open PRs interactively.",
)
@click.option(
    "--provider",
    type=click.Choice(["azure", "openai", "anthropic"]),
    default=None,
    help="Text-generation provider. Overrides config file.",
)
@click.option("--model", default=None, help="Model or Azure deployment name. Overrides config file.")
@click.option(
    "--shadow",
    "-s",
    is_flag=True,
    help="Dry-run mode: print the report without committing or posting.",
)
@click.option("--force", is_flag=True, help="Review even if this head commit was already reviewed.")
@click.pass_context
def review_cmd(
    ctx,
    repo: str,
    pr_number: int | None,
    provider: str | None,
    model: str | None,
    shadow: bool,
    force: bool,
):
    """Propose review comments and regression tests for a pull request.

    Generated tests and the suppression baseline are committed to the PR
    branch; one summary comment is posted per run.

    \b
    Required environment variables:
      GITHUB_TOKEN            GitHub token (or use gh CLI)
      AZURE_OPENAI_ENDPOINT   \\
      AZURE_OPENAI_KEY         } with --provider azure (default)
      AZURE_OPENAI_DEPLOYMENT /
      OPENAI_API_KEY          With --provider openai
      ANTHROPIC_API_KEY       With --provider anthropic
    """
    from neuron_cli.auth import resolve_github_token
    from neuron_core.config import load_config

    config_path = ctx.obj.get("config_path", ".neuron.yml") if ctx.obj else ".neuron.yml"
    try:
        config = load_config(config_path, cli_overrides={"provider": provider, "model": model})
    except ValueError as e:
        raise click.ClickException(str(e))

    token = resolve_github_token()
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    config = config.with_overrides(github_token=token)

    for attr, env_var in _REQUIRED_CREDENTIALS.get(config.provider, []):
        if not getattr(config, attr):
            raise click.UsageError(f"{env_var} environment variable is not set.")
    if config.provider == "azure" and not config.model:
        raise click.UsageError("Set AZURE_OPENAI_DEPLOYMENT or pass --model with the deployment name.")

    this_repo = get_repo(repo, token=token)

    if pr_number is None:
        prs = list(get_pull_requests(this_repo))
        if not prs:
            console.print("[yellow]No open pull requests found.[/yellow]")
            return
        console.print("\nOpen pull requests:")
        for pr in prs:
            console.print(f"  [bold]#{pr.number}[/bold]  {pr.title}")
        pr_number = click.prompt("\nEnter the pull request number", type=int)

    try:
        summary = run_pipeline(
            repo=repo,
            pr_number=pr_number,
            config=config,
            repo_obj=this_repo,
            shadow=shadow,
            force=force,
        )
    except ValueError as e:
        raise click.ClickException(str(e))

    if summary is None:
        return
    _print_summary(summary)
    if summary.outcome not in _SUCCESS_OUTCOMES:
        console.print(f"[red]Run finished without a plan: {summary.outcome}[/red]")
        ctx.exit(1)
