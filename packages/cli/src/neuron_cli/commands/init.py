"""Write .neuron.yml and an optional Actions workflow."""

from __future__ import annotations

import re
import subprocess
from pathlib import Path

import click
import yaml
from rich.console import Console

console = Console()

# https://github.com/owner/name(.git) and git@github.com:owner/name(.git)
_GITHUB_REMOTE_RE = re.compile(r"github\.com[/:]([\w.-]+/[\w.-]+?)(?:\.git)?/?$")

_SECRETS_BY_PROVIDER = {
    "azure": ["AZURE_OPENAI_ENDPOINT", "AZURE_OPENAI_KEY", "AZURE_OPENAI_DEPLOYMENT"],
    "openai": ["OPENAI_API_KEY"],
    "anthropic": ["ANTHROPIC_API_KEY"],
}

_WORKFLOW_TEMPLATE = """\
name: Neuron Review

on:
  pull_request:
    types: [opened, synchronize, reopened]

# One run per branch at a time: concurrent runs would read the same baseline.
concurrency:
  group: neuron-${{{{ github.head_ref }}}}
  cancel-in-progress: false

jobs:
  review:
    runs-on: ubuntu-latest
    permissions:
      contents: write
      pull-requests: write

    steps:
      - name: Set up Python
        uses: actions/setup-python@v5
        with:
          python-version: "3.12"

      - name: Install neuron
        run: pip install "neuron[{extra}]"

      - name: Run neuron
        env:
          GITHUB_TOKEN: ${{{{ secrets.GITHUB_TOKEN }}}}
{secret_env}
        run: |
          neuron review \\
            --repo ${{{{ github.repository }}}} \\
            --pr ${{{{ github.event.pull_request.number }}}}
"""


@click.command("init")
@click.option("--repo", default=None, help="GitHub repository (owner/name). Auto-detected from git remote.")
@click.pass_context
def init_cmd(ctx, repo: str | None):
    """Set up neuron for a repository."""
    console.print("\n[bold cyan]neuron init[/bold cyan]\n")

    if repo is None:
        repo = _detect_repo_from_git()
        if repo:
            console.print(f"[dim]Detected repository: {repo}[/dim]")
        else:
            repo = click.prompt("GitHub repository (owner/name)")

    provider = click.prompt(
        "Text-generation provider",
        type=click.Choice(list(_SECRETS_BY_PROVIDER)),
        default="azure",
    )
    max_comments = click.prompt("Maximum review comments per run", type=click.IntRange(1, 5), default=3)
    max_tests = click.prompt("Maximum generated test files per run", type=click.IntRange(0, 3), default=2)
    default_test_path = click.prompt(
        "Fallback path for generated tests", default="__tests__/neuron.generated.test.js"
    )

    config_path = Path(ctx.obj.get("config_path", ".neuron.yml") if ctx.obj else ".neuron.yml")
    _write_config(
        config_path,
        {
            "provider": provider,
            "max_comments": max_comments,
            "max_tests": max_tests,
            "default_test_path": default_test_path,
        },
    )
    console.print(f"[green]Created {config_path}[/green]")

    if click.confirm("\nGenerate .github/workflows/neuron.yml for GitHub Actions?", default=True):
        _write_workflow(provider)
        console.print("[green]Created .github/workflows/neuron.yml[/green]")
        secrets = ", ".join(_SECRETS_BY_PROVIDER[provider])
        console.print(
            f"\n[yellow]Add [bold]{secrets}[/bold] to the repository secrets (Settings > Secrets > Actions).[/yellow]"
        )

    console.print("\n[bold green]Setup complete![/bold green]")
    console.print(f"Run a review with: [bold]neuron review --repo {repo} --pr <number>[/bold]")


def _detect_repo_from_git() -> str | None:
    """Derive owner/name from the origin remote, for HTTPS and SSH URLs."""
    try:
        origin = subprocess.run(
            ["git", "config", "--get", "remote.origin.url"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    match = _GITHUB_REMOTE_RE.search(origin.stdout.strip()) if origin.returncode == 0 else None
    return match.group(1) if match else None


def _write_config(path: Path, values: dict) -> None:
    """Merge values into the YAML config, keeping keys already present."""
    existing: dict = {}
    if path.exists():
        existing = yaml.safe_load(path.read_text()) or {}
    existing.update(values)
    path.write_text(yaml.dump(existing, default_flow_style=False, sort_keys=False))


def _write_workflow(provider: str) -> None:
    workflow_dir = Path(".github/workflows")
    workflow_dir.mkdir(parents=True, exist_ok=True)
    extra = "anthropic" if provider == "anthropic" else "openai"
    secret_env = "\n".join(
        f"          {name}: ${{{{ secrets.{name} }}}}" for name in _SECRETS_BY_PROVIDER[provider]
    )
    (workflow_dir / "neuron.yml").write_text(
        _WORKFLOW_TEMPLATE.format(extra=extra, secret_env=secret_env)
    )
