"""Tests for the CLI entry point."""

import json
import subprocess
from unittest.mock import MagicMock

import yaml
from click.testing import CliRunner
from rich.console import Console

from neuron_cli.auth import resolve_github_token
from neuron_cli.cli import main
from neuron_core.config import Config
from neuron_core.pipeline import RunSummary


def _make_config(**overrides):
    values = {
        "provider": "openai",
        "openai_api_key": "sk-test",
        "anthropic_api_key": None,
        "azure_endpoint": None,
        "azure_api_key": None,
    }
    values.update(overrides)
    return Config(**values)


def _summary(outcome="OK_STRUCTURED"):
    return RunSummary(
        repo="owner/repo",
        pr_number=1,
        head_sha="a" * 40,
        outcome=outcome,
        comments=[{"path": "a.js", "line": 1, "severity": "LOW", "title": "t", "body": "b"}],
        written_tests=["__tests__/a.test.js"],
    )


def _patch_common(mocker, config=None, token="tok"):
    """Patch config loading, token lookup and the GitHub repo for review tests."""
    cfg = config or _make_config()
    mocker.patch("neuron_core.config.load_config", return_value=cfg)
    mocker.patch("neuron_cli.auth.resolve_github_token", return_value=token)
    repo = MagicMock()
    mocker.patch("neuron_cli.commands.review.get_repo", return_value=repo)
    run = mocker.patch("neuron_cli.commands.review.run_pipeline", return_value=_summary())
    return cfg, repo, run


class TestReviewValidation:
    def test_missing_github_token(self, mocker):
        _patch_common(mocker, token=None)
        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code != 0
        assert "GITHUB_TOKEN" in result.output

    def test_missing_openai_key(self, mocker):
        _patch_common(mocker, config=_make_config(openai_api_key=None))
        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code != 0
        assert "OPENAI_API_KEY" in result.output

    def test_missing_anthropic_key(self, mocker):
        _patch_common(mocker, config=_make_config(provider="anthropic"))
        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code != 0
        assert "ANTHROPIC_API_KEY" in result.output

    def test_azure_requires_deployment(self, mocker):
        cfg = _make_config(provider="azure", azure_endpoint="https://e", azure_api_key="k", model=None)
        _patch_common(mocker, config=cfg)
        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code != 0
        assert "AZURE_OPENAI_DEPLOYMENT" in result.output

    def test_non_mapping_config_file_reports_cleanly(self, tmp_path):
        cfg = tmp_path / ".neuron.yml"
        cfg.write_text("- provider\n- openai\n")
        result = CliRunner().invoke(main, ["--config", str(cfg), "review", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code != 0
        assert "must contain a mapping" in result.output
        assert not isinstance(result.exception, ValueError)

    def test_invalid_provider_choice(self):
        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1", "--provider", "bard"])
        assert result.exit_code != 0


class TestReviewRun:
    def test_passes_flags_to_pipeline(self, mocker):
        _, repo, run = _patch_common(mocker)
        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1", "--shadow", "--force"])

        assert result.exit_code == 0, result.output
        kwargs = run.call_args.kwargs
        assert kwargs["pr_number"] == 1
        assert kwargs["repo_obj"] is repo
        assert kwargs["shadow"] is True
        assert kwargs["force"] is True
        assert kwargs["config"].github_token == "tok"
        assert "OK_STRUCTURED" in result.output

    def test_cli_provider_override_reaches_config_loader(self, mocker):
        _patch_common(mocker)
        loader = mocker.patch("neuron_core.config.load_config", return_value=_make_config())
        CliRunner().invoke(main, ["review", "--repo", "o/r", "--pr", "1", "--provider", "openai", "--model", "m"])
        assert loader.call_args.kwargs["cli_overrides"] == {"provider": "openai", "model": "m"}

    def test_failed_outcome_exits_non_zero(self, mocker):
        _, _, run = _patch_common(mocker)
        run.return_value = _summary(outcome="QUOTA_EXCEEDED")
        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code == 1
        assert "QUOTA_EXCEEDED" in result.output

    def test_skipped_run_exits_zero(self, mocker):
        _, _, run = _patch_common(mocker)
        run.return_value = None
        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code == 0

    def test_pipeline_value_error_becomes_click_error(self, mocker):
        _, _, run = _patch_common(mocker)
        run.side_effect = ValueError("PR #1 not found in owner/repo.")
        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code != 0
        assert "not found" in result.output

    def test_interactive_pr_selection(self, mocker):
        _, repo, run = _patch_common(mocker)
        pr = MagicMock()
        pr.number = 7
        pr.title = "Add checkout timeout"
        repo.get_pulls.return_value = [pr]
        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo"], input="7\n")
        assert result.exit_code == 0, result.output
        assert "Add checkout timeout" in result.output
        assert run.call_args.kwargs["pr_number"] == 7

    def test_no_open_prs(self, mocker):
        _, repo, run = _patch_common(mocker)
        repo.get_pulls.return_value = []
        result = CliRunner().invoke(main, ["review", "--repo", "owner/repo"])
        assert result.exit_code == 0
        assert "No open pull requests" in result.output
        run.assert_not_called()


class TestBaselineCommand:
    def test_empty_baseline(self, tmp_path):
        result = CliRunner().invoke(main, ["baseline", "--path", str(tmp_path)])
        assert result.exit_code == 0
        assert "No baseline entries found" in result.output

    def test_lists_entries_with_state(self, tmp_path, mocker):
        # Wide console so the table does not wrap fingerprints.
        mocker.patch("neuron_cli.commands.baseline.console", Console(width=200))
        (tmp_path / "gone.js").write_text("x")
        (tmp_path / ".neuron").mkdir()
        (tmp_path / ".neuron/baseline.json").write_text(
            json.dumps(
                {
                    "suggestions": [
                        {
                            "fp": "gone.js:3:Stale",
                            "path": "gone.js",
                            "file_sha": "0" * 64,
                            "first_seen_at": "2024-01-01T00:00:00+00:00",
                            "updated_at": "2024-01-02T00:00:00+00:00",
                        }
                    ]
                }
            )
        )
        result = CliRunner().invoke(main, ["baseline", "--path", str(tmp_path)])
        assert result.exit_code == 0, result.output
        assert "gone.js:3:Stale" in result.output
        assert "changed" in result.output

        only_stale = CliRunner().invoke(main, ["baseline", "--path", str(tmp_path), "--stale"])
        assert "gone.js:3:Stale" in only_stale.output


class TestInitCommand:
    def test_writes_config_and_workflow(self, mocker):
        mocker.patch("neuron_cli.commands.init._detect_repo_from_git", return_value="owner/repo")
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["init"], input="anthropic\n4\n1\n\ny\n")
            assert result.exit_code == 0, result.output

            with open(".neuron.yml") as f:
                config = yaml.safe_load(f)
            assert config == {
                "provider": "anthropic",
                "max_comments": 4,
                "max_tests": 1,
                "default_test_path": "__tests__/neuron.generated.test.js",
            }
            with open(".github/workflows/neuron.yml") as f:
                workflow = yaml.safe_load(f)
            steps = workflow["jobs"]["review"]["steps"]
            assert steps[-1]["env"]["ANTHROPIC_API_KEY"] == "${{ secrets.ANTHROPIC_API_KEY }}"
            assert workflow["concurrency"]["group"] == "neuron-${{ github.head_ref }}"
            assert 'neuron[anthropic]' in steps[1]["run"]

    def test_keeps_existing_config_keys(self, mocker):
        mocker.patch("neuron_cli.commands.init._detect_repo_from_git", return_value="owner/repo")
        runner = CliRunner()
        with runner.isolated_filesystem():
            with open(".neuron.yml", "w") as f:
                f.write("semgrep_rules: rules/semgrep.yml\n")
            result = runner.invoke(main, ["init"], input="azure\n3\n2\n\nn\n")
            assert result.exit_code == 0, result.output
            with open(".neuron.yml") as f:
                config = yaml.safe_load(f)
            assert config["semgrep_rules"] == "rules/semgrep.yml"
            assert config["provider"] == "azure"


class TestResolveGithubToken:
    def test_env_var_wins(self, monkeypatch, mocker):
        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        gh = mocker.patch("neuron_cli.auth.subprocess.run")
        assert resolve_github_token() == "env-token"
        gh.assert_not_called()

    def test_gh_token_fallback(self, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.setenv("GH_TOKEN", "gh-env")
        assert resolve_github_token() == "gh-env"

    def test_gh_cli_fallback(self, monkeypatch, mocker):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        mocker.patch(
            "neuron_cli.auth.subprocess.run",
            return_value=subprocess.CompletedProcess(["gh"], 0, stdout="cli-token\n", stderr=""),
        )
        assert resolve_github_token() == "cli-token"

    def test_no_source(self, monkeypatch, mocker):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        mocker.patch("neuron_cli.auth.subprocess.run", side_effect=FileNotFoundError("gh"))
        assert resolve_github_token() is None


class TestDetectRepo:
    def _remote(self, mocker, url, returncode=0):
        mocker.patch(
            "neuron_cli.commands.init.subprocess.run",
            return_value=subprocess.CompletedProcess(["git"], returncode, stdout=url + "\n", stderr=""),
        )

    def test_https_remote(self, mocker):
        from neuron_cli.commands.init import _detect_repo_from_git

        self._remote(mocker, "https://github.com/owner/repo.git")
        assert _detect_repo_from_git() == "owner/repo"

    def test_ssh_remote(self, mocker):
        from neuron_cli.commands.init import _detect_repo_from_git

        self._remote(mocker, "git@github.com:owner/my.repo.git")
        assert _detect_repo_from_git() == "owner/my.repo"

    def test_non_github_remote(self, mocker):
        from neuron_cli.commands.init import _detect_repo_from_git

        self._remote(mocker, "https://gitlab.com/owner/repo.git")
        assert _detect_repo_from_git() is None

    def test_no_remote(self, mocker):
        from neuron_cli.commands.init import _detect_repo_from_git

        self._remote(mocker, "", returncode=1)
        assert _detect_repo_from_git() is None
