from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict = {
    "provider": "azure",
    "model": None,  # None = provider default; the deployment name for azure
    "max_comments": 3,
    "max_tests": 2,
    "max_posted_comments": 5,
    "default_test_path": "__tests__/neuron.generated.test.js",
    "baseline_path": ".neuron/baseline.json",
    "post_empty_summary": True,
    "provider_timeout": 60.0,
    "max_files": 50,
    "max_patch_chars": 4000,
    "semgrep_rules": "semgrep.yml",
    "commit_message": "neuron: add generated regression tests",
    "review_draft_prs": False,
}

# Contract ranges for the plan caps.
_COMMENT_CAP_RANGE = (1, 5)
_TEST_CAP_RANGE = (0, 3)


@dataclass(frozen=True)
class Config:
    """Process-wide settings, built once at start-up and passed explicitly."""

    provider: str = DEFAULT_CONFIG["provider"]
    model: Optional[str] = DEFAULT_CONFIG["model"]
    max_comments: int = DEFAULT_CONFIG["max_comments"]
    max_tests: int = DEFAULT_CONFIG["max_tests"]
    max_posted_comments: int = DEFAULT_CONFIG["max_posted_comments"]
    default_test_path: str = DEFAULT_CONFIG["default_test_path"]
    baseline_path: str = DEFAULT_CONFIG["baseline_path"]
    post_empty_summary: bool = DEFAULT_CONFIG["post_empty_summary"]
    provider_timeout: float = DEFAULT_CONFIG["provider_timeout"]
    max_files: int = DEFAULT_CONFIG["max_files"]
    max_patch_chars: int = DEFAULT_CONFIG["max_patch_chars"]
    semgrep_rules: Optional[str] = DEFAULT_CONFIG["semgrep_rules"]
    commit_message: str = DEFAULT_CONFIG["commit_message"]
    review_draft_prs: bool = DEFAULT_CONFIG["review_draft_prs"]

    # Credentials, resolved from the environment by load_config only.
    github_token: Optional[str] = None
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    azure_endpoint: Optional[str] = None
    azure_api_key: Optional[str] = None
    azure_api_version: str = "2024-02-01"

    def with_overrides(self, **overrides) -> Config:
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _clamp(value: int, bounds: tuple[int, int]) -> int:
    low, high = bounds
    return max(low, min(high, int(value)))


def load_config(config_path: str = ".neuron.yml", cli_overrides: Optional[dict] = None) -> Config:
    """
    Build the Config by merging (in order of precedence):
      1. Built-in defaults
      2. .neuron.yml in the current directory
      3. CLI argument overrides
    Credentials always come from the environment.
    """
    values = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(
                f"{config_path} must contain a mapping of settings, got {type(file_config).__name__}."
            )
        values.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                values[key] = value

    known = {f.name for f in fields(Config)}
    for key in sorted(set(values) - known):
        logger.warning("Ignoring unknown config key %r in %s", key, config_path)
        values.pop(key)

    values["max_comments"] = _clamp(values["max_comments"], _COMMENT_CAP_RANGE)
    values["max_tests"] = _clamp(values["max_tests"], _TEST_CAP_RANGE)

    # Resolve credentials from environment variables
    values["github_token"] = os.environ.get("GITHUB_TOKEN")
    values["openai_api_key"] = os.environ.get("OPENAI_API_KEY")
    values["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    values["azure_endpoint"] = os.environ.get("AZURE_OPENAI_ENDPOINT")
    values["azure_api_key"] = os.environ.get("AZURE_OPENAI_KEY")
    if os.environ.get("AZURE_OPENAI_API_VERSION"):
        values["azure_api_version"] = os.environ["AZURE_OPENAI_API_VERSION"]
    if values["provider"] == "azure" and not values.get("model"):
        values["model"] = os.environ.get("AZURE_OPENAI_DEPLOYMENT")

    return Config(**values)
