"""Data model shared across the suggestion pipeline.

Plain dataclasses rather than dicts so that every stage after plan
normalisation can rely on fully-shaped values. Provider output only enters
this module through ``SuggestionPlan.from_dict``, which runs after schema
validation.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum

SEVERITIES = ("LOW", "MEDIUM", "HIGH", "CRITICAL")
MERGE_MODES = ("create", "append_or_create", "replace")
CHANGE_STATUSES = ("added", "modified", "removed", "renamed")


class Outcome(str, Enum):
    """Terminal states of plan acquisition."""

    OK_STRUCTURED = "OK_STRUCTURED"
    OK_FALLBACK = "OK_FALLBACK"
    SCHEMA_INVALID = "SCHEMA_INVALID"
    JSON_MISSING = "JSON_MISSING"
    AUTH_FAILURE = "AUTH_FAILURE"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    DEPLOYMENT_MISCONFIGURED = "DEPLOYMENT_MISCONFIGURED"
    PROVIDER_REJECTED = "PROVIDER_REJECTED"

    @property
    def ok(self) -> bool:
        return self in (Outcome.OK_STRUCTURED, Outcome.OK_FALLBACK)


@dataclass(frozen=True)
class ChangeRecord:
    """One modified file in the triggering change-set."""

    path: str
    status: str
    patch: str = ""
    additions: int = 0
    deletions: int = 0

    def to_prompt(self) -> dict:
        return {
            "path": self.path,
            "status": self.status,
            "additions": self.additions,
            "deletions": self.deletions,
            "patch": self.patch,
        }


@dataclass(frozen=True)
class Finding:
    """A normalised static-analysis finding."""

    rule_id: str
    severity: str
    file: str
    line: int
    message: str
    title: str = ""

    def to_prompt(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity,
            "file": self.file,
            "line": self.line,
            "title": self.title or self.message.split("\n")[0],
        }


@dataclass
class SignalBundle:
    """Repository facts gathered fresh for each run. Absence is an empty value."""

    languages: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    test_frameworks: dict[str, str] = field(default_factory=dict)
    package_manager: str = "unknown"
    excerpts: dict[str, str] = field(default_factory=dict)
    route_files: list[str] = field(default_factory=list)
    schema_files: list[str] = field(default_factory=list)
    test_files: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Comment:
    path: str
    line: int
    severity: str
    title: str
    body: str

    @classmethod
    def from_dict(cls, d: dict) -> Comment:
        return cls(
            path=d["path"],
            line=int(d["line"]),
            severity=d["severity"],
            title=d["title"],
            body=d["body"],
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class TestArtifact:
    language: str
    framework: str
    path: str
    mode: str
    content: str

    # Keep pytest from collecting this class as a test case.
    __test__ = False

    @classmethod
    def from_dict(cls, d: dict) -> TestArtifact:
        return cls(
            language=d["language"],
            framework=d["framework"],
            path=d["path"],
            mode=d["mode"],
            content=d["content"],
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SuggestionPlan:
    """Ordered comments and test artifacts proposed by the provider."""

    comments: list[Comment] = field(default_factory=list)
    tests: list[TestArtifact] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict) -> SuggestionPlan:
        return cls(
            comments=[Comment.from_dict(c) for c in d.get("comments") or []],
            tests=[TestArtifact.from_dict(t) for t in d.get("tests") or []],
        )

    def to_dict(self) -> dict:
        return {
            "comments": [c.to_dict() for c in self.comments],
            "tests": [t.to_dict() for t in self.tests],
        }

    @property
    def empty(self) -> bool:
        return not self.comments and not self.tests


@dataclass
class PlanRequest:
    """Everything the prompt builder needs for one run."""

    owner: str
    repo: str
    head_ref: str
    changes: list[ChangeRecord] = field(default_factory=list)
    signals: SignalBundle = field(default_factory=SignalBundle)
    findings: list[Finding] = field(default_factory=list)
    max_comments: int = 3
    max_tests: int = 2
