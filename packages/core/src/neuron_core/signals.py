"""Language-agnostic repository signals for the plan prompt.

Every check here is best-effort: a missing or unreadable file yields an empty
value, never an exception. Signals are regenerated for each run and never
persisted.
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections import Counter
from pathlib import Path

from neuron_core.models import SignalBundle

logger = logging.getLogger(__name__)

_SKIP_DIRS = {".git", "node_modules", ".venv", "venv", "dist", "build", "__pycache__", ".neuron", "vendor"}
_MAX_WALK_FILES = 5_000
_EXCERPT_CHAR_LIMIT = 2_000
_PATH_LIST_LIMIT = 25

_LANGUAGE_BY_SUFFIX = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".go": "go",
    ".rb": "ruby",
    ".java": "java",
    ".kt": "kotlin",
    ".rs": "rust",
    ".php": "php",
    ".cs": "csharp",
}

_LOCKFILES = [
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("package-lock.json", "npm"),
    ("poetry.lock", "poetry"),
    ("uv.lock", "uv"),
    ("Pipfile.lock", "pipenv"),
    ("requirements.txt", "pip"),
    ("go.sum", "go"),
    ("Cargo.lock", "cargo"),
    ("Gemfile.lock", "bundler"),
]

_EXCERPT_FILES = ["README.md", "README.rst", "package.json", "pyproject.toml", "jest.config.js", "tsconfig.json"]

_JS_TEST_FRAMEWORKS = ("jest", "vitest", "mocha", "ava", "@playwright/test", "cypress")

_TEST_FILE_RE = re.compile(r"(^|/)(test_[^/]+\.py|[^/]+_test\.(py|go)|[^/]+\.(test|spec)\.[jt]sx?|[^/]+_spec\.rb)$")
_ROUTE_RE = re.compile(r"(^|/)(routes?|controllers?|handlers?|api|views|endpoints?)(/|\.|_)", re.IGNORECASE)
_SCHEMA_RE = re.compile(r"(^|/)(schemas?|models?|migrations?|entities)(/|\.|_)|\.(sql|prisma|graphql)$", re.IGNORECASE)


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


def _load_json(path: Path) -> dict:
    text = _read_text(path)
    if not text:
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def _walk(root: Path) -> list[str]:
    paths: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in _SKIP_DIRS)
        for name in sorted(filenames):
            paths.append((Path(dirpath) / name).relative_to(root).as_posix())
            if len(paths) >= _MAX_WALK_FILES:
                return paths
    return paths


def detect_languages(paths: list[str]) -> list[str]:
    counts = Counter(_LANGUAGE_BY_SUFFIX.get(Path(p).suffix.lower()) for p in paths)
    counts.pop(None, None)
    return [lang for lang, _ in counts.most_common()]


def _python_dependencies(root: Path) -> list[str]:
    deps: list[str] = []
    requirements = _read_text(root / "requirements.txt") or ""
    for line in requirements.splitlines():
        line = line.split("#", 1)[0].strip()
        if line and not line.startswith("-"):
            deps.append(re.split(r"[<>=!~\[; ]", line, maxsplit=1)[0])
    pyproject = _read_text(root / "pyproject.toml") or ""
    block = re.search(r"^dependencies\s*=\s*\[(.*?)\]", pyproject, re.DOTALL | re.MULTILINE)
    if block:
        for spec in re.findall(r"[\"']([^\"']+)[\"']", block.group(1)):
            deps.append(re.split(r"[<>=!~\[; ]", spec, maxsplit=1)[0])
    return deps


def detect_test_frameworks(package_json: dict, dependencies: list[str], paths: list[str]) -> dict[str, str]:
    frameworks: dict[str, str] = {}
    js_deps = {**package_json.get("dependencies", {}), **package_json.get("devDependencies", {})}
    for name in _JS_TEST_FRAMEWORKS:
        if name in js_deps:
            frameworks[name] = str(js_deps[name])
    test_script = str(package_json.get("scripts", {}).get("test", ""))
    for name in _JS_TEST_FRAMEWORKS:
        if name not in frameworks and name in test_script:
            frameworks[name] = "script"
    if "pytest" in dependencies or any(Path(p).name == "conftest.py" for p in paths):
        frameworks["pytest"] = "detected"
    elif any(re.search(r"(^|/)test_[^/]+\.py$", p) for p in paths):
        frameworks["unittest"] = "detected"
    if any(p.endswith("_test.go") for p in paths):
        frameworks["go test"] = "detected"
    return frameworks


def detect_package_manager(root: Path) -> str:
    for lockfile, manager in _LOCKFILES:
        if (root / lockfile).exists():
            return manager
    if (root / "package.json").exists():
        return "npm"
    return "unknown"


def gather_signals(workspace: str | Path) -> SignalBundle:
    """Collect repository signals. Never raises."""
    root = Path(workspace)
    try:
        return _gather(root)
    except Exception as e:
        logger.warning("Signal collection failed, continuing without signals: %s", e)
        return SignalBundle()


def _gather(root: Path) -> SignalBundle:
    paths = _walk(root)
    package_json = _load_json(root / "package.json")
    dependencies = sorted(
        set(package_json.get("dependencies", {}))
        | set(package_json.get("devDependencies", {}))
        | set(_python_dependencies(root))
    )

    excerpts: dict[str, str] = {}
    for name in _EXCERPT_FILES:
        text = _read_text(root / name)
        if text:
            excerpts[name] = text[:_EXCERPT_CHAR_LIMIT]

    return SignalBundle(
        languages=detect_languages(paths),
        dependencies=dependencies,
        test_frameworks=detect_test_frameworks(package_json, dependencies, paths),
        package_manager=detect_package_manager(root),
        excerpts=excerpts,
        route_files=[p for p in paths if _ROUTE_RE.search(p)][:_PATH_LIST_LIMIT],
        schema_files=[p for p in paths if _SCHEMA_RE.search(p)][:_PATH_LIST_LIMIT],
        test_files=[p for p in paths if _TEST_FILE_RE.search(p)][:_PATH_LIST_LIMIT],
    )
