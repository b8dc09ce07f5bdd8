"""Tests for writing test artifacts and selecting comments to post."""

from pathlib import Path

from neuron_core.applier import (
    MARKER_TAG,
    apply_tests,
    has_marker,
    marker_line,
    render_content,
    select_comments,
    strip_marker,
)
from neuron_core.models import Comment, TestArtifact

DEFAULT_PATH = "__tests__/neuron.generated.test.js"
BODY = "test('guards empty cart', () => {\n  expect(total([])).toBe(0);\n});\n"


def _artifact(path="__tests__/cart.test.js", mode="create", content=BODY):
    return TestArtifact(language="javascript", framework="jest", path=path, mode=mode, content=content)


def _comment(line=1, title="T"):
    return Comment(path="src/a.js", line=line, severity="LOW", title=title, body="b")


class TestMarker:
    def test_js_files_use_slash_comments(self):
        assert marker_line("a.test.js", "x").startswith(f"// {MARKER_TAG} checksum=")

    def test_python_files_use_hash_comments(self):
        assert marker_line("tests/test_a.py", "x").startswith(f"# {MARKER_TAG} checksum=")

    def test_sql_files_use_dash_comments(self):
        assert marker_line("checks.sql", "x").startswith("-- ")

    def test_marker_detected_and_stripped(self):
        text = marker_line("a.js", BODY) + "\n" + BODY
        assert has_marker(text)
        assert strip_marker(text) == BODY
        assert not has_marker(BODY)


class TestRenderContent:
    def test_create_ignores_existing(self):
        rendered = render_content(_artifact(), "a.test.js", existing="old content\n")
        assert "old content" not in rendered
        assert rendered.splitlines()[0].startswith("//")

    def test_append_joins_prior_body(self):
        existing = "test('old', () => {});\n"
        rendered = render_content(_artifact(mode="append_or_create"), "a.test.js", existing)
        assert rendered.index("test('old'") < rendered.index("guards empty cart")

    def test_append_replaces_old_marker(self):
        first = render_content(_artifact(mode="append_or_create"), "a.test.js", None)
        second = render_content(_artifact(mode="append_or_create", content="test('b', () => {});"), "a.test.js", first)
        assert second.count(MARKER_TAG) == 1

    def test_trailing_newline_added(self):
        assert render_content(_artifact(content="x"), "a.js", None).endswith("x\n")


class TestApplyTests:
    def test_writes_file_with_marker(self, tmp_path):
        result = apply_tests(tmp_path, [_artifact()], DEFAULT_PATH)
        assert result.written == ["__tests__/cart.test.js"]
        text = (tmp_path / "__tests__/cart.test.js").read_text()
        assert text.startswith(f"// {MARKER_TAG}")
        assert BODY in text

    def test_reapplying_same_proposal_is_a_noop(self, tmp_path):
        artifact = _artifact(mode="append_or_create")
        apply_tests(tmp_path, [artifact], DEFAULT_PATH)
        before = (tmp_path / artifact.path).read_text()

        result = apply_tests(tmp_path, [artifact], DEFAULT_PATH)

        assert result.written == []
        assert result.unchanged == [artifact.path]
        assert (tmp_path / artifact.path).read_text() == before

    def test_append_or_create_keeps_prior_tests(self, tmp_path):
        target = tmp_path / "__tests__/cart.test.js"
        target.parent.mkdir(parents=True)
        target.write_text("test('existing', () => {});\n")

        apply_tests(tmp_path, [_artifact(mode="append_or_create")], DEFAULT_PATH)

        text = target.read_text()
        assert "test('existing'" in text
        assert "guards empty cart" in text

    def test_replace_overwrites(self, tmp_path):
        target = tmp_path / "__tests__/cart.test.js"
        target.parent.mkdir(parents=True)
        target.write_text("test('existing', () => {});\n")

        apply_tests(tmp_path, [_artifact(mode="replace")], DEFAULT_PATH)

        assert "existing" not in target.read_text()

    def test_escaping_path_uses_default(self, tmp_path):
        workspace = tmp_path / "repo"
        workspace.mkdir()
        result = apply_tests(workspace, [_artifact(path="../../etc/evil.test.js")], DEFAULT_PATH)

        assert result.written == [DEFAULT_PATH]
        assert result.substituted == {"../../etc/evil.test.js": DEFAULT_PATH}
        assert (workspace / DEFAULT_PATH).is_file()
        assert not (tmp_path / "etc").exists()

    def test_absolute_path_uses_default(self, tmp_path):
        result = apply_tests(tmp_path, [_artifact(path="/tmp/evil.test.js")], DEFAULT_PATH)
        assert result.written == [DEFAULT_PATH]

    def test_baseline_file_is_never_a_test_target(self, tmp_path):
        baseline = tmp_path / ".neuron/baseline.json"
        baseline.parent.mkdir()
        baseline.write_text('{"suggestions": []}')

        result = apply_tests(
            tmp_path,
            [_artifact(path="./.neuron/baseline.json", mode="replace")],
            DEFAULT_PATH,
            reserved_paths=(".neuron/baseline.json",),
        )

        assert result.written == [DEFAULT_PATH]
        assert result.substituted == {"./.neuron/baseline.json": DEFAULT_PATH}
        assert baseline.read_text() == '{"suggestions": []}'

    def test_git_directory_is_never_a_test_target(self, tmp_path):
        (tmp_path / ".git").mkdir()
        result = apply_tests(tmp_path, [_artifact(path=".git/hooks/pre-commit")], DEFAULT_PATH)

        assert result.written == [DEFAULT_PATH]
        assert not (tmp_path / ".git/hooks").exists()

    def test_reserved_default_path_fails(self, tmp_path):
        result = apply_tests(tmp_path, [_artifact(path=".git/x.js")], ".git/y.js")
        assert result.written == []
        assert ".git/x.js" in result.failed

    def test_undecodable_file_is_not_overwritten_on_append(self, tmp_path):
        target = tmp_path / "__tests__/cart.test.js"
        target.parent.mkdir(parents=True)
        target.write_bytes(b"\xff\xfe legacy latin-1 \xe9\n")

        result = apply_tests(tmp_path, [_artifact(mode="append_or_create")], DEFAULT_PATH)

        assert result.written == []
        assert "__tests__/cart.test.js" in result.failed
        assert target.read_bytes() == b"\xff\xfe legacy latin-1 \xe9\n"

    def test_undecodable_file_is_replaced_in_replace_mode(self, tmp_path):
        target = tmp_path / "__tests__/cart.test.js"
        target.parent.mkdir(parents=True)
        target.write_bytes(b"\xff\xfe\n")

        result = apply_tests(tmp_path, [_artifact(mode="replace")], DEFAULT_PATH)

        assert result.written == ["__tests__/cart.test.js"]
        assert BODY in target.read_text()

    def test_one_failure_does_not_abort_others(self, tmp_path):
        # A directory squatting on the target path makes that single write fail.
        (tmp_path / "blocked.test.js").mkdir()
        result = apply_tests(
            tmp_path,
            [_artifact(path="blocked.test.js"), _artifact(path="ok.test.js")],
            DEFAULT_PATH,
        )
        assert "blocked.test.js" in result.failed
        assert result.written == ["ok.test.js"]

    def test_two_artifacts_same_path_listed_once(self, tmp_path):
        result = apply_tests(
            tmp_path,
            [_artifact(mode="append_or_create"), _artifact(mode="append_or_create", content="test('b', () => {});")],
            DEFAULT_PATH,
        )
        assert result.written == ["__tests__/cart.test.js"]
        text = (tmp_path / "__tests__/cart.test.js").read_text()
        assert "guards empty cart" in text and "test('b'" in text

    def test_returns_posix_relative_paths(self, tmp_path):
        result = apply_tests(tmp_path, [_artifact(path="deep/nested/dir/x.test.js")], DEFAULT_PATH)
        assert result.written == ["deep/nested/dir/x.test.js"]
        assert Path(tmp_path, *result.written[0].split("/")).is_file()


class TestSelectComments:
    def test_dedups_by_fingerprint(self):
        comments = [_comment(1, "A"), _comment(1, "A"), _comment(2, "B")]
        selected = select_comments(comments, max_posted=5)
        assert [(c.line, c.title) for c in selected] == [(1, "A"), (2, "B")]

    def test_caps_in_order(self):
        comments = [_comment(i) for i in range(1, 8)]
        assert [c.line for c in select_comments(comments, max_posted=3)] == [1, 2, 3]

    def test_zero_cap_selects_nothing(self):
        assert select_comments([_comment()], max_posted=0) == []
