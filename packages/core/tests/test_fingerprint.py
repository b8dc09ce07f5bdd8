"""Tests for suggestion fingerprints and file content hashes."""

import hashlib

from neuron_core.fingerprint import content_hash, fingerprint, text_checksum
from neuron_core.models import Comment


def _comment(path="a.js", line=10, title="X", severity="HIGH", body="first wording"):
    return Comment(path=path, line=line, severity=severity, title=title, body=body)


class TestFingerprint:
    def test_same_path_line_title_same_fingerprint(self):
        c1 = _comment(severity="LOW", body="one")
        c2 = _comment(severity="CRITICAL", body="a completely different explanation")
        assert fingerprint(c1) == fingerprint(c2)

    def test_differs_when_title_differs(self):
        assert fingerprint(_comment(title="X")) != fingerprint(_comment(title="Y"))

    def test_differs_when_line_differs(self):
        assert fingerprint(_comment(line=10)) != fingerprint(_comment(line=11))

    def test_differs_when_path_differs(self):
        assert fingerprint(_comment(path="a.js")) != fingerprint(_comment(path="b.js"))

    def test_format_is_path_line_title(self):
        assert fingerprint(_comment()) == "a.js:10:X"

    def test_accepts_dicts(self):
        assert fingerprint({"path": "a.js", "line": 10, "title": "X"}) == fingerprint(_comment())


class TestContentHash:
    def test_sha256_of_file_bytes(self, tmp_path):
        f = tmp_path / "a.js"
        f.write_bytes(b"console.log(1)\n")
        assert content_hash(f) == hashlib.sha256(b"console.log(1)\n").hexdigest()

    def test_changes_when_bytes_change(self, tmp_path):
        f = tmp_path / "a.js"
        f.write_text("one")
        h1 = content_hash(f)
        f.write_text("two")
        assert content_hash(f) != h1

    def test_missing_file_returns_empty_string(self, tmp_path):
        assert content_hash(tmp_path / "missing.js") == ""

    def test_directory_returns_empty_string(self, tmp_path):
        assert content_hash(tmp_path) == ""


def test_text_checksum_is_short_and_stable():
    assert text_checksum("abc") == text_checksum("abc")
    assert len(text_checksum("abc")) == 16
    assert text_checksum("abc") != text_checksum("abd")
