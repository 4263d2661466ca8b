"""Tests for commit message formatting."""

from __future__ import annotations

from folio.store.commits import (
    FOOTER,
    append_footer,
    default_delete_message,
    default_save_message,
    format_commit_message,
)


class TestFormatCommitMessage:
    def test_kind_scope_subject(self):
        assert format_commit_message("feat", "notes", "add a") == f"feat(notes): add a\n\n{FOOTER}"

    def test_no_scope(self):
        assert format_commit_message("fix", "", "typo").startswith("fix: typo\n")

    def test_body(self):
        msg = format_commit_message("docs", "x", "y", body="  longer\nexplanation \n")
        assert msg == f"docs(x): y\n\nlonger\nexplanation\n\n{FOOTER}"

    def test_empty_kind_is_chore(self):
        assert format_commit_message("", "", "tidy").startswith("chore: tidy")


class TestFooter:
    def test_appended_once(self):
        once = append_footer("free text\n")
        assert once == f"free text\n\n{FOOTER}"
        assert append_footer(once) == once


class TestDefaults:
    def test_save_and_delete(self):
        assert default_save_message("a/b").splitlines()[0] == "docs(documents): update a/b"
        assert default_delete_message("a/b").splitlines()[0] == "docs(documents): delete a/b"
