"""Tests for error classification."""

from diffdeck.engine.errors import DiffError, DiffParseError, ErrorCategory, classify_error
from diffdeck.git.executor import GitError, GitTimeoutError


class TestClassifyError:
    """Mapping collaborator exceptions onto categories."""

    def test_timeout(self):
        error = classify_error(GitTimeoutError("git command timed out after 5.0s: git log"))
        assert error.category is ErrorCategory.TIMEOUT
        assert error.help_text

    def test_permission(self):
        assert classify_error(PermissionError("nope")).category is ErrorCategory.PERMISSION
        error = classify_error(GitError("git error: error: open(.git/HEAD): Permission denied"))
        assert error.category is ErrorCategory.PERMISSION

    def test_conflict(self):
        error = classify_error(GitError("fatal: Unable to create '.git/index.lock': File exists."))
        assert error.category is ErrorCategory.CONFLICT

    def test_other_failures_are_git_operations(self):
        error = classify_error(GitError("git error: fatal: bad object deadbeef"))
        assert error.category is ErrorCategory.GIT_OP
        assert error.message == "git error: fatal: bad object deadbeef"

    def test_empty_message_uses_type_name(self):
        assert classify_error(OSError()).message == "OSError"

    def test_diff_errors_pass_through(self):
        error = DiffParseError("invalid old count in hunk header: @@ -1,x", line="@@ -1,x")
        assert classify_error(error) is error


class TestDiffError:
    def test_with_help_text_copies(self):
        error = DiffError(ErrorCategory.GIT_OP, "failed")
        helped = error.with_help_text("try again")
        assert helped is not error
        assert helped.help_text == "try again"
        assert error.help_text == ""

    def test_parse_error_keeps_line(self):
        error = DiffParseError("bad header", line="@@ nonsense").with_help_text("check input")
        assert isinstance(error, DiffParseError)
        assert error.line == "@@ nonsense"
        assert error.category is ErrorCategory.PARSE

    def test_category_str(self):
        assert str(ErrorCategory.TIMEOUT) == "Timeout Error"
        assert str(DiffError(ErrorCategory.PARSE, "boom")) == "boom"
