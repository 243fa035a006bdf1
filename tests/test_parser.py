"""Tests for the unified diff parser."""

import sys

import pytest

from conftest import SAMPLE_DIFF
from diffdeck.engine.errors import DiffParseError, ErrorCategory
from diffdeck.engine.models import DEV_NULL, LineType
from diffdeck.engine.parser import parse_diff


class TestParseDiff:
    """Parsing of git diff output into files, hunks and lines."""

    def test_empty_input(self):
        """Empty and whitespace-only input yield no files."""
        assert parse_diff("") == []
        assert parse_diff("  \n\n") == []

    def test_sample_diff_files(self):
        """Files appear in diff order with their paths and counts."""
        files = parse_diff(SAMPLE_DIFF)

        assert [f.new_path for f in files] == ["src/app.py", "README.md", "logo.png"]
        app, readme, logo = files
        assert (app.additions, app.deletions) == (2, 1)
        assert (readme.additions, readme.deletions) == (1, 1)
        assert logo.is_binary
        assert logo.hunks == []

    def test_hunk_header_line_first(self):
        """Every hunk starts with a header line carrying the trailing context."""
        app = parse_diff(SAMPLE_DIFF)[0]

        assert len(app.hunks) == 2
        first = app.hunks[0]
        assert first.lines[0].type is LineType.HUNK_HEADER
        assert first.lines[0].content == "def main():"
        assert first.header == "@@ -1,4 +1,4 @@ def main():"
        assert (first.old_start, first.old_count, first.new_start, first.new_count) == (1, 4, 1, 4)
        assert len(first.lines) == 6

    def test_line_numbers(self):
        """Context lines carry both numbers; additions and deletions one each."""
        hunk = parse_diff(SAMPLE_DIFF)[0].hunks[0]
        context, deletion, addition = hunk.lines[1], hunk.lines[2], hunk.lines[3]

        assert (context.old_line_num, context.new_line_num) == (1, 1)
        assert (deletion.type, deletion.old_line_num, deletion.new_line_num) == (LineType.DELETION, 2, 0)
        assert (addition.type, addition.old_line_num, addition.new_line_num) == (LineType.ADDITION, 0, 2)
        assert hunk.lines[4].old_line_num == 3
        assert hunk.lines[4].new_line_num == 3

    def test_counts_default_to_one(self):
        """Omitted hunk counts mean one line."""
        diff = "diff --git a/f b/f\n--- a/f\n+++ b/f\n@@ -3 +3 @@\n-a\n+b\n"
        hunk = parse_diff(diff)[0].hunks[0]
        assert (hunk.old_start, hunk.old_count, hunk.new_start, hunk.new_count) == (3, 1, 3, 1)

    def test_new_file(self):
        """A /dev/null old side marks the file as new."""
        diff = (
            "diff --git a/new.txt b/new.txt\n"
            "new file mode 100644\n"
            "index 0000000..1234567\n"
            "--- /dev/null\n"
            "+++ b/new.txt\n"
            "@@ -0,0 +1,2 @@\n"
            "+one\n"
            "+two\n"
        )
        file = parse_diff(diff)[0]
        assert file.is_new
        assert file.old_path == DEV_NULL
        assert file.new_path == "new.txt"
        assert file.additions == 2
        assert file.display_path == "new.txt"

    def test_deleted_file(self):
        """A /dev/null new side marks the file as deleted; the old path is displayed."""
        diff = (
            "diff --git a/gone.txt b/gone.txt\n"
            "deleted file mode 100644\n"
            "--- a/gone.txt\n"
            "+++ /dev/null\n"
            "@@ -1 +0,0 @@\n"
            "-bye\n"
        )
        file = parse_diff(diff)[0]
        assert file.is_deleted
        assert file.new_path == DEV_NULL
        assert file.display_path == "gone.txt"
        assert file.deletions == 1

    def test_rename(self):
        """Rename metadata sets both paths and the similarity."""
        diff = (
            "diff --git a/old/name.py b/new/name.py\n"
            "similarity index 92%\n"
            "rename from old/name.py\n"
            "rename to new/name.py\n"
        )
        file = parse_diff(diff)[0]
        assert file.is_renamed
        assert file.similarity == 92
        assert file.old_path == "old/name.py"
        assert file.new_path == "new/name.py"
        assert file.hunks == []

    def test_mode_change_and_no_newline_marker_are_skipped(self):
        """Mode lines and the no-newline marker add nothing."""
        diff = (
            "diff --git a/run.sh b/run.sh\n"
            "old mode 100644\n"
            "new mode 100755\n"
            "--- a/run.sh\n"
            "+++ b/run.sh\n"
            "@@ -1 +1 @@\n"
            "-echo a\n"
            "\\ No newline at end of file\n"
            "+echo b\n"
            "\\ No newline at end of file\n"
        )
        hunk = parse_diff(diff)[0].hunks[0]
        assert [line.type for line in hunk.lines] == [LineType.HUNK_HEADER, LineType.DELETION, LineType.ADDITION]

    def test_empty_line_in_hunk_is_context(self):
        """A bare empty line inside a hunk is a blank context line."""
        diff = "diff --git a/f b/f\n--- a/f\n+++ b/f\n@@ -1,3 +1,3 @@\n a\n\n-b\n+c\n"
        hunk = parse_diff(diff)[0].hunks[0]
        blank = hunk.lines[2]
        assert blank.type is LineType.CONTEXT
        assert blank.content == ""
        assert (blank.old_line_num, blank.new_line_num) == (2, 2)

    def test_crlf_line_endings(self):
        """Carriage returns are stripped from every line."""
        diff = SAMPLE_DIFF.replace("\n", "\r\n")
        files = parse_diff(diff)
        assert files[0].new_path == "src/app.py"
        assert files[0].hunks[0].lines[2].content == 'print("hello world")'

    def test_lines_before_first_header_ignored(self):
        """Text before the first ``diff --git`` line is dropped."""
        files = parse_diff("warning: something\n" + SAMPLE_DIFF)
        assert len(files) == 3

    def test_triple_dash_content_inside_hunk(self):
        """``---`` and ``+++`` inside a hunk are content, not path markers."""
        diff = "diff --git a/f.md b/f.md\n--- a/f.md\n+++ b/f.md\n@@ -1,2 +1,2 @@\n--- old rule\n+++ new rule\n"
        file = parse_diff(diff)[0]
        assert file.old_path == "f.md"
        assert file.new_path == "f.md"
        assert [line.content for line in file.hunks[0].lines[1:]] == ["-- old rule", "++ new rule"]

    def test_unrecognised_hunk_header_skipped(self):
        """A header that does not match the hunk pattern opens no hunk."""
        diff = "diff --git a/f b/f\n--- a/f\n+++ b/f\n@@ -1,2x +1 @@\n-a\n"
        files = parse_diff(diff)
        assert files[0].hunks == []

    @pytest.mark.skipif(not hasattr(sys, "set_int_max_str_digits"), reason="no integer string limit")
    def test_oversized_hunk_number_raises(self):
        """A hunk number too long to convert is a parse error carrying the line."""
        header = "@@ -" + "9" * 1000 + ",2 +1,2 @@"
        diff = f"diff --git a/f b/f\n--- a/f\n+++ b/f\n{header}\n-a\n+b\n"
        limit = sys.get_int_max_str_digits()
        sys.set_int_max_str_digits(640)
        try:
            with pytest.raises(DiffParseError) as exc_info:
                parse_diff(diff)
        finally:
            sys.set_int_max_str_digits(limit)
        assert exc_info.value.category is ErrorCategory.PARSE
        assert exc_info.value.line == header
