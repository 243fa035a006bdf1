import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Ensure local src path is importable
_here = os.path.dirname(os.path.dirname(__file__))
_src = os.path.join(_here, "src")
if os.path.isdir(_src) and _src not in sys.path:
    sys.path.insert(0, _src)

from diffdeck.engine.models import DiffFile, DiffHunk, DiffLine, LineType  # noqa: E402
from diffdeck.git.executor import BranchInfo, CommitInfo, GitError, WorktreeInfo  # noqa: E402

SAMPLE_DIFF = """diff --git a/src/app.py b/src/app.py
index 1234567..89abcde 100644
--- a/src/app.py
+++ b/src/app.py
@@ -1,4 +1,4 @@ def main():
 import os
-print("hello world")
+print("hello there")
 x = 1
 y = 2
@@ -10,3 +10,4 @@ class App:
 a = 1
+b = 2
 c = 3
 d = 4
diff --git a/README.md b/README.md
index 1111111..2222222 100644
--- a/README.md
+++ b/README.md
@@ -1,2 +1,2 @@
-Old title
+New title
 body
diff --git a/logo.png b/logo.png
index 3333333..4444444 100644
Binary files a/logo.png and b/logo.png differ
"""

COMMIT_DIFF = """diff --git a/lib/util.py b/lib/util.py
index 5555555..6666666 100644
--- a/lib/util.py
+++ b/lib/util.py
@@ -3,3 +3,3 @@
 def helper():
-    return 1
+    return 2
"""

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_commit(n: int, subject: str = "", pushed: bool = False) -> CommitInfo:
    """Commit ``n`` with a deterministic hash, dated ``n`` hours before NOW."""
    full = f"{n:02d}" + "a" * 38
    return CommitInfo(
        hash=full,
        short_hash=full[:7],
        subject=subject or f"Commit number {n}",
        author="Dev Eloper",
        date=NOW - timedelta(hours=n),
        is_pushed=pushed,
    )


def make_file(path: str, additions: int, start: int = 1) -> DiffFile:
    """Single-hunk file of ``additions`` added lines (plus its header line)."""
    header = f"@@ -0,0 +{start},{additions} @@"
    hunk = DiffHunk(0, 0, start, additions, header, [DiffLine(LineType.HUNK_HEADER)])
    for i in range(additions):
        hunk.lines.append(DiffLine(LineType.ADDITION, 0, start + i, f"line {i}"))
    return DiffFile(old_path=path, new_path=path, additions=additions, hunks=[hunk])


class FakeGitExecutor:
    """In-memory stand-in for ``GitExecutor``.

    ``errors`` maps a method name to the exception that method raises.
    """

    def __init__(
        self,
        diff: str = "",
        untracked: list[str] | None = None,
        contents: dict[str, str] | None = None,
        commits: list[CommitInfo] | None = None,
        branch: str = "main",
        commit_diffs: dict[str, str] | None = None,
        branch_commits: dict[str, list[CommitInfo]] | None = None,
        branches: list[BranchInfo] | None = None,
        worktrees: list[WorktreeInfo] | None = None,
        errors: dict[str, Exception] | None = None,
        work_dir: str = "",
    ):
        self.diff = diff
        self.untracked = untracked or []
        self.contents = contents or {}
        self.commits = commits or []
        self.branch = branch
        self.commit_diffs = commit_diffs or {}
        self.branch_commits = branch_commits or {}
        self.branches = branches or []
        self.worktrees = worktrees or []
        self.errors = errors or {}
        self.work_dir = work_dir
        self.calls: list[tuple] = []

    def _call(self, name: str, *args):
        self.calls.append((name, *args))
        if name in self.errors:
            raise self.errors[name]

    def get_working_dir_diff(self) -> str:
        self._call("get_working_dir_diff")
        return self.diff

    def get_commit_diff(self, commit_hash: str) -> str:
        self._call("get_commit_diff", commit_hash)
        return self.commit_diffs.get(commit_hash, "")

    def get_untracked_files(self) -> list[str]:
        self._call("get_untracked_files")
        return list(self.untracked)

    def get_file_content(self, path: str) -> str:
        self._call("get_file_content", path)
        if path not in self.contents:
            raise GitError(f"failed to read file {path}")
        return self.contents[path]

    def get_current_branch(self) -> str:
        self._call("get_current_branch")
        return self.branch

    def get_commit_log(self, limit: int) -> list[CommitInfo]:
        self._call("get_commit_log", limit)
        return self.commits[:limit]

    def get_commit_log_for_ref(self, ref: str, limit: int) -> list[CommitInfo]:
        self._call("get_commit_log_for_ref", ref, limit)
        if ref not in self.branch_commits:
            raise GitError(f"unknown revision {ref}")
        return self.branch_commits[ref][:limit]

    def list_branches(self) -> list[BranchInfo]:
        self._call("list_branches")
        return list(self.branches)

    def list_worktrees(self) -> list[WorktreeInfo]:
        self._call("list_worktrees")
        return list(self.worktrees)


def run_tasks(model, tasks) -> list:
    """Run dispatched tasks synchronously, feeding results back until none remain."""
    messages = []
    queue = list(tasks)
    while queue:
        msg = queue.pop(0)()
        messages.append(msg)
        queue.extend(model.update(msg))
    return messages


@pytest.fixture
def sample_executor() -> FakeGitExecutor:
    """Executor with a three-file working diff and two commits."""
    commits = [make_commit(1, "Fix helper return value"), make_commit(2, "Initial import", pushed=True)]
    return FakeGitExecutor(
        diff=SAMPLE_DIFF,
        commits=commits,
        commit_diffs={commits[0].hash: COMMIT_DIFF, commits[1].hash: SAMPLE_DIFF},
        branches=[BranchInfo("main", is_current=True), BranchInfo("feature")],
        worktrees=[WorktreeInfo("/repo", "abc", "main")],
        branch_commits={"feature": [make_commit(5, "Feature work")]},
    )


@pytest.fixture
def clipboard():
    """Callable recording every text placed on the clipboard."""
    copied: list[str] = []

    def copy(text: str) -> None:
        copied.append(text)

    copy.copied = copied
    return copy
