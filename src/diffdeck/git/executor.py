"""Read-only git access for the diff viewer.

Every method shells out to ``git`` in the executor's working directory and
either returns parsed data or raises a ``GitError``. The viewer only calls
these from background tasks.
"""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from datetime import datetime

from diffdeck.utils.config import config
from diffdeck.utils.error_handling import log_git_error
from diffdeck.utils.io import decode_bytes, read_text
from diffdeck.utils.logger import log

# ASCII record separator; never appears in commit subjects
COMMIT_LOG_DELIMITER = "\x1e"
COMMIT_LOG_FORMAT = "--format=%H\x1e%h\x1e%s\x1e%an\x1e%aI"


class GitError(Exception):
    """A git command failed."""

    def __init__(self, message: str, args: tuple[str, ...] = (), stderr: str = ""):
        super().__init__(message)
        self.git_args = args
        self.stderr = stderr


class GitTimeoutError(GitError):
    """A git command exceeded its time budget."""


class DetachedHeadError(GitError):
    """HEAD does not point at a branch."""


class NotGitRepoError(GitError):
    """The working directory is not inside a git repository."""


@dataclass
class CommitInfo:
    hash: str
    short_hash: str
    subject: str
    author: str
    date: datetime | None = None
    is_pushed: bool = False


@dataclass
class BranchInfo:
    name: str
    is_current: bool = False


@dataclass
class WorktreeInfo:
    path: str
    head: str = ""
    branch: str = ""


def _parse_git_error(stderr: str, args: tuple[str, ...]) -> GitError:
    """Turn git's stderr into the matching exception type."""
    lowered = stderr.lower()
    if "not a git repository" in lowered:
        return NotGitRepoError(f"not a git repository: {stderr}", args, stderr)
    return GitError(f"git error: {stderr}", args, stderr)


class GitExecutor:
    """Runs git commands against one working directory."""

    def __init__(self, work_dir: str = "", timeout: float | None = None):
        self.work_dir = work_dir
        self.timeout = timeout if timeout is not None else config.git_timeout

    def _run(self, *args: str, strip: bool = True) -> str:
        """Run ``git <args>`` and return its decoded stdout."""
        cmd = ["git", *args]
        try:
            proc = subprocess.run(
                cmd,
                cwd=self.work_dir or None,
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            err = GitTimeoutError(f"git command timed out after {self.timeout}s: git {' '.join(args)}", args)
            log_git_error(" ".join(args), self.work_dir, err)
            raise err from e
        except OSError as e:
            log_git_error(" ".join(args), self.work_dir, e)
            raise GitError(f"git {' '.join(args)}: {e}", args) from e

        if proc.returncode != 0:
            stderr, _ = decode_bytes(proc.stderr or b"")
            stderr = stderr.strip()
            if stderr:
                raise _parse_git_error(stderr, args)
            raise GitError(f"git {' '.join(args)}: exit status {proc.returncode}", args)

        stdout, _ = decode_bytes(proc.stdout or b"")
        return stdout.strip() if strip else stdout.rstrip("\n")

    def get_working_dir_diff(self) -> str:
        """Staged and unstaged changes against HEAD."""
        return self._run("diff", "HEAD", strip=False)

    def get_commit_diff(self, commit_hash: str) -> str:
        """Patch introduced by one commit, without the commit header."""
        return self._run("show", "--format=", commit_hash, strip=False).lstrip("\n")

    def get_untracked_files(self) -> list[str]:
        output = self._run("ls-files", "--others", "--exclude-standard")
        return [line.strip() for line in output.split("\n") if line.strip()]

    def get_file_content(self, path: str) -> str:
        """Content of a working-tree file, relative paths resolved against work_dir."""
        full_path = path
        if self.work_dir and not os.path.isabs(path):
            full_path = os.path.join(self.work_dir, path)
        try:
            text, _ = read_text(full_path)
        except OSError as e:
            raise GitError(f"failed to read file {path}: {e}") from e
        return text

    def get_current_branch(self) -> str:
        """Name of the checked-out branch.

        Raises:
            DetachedHeadError: HEAD is not on a branch
        """
        try:
            output = self._run("branch", "--show-current")
            if output:
                return output
        except GitError:
            log.debug("[GIT] branch --show-current failed, falling back to symbolic-ref")

        try:
            return self._run("symbolic-ref", "--short", "HEAD")
        except GitError as e:
            if "not a symbolic ref" in str(e):
                raise DetachedHeadError("detached HEAD state", e.git_args, e.stderr) from e
            raise GitError(f"failed to get current branch: {e}", e.git_args, e.stderr) from e

    def get_commit_log(self, limit: int) -> list[CommitInfo]:
        return self.get_commit_log_for_ref("", limit)

    def get_commit_log_for_ref(self, ref: str, limit: int) -> list[CommitInfo]:
        """Most recent ``limit`` commits of ``ref`` (HEAD when empty).

        An empty repository yields an empty list, as does a missing HEAD.
        An unknown explicit ref is an error.
        """
        args = ["log", COMMIT_LOG_FORMAT, "-n", str(limit)]
        if ref:
            args.append(ref)

        try:
            output = self._run(*args)
        except GitTimeoutError:
            raise
        except GitError as e:
            message = str(e)
            if "does not have any commits" in message:
                return []
            if not ref and ("bad revision" in message or "unknown revision" in message):
                return []
            raise

        if not output:
            return []

        commits = parse_commit_log(output)
        pushed = self._pushed_commit_hashes()
        for commit in commits:
            commit.is_pushed = commit.hash in pushed
        log.debug(f"[GIT] Loaded {len(commits)} commit(s) for {ref or 'HEAD'}")
        return commits

    def _pushed_commit_hashes(self) -> set[str]:
        """Hashes reachable from the upstream branch; empty without an upstream."""
        try:
            upstream = self._run("rev-parse", "--abbrev-ref", "@{upstream}")
            output = self._run("log", "--format=%H", upstream)
        except GitError:
            return set()
        return {line for line in output.split("\n") if line}

    def list_branches(self) -> list[BranchInfo]:
        """Local branches, current first, the rest alphabetical."""
        try:
            output = self._run("branch", "--format=%(HEAD)%(refname:short)")
        except GitTimeoutError:
            raise
        except GitError as e:
            raise GitError(f"failed to list branches: {e}", e.git_args, e.stderr) from e
        return parse_branch_list(output)

    def list_worktrees(self) -> list[WorktreeInfo]:
        return parse_worktree_list(self._run("worktree", "list", "--porcelain"))


def parse_commit_log(output: str) -> list[CommitInfo]:
    """Parse ``git log`` output written with ``COMMIT_LOG_FORMAT``."""
    commits: list[CommitInfo] = []
    for line in output.split("\n"):
        if not line:
            continue
        parts = line.split(COMMIT_LOG_DELIMITER, 4)
        if len(parts) < 5:
            continue
        full_hash, short_hash, subject, author, date_str = parts
        try:
            date = datetime.fromisoformat(date_str.strip())
        except ValueError:
            date = None
        commits.append(CommitInfo(full_hash, short_hash, subject, author, date))
    return commits


def parse_branch_list(output: str) -> list[BranchInfo]:
    current: BranchInfo | None = None
    others: list[BranchInfo] = []
    for line in output.split("\n"):
        if not line:
            continue
        if line[0] == "*":
            current = BranchInfo(line[1:], is_current=True)
        elif line[0] == " ":
            others.append(BranchInfo(line[1:]))
        else:
            others.append(BranchInfo(line))
    others.sort(key=lambda b: b.name)
    return ([current] if current else []) + others


def parse_worktree_list(output: str) -> list[WorktreeInfo]:
    """Parse ``git worktree list --porcelain``; entries end at blank lines."""
    worktrees: list[WorktreeInfo] = []
    current = WorktreeInfo(path="")

    for line in output.split("\n"):
        if not line:
            if current.path:
                worktrees.append(current)
            current = WorktreeInfo(path="")
            continue

        key, sep, value = line.partition(" ")
        if not sep:
            continue
        if key == "worktree":
            current.path = value
        elif key == "HEAD":
            current.head = value
        elif key == "branch":
            current.branch = value.removeprefix("refs/heads/")

    if current.path:
        worktrees.append(current)
    return worktrees
