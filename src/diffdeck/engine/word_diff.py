"""Intra-line word diff for adjacent deletion/addition pairs.

Token alignment uses ``difflib.SequenceMatcher`` over word/punctuation
tokens. Work is bounded per line length, per hunk pair count and per file
time budget; anything skipped simply renders without word highlighting.
"""

from __future__ import annotations

import time
import unicodedata
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from enum import Enum

from diffdeck.utils.config import config
from diffdeck.utils.logger import log

from .models import DiffFile, DiffHunk, LineType, file_key


class SegmentType(Enum):
    """Diff status of a run of tokens."""

    UNCHANGED = "unchanged"
    ADDED = "added"
    DELETED = "deleted"


@dataclass
class WordSegment:
    type: SegmentType
    text: str


@dataclass
class WordDiffResult:
    """Segments for the deleted (old) and added (new) side of a pair."""

    old_segments: list[WordSegment] = field(default_factory=list)
    new_segments: list[WordSegment] = field(default_factory=list)


@dataclass
class LinePair:
    """Adjacent deletion + addition inside one hunk."""

    deleted_idx: int
    added_idx: int
    deleted_content: str
    added_content: str


@dataclass
class FileWordDiff:
    """Word diff results per hunk index, then per line index."""

    hunk_diffs: dict[int, dict[int, WordDiffResult]] = field(default_factory=dict)
    timed_out: bool = False

    def get_segments_for_line(self, hunk_idx: int, line_idx: int, line_type: LineType) -> list[WordSegment] | None:
        """Segments for one line, or None when the line has no word diff."""
        results = self.hunk_diffs.get(hunk_idx)
        if results is None:
            return None
        result = results.get(line_idx)
        if result is None:
            return None
        if line_type is LineType.DELETION:
            return result.old_segments
        if line_type is LineType.ADDITION:
            return result.new_segments
        return None


def _is_punct_or_symbol(char: str) -> bool:
    return unicodedata.category(char)[0] in ("P", "S")


def tokenize(line: str) -> list[str]:
    """Split a line into words, single whitespace chars and single punctuation chars.

    ``"foo.bar()"`` becomes ``["foo", ".", "bar", "(", ")"]``.
    """
    tokens: list[str] = []
    current: list[str] = []
    for char in line:
        if char.isspace() or _is_punct_or_symbol(char):
            if current:
                tokens.append("".join(current))
                current = []
            tokens.append(char)
        else:
            current.append(char)
    if current:
        tokens.append("".join(current))
    return tokens


def _append(segments: list[WordSegment], kind: SegmentType, text: str) -> None:
    """Append text, merging with the previous segment of the same kind."""
    if not text:
        return
    if segments and segments[-1].type is kind:
        segments[-1].text += text
    else:
        segments.append(WordSegment(kind, text))


def compute_word_diff(old_line: str, new_line: str) -> WordDiffResult:
    """Word-level diff of two lines."""
    if not old_line and not new_line:
        return WordDiffResult()
    if not old_line:
        return WordDiffResult(new_segments=[WordSegment(SegmentType.ADDED, new_line)])
    if not new_line:
        return WordDiffResult(old_segments=[WordSegment(SegmentType.DELETED, old_line)])

    old_tokens = tokenize(old_line)
    new_tokens = tokenize(new_line)
    matcher = SequenceMatcher(None, old_tokens, new_tokens, autojunk=False)

    result = WordDiffResult()
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        old_text = "".join(old_tokens[i1:i2])
        new_text = "".join(new_tokens[j1:j2])
        if tag == "equal":
            _append(result.old_segments, SegmentType.UNCHANGED, old_text)
            _append(result.new_segments, SegmentType.UNCHANGED, new_text)
        else:
            # replace, delete and insert all reduce to one side each
            _append(result.old_segments, SegmentType.DELETED, old_text)
            _append(result.new_segments, SegmentType.ADDED, new_text)
    return result


def find_line_pairs(hunk: DiffHunk) -> list[LinePair]:
    """Deletions immediately followed by an addition; each addition pairs once."""
    pairs: list[LinePair] = []
    lines = hunk.lines
    i = 0
    while i < len(lines) - 1:
        if lines[i].type is LineType.DELETION and lines[i + 1].type is LineType.ADDITION:
            pairs.append(LinePair(i, i + 1, lines[i].content, lines[i + 1].content))
            i += 2
            continue
        i += 1
    return pairs


def compute_hunk_word_diff(hunk: DiffHunk, deadline: float | None = None) -> dict[int, WordDiffResult]:
    """Word diffs for a hunk keyed by both line indexes of each pair."""
    results: dict[int, WordDiffResult] = {}
    max_len = config.word_diff_max_line_length

    for pair in find_line_pairs(hunk)[: config.word_diff_max_pairs]:
        if deadline is not None and time.monotonic() > deadline:
            break
        if len(pair.deleted_content) > max_len or len(pair.added_content) > max_len:
            continue
        result = compute_word_diff(pair.deleted_content, pair.added_content)
        results[pair.deleted_idx] = result
        results[pair.added_idx] = result
    return results


def compute_file_word_diff(file: DiffFile) -> FileWordDiff:
    """Word diffs for every hunk of a file within the per-file time budget."""
    result = FileWordDiff()
    if not file.hunks:
        return result

    deadline = time.monotonic() + config.word_diff_timeout_ms / 1000.0
    for index, hunk in enumerate(file.hunks):
        if time.monotonic() > deadline:
            result.timed_out = True
            log.debug(f"[WORDDIFF] Budget exhausted for {file_key(file)} at hunk {index}")
            break
        hunk_results = compute_hunk_word_diff(hunk, deadline)
        if hunk_results:
            result.hunk_diffs[index] = hunk_results
    return result


class WordDiffCache:
    """Per-file word diff results, keyed by the file identity."""

    def __init__(self):
        self._entries: dict[str, FileWordDiff] = {}

    def get_or_compute(self, file: DiffFile) -> FileWordDiff:
        key = file_key(file)
        cached = self._entries.get(key)
        if cached is None:
            cached = compute_file_word_diff(file)
            self._entries[key] = cached
        return cached

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries
