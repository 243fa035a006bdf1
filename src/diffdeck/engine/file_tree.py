"""Directory tree over the files of a diff, with expand/collapse state."""

from __future__ import annotations

from dataclasses import dataclass, field

from .models import DiffFile


@dataclass(eq=False)
class FileTreeNode:
    """A directory or file in the tree. ``file`` is set on leaves only."""

    name: str
    path: str
    is_dir: bool = False
    expanded: bool = False
    depth: int = 0
    children: list[FileTreeNode] = field(default_factory=list)
    file: DiffFile | None = None

    def total_stats(self) -> tuple[int, int]:
        """Sum of (additions, deletions) over this node's files."""
        if not self.is_dir:
            if self.file is not None:
                return self.file.additions, self.file.deletions
            return 0, 0

        additions = deletions = 0
        for child in self.children:
            a, d = child.total_stats()
            additions += a
            deletions += d
        return additions, deletions

    def file_count(self) -> int:
        """Files under this node; a file counts itself."""
        if not self.is_dir:
            return 1
        return sum(child.file_count() for child in self.children)

    def collect_files(self) -> list[DiffFile]:
        """Files under this node in tree order."""
        if not self.is_dir:
            return [self.file] if self.file is not None else []
        files: list[DiffFile] = []
        for child in self.children:
            files.extend(child.collect_files())
        return files


class FileTree:
    """Hierarchy of changed files. All directories start expanded."""

    def __init__(self, files: list[DiffFile] | None = None):
        self.roots: list[FileTreeNode] = []
        self._visible: list[FileTreeNode] = []
        self._cache_valid = False
        self.rebuild(files or [])

    def rebuild(self, files: list[DiffFile]) -> None:
        """Replace the tree contents with ``files``."""
        self.roots = []
        nodes_by_path: dict[str, FileTreeNode] = {}
        for file in files:
            self._add_file(file.display_path, file, nodes_by_path)
        _sort_nodes(self.roots)
        self._cache_valid = False

    def _add_file(self, path: str, file: DiffFile, nodes_by_path: dict[str, FileTreeNode]) -> None:
        parts = path.replace("\\", "/").split("/")
        parent: FileTreeNode | None = None
        current = ""

        for depth, part in enumerate(parts[:-1]):
            current = f"{current}/{part}" if current else part
            existing = nodes_by_path.get(current)
            if existing is not None:
                parent = existing
                continue

            dir_node = FileTreeNode(name=part, path=current, is_dir=True, expanded=True, depth=depth)
            nodes_by_path[current] = dir_node
            (parent.children if parent else self.roots).append(dir_node)
            parent = dir_node

        leaf = FileTreeNode(name=parts[-1], path=path, depth=len(parts) - 1, file=file)
        (parent.children if parent else self.roots).append(leaf)

    def visible_nodes(self) -> list[FileTreeNode]:
        """Flattened nodes, skipping the children of collapsed directories."""
        if not self._cache_valid:
            self._visible = []
            _flatten(self.roots, self._visible)
            self._cache_valid = True
        return self._visible

    def toggle(self, node: FileTreeNode) -> bool:
        """Flip a directory's expanded state. Files are left alone."""
        if not node.is_dir:
            return False
        node.expanded = not node.expanded
        self._cache_valid = False
        return True

    def all_files(self) -> list[DiffFile]:
        files: list[DiffFile] = []
        for node in self.roots:
            files.extend(node.collect_files())
        return files

    def __len__(self) -> int:
        return len(self.visible_nodes())


def _sort_nodes(nodes: list[FileTreeNode]) -> None:
    """Directories first, then case-insensitive name, at every level."""
    nodes.sort(key=lambda n: (not n.is_dir, n.name.lower()))
    for node in nodes:
        if node.is_dir and node.children:
            _sort_nodes(node.children)


def _flatten(nodes: list[FileTreeNode], out: list[FileTreeNode]) -> None:
    for node in nodes:
        out.append(node)
        if node.is_dir and node.expanded and node.children:
            _flatten(node.children, out)


def clamp_index(index: int, tree: FileTree | None) -> int:
    """Keep a selection inside the visible list after a collapse."""
    count = len(tree.visible_nodes()) if tree is not None else 0
    return max(0, min(index, max(count - 1, 0)))


def file_status(file: DiffFile | None) -> str:
    """One-letter status shown next to a file in the tree."""
    if file is None:
        return ""
    if file.is_untracked:
        return "?"
    if file.is_binary:
        return "B"
    if file.is_new:
        return "A"
    if file.is_deleted:
        return "D"
    if file.is_renamed:
        return "R"
    return "M"
