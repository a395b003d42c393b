"""
Folder tree derivation for scan results.

Groups scanned files under the configured scan roots, aggregating counts,
sizes and the newest modification time per subtree.
"""

from collections.abc import Iterable, Sequence
from pathlib import PurePosixPath
from typing import Optional

from scancore.core.models import EXCLUDED_KINDS, FileKind, FolderNode, ScannedFile


def _normalize(path: str) -> str:
    normalized = path.replace("\\", "/")
    if len(normalized) > 1:
        normalized = normalized.rstrip("/")
    return normalized


def _find_root(parent: str, roots: Sequence[str]) -> Optional[str]:
    """Return the longest root containing ``parent``."""
    best: Optional[str] = None
    for root in roots:
        if parent == root or parent.startswith(root.rstrip("/") + "/"):
            if best is None or len(root) > len(best):
                best = root
    return best


def _node_name(path: str) -> str:
    return PurePosixPath(path).name or path


def _ensure_child(node: FolderNode, index: dict[str, FolderNode], path: str) -> FolderNode:
    child = index.get(path)
    if child is None:
        child = FolderNode(path=path, name=_node_name(path))
        index[path] = child
        node.children.append(child)
    return child


def _finalize(node: FolderNode) -> None:
    """Aggregate subtree totals bottom-up, prune empty children and sort."""
    node.children = [c for c in node.children if _has_files(c)]
    for child in node.children:
        _finalize(child)

    node.files.sort(key=lambda f: f.name.casefold())
    node.children.sort(key=lambda c: c.name.casefold())
    node.file_count = len(node.files)
    node.total_file_count = node.file_count + sum(c.total_file_count for c in node.children)
    node.total_size = sum(f.size for f in node.files) + sum(c.total_size for c in node.children)

    candidates = [f.modified_at for f in node.files]
    candidates.extend(c.latest_modified for c in node.children if c.latest_modified)
    node.latest_modified = max(candidates) if candidates else None


def _has_files(node: FolderNode) -> bool:
    return bool(node.files) or any(_has_files(c) for c in node.children)


def build_folder_tree(
    files: Iterable[ScannedFile],
    root_paths: Sequence[str],
    filter_kind: Optional[FileKind] = None,
) -> list[FolderNode]:
    """
    Build a folder hierarchy from scanned files.

    Args:
        files: Scanned files
        root_paths: Configured scan roots, each becoming a top-level node
        filter_kind: Only include files of this kind when set

    Returns:
        Top-level nodes, one per root with matching files, followed by
        nodes for files found outside every root
    """
    roots = [_normalize(r) for r in root_paths]
    top: list[FolderNode] = []
    index: dict[str, FolderNode] = {}

    for root in roots:
        if root not in index:
            node = FolderNode(path=root, name=_node_name(root))
            index[root] = node
            top.append(node)

    for f in files:
        if f.kind in EXCLUDED_KINDS:
            continue
        if filter_kind is not None and f.kind != filter_kind:
            continue

        parent = _normalize(f.parent_path or str(PurePosixPath(f.path).parent))
        root = _find_root(parent, roots)
        if root is None:
            node = index.get(parent)
            if node is None:
                node = FolderNode(path=parent, name=_node_name(parent))
                index[parent] = node
                top.append(node)
            node.files.append(f)
            continue

        node = index[root]
        relative = parent[len(root):].strip("/")
        current_path = root
        for part in relative.split("/") if relative else []:
            current_path = f"{current_path.rstrip('/')}/{part}"
            node = _ensure_child(node, index, current_path)
        node.files.append(f)

    result = [n for n in top if _has_files(n)]
    for node in result:
        _finalize(node)
    return result
