"""
Scene graph snapshot used by the dynamics stats calculator.

SceneGraph is the mutable builder (one SceneNode per GameObject), SceneGraphView
is the frozen, index-addressed arena a calculation runs against. Nodes are
referenced by integer handle everywhere; parent links are navigation only.
"""
from __future__ import annotations

from typing import Iterable, List, Optional

import numpy as np

from .constants import EDITOR_ONLY_TAG, UNTAGGED_TAG
from .data_types import InvalidReferenceError


def _is_handle(node) -> bool:
    # bool is an int subclass but never a node handle
    return isinstance(node, (int, np.integer)) and not isinstance(node, bool)


# =============================================================================
# Builder
# =============================================================================


class SceneNode:
    def __init__(self, name: str, index: int):
        self.name = name
        self.index = index
        self.parent_index = -1  # -1 for a scene root
        self.children: list[int] = []  # ordered child handles
        self.tag = UNTAGGED_TAG

    @property
    def editor_only(self) -> bool:
        return self.tag == EDITOR_ONLY_TAG


class SceneGraph:
    def __init__(self, name: str = "Scene"):
        self.name = name
        self.nodes: list[SceneNode] = []

    def __len__(self) -> int:
        return len(self.nodes)

    def add_node(self, name: str, parent: Optional[int] = None, tag: str = UNTAGGED_TAG) -> int:
        """Append a node under `parent` (or as a scene root) and return its handle."""
        if parent is not None:
            self._check(parent)
        node = SceneNode(name, len(self.nodes))
        node.tag = tag
        if parent is not None:
            node.parent_index = parent
            self.nodes[parent].children.append(node.index)
        self.nodes.append(node)
        return node.index

    def set_tag(self, node: int, tag: str):
        self._check(node)
        self.nodes[node].tag = tag

    def find(self, name: str) -> Optional[int]:
        for node in self.nodes:
            if node.name == name:
                return node.index
        return None

    def snapshot(self) -> SceneGraphView:
        """Capture a read-only view. Later edits to this builder do not leak into it."""
        parents = np.fromiter((n.parent_index for n in self.nodes), dtype=np.int32, count=len(self.nodes))
        editor_only = np.fromiter((n.editor_only for n in self.nodes), dtype=bool, count=len(self.nodes))

        # CSR children: node i owns child_indices[child_offsets[i]:child_offsets[i + 1]]
        child_counts = np.fromiter((len(n.children) for n in self.nodes), dtype=np.int32, count=len(self.nodes))
        child_offsets = np.zeros(len(self.nodes) + 1, dtype=np.int32)
        child_offsets[1:] = np.cumsum(child_counts)
        child_indices = np.fromiter(
            (c for n in self.nodes for c in n.children), dtype=np.int32, count=int(child_offsets[-1])
        )

        return SceneGraphView(
            names=[n.name for n in self.nodes],
            parents=parents,
            editor_only=editor_only,
            child_offsets=child_offsets,
            child_indices=child_indices,
        )

    def _check(self, node: int):
        if not _is_handle(node) or not 0 <= node < len(self.nodes):
            raise InvalidReferenceError(f"Node {node!r} is not part of scene graph '{self.name}'")


# =============================================================================
# Frozen arena
# =============================================================================


class SceneGraphView:
    """Read-only hierarchy accessor over a captured scene graph."""

    def __init__(
        self,
        names: List[str],
        parents: np.ndarray,
        editor_only: np.ndarray,
        child_offsets: np.ndarray,
        child_indices: np.ndarray,
    ):
        self.names = tuple(names)
        self.parents = parents
        self.editor_only = editor_only
        self.child_offsets = child_offsets
        self.child_indices = child_indices
        for arr in (self.parents, self.editor_only, self.child_offsets, self.child_indices):
            arr.flags.writeable = False

    def __len__(self) -> int:
        return len(self.names)

    def contains(self, node) -> bool:
        return _is_handle(node) and 0 <= node < len(self.names)

    def check(self, node):
        if not self.contains(node):
            raise InvalidReferenceError(f"Node {node!r} is not part of this scene graph ({len(self)} nodes)")

    def check_all(self, nodes: Iterable):
        for node in nodes:
            self.check(node)

    def name(self, node: int) -> str:
        self.check(node)
        return self.names[node]

    def parent(self, node: int) -> Optional[int]:
        self.check(node)
        p = int(self.parents[node])
        return None if p < 0 else p

    def children(self, node: int) -> List[int]:
        self.check(node)
        return self.child_indices[self.child_offsets[node]:self.child_offsets[node + 1]].tolist()

    def is_editor_only(self, node: int) -> bool:
        self.check(node)
        return bool(self.editor_only[node])

    def is_descendant_of(self, node: int, ancestor: int) -> bool:
        """True if `ancestor` is `node` itself or anywhere on its parent chain."""
        self.check(node)
        self.check(ancestor)
        curr = node
        while curr >= 0:
            if curr == ancestor:
                return True
            curr = int(self.parents[curr])
        return False

    def is_effectively_excluded(self, root: int, node: int) -> bool:
        """
        Whether `node` is stripped from the build under avatar `root`.

        The node's own tag always counts. Its ancestors count up to, but not
        including, `root`; the walk also stops at a scene root. So the avatar
        root never excludes its descendants even when it is tagged itself.
        When `node` is the root, only its own tag is tested.
        """
        self.check(root)
        self.check(node)
        curr = node
        while True:
            if self.editor_only[curr]:
                return True
            parent = int(self.parents[curr])
            if curr == root or parent < 0 or parent == root:
                return False
            curr = parent

    def count_descendants(self, node: int, ignore: Iterable[Optional[int]] = ()) -> int:
        """
        Count descendants of `node`, pruning every ignored node together with
        its whole subtree. `node` itself is neither counted nor tested.
        """
        self.check(node)
        ignored = {i for i in ignore if i is not None}
        count = 0
        stack = self.children(node)
        while stack:
            child = stack.pop()
            if child in ignored:
                continue
            count += 1
            stack.extend(self.children(child))
        return count
