"""
Snapshot adapter: turns a plain scene description (JSON file or dict) into the
node handles and component records the stats calculator consumes.

Whatever exports the avatar (an editor script, a test fixture) only has to
produce this shape; the calculator never sees the host SDK objects.
"""
from __future__ import annotations

import json
import os

from .constants import CONTACT_KINDS, EDITOR_ONLY_TAG, SNAPSHOT_EXTENSIONS, UNTAGGED_TAG
from .data_types import (
    AvatarSnapshot,
    ColliderVolume,
    ContactSensor,
    DynamicsBone,
    InvalidReferenceError,
)
from .scene_graph import SceneGraph


class SnapshotFormatError(ValueError):
    """The snapshot document is malformed."""


def load_snapshot(data_or_path: str | dict) -> AvatarSnapshot:
    if isinstance(data_or_path, dict):
        data = data_or_path
        default_name = "Avatar"
    else:
        ext = os.path.splitext(data_or_path)[1].lower()
        if ext not in SNAPSHOT_EXTENSIONS:
            raise SnapshotFormatError(f"Unsupported snapshot file type '{ext}': {data_or_path}")
        with open(data_or_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        default_name = os.path.splitext(os.path.basename(data_or_path))[0]

    if not isinstance(data, dict):
        raise SnapshotFormatError("Snapshot must be a JSON object")

    graph, handles = _build_graph(_require(data, "nodes", list))
    view = graph.snapshot()

    def resolve(node_id, what):
        if node_id not in handles:
            raise InvalidReferenceError(f"{what} references unknown node '{node_id}'")
        return handles[node_id]

    root = resolve(_require(data, "root", str), "root")

    bones = []
    for i, entry in enumerate(_optional(data, "dynamics_bones", list, [])):
        node = resolve(_require(entry, "node", str), f"dynamics_bones[{i}]")
        root_transform = _optional(entry, "root_transform", str)
        bones.append(DynamicsBone(
            node=node,
            root_transform=None if root_transform is None else resolve(root_transform, f"dynamics_bones[{i}].root_transform"),
            # null entries mirror destroyed transforms left in the ignore list
            ignore_transforms=[
                None if t is None else resolve(t, f"dynamics_bones[{i}].ignore_transforms")
                for t in _ref_list(entry, "ignore_transforms")
            ],
            colliders=_ref_list(entry, "colliders"),
            name=_optional(entry, "name", str) or entry["node"],
        ))

    colliders = []
    seen_colliders = set()
    for i, entry in enumerate(_optional(data, "colliders", list, [])):
        collider_id = _require(entry, "id", str)
        if collider_id in seen_colliders:
            raise SnapshotFormatError(f"Duplicate collider id '{collider_id}'")
        seen_colliders.add(collider_id)
        colliders.append(ColliderVolume(id=collider_id, node=resolve(_require(entry, "node", str), f"colliders[{i}]")))

    contacts = []
    for i, entry in enumerate(_optional(data, "contacts", list, [])):
        kind = _optional(entry, "kind", str, "receiver")
        if kind not in CONTACT_KINDS:
            raise SnapshotFormatError(f"contacts[{i}] has unknown kind '{kind}' (expected one of {CONTACT_KINDS})")
        contacts.append(ContactSensor(node=resolve(_require(entry, "node", str), f"contacts[{i}]"), kind=kind))

    return AvatarSnapshot(
        name=_optional(data, "name", str) or default_name,
        graph=view,
        root=root,
        bones=bones,
        colliders=colliders,
        contacts=contacts,
    )


def snapshot_to_dict(snapshot: AvatarSnapshot) -> dict:
    """Inverse of load_snapshot. Node ids are the node names, so names must be unique."""
    view = snapshot.graph
    names = view.names
    if len(set(names)) != len(names):
        raise SnapshotFormatError("Cannot serialize a scene graph with duplicate node names")

    nodes = []
    for i, name in enumerate(names):
        parent = view.parent(i)
        entry = {"id": name, "parent": None if parent is None else names[parent]}
        if view.is_editor_only(i):
            entry["tag"] = EDITOR_ONLY_TAG
        nodes.append(entry)

    def ref(node):
        return None if node is None else names[node]

    return {
        "name": snapshot.name,
        "root": names[snapshot.root],
        "nodes": nodes,
        "dynamics_bones": [
            {
                "name": pb.name,
                "node": names[pb.node],
                "root_transform": ref(pb.root_transform),
                "ignore_transforms": [ref(t) for t in pb.ignore_transforms],
                "colliders": list(pb.colliders),
            }
            for pb in snapshot.bones
        ],
        "colliders": [{"id": c.id, "node": names[c.node]} for c in snapshot.colliders],
        "contacts": [{"node": names[c.node], "kind": c.kind} for c in snapshot.contacts],
    }


def _require(entry, key, kind):
    if not isinstance(entry, dict) or key not in entry:
        raise SnapshotFormatError(f"Missing required key '{key}'")
    value = entry[key]
    if not isinstance(value, kind):
        raise SnapshotFormatError(f"Key '{key}' must be of type {kind.__name__}, got {type(value).__name__}")
    return value


def _optional(entry, key, kind, default=None):
    """Like _require, but a missing key or an explicit null gives `default`."""
    if not isinstance(entry, dict):
        raise SnapshotFormatError(f"Expected an object holding '{key}', got {type(entry).__name__}")
    value = entry.get(key)
    if value is None:
        return default
    if not isinstance(value, kind):
        raise SnapshotFormatError(f"Key '{key}' must be of type {kind.__name__} or null, got {type(value).__name__}")
    return value


def _ref_list(entry, key):
    """A list of id strings; null entries are kept so destroyed references stay visible."""
    refs = _optional(entry, key, list, [])
    for ref in refs:
        if ref is not None and not isinstance(ref, str):
            raise SnapshotFormatError(f"Entries of '{key}' must be strings or null, got {type(ref).__name__}")
    return list(refs)


def _build_graph(entries: list) -> tuple[SceneGraph, dict]:
    """Insert nodes parents-first so the listing order in the file does not matter."""
    by_id = {}
    for entry in entries:
        node_id = _require(entry, "id", str)
        _optional(entry, "parent", str)
        _optional(entry, "tag", str)
        if node_id in by_id:
            raise SnapshotFormatError(f"Duplicate node id '{node_id}'")
        by_id[node_id] = entry

    for node_id, entry in by_id.items():
        parent = entry.get("parent")
        if parent is not None and parent not in by_id:
            raise InvalidReferenceError(f"Node '{node_id}' has unknown parent '{parent}'")

    graph = SceneGraph()
    handles = {}
    for node_id in by_id:
        # Walk up to the first already-inserted ancestor, then insert downwards
        chain = []
        curr = node_id
        while curr is not None and curr not in handles:
            if curr in chain:
                raise SnapshotFormatError(f"Parent cycle detected at node '{curr}'")
            chain.append(curr)
            curr = by_id[curr].get("parent")
        for pending in reversed(chain):
            entry = by_id[pending]
            parent = entry.get("parent")
            handles[pending] = graph.add_node(
                pending,
                parent=None if parent is None else handles[parent],
                tag=_optional(entry, "tag", str, UNTAGGED_TAG),
            )
    return graph, handles
