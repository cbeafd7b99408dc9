"""
Avatar Dynamics performance stats.

Reproduces the counting rules the platform's performance rank uses for
dynamics bones (PhysBones), their colliders and contacts:

    Dynamics Bones       bones not stripped as editor-only
    Affected Transforms  per bone: root + descendants outside its ignore list
    Colliders            colliders referenced by at least one active bone
    Collision Checks     per bone: charged transforms x referenced colliders
    Contacts             every contact sender/receiver

Bones are counted independently; overlapping subtrees are not de-duplicated.
"""
from __future__ import annotations

from typing import Dict, FrozenSet, List, Sequence, Tuple, Union

from .data_types import (
    BoneCost,
    ColliderVolume,
    ContactSensor,
    DynamicsBone,
    PerformanceStats,
)
from .scene_graph import SceneGraph, SceneGraphView


class PerformanceStatsCalculator:
    def __init__(self, graph: Union[SceneGraph, SceneGraphView]):
        if isinstance(graph, SceneGraph):
            graph = graph.snapshot()
        self.graph = graph
        # Per-call memo tables, reset by calculate()
        self._excluded: Dict[Tuple[int, int], bool] = {}
        self._descendants: Dict[Tuple[int, FrozenSet[int]], int] = {}

    def calculate(
        self,
        root: int,
        bones: Sequence[DynamicsBone],
        colliders: Sequence[ColliderVolume],
        contacts: Sequence[ContactSensor],
    ) -> PerformanceStats:
        self._reset()
        try:
            self._validate(root, bones, colliders, contacts)
            active = self.active_bones(root, bones)
            return PerformanceStats(
                dynamics_bone_count=len(active),
                affected_node_count=sum(self._affected_transforms(pb) for pb in active),
                collider_count=self._referenced_collider_count(active, colliders),
                collision_check_count=sum(self._collision_checks(pb, colliders) for pb in active),
                contact_count=len(contacts),
            )
        finally:
            self._reset()

    def bone_costs(
        self,
        root: int,
        bones: Sequence[DynamicsBone],
        colliders: Sequence[ColliderVolume],
    ) -> List[BoneCost]:
        """Per-bone breakdown of affected transforms and collision checks for active bones."""
        self._reset()
        try:
            self._validate(root, bones, colliders, ())
            costs = []
            for pb in self.active_bones(root, bones):
                transforms = self._collision_transforms(pb)
                collider_count = self._bone_collider_count(pb, colliders)
                costs.append(BoneCost(
                    name=pb.name or self.graph.name(pb.node),
                    node=pb.node,
                    affected_transforms=self._affected_transforms(pb),
                    collision_transforms=transforms,
                    colliders=collider_count,
                    collision_checks=transforms * collider_count,
                ))
            return costs
        finally:
            self._reset()

    def active_bones(self, root: int, bones: Sequence[DynamicsBone]) -> List[DynamicsBone]:
        # exclude editor only bones
        return [pb for pb in bones if not self._is_excluded(root, pb.node)]

    # -------------------------------------------------------------------------
    # Counting rules
    # -------------------------------------------------------------------------

    def _affected_transforms(self, pb: DynamicsBone) -> int:
        ignore = frozenset(t for t in pb.ignore_transforms if t is not None)
        key = (pb.effective_root, ignore)
        if key not in self._descendants:
            self._descendants[key] = self.graph.count_descendants(pb.effective_root, ignore)
        return self._descendants[key] + 1  # count root itself

    def _collision_transforms(self, pb: DynamicsBone) -> int:
        transform_count = self._affected_transforms(pb) - 1  # a bone root never collides with itself
        ignore = set(pb.ignore_transforms)
        child_count = sum(1 for c in self.graph.children(pb.effective_root) if c not in ignore)
        if child_count > 1:
            transform_count -= child_count  # first segment of each sibling chain is exempt
        return transform_count

    def _bone_collider_count(self, pb: DynamicsBone, colliders: Sequence[ColliderVolume]) -> int:
        known = {c.id for c in colliders}
        return len({cid for cid in pb.colliders if cid is not None and cid in known})

    def _collision_checks(self, pb: DynamicsBone, colliders: Sequence[ColliderVolume]) -> int:
        collider_count = self._bone_collider_count(pb, colliders)
        if collider_count == 0:
            return 0
        return self._collision_transforms(pb) * collider_count

    def _referenced_collider_count(
        self, active: Sequence[DynamicsBone], colliders: Sequence[ColliderVolume]
    ) -> int:
        referenced = {cid for pb in active for cid in pb.colliders if cid is not None}
        return sum(1 for c in colliders if c.id in referenced)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _is_excluded(self, root: int, node: int) -> bool:
        key = (root, node)
        if key not in self._excluded:
            self._excluded[key] = self.graph.is_effectively_excluded(root, node)
        return self._excluded[key]

    def _validate(self, root, bones, colliders, contacts):
        # Fail the whole call up front rather than return partial stats
        g = self.graph
        g.check(root)
        for pb in bones:
            g.check(pb.node)
            if pb.root_transform is not None:
                g.check(pb.root_transform)
            g.check_all(t for t in pb.ignore_transforms if t is not None)
        g.check_all(c.node for c in colliders)
        g.check_all(c.node for c in contacts)

    def _reset(self):
        self._excluded.clear()
        self._descendants.clear()


def calculate_performance_stats(
    graph: Union[SceneGraph, SceneGraphView],
    root: int,
    bones: Sequence[DynamicsBone],
    colliders: Sequence[ColliderVolume],
    contacts: Sequence[ContactSensor],
) -> PerformanceStats:
    """Calculate Avatar Dynamics performance stats for the avatar under `root`."""
    return PerformanceStatsCalculator(graph).calculate(root, bones, colliders, contacts)
