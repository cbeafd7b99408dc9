from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import TYPE_CHECKING, List, Optional, Tuple

if TYPE_CHECKING:
    from .scene_graph import SceneGraphView


class InvalidReferenceError(ValueError):
    """A node handle or component reference does not exist in the supplied graph."""


@dataclass(frozen=True)
class DynamicsBone:
    """Jiggle-physics component as extracted from the host SDK."""
    node: int  # owning node handle
    root_transform: Optional[int] = None  # explicit subtree root, defaults to node
    ignore_transforms: Tuple[Optional[int], ...] = ()
    colliders: Tuple[Optional[str], ...] = ()  # collider ids, may repeat or dangle
    name: str = ""

    def __post_init__(self):
        # accept lists from callers but keep the record hashable
        object.__setattr__(self, "ignore_transforms", tuple(self.ignore_transforms))
        object.__setattr__(self, "colliders", tuple(self.colliders))

    @property
    def effective_root(self) -> int:
        return self.node if self.root_transform is None else self.root_transform


@dataclass(frozen=True)
class ColliderVolume:
    id: str
    node: int


@dataclass(frozen=True)
class ContactSensor:
    node: int
    kind: str = "receiver"


@dataclass(frozen=True)
class BoneCost:
    """Per-bone share of the dynamics stats."""
    name: str
    node: int
    affected_transforms: int  # root + non-ignored descendants
    collision_transforms: int  # transforms charged against each collider
    colliders: int  # distinct referenced colliders present in the collider set
    collision_checks: int


@dataclass(frozen=True)
class PerformanceStats:
    dynamics_bone_count: int = 0
    affected_node_count: int = 0
    collider_count: int = 0
    collision_check_count: int = 0
    contact_count: int = 0

    def as_dict(self) -> dict:
        return asdict(self)

    def summary(self) -> str:
        return "\n".join([
            f"Dynamics Bones:        {self.dynamics_bone_count}",
            f"Affected Transforms:   {self.affected_node_count}",
            f"Colliders:             {self.collider_count}",
            f"Collision Checks:      {self.collision_check_count}",
            f"Contacts:              {self.contact_count}",
        ])


@dataclass
class AvatarSnapshot:
    """Everything one stats calculation needs, as produced by the snapshot loader"""
    name: str
    graph: SceneGraphView
    root: int
    bones: List[DynamicsBone] = field(default_factory=list)
    colliders: List[ColliderVolume] = field(default_factory=list)
    contacts: List[ContactSensor] = field(default_factory=list)
