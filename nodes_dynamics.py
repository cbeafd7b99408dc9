"""
Avatar Dynamics nodes

Provides nodes for:
- Loading a scene snapshot (JSON) from the avatar_dynamics folder or a text box
- Calculating dynamics bone / collider / contact performance stats
"""

import json
import os

import folder_paths

from .avatardynamics.utils.constants import LOG_PREFIX, SNAPSHOT_FOLDER
from .avatardynamics.utils.performance_stats import PerformanceStatsCalculator
from .avatardynamics.utils.snapshot_io import load_snapshot


class AvatarDynamicsSnapshotLoader:
    """Load an avatar scene snapshot from models/avatar_dynamics or input/avatar_dynamics"""
    @classmethod
    def INPUT_TYPES(s):
        return {
            "required": {
                "snapshot_name": (folder_paths.get_filename_list(SNAPSHOT_FOLDER), {
                    "tooltip": "Scene snapshot exported from the avatar (nodes, dynamics bones, colliders, contacts)."
                }),
            }
        }

    RETURN_TYPES = ("AVATAR_DYNAMICS_SNAPSHOT",)
    RETURN_NAMES = ("snapshot",)
    FUNCTION = "load"
    CATEGORY = "AvatarDynamics/loaders"

    def load(self, snapshot_name):
        full_path = folder_paths.get_full_path(SNAPSHOT_FOLDER, snapshot_name)
        if not full_path or not os.path.exists(full_path):
            raise FileNotFoundError(f"Snapshot file not found: {snapshot_name}")

        print(f"{LOG_PREFIX} Loading snapshot: {full_path}")
        snapshot = load_snapshot(full_path)
        print(f"{LOG_PREFIX} {snapshot.name}: {len(snapshot.graph)} nodes, {len(snapshot.bones)} dynamics bones, "
              f"{len(snapshot.colliders)} colliders, {len(snapshot.contacts)} contacts")
        return (snapshot,)


class AvatarDynamicsSnapshotFromJSON:
    @classmethod
    def INPUT_TYPES(s):
        return {
            "required": {
                "snapshot_json": ("STRING", {
                    "multiline": True,
                    "default": "{\"root\": \"Avatar\", \"nodes\": [{\"id\": \"Avatar\", \"parent\": null}]}",
                }),
            }
        }

    RETURN_TYPES = ("AVATAR_DYNAMICS_SNAPSHOT",)
    RETURN_NAMES = ("snapshot",)
    FUNCTION = "parse"
    CATEGORY = "AvatarDynamics/loaders"

    def parse(self, snapshot_json):
        try:
            data = json.loads(snapshot_json)
        except json.JSONDecodeError as e:
            print(f"{LOG_PREFIX} ERROR: snapshot text is not valid JSON: {e}")
            raise
        return (load_snapshot(data),)


class AvatarDynamicsStats:
    """
    Calculate Avatar Dynamics performance stats for a snapshot.

    Editor-only bones are stripped the same way a build strips them; contacts
    are counted as-is.
    """

    @classmethod
    def INPUT_TYPES(s):
        return {
            "required": {
                "snapshot": ("AVATAR_DYNAMICS_SNAPSHOT",),
                "include_breakdown": ("BOOLEAN", {
                    "default": False,
                    "tooltip": "Append per-bone transform and collision check counts to the report"
                }),
            }
        }

    RETURN_TYPES = ("INT", "INT", "INT", "INT", "INT", "STRING")
    RETURN_NAMES = ("dynamics_bones", "affected_transforms", "colliders", "collision_checks", "contacts", "report")
    FUNCTION = "calculate"
    CATEGORY = "AvatarDynamics/stats"

    def calculate(self, snapshot, include_breakdown=False):
        calculator = PerformanceStatsCalculator(snapshot.graph)
        stats = calculator.calculate(snapshot.root, snapshot.bones, snapshot.colliders, snapshot.contacts)

        report = [f"{snapshot.name}", stats.summary()]
        if include_breakdown:
            report.append("")
            for cost in calculator.bone_costs(snapshot.root, snapshot.bones, snapshot.colliders):
                report.append(f"  {cost.name}: {cost.affected_transforms} transforms, "
                              f"{cost.colliders} colliders, {cost.collision_checks} checks")

        print(f"{LOG_PREFIX} Stats for {snapshot.name}: {stats.as_dict()}")
        return (
            stats.dynamics_bone_count,
            stats.affected_node_count,
            stats.collider_count,
            stats.collision_check_count,
            stats.contact_count,
            "\n".join(report),
        )


NODE_CLASS_MAPPINGS_DYNAMICS = {
    "AvatarDynamicsSnapshotLoader": AvatarDynamicsSnapshotLoader,
    "AvatarDynamicsSnapshotFromJSON": AvatarDynamicsSnapshotFromJSON,
    "AvatarDynamicsStats": AvatarDynamicsStats,
}

NODE_DISPLAY_NAME_MAPPINGS_DYNAMICS = {
    "AvatarDynamicsSnapshotLoader": "Avatar Dynamics Snapshot Loader",
    "AvatarDynamicsSnapshotFromJSON": "Avatar Dynamics Snapshot (JSON)",
    "AvatarDynamicsStats": "Avatar Dynamics Performance Stats",
}
