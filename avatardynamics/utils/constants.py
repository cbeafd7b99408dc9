"""
Shared constants for avatar dynamics stats.
"""

# Unity-style tag that strips a GameObject (and its subtree) from builds
EDITOR_ONLY_TAG = "EditorOnly"
UNTAGGED_TAG = "Untagged"

# Contact components come in two flavours; both count the same
CONTACT_KINDS = ("sender", "receiver")

# ComfyUI folder type for snapshot files (models/avatar_dynamics, input/avatar_dynamics)
SNAPSHOT_FOLDER = "avatar_dynamics"
SNAPSHOT_EXTENSIONS = {".json"}

LOG_PREFIX = "[AvatarDynamics]"
