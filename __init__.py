import os
import folder_paths

from .avatardynamics.utils.constants import SNAPSHOT_EXTENSIONS, SNAPSHOT_FOLDER
from .nodes_dynamics import NODE_CLASS_MAPPINGS_DYNAMICS, NODE_DISPLAY_NAME_MAPPINGS_DYNAMICS

# Register avatar snapshots as a ComfyUI folder type
# (scans models/avatar_dynamics and input/avatar_dynamics)
folder_paths.folder_names_and_paths[SNAPSHOT_FOLDER] = (
    [
        os.path.join(folder_paths.models_dir, SNAPSHOT_FOLDER),
        os.path.join(folder_paths.get_input_directory(), SNAPSHOT_FOLDER)
    ],
    SNAPSHOT_EXTENSIONS
)

NODE_CLASS_MAPPINGS = {
    **NODE_CLASS_MAPPINGS_DYNAMICS,
}
NODE_DISPLAY_NAME_MAPPINGS = {
    **NODE_DISPLAY_NAME_MAPPINGS_DYNAMICS,
}

__all__ = ["NODE_CLASS_MAPPINGS", "NODE_DISPLAY_NAME_MAPPINGS"]
