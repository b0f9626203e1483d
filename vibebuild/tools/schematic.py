"""
Saves a finished build to the player's clipboard and a schematic file.

The clipboard holds block states relative to the build's minimum corner so
the build can be pasted anywhere. The schematic file is a small JSON document
with the same content, named like the blueprint outputs of earlier tools:
<random word>_<player>_<timestamp>.schem.json.
"""

import json
import logging
import random
from datetime import datetime
from pathlib import Path

from vibebuild.models import Position
from vibebuild.tools.voxel_world import VoxelWorld


logger = logging.getLogger(__name__)

SCHEMATIC_SUFFIX = ".schem.json"

# Random words for memorable schematic names.
_RANDOM_WORDS = [
    "amber", "azure", "bolt", "brass", "cedar", "cobalt", "coral", "crimson",
    "dusk", "ember", "falcon", "fern", "frost", "gale", "grove", "haze",
    "iron", "jade", "lunar", "maple", "moss", "nova", "oak", "onyx",
    "peak", "pine", "quartz", "raven", "sage", "slate", "solar", "spark",
    "stone", "storm", "thorn", "tide", "timber", "vale", "wolf", "zinc"
]


def convert_to_schematic_format(clipboard: dict, size: tuple[int, int, int], name: str) -> dict:
    """
    Convert a clipboard to the schematic document.

    The format has:
    - name and size (dx, dy, dz) of the bounded region
    - a palette of distinct block states
    - one [x, y, z, palette index] entry per non-air block
    """
    palette: list[str] = []
    index: dict[str, int] = {}
    blocks = []
    for (x, y, z), state in sorted(clipboard.items()):
        if state not in index:
            index[state] = len(palette)
            palette.append(state)
        blocks.append([x, y, z, index[state]])

    return {
        "name": name,
        "size": list(size),
        "palette": palette,
        "blocks": blocks,
    }


def rotate_clipboard(clipboard: dict, degrees: int) -> dict:
    """
    Rotate clipboard positions clockwise around the Y axis (0, 90, 180 or 270).

    The result is shifted back so its minimum corner is at (0, 0, 0). Block
    state properties such as facing are kept as they are.
    """
    if degrees % 90 != 0:
        raise ValueError(f"Rotation must be a multiple of 90, got {degrees}")
    turns = (degrees // 90) % 4
    rotated = dict(clipboard)
    for _ in range(turns):
        rotated = {(-z, y, x): state for (x, y, z), state in rotated.items()}
    if not rotated:
        return rotated
    min_x = min(x for x, _, _ in rotated)
    min_z = min(z for _, _, z in rotated)
    return {(x - min_x, y, z - min_z): state for (x, y, z), state in rotated.items()}


def paste_clipboard(world: VoxelWorld, clipboard: dict, origin: Position) -> int:
    """Write clipboard blocks into a world with the clipboard's min corner at origin."""
    for (x, y, z), state in clipboard.items():
        world.set((origin.x + x, origin.y + y, origin.z + z), state)
    return len(clipboard)


class SchematicExporter:
    """Copies the session's bounded region out of the scratch world. World thread only."""

    def __init__(self, world: VoxelWorld, output_dir: Path):
        self.world = world
        self.output_dir = Path(output_dir)

    def export(self, actor, session) -> bool:
        """Fill session.clipboard and write a schematic file. False when nothing could be saved."""
        if session.build_min is None or session.build_max is None:
            logger.warning("[VB] No build bounds recorded for %s", session.player_name)
            return False

        lo, hi = session.build_min, session.build_max
        clipboard = {
            (x - lo.x, y - lo.y, z - lo.z): state
            for (x, y, z), state in self.world.blocks_in(lo, hi).items()
        }
        size = (hi.x - lo.x + 1, hi.y - lo.y + 1, hi.z - lo.z + 1)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        random_word = random.choice(_RANDOM_WORDS)
        filename = f"{random_word}_{session.player_name.replace(' ', '_')}_{timestamp}{SCHEMATIC_SUFFIX}"
        path = self.output_dir / filename

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            document = convert_to_schematic_format(clipboard, size, f"{session.player_name}'s build")
            path.write_text(json.dumps(document))
        except OSError as e:
            logger.error("[VB] Failed to save schematic: %s", e)
            return False

        session.clipboard = clipboard
        session.last_export_path = path
        logger.info("[VB] Clipboard set for %s (%d blocks, %s)", session.player_name, len(clipboard), path.name)
        return True
