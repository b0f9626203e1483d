"""
In-process voxel world mutated by the tool executors.

A sparse map from integer block coordinates to block state strings such as
"stone_bricks" or "repeater[facing=north,delay=2]". Air is the absence of an
entry. The tools generate block arrays deterministically so the LLM decides
what to build and this code handles the coordinate math.

Not thread safe: only the world thread may call into it.
"""

import re
from typing import Iterator

from vibebuild.errors import ToolFailure
from vibebuild.models import Position


Coord = tuple[int, int, int]

AIR = "air"

# block_id or block_id[key=value,...], optional namespace.
_BLOCK_PATTERN = re.compile(r"^(?:[a-z0-9_.-]+:)?[a-z0-9_/.-]+(?:\[[a-z0-9_]+=[a-z0-9_]+(?:,[a-z0-9_]+=[a-z0-9_]+)*\])?$")

# Unit offsets for direction names.
DIRECTION_OFFSETS: dict[str, Coord] = {
    "north": (0, 0, -1),
    "south": (0, 0, 1),
    "east": (1, 0, 0),
    "west": (-1, 0, 0),
    "up": (0, 1, 0),
    "down": (0, -1, 0),
}

# Guard against runaway fills from a bad coordinate.
MAX_REGION_VOLUME = 2_000_000


def normalize_block(block: str) -> str:
    """Validate a block state string and strip the minecraft: namespace."""
    value = (block or "").strip().lower()
    if not _BLOCK_PATTERN.match(value):
        raise ToolFailure(f"Invalid block: {block!r}")
    if value.startswith("minecraft:"):
        value = value[len("minecraft:"):]
    return value


def block_id(state: str) -> str:
    """Block id without its state properties."""
    return state.split("[", 1)[0]


def direction_offset(direction: str) -> Coord:
    try:
        return DIRECTION_OFFSETS[(direction or "").lower()]
    except KeyError:
        raise ToolFailure(f"Unknown direction: {direction!r}") from None


def _bounds(a: Position, b: Position) -> tuple[Coord, Coord]:
    lo = (min(a.x, b.x), min(a.y, b.y), min(a.z, b.z))
    hi = (max(a.x, b.x), max(a.y, b.y), max(a.z, b.z))
    volume = (hi[0] - lo[0] + 1) * (hi[1] - lo[1] + 1) * (hi[2] - lo[2] + 1)
    if volume > MAX_REGION_VOLUME:
        raise ToolFailure(f"Region too large: {volume:,} blocks (max {MAX_REGION_VOLUME:,})")
    return lo, hi


def iter_region(a: Position, b: Position) -> Iterator[Coord]:
    (x0, y0, z0), (x1, y1, z1) = _bounds(a, b)
    for y in range(y0, y1 + 1):
        for x in range(x0, x1 + 1):
            for z in range(z0, z1 + 1):
                yield (x, y, z)


class VoxelWorld:
    """Sparse block storage plus the region operations the tools expose."""

    def __init__(self):
        self._blocks: dict[Coord, str] = {}
        self.signs: dict[Coord, tuple[str, ...]] = {}

    def __len__(self) -> int:
        return len(self._blocks)

    # -- Primitive access --

    def get(self, pos: Coord) -> str:
        return self._blocks.get(pos, AIR)

    def set(self, pos: Coord, block: str) -> None:
        self.signs.pop(pos, None)
        if block_id(block) in (AIR, "cave_air", "void_air"):
            self._blocks.pop(pos, None)
        else:
            self._blocks[pos] = block

    def blocks_in(self, a: Position, b: Position) -> dict[Coord, str]:
        """Non-air blocks inside the cuboid spanned by a and b."""
        (x0, y0, z0), (x1, y1, z1) = _bounds(a, b)
        return {
            pos: state for pos, state in self._blocks.items()
            if x0 <= pos[0] <= x1 and y0 <= pos[1] <= y1 and z0 <= pos[2] <= z1
        }

    def clear_region(self, a: Position, b: Position) -> int:
        doomed = list(self.blocks_in(a, b))
        for pos in doomed:
            del self._blocks[pos]
            self.signs.pop(pos, None)
        return len(doomed)

    # -- Region operations --

    def set_region(self, a: Position, b: Position, block: str) -> int:
        count = 0
        for pos in iter_region(a, b):
            self.set(pos, block)
            count += 1
        return count

    def replace(self, a: Position, b: Position, to: str, from_: str | None = None) -> int:
        """Replace blocks matching `from_` (any non-air when None) inside the region."""
        count = 0
        for pos, state in self.blocks_in(a, b).items():
            if from_ is None or state == from_ or block_id(state) == from_:
                self.set(pos, to)
                count += 1
        return count

    def walls(self, a: Position, b: Position, block: str) -> int:
        """The four vertical sides of the cuboid."""
        (x0, y0, z0), (x1, y1, z1) = _bounds(a, b)
        count = 0
        for pos in iter_region(a, b):
            x, _, z = pos
            if x in (x0, x1) or z in (z0, z1):
                self.set(pos, block)
                count += 1
        return count

    def faces(self, a: Position, b: Position, block: str) -> int:
        """All six faces of the cuboid (a hollow box)."""
        (x0, y0, z0), (x1, y1, z1) = _bounds(a, b)
        count = 0
        for pos in iter_region(a, b):
            x, y, z = pos
            if x in (x0, x1) or y in (y0, y1) or z in (z0, z1):
                self.set(pos, block)
                count += 1
        return count

    def line(self, a: Position, b: Position, block: str) -> int:
        """Straight line of blocks from a to b, both ends included."""
        dx, dy, dz = b.x - a.x, b.y - a.y, b.z - a.z
        steps = max(abs(dx), abs(dy), abs(dz))
        placed = set()
        for i in range(steps + 1):
            t = i / steps if steps else 0.0
            pos = (round(a.x + dx * t), round(a.y + dy * t), round(a.z + dz * t))
            placed.add(pos)
        for pos in placed:
            self.set(pos, block)
        return len(placed)

    def cylinder(self, center: Position, radius: int, height: int, block: str, hollow: bool = False) -> int:
        """Vertical cylinder standing on `center`."""
        if radius < 0 or height < 1:
            raise ToolFailure("Cylinder needs radius >= 0 and height >= 1")
        edge = (radius + 0.5) ** 2
        inner = (radius - 0.5) ** 2
        count = 0
        for dy in range(height):
            for dx in range(-radius, radius + 1):
                for dz in range(-radius, radius + 1):
                    dist = dx * dx + dz * dz
                    if dist > edge or (hollow and dist < inner):
                        continue
                    self.set((center.x + dx, center.y + dy, center.z + dz), block)
                    count += 1
        return count

    def stack(self, a: Position, b: Position, count: int, direction: str, ignore_air: bool = True) -> int:
        """Repeat the cuboid's contents `count` times, each copy offset by one cuboid length."""
        if count < 1:
            raise ToolFailure("Stack count must be >= 1")
        (x0, y0, z0), (x1, y1, z1) = _bounds(a, b)
        ox, oy, oz = direction_offset(direction)
        size = (x1 - x0 + 1, y1 - y0 + 1, z1 - z0 + 1)
        shift = (ox * size[0], oy * size[1], oz * size[2])

        source = {pos: self.get(pos) for pos in iter_region(a, b)}
        written = 0
        for n in range(1, count + 1):
            for (x, y, z), state in source.items():
                if ignore_air and state == AIR:
                    continue
                self.set((x + shift[0] * n, y + shift[1] * n, z + shift[2] * n), state)
                written += 1
        return written
