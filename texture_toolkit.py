"""Threshold series engine used to turn grayscale images into tile grids.

The module exposes the pieces the ``bb lua texture`` command chains together:
* Parsing ``name:start..end`` step descriptors
* Validating that a set of steps partitions the 8-bit domain ``[0, 255]``
* Seeded blending noise that perturbs lookups for smoother tile transitions
* Encoding a luminance grid into 1-based tile indices
* Rendering the legend and grid as a loadable Lua module

Everything here works on plain Python lists so it can be driven by the CLI or
imported into other projects without touching the filesystem.
"""
from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple

logger = logging.getLogger(__name__)

DOMAIN_MIN = 0
DOMAIN_MAX = 255
DOMAIN_SIZE = DOMAIN_MAX - DOMAIN_MIN + 1
SEED_MAX = 2**64 - 1

# A row-major matrix: rows outer, columns inner.
Grid = List[List[int]]

_BOUND_RE = re.compile(r"\+?[0-9]+")


class TextureError(ValueError):
    """Base class for errors raised while building a texture."""


class MalformedStep(TextureError):
    def __init__(self, text: str):
        super().__init__(f"malformed step description '{text}'")
        self.text = text


class PartialRange(TextureError):
    def __init__(self):
        super().__init__("steps don't cover full range (0..255) or they overflow it")


class BlendingOutOfRange(TextureError):
    def __init__(self, value: int):
        super().__init__(f"blending factor '{value}' not in (0..100) range")
        self.value = value


def _parse_bound(raw: str, text: str) -> int:
    if not _BOUND_RE.fullmatch(raw):
        raise MalformedStep(text)
    value = int(raw)
    if value > DOMAIN_MAX:
        raise MalformedStep(text)
    return value


@dataclass(frozen=True)
class Step:
    """A tile name bound to an inclusive slice of the grayscale domain."""

    name: str
    start: int
    end: int

    @classmethod
    def parse(cls, text: str) -> "Step":
        """Build a ``Step`` from ``name:start..end``.

        ``start > end`` is accepted here; such a step can never be part of a
        valid partition and is rejected by :meth:`Series.from_steps`.
        """
        parts = text.split(":")
        if len(parts) != 2:
            raise MalformedStep(text)
        name, bounds = parts
        if not name:
            raise MalformedStep(text)

        bounds = bounds.split("..")
        if len(bounds) != 2:
            raise MalformedStep(text)
        start = _parse_bound(bounds[0], text)
        end = _parse_bound(bounds[1], text)
        return cls(name=name, start=start, end=end)

    @property
    def width(self) -> int:
        return self.end - self.start + 1

    def contains(self, value: int) -> bool:
        return self.start <= value <= self.end

    def __str__(self) -> str:
        return f"{self.name}:{self.start}..{self.end}"


def parse_steps(descriptors: Iterable[str]) -> List[Step]:
    return [Step.parse(text) for text in descriptors]


def _covers_domain(steps: Sequence[Step]) -> bool:
    # Widths are summed as unbounded ints, so overlapping steps whose total
    # happens to be a multiple of 256 cannot slip through.
    if sum(step.width for step in steps) != DOMAIN_SIZE:
        return False

    expected = DOMAIN_MIN
    for step in sorted(steps, key=lambda s: s.start):
        if step.start > step.end or step.start != expected:
            return False
        expected = step.end + 1
    return expected == DOMAIN_MAX + 1


def _fresh_seed() -> int:
    return random.SystemRandom().randint(1, SEED_MAX - 1)


class BlendingNoise:
    """Seeded additive noise applied to luminance values before lookup.

    The noise source is stateful: every :meth:`perturb` call with blending
    enabled advances the generator, so callers must feed values in a fixed
    order (row-major for grids) to get reproducible output.
    """

    def __init__(self, seed: int | None = None):
        self._rng = random.Random()
        self._seed = 0
        self._ceiling = 0
        self.reseed(seed if seed is not None else _fresh_seed())

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def ceiling(self) -> int:
        """Largest offset that can be drawn; ``0`` means blending is off."""
        return self._ceiling

    @property
    def enabled(self) -> bool:
        return self._ceiling > 0

    def reseed(self, seed: int):
        if not 0 <= seed <= SEED_MAX:
            raise ValueError(f"seed must fit in 64 bits; got {seed}")
        self._seed = seed
        self._rng.seed(seed)

    def configure(self, percent: int):
        """Map ``percent`` of the domain width onto the offset range ``[0, K]``."""
        if not 0 <= percent <= 100:
            raise BlendingOutOfRange(percent)
        self._ceiling = percent * DOMAIN_MAX // 100

    def current_blending_percent(self) -> int:
        """Best-effort inverse of :meth:`configure`, reported as metadata only.

        ``configure`` floors, so this may differ from the percentage that was
        originally supplied.
        """
        return -(-self._ceiling * 100 // DOMAIN_MAX)

    def perturb(self, value: int) -> int:
        if not self.enabled:
            return value
        offset = self._rng.randint(0, self._ceiling)
        return min(value + offset, DOMAIN_MAX)


@dataclass
class Series:
    """Ordered, validated steps plus the noise source used during activation."""

    steps: Tuple[Step, ...]
    noise: BlendingNoise = field(repr=False)

    @classmethod
    def from_steps(cls, steps: Sequence[Step], seed: int | None = None) -> "Series":
        """Validate that ``steps`` exactly partition ``[0, 255]``.

        ``seed=None`` picks a fresh random seed. Blending starts disabled.
        """
        steps = tuple(steps)
        if not _covers_domain(steps):
            raise PartialRange()
        noise = BlendingNoise(seed)
        logger.debug("series built from %d steps, seed=%d", len(steps), noise.seed)
        return cls(steps=steps, noise=noise)

    def with_blending(self, percent: int, seed: int | None = None) -> "Series":
        """Enable blending; an explicit ``seed`` replaces the current one."""
        if seed is not None:
            self.noise.reseed(seed)
        self.noise.configure(percent)
        logger.debug(
            "blending %d%% -> offsets [0, %d], seed=%d",
            percent,
            self.noise.ceiling,
            self.noise.seed,
        )
        return self

    @property
    def seed(self) -> int:
        return self.noise.seed

    @property
    def blending_ceiling(self) -> int:
        return self.noise.ceiling

    def current_blending_percent(self) -> int:
        return self.noise.current_blending_percent()

    @property
    def legend(self) -> Dict[int, str]:
        return {index: step.name for index, step in enumerate(self.steps, start=1)}

    def lookup(self, value: int) -> int:
        """Return the 1-based index of the first step containing ``value``."""
        for index, step in enumerate(self.steps, start=1):
            if step.contains(value):
                return index
        raise LookupError(f"no step contains value {value}")

    def activate(self, value: int, noise: BlendingNoise | None = None) -> int:
        noise = noise if noise is not None else self.noise
        return self.lookup(noise.perturb(value))

    def __str__(self) -> str:
        return " ".join(str(step) for step in self.steps)


def build_series(
    descriptors: Iterable[str],
    blending: int = 0,
    seed: int | None = None,
) -> Series:
    """Parse ``descriptors`` and assemble a blended ``Series`` in one go."""
    steps = parse_steps(descriptors)
    if not 0 <= blending <= 100:
        raise BlendingOutOfRange(blending)
    return Series.from_steps(steps).with_blending(blending, seed)


def encode_grid(luma: Sequence[Sequence[int]], series: Series, noise: BlendingNoise | None = None) -> Grid:
    """Map every luminance cell to a tile index, row by row, left to right."""
    noise = noise if noise is not None else series.noise
    return [[series.activate(value, noise) for value in row] for row in luma]


def header_lua(series: Series) -> str:
    """Comment line recording the parameters needed to reproduce the output."""
    return f"-- bb --seed {series.seed} --blending {series.current_blending_percent()} --steps {series}"


def legend_lua(series: Series) -> str:
    entries = [f'[{index}]="{name}"' for index, name in series.legend.items()]
    return "{" + ",".join(entries) + "}"


def to_lua(grid: Grid, series: Series) -> str:
    """Render ``grid`` and the series legend as a Lua module.

    The generated chunk has this shape (whitespace added for readability)::

        local mod = {};
        mod.width = 512;
        mod.height = 512;
        mod.map = {[1] = "dirt", [2] = "grass", ...};
        mod.grid = {{1, 2, ...,}, {2, 1, ...,}, ...,};
        return mod

    ``map`` is a 1-based array of tile names and ``grid`` holds one table per
    image row, each cell pointing back into ``map``.
    """
    height = len(grid)
    width = len(grid[0]) if grid else 0

    parts: List[str] = [
        header_lua(series),
        "\n",
        "local mod={};",
        f"mod.width={width};",
        f"mod.height={height};",
        f"mod.map={legend_lua(series)};",
        "mod.grid={",
    ]
    for row in grid:
        parts.append("{")
        parts.extend(f"{tile_id}," for tile_id in row)
        parts.append("},")
    parts.append("};return mod")
    return "".join(parts)
