"""
Flood fill and colouring bookkeeping for an interactive caller.

``flood`` only reads the template and the coloured grid; applying its result
is up to the caller (or a ColoringSession). Calls sharing one coloured grid
must be serialised by the caller.
"""
from __future__ import annotations
import logging
import math
from collections import deque
from typing import List, Optional, Set, Tuple

import numpy as np

from .core import NumberedTemplate

logger = logging.getLogger(__name__)

Point = Tuple[int, int]


def as_colored_grid(colored, template: NumberedTemplate) -> np.ndarray:
    grid = np.asarray(colored, dtype=bool)
    if grid.shape != template.numbers.shape:
        raise ValueError(f"colored grid shape {grid.shape} does not match template {template.numbers.shape}")
    return grid


def flood(seed: Point, target_number: int, template: NumberedTemplate, colored) -> Set[Point]:
    """All uncoloured pixels with ``target_number`` 4-connected to ``seed``.

    Returns an empty set when the seed is out of bounds, carries another
    number, or is already coloured.
    """
    grid = as_colored_grid(colored, template)
    numbers = template.numbers
    x, y = seed
    if not template.in_bounds(x, y):
        logger.debug(f"Seed ({x}, {y}) is outside the template")
        return set()
    if numbers[y, x] != target_number:
        logger.debug(f"Clicked on region {numbers[y, x]} but selected number is {target_number}")
        return set()
    if grid[y, x]:
        logger.debug(f"Pixel at ({x}, {y}) is already colored")
        return set()

    width, height = template.width, template.height
    visited = {(x, y)}
    queue = deque([(x, y)])
    while queue:
        cx, cy = queue.popleft()
        for nx, ny in ((cx + 1, cy), (cx - 1, cy), (cx, cy + 1), (cx, cy - 1)):
            if (0 <= nx < width and 0 <= ny < height and (nx, ny) not in visited
                    and numbers[ny, nx] == target_number and not grid[ny, nx]):
                visited.add((nx, ny))
                queue.append((nx, ny))
    logger.debug(f"Found {len(visited)} pixels to color from ({x}, {y})")
    return visited


def _percent(part: np.ndarray, total: np.ndarray) -> List[int]:
    # float percentage, halves go up
    return [int(math.floor(p / t * 100 + 0.5)) if t else 0 for p, t in zip(part.tolist(), total.tolist())]


def color_progress(template: NumberedTemplate, colored) -> List[int]:
    """Percentage (0-100) of coloured pixels for each number 1..k."""
    grid = as_colored_grid(colored, template)
    index = template.numbers.ravel() - 1
    total = np.bincount(index, minlength=template.k)
    done = np.bincount(index[grid.ravel()], minlength=template.k)
    return _percent(done, total)


class ColoringSession:
    """Coloured-pixel state for one template."""

    def __init__(self, template: NumberedTemplate):
        self.template = template
        self.colored = np.zeros(template.numbers.shape, dtype=bool)

    def color_region(self, x: int, y: int, selected_number: int) -> Set[Point]:
        pixels = flood((x, y), selected_number, self.template, self.colored)
        for px, py in pixels:
            self.colored[py, px] = True
        return pixels

    def hint(self, selected_number: int) -> Optional[Point]:
        """Colour the first uncoloured pixel of ``selected_number`` in row-major order."""
        ys, xs = np.nonzero((self.template.numbers == selected_number) & ~self.colored)
        if len(ys) == 0:
            return None
        x, y = int(xs[0]), int(ys[0])
        self.colored[y, x] = True
        return x, y

    def reset(self):
        self.colored[:] = False

    def progress(self) -> List[int]:
        return color_progress(self.template, self.colored)

    def is_complete(self) -> bool:
        return bool(self.colored.all())

    def render(self) -> np.ndarray:
        """Coloured pixels in their palette colour, the rest white."""
        out = np.full(self.colored.shape + (3,), 255, dtype=np.uint8)
        out[self.colored] = self.template.color_grid()[self.colored]
        return out
