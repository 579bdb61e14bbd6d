"""
Explicit regions: 4-connected components of a numbered template, computed once.

Number placement and filling both work on these instead of rescanning the
whole grid per region.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import List, Optional, Set, Tuple

import numpy as np
from skimage.measure import label

from .core import NumberedTemplate, boundary_mask, nearest_interior
from .fill import Point, as_colored_grid, flood

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Region:
    id: int
    number: int
    xs: np.ndarray  # members in row-major order
    ys: np.ndarray
    boundary: np.ndarray  # per-member boundary flag

    @property
    def area(self) -> int:
        return len(self.xs)

    @property
    def centroid(self) -> Tuple[float, float]:
        return float(self.xs.mean()), float(self.ys.mean())

    @property
    def pixels(self) -> Set[Point]:
        return set(zip(self.xs.tolist(), self.ys.tolist()))

    def label_point(self) -> Optional[Point]:
        border = np.zeros((int(self.ys.max()) + 1, int(self.xs.max()) + 1), dtype=bool)
        border[self.ys, self.xs] = self.boundary
        idx = nearest_interior(self.xs, self.ys, border)
        if idx is None:
            return None
        return int(self.xs[idx]), int(self.ys[idx])


def find_regions(template: NumberedTemplate) -> Tuple[np.ndarray, List[Region]]:
    """Label components; returns (label grid, regions) with ``regions[i].id == i + 1``."""
    labels = label(template.numbers, connectivity=1, background=0)
    border = boundary_mask(template.numbers).ravel()
    flat = labels.ravel()
    order = np.argsort(flat, kind="stable")
    starts = np.searchsorted(flat[order], np.arange(1, labels.max() + 2))
    width = template.width

    regions = []
    for rid in range(1, labels.max() + 1):
        members = order[starts[rid - 1]:starts[rid]]
        ys, xs = np.divmod(members, width)
        number = int(template.numbers[ys[0], xs[0]])
        regions.append(Region(rid, number, xs, ys, border[members]))
    logger.debug(f"Found {len(regions)} regions in {template.width}x{template.height} template")
    return labels, regions


class RegionIndex:
    """Pixel-to-region lookup built once per template."""

    def __init__(self, template: NumberedTemplate):
        self.template = template
        self.labels, self.regions = find_regions(template)

    def __len__(self):
        return len(self.regions)

    def region_at(self, x: int, y: int) -> Region:
        return self.regions[self.labels[y, x] - 1]

    def regions_for(self, number: int) -> List[Region]:
        return [r for r in self.regions if r.number == number]

    def label_points(self) -> List[Tuple[int, int, int]]:
        """One (x, y, number) per region that has an interior pixel."""
        points = []
        for region in self.regions:
            point = region.label_point()
            if point is not None:
                points.append(point + (region.number,))
        return points

    def fill(self, seed: Point, target_number: int, colored) -> Set[Point]:
        """Same result as :func:`flood`; untouched regions are returned whole."""
        grid = as_colored_grid(colored, self.template)
        x, y = seed
        if not self.template.in_bounds(x, y):
            return set()
        region = self.region_at(x, y)
        if region.number != target_number or grid[y, x]:
            return set()
        if not grid[region.ys, region.xs].any():
            return region.pixels
        return flood(seed, target_number, self.template, grid)
