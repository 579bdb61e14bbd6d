"""
colorbynumber core – image-to-template pipeline.

Turns a raster image into a paint-by-number template:
 • k-means colour quantisation (Lloyd, seeded, iteration-capped)
 • 3x3 mode filter to remove speckle from the region map
 • 4-connected boundary detection
 • numbered template (palette colour + 1-based number per pixel)
 • label points for number overlay
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Tuple, Union

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont
from sklearn.cluster import KMeans

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 10
CONVERGENCE_DISTANCE = 1
DEFAULT_WIDTH = 128
MIN_COLORS, MAX_COLORS = 5, 15
DIFFICULTY = {"easy": 5, "medium": 10, "hard": 15}
DEFAULT_DIFFICULTY = "medium"
DETAIL = {"low": 2, "medium": 1, "high": 0}
ENGINES = ("lloyd", "sklearn")

RandomSource = Union[None, int, np.random.Generator]


class ConfigError(ValueError):
    """Invalid pipeline input (bad k, empty or malformed pixel grid, bad template)."""


class Color(NamedTuple):
    r: int
    g: int
    b: int


# ---------- Data model -----------------------------------------------------------
@dataclass(frozen=True, eq=False)
class NumberedTemplate:
    """Per-pixel region numbers (1..k) plus the palette they index into.

    ``numbers[y, x] - 1`` is the palette row of pixel (x, y). Both arrays are
    read-only once the template exists; a new difficulty means a new template.
    """
    numbers: np.ndarray
    palette: np.ndarray

    def __post_init__(self):
        numbers = np.array(self.numbers, dtype=np.int32)
        palette = np.array(self.palette, dtype=np.uint8).reshape(-1, 3)
        if numbers.ndim != 2 or numbers.size == 0:
            raise ConfigError(f"template must be a non-empty 2D grid, got shape {numbers.shape}")
        if len(palette) == 0:
            raise ConfigError("template palette is empty")
        if numbers.min() < 1 or numbers.max() > len(palette):
            raise ConfigError(f"region numbers must lie in 1..{len(palette)}")
        numbers.setflags(write=False)
        palette.setflags(write=False)
        object.__setattr__(self, "numbers", numbers)
        object.__setattr__(self, "palette", palette)

    @property
    def width(self) -> int:
        return self.numbers.shape[1]

    @property
    def height(self) -> int:
        return self.numbers.shape[0]

    @property
    def k(self) -> int:
        return len(self.palette)

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def number_at(self, x: int, y: int) -> int:
        return int(self.numbers[y, x])

    def color_at(self, x: int, y: int) -> Color:
        return Color(*(int(c) for c in self.palette[self.numbers[y, x] - 1]))

    def colors(self) -> List[Color]:
        return [Color(*(int(c) for c in row)) for row in self.palette]

    def color_grid(self) -> np.ndarray:
        return self.palette[self.numbers - 1]


# ---------- Utilities ------------------------------------------------------------
def _rng(rng: RandomSource) -> np.random.Generator:
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


def _check_k(k) -> int:
    if isinstance(k, bool) or not isinstance(k, (int, np.integer)) or k < 1:
        raise ConfigError(f"k must be an integer >= 1, got {k!r}")
    return int(k)


def as_pixel_buffer(pixels) -> np.ndarray:
    """Return an (h, w, 3) int64 view of an RGB(A) grid; alpha is dropped."""
    img = np.asarray(pixels)
    if img.ndim != 3 or img.shape[2] not in (3, 4):
        raise ConfigError(f"pixel grid must be shaped (h, w, 3|4), got {img.shape}")
    if img.shape[0] == 0 or img.shape[1] == 0:
        raise ConfigError("pixel grid is empty")
    return img[:, :, :3].astype(np.int64)


def _round_half_up(num: np.ndarray, den: np.ndarray) -> np.ndarray:
    # floor(num / den + 0.5) on non-negative integers
    return (2 * num + den) // (2 * den)


def assign_nearest(flat: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """Index of the nearest centroid for every row of ``flat``.

    Squared integer distances keep ties exact; a later centroid only wins
    when it is strictly closer, so ties go to the lowest index.
    """
    flat = flat.astype(np.int64)
    centroids = np.asarray(centroids, dtype=np.int64)
    best = np.full(len(flat), np.iinfo(np.int64).max, dtype=np.int64)
    labels = np.zeros(len(flat), dtype=np.int32)
    for i, c in enumerate(centroids):
        d = ((flat - c) ** 2).sum(axis=1)
        closer = d < best
        best[closer] = d[closer]
        labels[closer] = i
    return labels


# ---------- Colour quantisation --------------------------------------------------
def quantize(pixels, k: int, rng: RandomSource = None) -> Tuple[np.ndarray, np.ndarray]:
    """Lloyd's k-means over RGB. Returns (palette (k, 3) uint8, raw region map (h, w))."""
    k = _check_k(k)
    img = as_pixel_buffer(pixels)
    h, w = img.shape[:2]
    flat = img.reshape(-1, 3)
    gen = _rng(rng)

    centroids = flat[gen.integers(0, len(flat), size=k)].copy()
    for iteration in range(1, MAX_ITERATIONS + 1):
        labels = assign_nearest(flat, centroids)
        counts = np.bincount(labels, minlength=k)
        sums = np.stack([np.bincount(labels, weights=flat[:, c], minlength=k) for c in range(3)], axis=1)
        sums = sums.astype(np.int64)
        updated = centroids.copy()
        filled = counts > 0
        updated[filled] = _round_half_up(sums[filled], counts[filled][:, None])

        moved = ((updated - centroids) ** 2).sum(axis=1)
        centroids = updated
        if np.all(moved <= CONVERGENCE_DISTANCE ** 2):
            logger.debug(f"k-means converged after {iteration} iterations")
            break
    else:
        logger.debug(f"k-means stopped at the {MAX_ITERATIONS}-iteration cap")

    labels = assign_nearest(flat, centroids).reshape(h, w)
    palette = centroids.astype(np.uint8)
    logger.debug(f"Palette size: {len(palette)}")
    return palette, labels


def quantize_sklearn(pixels, k: int, rng: RandomSource = None) -> Tuple[np.ndarray, np.ndarray]:
    """Same contract as :func:`quantize`, clustering done by scikit-learn's KMeans."""
    k = _check_k(k)
    img = as_pixel_buffer(pixels)
    h, w = img.shape[:2]
    flat = img.reshape(-1, 3)
    if k > len(flat):
        raise ConfigError(f"sklearn engine needs k <= pixel count ({len(flat)}), got {k}")
    gen = _rng(rng)

    seeds = flat[gen.integers(0, len(flat), size=k)].astype(np.float64)
    km = KMeans(n_clusters=k, init=seeds, n_init=1, max_iter=MAX_ITERATIONS,
                random_state=int(gen.integers(0, 2**31 - 1))).fit(flat.astype(np.float64))
    palette = np.clip(np.floor(km.cluster_centers_ + 0.5), 0, 255).astype(np.uint8)
    labels = assign_nearest(flat, palette).reshape(h, w)
    logger.debug(f"KMeans finished after {km.n_iter_} iterations, palette size {len(palette)}")
    return palette, labels


# ---------- Region smoothing -----------------------------------------------------
def smooth_regions(region_map: np.ndarray) -> np.ndarray:
    """3x3 mode filter over palette indices.

    Out-of-bounds cells are ignored. On a tie the value that first reached the
    top count while scanning the window row by row wins.
    """
    labels = np.asarray(region_map, dtype=np.int64)
    h, w = labels.shape
    padded = np.pad(labels, 1, constant_values=-1)
    window = [padded[1 + dy:1 + dy + h, 1 + dx:1 + dx + w]
              for dy in (-1, 0, 1) for dx in (-1, 0, 1)]

    mode = labels.copy()
    best = np.zeros((h, w), dtype=np.int64)
    for j, value in enumerate(window):
        count = sum((window[i] == value).astype(np.int64) for i in range(j + 1))
        count[value < 0] = 0
        better = count > best
        mode[better] = value[better]
        best[better] = count[better]
    return mode


# ---------- Boundaries -----------------------------------------------------------
def is_boundary(x: int, y: int, region_map) -> bool:
    labels = np.asarray(region_map)
    h, w = labels.shape
    if not (0 <= x < w and 0 <= y < h):
        raise IndexError(f"pixel ({x}, {y}) outside {w}x{h} map")
    current = labels[y, x]
    for nx, ny in ((x, y - 1), (x, y + 1), (x - 1, y), (x + 1, y)):
        if 0 <= nx < w and 0 <= ny < h and labels[ny, nx] != current:
            return True
    return False


def boundary_mask(region_map) -> np.ndarray:
    labels = np.asarray(region_map)
    border = np.zeros(labels.shape, dtype=bool)
    vertical = labels[1:, :] != labels[:-1, :]
    horizontal = labels[:, 1:] != labels[:, :-1]
    border[1:, :] |= vertical
    border[:-1, :] |= vertical
    border[:, 1:] |= horizontal
    border[:, :-1] |= horizontal
    return border


# ---------- Template -------------------------------------------------------------
def simplify(pixels, k: int, rng: RandomSource = None, engine: str = "lloyd"):
    """Quantise then smooth. Returns (palette, raw map, smoothed map)."""
    if engine not in ENGINES:
        raise ConfigError(f"unknown engine {engine!r}, expected one of {ENGINES}")
    run = quantize if engine == "lloyd" else quantize_sklearn
    palette, raw = run(pixels, k, rng)
    smoothed = smooth_regions(raw)
    logger.debug(f"Simplified {raw.shape[1]}x{raw.shape[0]} image to {len(palette)} colours")
    return palette, raw, smoothed


def build_template(pixels, k: int, rng: RandomSource = None, engine: str = "lloyd") -> NumberedTemplate:
    palette, _, smoothed = simplify(pixels, k, rng, engine)
    return NumberedTemplate(numbers=smoothed + 1, palette=palette)


def _thicken(border: np.ndarray, thickness: int) -> np.ndarray:
    if thickness <= 0:
        return border
    kernel = np.ones((3, 3), np.uint8)
    return cv2.dilate(border.astype(np.uint8), kernel, iterations=thickness).astype(bool)


def outline_image(template: NumberedTemplate, thickness: int = 0) -> np.ndarray:
    """Boundary pixels black, everything else its palette colour."""
    border = _thicken(boundary_mask(template.numbers), thickness)
    out = template.color_grid().copy()
    out[border] = 0
    return out


def template_sheet(template: NumberedTemplate, thickness: int = 0) -> Image.Image:
    """Black outlines on white with each region's number at its label point."""
    border = _thicken(boundary_mask(template.numbers), thickness)
    sheet = Image.new("RGB", (template.width, template.height), "white")
    sheet.paste("black", mask=Image.fromarray(border.astype(np.uint8) * 255).convert("L"))
    draw = ImageDraw.Draw(sheet)
    font = ImageFont.load_default()
    for x, y, number in find_label_points(template):
        draw.text((x, y), str(number), fill="black", anchor="mm", font=font)
    return sheet


# ---------- Label placement ------------------------------------------------------
def nearest_interior(xs: np.ndarray, ys: np.ndarray, border: np.ndarray) -> Optional[int]:
    """Index of the member closest to the group's centroid, pushed off boundaries.

    The centroid is rounded half up to a pixel; members are in row-major
    order, so ties go to the earliest. A boundary candidate falls back to
    the first interior member; ``None`` when every member is on a boundary.
    """
    cx, cy = np.floor(xs.mean() + 0.5), np.floor(ys.mean() + 0.5)
    best = int(np.argmin((xs - cx) ** 2 + (ys - cy) ** 2))
    if not border[ys[best], xs[best]]:
        return best
    interior = np.flatnonzero(~border[ys, xs])
    if len(interior) == 0:
        return None
    return int(interior[0])


def find_label_points(template: NumberedTemplate) -> List[Tuple[int, int, int]]:
    """One (x, y, number) per region number that has an interior pixel.

    Numbers come in the order they first appear in a row-major scan.
    """
    border = boundary_mask(template.numbers)
    points = []
    numbers, first = np.unique(template.numbers, return_index=True)
    for number in numbers[np.argsort(first)]:
        ys, xs = np.nonzero(template.numbers == number)
        idx = nearest_interior(xs, ys, border)
        if idx is None:
            logger.debug(f"Region {number} has no interior pixel, no label placed")
            continue
        points.append((int(xs[idx]), int(ys[idx]), int(number)))
    return points
