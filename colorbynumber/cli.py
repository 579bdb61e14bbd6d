"""
colorbynumber CLI – turns an image file into paint-by-number sheets.

Writes, next to the input image:
 • <stem>_template.png  black outlines + region numbers on white
 • <stem>_outline.png   flat palette colours with black outlines
 • <stem>_palette.png   numbered colour swatches
"""
from __future__ import annotations
import argparse
import logging
from pathlib import Path

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .core import (DEFAULT_DIFFICULTY, DEFAULT_WIDTH, DETAIL, DIFFICULTY, ENGINES,
                   MAX_COLORS, MIN_COLORS, ConfigError, NumberedTemplate,
                   build_template, outline_image, template_sheet)

logger = logging.getLogger(__name__)

OUT_FORMATS = ("template", "outline", "palette")


# ---------- Utilities -----------------------------------------------------------
def auto_resize(im: Image.Image, base_w: int) -> Image.Image:
    if base_w <= 0 or im.width <= base_w:
        return im
    ratio = base_w / im.width
    return im.resize((base_w, max(1, int(im.height * ratio))), Image.Resampling.LANCZOS)


def load_image(path: Path, width: int = DEFAULT_WIDTH) -> np.ndarray:
    image = auto_resize(Image.open(path).convert("RGBA"), width)
    return cv2.cvtColor(np.array(image), cv2.COLOR_RGBA2RGB)


def palette_strip(template: NumberedTemplate, swatch: int = 40) -> Image.Image:
    font = ImageFont.load_default()
    strip = Image.new("RGB", (10 + template.k * (swatch + 10), swatch + 20), "white")
    draw = ImageDraw.Draw(strip)
    for i, rgb in enumerate(template.colors()):
        x = 10 + i * (swatch + 10)
        draw.rectangle([x, 10, x + swatch, 10 + swatch], fill=tuple(rgb))
        lum = 0.2126 * rgb.r + 0.7152 * rgb.g + 0.0722 * rgb.b
        txt_color = "white" if lum < 150 else "black"
        draw.text((x + swatch // 2, 10 + swatch // 2), str(i + 1), fill=txt_color, anchor="mm", font=font)
    return strip


def export_png(img: Image.Image, path: Path):
    img.save(path.with_suffix(".png"), dpi=(300, 300))


# ---------- Processing -----------------------------------------------------------
def render_sheets(template: NumberedTemplate, thickness: int = 0):
    return {
        "template": template_sheet(template, thickness),
        "outline": Image.fromarray(outline_image(template, thickness)),
        "palette": palette_strip(template),
    }


def process(path: Path, args) -> NumberedTemplate:
    pixels = load_image(path, args.width)
    h, w = pixels.shape[:2]
    logger.info(f"Processing {path.name} at {w}x{h} with {args.k} colours")
    return build_template(pixels, args.k, args.seed, args.engine)


# ---------- CLI ------------------------------------------------------------------
def build_arg_parser():
    p = argparse.ArgumentParser(prog="colorbynumber")
    p.add_argument("image")
    p.add_argument("--difficulty", choices=list(DIFFICULTY), default=DEFAULT_DIFFICULTY)
    p.add_argument("--colors", type=int, default=None, help="override the difficulty's colour count")
    p.add_argument("--detail", choices=list(DETAIL), default="high")
    p.add_argument("--width", type=int, default=DEFAULT_WIDTH,
                   help="downscale to this width, keeping the aspect ratio (0 keeps the original size)")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--engine", choices=ENGINES, default="lloyd")
    p.add_argument("--out-formats", default=",".join(OUT_FORMATS))
    p.add_argument("-v", "--verbose", action="store_true")
    return p


def main(argv=None):
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")
    args.k = args.colors if args.colors is not None else DIFFICULTY[args.difficulty]
    if not MIN_COLORS <= args.k <= MAX_COLORS:
        logger.warning(f"{args.k} colours is outside the recommended {MIN_COLORS}-{MAX_COLORS} range")

    image = Path(args.image)
    try:
        template = process(image, args)
    except ConfigError as exc:
        parser.error(str(exc))

    formats = [f.strip() for f in args.out_formats.split(",") if f.strip()]
    for name, img in render_sheets(template, DETAIL[args.detail]).items():
        if name in formats:
            export_png(img, image.with_name(f"{image.stem}_{name}"))
    print("Done.")


if __name__ == "__main__":
    main()
