"""Paint-by-number templates from raster images."""
from .core import (Color, ConfigError, NumberedTemplate, boundary_mask, build_template,
                   find_label_points, is_boundary, outline_image, quantize, smooth_regions)
from .fill import ColoringSession, color_progress, flood
from .regions import Region, RegionIndex, find_regions

__version__ = "0.1.0"
