"""Public API for supersampled Mandelbrot rendering."""

from .errors import (
    InvalidParametersError,
    MandelbrotError,
    PersistenceError,
    RenderCancelledError,
    RowProcessingError,
)
from .generator import allocate_buffer, default_workers, generate
from .output import save_image
from .parameters import ImageSize, Parameters, RenderOptions, Viewport, default_parameters, validate_parameters
from .renderer import (
    SamplingMetadata,
    average_colors,
    color_at,
    colorize,
    compute_metadata,
    escape_counts,
    render_row,
    subsample_points,
)

__all__ = [
    "ImageSize",
    "InvalidParametersError",
    "MandelbrotError",
    "Parameters",
    "PersistenceError",
    "RenderCancelledError",
    "RenderOptions",
    "RowProcessingError",
    "SamplingMetadata",
    "Viewport",
    "allocate_buffer",
    "average_colors",
    "color_at",
    "colorize",
    "compute_metadata",
    "default_parameters",
    "default_workers",
    "escape_counts",
    "generate",
    "render_row",
    "save_image",
    "subsample_points",
    "validate_parameters",
]
