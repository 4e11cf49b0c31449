"""Parameter model for a single supersampled Mandelbrot frame."""

from __future__ import annotations

from dataclasses import dataclass, field

from .errors import InvalidParametersError


@dataclass(frozen=True)
class Viewport:
    """Rectangle of the complex plane mapped onto the pixel grid."""

    x_min: float = -2.0
    y_min: float = -2.0
    x_max: float = 2.0
    y_max: float = 2.0

    @property
    def x_span(self) -> float:
        return self.x_max - self.x_min

    @property
    def y_span(self) -> float:
        return self.y_max - self.y_min


@dataclass(frozen=True)
class ImageSize:
    width: int = 1024
    height: int = 1024


@dataclass(frozen=True)
class RenderOptions:
    """Sampling and coloring options.

    ``sub_pixel_samples`` is validated but every pixel is always sampled at
    the same four points (see ``renderer.subsample_points``).
    """

    sub_pixel_samples: int = 4
    max_iterations: int = 200
    contrast: int = 15


@dataclass(frozen=True)
class Parameters:
    """Everything needed to render one frame, shared read-only by row tasks."""

    viewport: Viewport = field(default_factory=Viewport)
    size: ImageSize = field(default_factory=ImageSize)
    render_opts: RenderOptions = field(default_factory=RenderOptions)


def default_parameters() -> Parameters:
    return Parameters(viewport=Viewport(), size=ImageSize(), render_opts=RenderOptions())


def validate_parameters(params: Parameters) -> Parameters:
    """Return ``params`` unchanged or raise :class:`InvalidParametersError`."""

    viewport = params.viewport
    if not (viewport.x_max > viewport.x_min and viewport.y_max > viewport.y_min):
        raise InvalidParametersError("invalid viewport range")
    if params.size.width <= 0 or params.size.height <= 0:
        raise InvalidParametersError("invalid image size")
    if params.render_opts.sub_pixel_samples <= 0:
        raise InvalidParametersError("invalid subpixel samples")
    if params.render_opts.max_iterations <= 0:
        raise InvalidParametersError("invalid iteration count")
    return params
