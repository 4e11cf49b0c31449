"""Rendering primitives for supersampled Mandelbrot frames."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import numpy as np
import tensorflow as tf

from .errors import RenderCancelledError
from .parameters import Parameters, RenderOptions

HORIZON = 2.0
# Escape counter, iteration bound and color channels are all 8-bit values.
COUNTER_MASK = 0xFF
# 8-bit channel -> 16-bit channel (0xAB -> 0xABAB).
CHANNEL_EXPANSION = 0x101
INSIDE_COLOR = (0, 0, 0, 255)
DEVICE = "/CPU:0"
# Columns sampled per kernel call; cancellation is checked between chunks.
ROW_CHUNK_COLUMNS = 64


@dataclass(frozen=True)
class SamplingMetadata:
    """Metadata describing the sampling grid for a rendered frame."""

    x_min: float
    y_min: float
    x_step: float
    y_step: float
    x_res: int
    y_res: int
    x_delta: float
    y_delta: float


@tf.function
def _mandelbrot_step(zs: tf.Tensor, cs: tf.Tensor, ns: tf.Tensor, active: tf.Tensor) -> tuple[tf.Tensor, tf.Tensor, tf.Tensor]:
    """Perform a single Mandelbrot iteration for points that have not escaped."""

    zs_new = zs * zs + cs
    zs = tf.where(active, zs_new, zs)
    az = tf.abs(zs)
    horizon = tf.cast(HORIZON, az.dtype)
    new_active = tf.logical_and(active, az <= horizon)
    ns = ns + tf.cast(new_active, tf.int32)
    return zs, ns, new_active


@tf.function(
    input_signature=[
        tf.TensorSpec(shape=[None], dtype=tf.complex128),
        tf.TensorSpec(shape=[], dtype=tf.int32),
    ]
)
def _mandelbrot_run(cs: tf.Tensor, bound: tf.Tensor) -> tuple[tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor]:
    """Iterate the Mandelbrot formula from zero using a TensorFlow while loop."""

    i = tf.constant(0, dtype=tf.int32)
    zs = tf.zeros_like(cs)
    ns = tf.zeros(tf.shape(cs), tf.int32)
    active = tf.ones(tf.shape(cs), tf.bool)

    def cond(i: tf.Tensor, zs: tf.Tensor, ns: tf.Tensor, active: tf.Tensor) -> tf.Tensor:
        return tf.logical_and(tf.less(i, bound), tf.reduce_any(active))

    def body(i: tf.Tensor, zs: tf.Tensor, ns: tf.Tensor, active: tf.Tensor) -> tuple[tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor]:
        zs, ns, active = _mandelbrot_step(zs, cs, ns, active)
        return i + 1, zs, ns, active

    return tf.while_loop(cond, body, (i, zs, ns, active))


def escape_counts(points: Any, max_iterations: int) -> tuple[np.ndarray, np.ndarray]:
    """Return the 8-bit escape step and an escaped mask for each point.

    A point escapes at step ``n`` (0-based) when ``|v| > 2`` right after the
    ``n``-th update of ``v <- v*v + c``. The iteration bound is
    ``max_iterations`` truncated to 8 bits, so 256 runs no steps at all.
    """

    cs = np.asarray(points, dtype=np.complex128)
    shape = cs.shape
    bound = int(max_iterations) & COUNTER_MASK

    with tf.device(DEVICE):
        cs_tf = tf.convert_to_tensor(cs.reshape(-1), dtype=tf.complex128)
        _, _, ns, active = _mandelbrot_run(cs_tf, tf.constant(bound, dtype=tf.int32))

    counts = (ns.numpy() & COUNTER_MASK).astype(np.uint8).reshape(shape)
    escaped = np.logical_not(active.numpy()).reshape(shape)
    return counts, escaped


def colorize(counts: np.ndarray, escaped: np.ndarray, contrast: int) -> np.ndarray:
    """Map escape counts to RGBA colors using wrapping 8-bit arithmetic."""

    scaled = (int(contrast) * np.asarray(counts, dtype=np.int64)) & COUNTER_MASK
    red = (64 - scaled) & COUNTER_MASK
    green = (80 - scaled % 128) & COUNTER_MASK
    blue = (240 + scaled % 64) & COUNTER_MASK
    alpha = np.full_like(scaled, 255)

    rgba = np.stack((red, green, blue, alpha), axis=-1).astype(np.uint8)
    rgba[~np.asarray(escaped, dtype=bool)] = INSIDE_COLOR
    return rgba


def color_at(point: complex, opts: RenderOptions) -> tuple[int, int, int, int]:
    """Color a single plane point."""

    counts, escaped = escape_counts(np.array([point], dtype=np.complex128), opts.max_iterations)
    rgba = colorize(counts, escaped, opts.contrast)[0]
    return tuple(int(channel) for channel in rgba)


def average_colors(samples: np.ndarray) -> np.ndarray:
    """Average colors over the second-to-last axis of ``samples``.

    Channels are widened to 16 bits, summed, divided by the sample count and
    then truncated back to 8 bits.
    """

    samples = np.asarray(samples, dtype=np.uint8)
    count = samples.shape[-2]
    if count == 0:
        return np.broadcast_to(np.array(INSIDE_COLOR, dtype=np.uint8), samples.shape[:-2] + (4,)).copy()

    expanded = samples.astype(np.uint32) * CHANNEL_EXPANSION
    total = expanded.sum(axis=-2, dtype=np.uint32)
    return ((total // np.uint32(count)) >> 8).astype(np.uint8)


def compute_metadata(params: Parameters) -> SamplingMetadata:
    viewport = params.viewport
    x_res = int(params.size.width)
    y_res = int(params.size.height)

    x_span = viewport.x_max - viewport.x_min
    y_span = viewport.y_max - viewport.y_min

    return SamplingMetadata(
        x_min=float(viewport.x_min),
        y_min=float(viewport.y_min),
        x_step=x_span / x_res,
        y_step=y_span / y_res,
        x_res=x_res,
        y_res=y_res,
        x_delta=0.5 / x_res * x_span,
        y_delta=0.5 / y_res * y_span,
    )


def _plane_points(xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    points = np.empty(np.broadcast(xs, ys).shape, dtype=np.complex128)
    points.real = xs
    points.imag = ys
    return points


def subsample_points(xs: np.ndarray, y: float, x_delta: float, y_delta: float) -> np.ndarray:
    """Return the four supersample points of every pixel, shape ``(len(xs), 4)``.

    The pattern is the pixel coordinate itself, then right, right+down, down,
    each offset by half a pixel.
    """

    xs = np.asarray(xs, dtype=np.float64)[:, np.newaxis]
    x_offsets = np.array([0.0, x_delta, x_delta, 0.0], dtype=np.float64)
    y_offsets = np.array([0.0, 0.0, y_delta, y_delta], dtype=np.float64)
    return _plane_points(xs + x_offsets, np.float64(y) + y_offsets)


def row_coordinates(row: int, params: Parameters) -> tuple[np.ndarray, float]:
    """Plane x coordinates of every column and the plane y coordinate of ``row``."""

    viewport = params.viewport
    width = params.size.width
    y = float(row) / float(params.size.height) * (viewport.y_max - viewport.y_min) + viewport.y_min
    xs = np.arange(width, dtype=np.float64) / np.float64(width) * np.float64(viewport.x_max - viewport.x_min) + np.float64(viewport.x_min)
    return xs, y


def render_row(
    row: int,
    params: Parameters,
    buffer: np.ndarray,
    metadata: SamplingMetadata,
    cancel_event: Optional[Any] = None,
    chunk_columns: int = ROW_CHUNK_COLUMNS,
) -> None:
    """Render scanline ``row`` of ``params`` into ``buffer[row]``.

    The row is sampled ``chunk_columns`` pixels at a time. ``cancel_event`` is
    anything with an ``is_set()`` method; it is checked before each chunk is
    sampled and before every pixel is written. Pixels written before
    cancellation are left in place.
    """

    xs, y = row_coordinates(row, params)
    target = buffer[row]
    width = params.size.width
    opts = params.render_opts

    for start in range(0, width, chunk_columns):
        if cancel_event is not None and cancel_event.is_set():
            raise RenderCancelledError(row, start)

        stop = min(start + chunk_columns, width)
        points = subsample_points(xs[start:stop], y, metadata.x_delta, metadata.y_delta)
        counts, escaped = escape_counts(points, opts.max_iterations)
        colors = average_colors(colorize(counts, escaped, opts.contrast))

        for px in range(start, stop):
            if cancel_event is not None and cancel_event.is_set():
                raise RenderCancelledError(row, px)
            target[px] = colors[px - start]
