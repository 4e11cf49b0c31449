"""Frame orchestration: fan rows out over a worker pool and join them."""

from __future__ import annotations

import os
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Any, Callable, Optional

import numpy as np

from .errors import InvalidParametersError, RowProcessingError
from .parameters import ImageSize, Parameters, validate_parameters
from .renderer import compute_metadata, render_row


def default_workers() -> int:
    """Number of row workers used when the caller does not choose one."""

    return os.cpu_count() or 1


def allocate_buffer(size: ImageSize) -> np.ndarray:
    return np.zeros((size.height, size.width, 4), dtype=np.uint8)


def generate(
    params: Parameters,
    *,
    cancel_event: Optional[Any] = None,
    workers: Optional[int] = None,
    on_row_done: Optional[Callable[[int], None]] = None,
) -> np.ndarray:
    """Render ``params`` into a ``(height, width, 4)`` RGBA ``uint8`` array.

    One task per scanline is submitted before any is awaited; each task owns
    its row of the buffer exclusively. Every task is joined, then the first
    failure seen (in completion order) is raised as :class:`RowProcessingError`.
    """

    validate_parameters(params)
    if workers is None:
        workers = default_workers()
    if workers <= 0:
        raise InvalidParametersError("invalid worker count")

    buffer = allocate_buffer(params.size)
    metadata = compute_metadata(params)

    first_error: Optional[tuple[int, BaseException]] = None
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="mandelbrot-row") as pool:
        futures: dict[Future, int] = {
            pool.submit(render_row, row, params, buffer, metadata, cancel_event): row
            for row in range(params.size.height)
        }
        for future in as_completed(futures):
            row = futures[future]
            exc = future.exception()
            if exc is not None:
                if first_error is None:
                    first_error = (row, exc)
                continue
            if on_row_done is not None:
                on_row_done(row)

    if first_error is not None:
        row, exc = first_error
        raise RowProcessingError(row, exc) from exc
    return buffer
