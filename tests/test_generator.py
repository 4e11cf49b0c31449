import threading
from dataclasses import replace

import numpy as np
import pytest

from mandelbrot import (
    ImageSize,
    InvalidParametersError,
    Parameters,
    RenderCancelledError,
    RenderOptions,
    RowProcessingError,
    Viewport,
    allocate_buffer,
    compute_metadata,
    default_parameters,
    default_workers,
    generate,
    render_row,
)
from mandelbrot import generator

SMALL = Parameters(Viewport(-2.0, -1.25, 0.75, 1.25), ImageSize(48, 32), RenderOptions())


class CancelAfter:
    def __init__(self, checks):
        self.checks = checks
        self.calls = 0
        self._lock = threading.Lock()

    def is_set(self):
        with self._lock:
            self.calls += 1
            return self.calls > self.checks


def test_generate_fills_every_pixel():
    pixels = generate(SMALL, workers=4)
    assert pixels.shape == (32, 48, 4)
    assert pixels.dtype == np.uint8
    assert np.all(pixels[..., 3] == 255)


def test_generate_is_deterministic():
    first = generate(SMALL, workers=8)
    second = generate(SMALL, workers=3)
    assert first.tobytes() == second.tobytes()


def test_generate_matches_sequential_rows():
    expected = allocate_buffer(SMALL.size)
    metadata = compute_metadata(SMALL)
    for row in range(SMALL.size.height):
        render_row(row, SMALL, expected, metadata)
    assert np.array_equal(generate(SMALL, workers=4), expected)


def test_generate_reports_each_completed_row():
    seen = []
    generate(SMALL, workers=2, on_row_done=seen.append)
    assert sorted(seen) == list(range(SMALL.size.height))


def test_invalid_parameters_fail_before_scheduling(monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("no row should be rendered")

    monkeypatch.setattr(generator, "render_row", fail)
    params = replace(SMALL, size=ImageSize(0, 32))
    with pytest.raises(InvalidParametersError):
        generate(params)

    with pytest.raises(InvalidParametersError):
        generate(replace(SMALL, viewport=Viewport(1.0, -1.0, -1.0, 1.0)))


@pytest.mark.parametrize("workers", [0, -2])
def test_invalid_worker_count(workers):
    with pytest.raises(InvalidParametersError, match="invalid worker count"):
        generate(SMALL, workers=workers)


def test_default_workers_is_positive():
    assert default_workers() >= 1


def test_cancelled_before_start_raises():
    event = threading.Event()
    event.set()
    with pytest.raises(RowProcessingError) as excinfo:
        generate(SMALL, cancel_event=event)
    assert excinfo.value.cancelled
    assert isinstance(excinfo.value.__cause__, RenderCancelledError)


def test_cancelled_mid_render_discards_buffer():
    completed = []
    # The first row (one check before sampling plus one per pixel) finishes.
    cancel = CancelAfter(1 + SMALL.size.width)
    with pytest.raises(RowProcessingError) as excinfo:
        generate(SMALL, cancel_event=cancel, workers=1, on_row_done=completed.append)
    assert excinfo.value.cancelled
    assert completed == [0]


def test_first_row_failure_is_wrapped(monkeypatch):
    def flaky(row, params, buffer, metadata, cancel_event=None):
        if row == 5:
            raise RuntimeError("boom")
        buffer[row] = 1

    monkeypatch.setattr(generator, "render_row", flaky)
    with pytest.raises(RowProcessingError) as excinfo:
        generate(SMALL, workers=4)
    assert excinfo.value.row == 5
    assert not excinfo.value.cancelled
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert "error processing row 5" in str(excinfo.value)


def test_default_frame_center_is_black():
    pixels = generate(default_parameters())
    assert pixels.shape == (1024, 1024, 4)
    assert tuple(pixels[512, 512]) == (0, 0, 0, 255)
    # Top-left corner (-2, -2) escapes on the first step.
    assert tuple(pixels[0, 0]) != (0, 0, 0, 255)
