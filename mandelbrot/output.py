"""Persist rendered RGBA buffers as lossless images."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

import numpy as np
import PIL.Image

from .errors import PersistenceError

DEFAULT_FORMAT = "png"
LOSSLESS_FORMATS = frozenset({"PNG", "TIFF", "BMP", "WEBP"})


def _pil_format_name(ext: str) -> str:
    upper = ext.upper()
    if upper == "TIF":
        return "TIFF"
    return upper


def save_image(
    pixels: np.ndarray,
    path: Union[str, Path],
    image_format: Optional[str] = None,
) -> Path:
    """Write ``pixels`` (``height x width x 4`` ``uint8``) to ``path``.

    The format is taken from ``image_format`` or else the path suffix, and
    must be one Pillow can store RGBA in without loss.
    """

    output_path = Path(path).expanduser()
    ext = (image_format or output_path.suffix.lstrip(".") or DEFAULT_FORMAT).lower().lstrip(".")
    pil_format = _pil_format_name(ext)
    if pil_format not in LOSSLESS_FORMATS:
        raise PersistenceError(f"unsupported image format {ext!r}: not a lossless RGBA format", output_path)

    pixels = np.asarray(pixels)
    if pixels.ndim != 3 or pixels.shape[2] != 4 or pixels.dtype != np.uint8:
        raise PersistenceError(f"expected a height x width x 4 uint8 buffer, got {pixels.shape} {pixels.dtype}", output_path)

    options = {"lossless": True} if pil_format == "WEBP" else {}
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        image = PIL.Image.fromarray(np.ascontiguousarray(pixels))
        image.save(str(output_path), format=pil_format, **options)
    except (OSError, ValueError) as exc:
        raise PersistenceError(f"failed to write image {output_path}: {exc}", output_path) from exc
    return output_path
