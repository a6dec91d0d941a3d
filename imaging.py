"""Image decoding for the recognition engine."""

from __future__ import annotations

import base64
import io

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from errors import InvalidImageError
from models import ImageBuffer


def decode_image(image: ImageBuffer) -> np.ndarray:
    """Decode an encoded image into an RGB ``uint8`` array (H x W x 3).

    EXIF orientation is applied so camera captures come out upright.
    """
    if not image.data:
        raise InvalidImageError("image buffer is empty")
    try:
        pil_img = Image.open(io.BytesIO(image.data))
        pil_img.load()
        pil_img = ImageOps.exif_transpose(pil_img).convert("RGB")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        label = image.source or "<memory>"
        raise InvalidImageError(f"cannot decode image {label}: {exc}") from exc
    raster = np.asarray(pil_img, dtype=np.uint8)
    if raster.size == 0:
        raise InvalidImageError("decoded image has no pixels")
    return raster


def raster_to_png_base64(raster: np.ndarray) -> str:
    """Encode an RGB array as base64 PNG."""
    buf = io.BytesIO()
    Image.fromarray(raster).save(buf, "PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")
