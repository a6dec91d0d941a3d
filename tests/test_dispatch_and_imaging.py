from __future__ import annotations

import base64
import io
import threading

import numpy as np
import pytest
from PIL import Image

from dispatch import ImmediateDispatcher, QueueDispatcher
from errors import InvalidImageError
from imaging import decode_image, raster_to_png_base64
from models import ImageBuffer


def test_immediate_dispatcher_runs_inline() -> None:
    calls: list[str] = []

    ImmediateDispatcher().post(lambda: calls.append("ran"))

    assert calls == ["ran"]


def test_queue_dispatcher_runs_on_draining_thread() -> None:
    dispatcher = QueueDispatcher()
    threads: list[str] = []

    worker = threading.Thread(target=lambda: dispatcher.post(lambda: threads.append(threading.current_thread().name)))
    worker.start()
    worker.join()

    assert dispatcher.pending() == 1
    assert dispatcher.run_pending() == 1
    assert threads == [threading.current_thread().name]


def test_queue_dispatcher_respects_max_items_and_survives_errors() -> None:
    dispatcher = QueueDispatcher()
    calls: list[int] = []

    def boom() -> None:
        raise RuntimeError("observer bug")

    dispatcher.post(boom)
    dispatcher.post(lambda: calls.append(1))
    dispatcher.post(lambda: calls.append(2))

    assert dispatcher.run_pending(max_items=2) == 2
    assert calls == [1]
    assert dispatcher.run_pending() == 1
    assert calls == [1, 2]


def test_queue_dispatcher_timeout_when_empty() -> None:
    assert QueueDispatcher().run_pending(timeout=0.01) == 0


def _encoded(mode: str = "L", fmt: str = "PNG") -> bytes:
    buf = io.BytesIO()
    Image.new(mode, (5, 3), 0).save(buf, fmt)
    return buf.getvalue()


@pytest.mark.parametrize("mode, fmt", [("L", "PNG"), ("RGBA", "PNG"), ("RGB", "JPEG")])
def test_decode_image_yields_rgb_array(mode: str, fmt: str) -> None:
    raster = decode_image(ImageBuffer(data=_encoded(mode, fmt)))

    assert raster.shape == (3, 5, 3)
    assert raster.dtype == np.uint8


def test_decode_image_rejects_garbage() -> None:
    with pytest.raises(InvalidImageError, match="scan.png"):
        decode_image(ImageBuffer(data=b"\x89PNG broken", source="scan.png"))


def test_raster_to_png_base64_is_png() -> None:
    encoded = raster_to_png_base64(np.zeros((2, 2, 3), dtype=np.uint8))

    assert base64.b64decode(encoded)[:8] == b"\x89PNG\r\n\x1a\n"


def test_decode_image_rejects_decompression_bomb(monkeypatch: pytest.MonkeyPatch) -> None:
    buf = io.BytesIO()
    Image.new("1", (40, 40), 0).save(buf, "PNG")
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)

    with pytest.raises(InvalidImageError, match="huge.png"):
        decode_image(ImageBuffer(data=buf.getvalue(), source="huge.png"))
