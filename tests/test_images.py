from __future__ import annotations

import io

from fakes import flat_png, noise_png
from PIL import Image

from mapshot.fallback import PLACEHOLDER_PNG
from mapshot.images import detect_image_format, validate_capture, write_image


def _jpeg() -> bytes:
    buffer = io.BytesIO()
    Image.open(io.BytesIO(noise_png())).save(buffer, format="JPEG")
    return buffer.getvalue()


def test_detects_png_and_jpeg() -> None:
    assert detect_image_format(noise_png()) == "png"
    assert detect_image_format(_jpeg()) == "jpeg"
    assert detect_image_format(b"<html>error</html>") is None


def test_accepts_a_real_capture() -> None:
    data = noise_png()
    result = validate_capture(data, "png", min_bytes=4096)
    assert result.ok
    assert result.data == data
    assert result.byte_length == len(data)
    assert result.image_format == "png"


def test_rejects_buffer_at_or_below_threshold() -> None:
    data = noise_png()
    result = validate_capture(data, "png", min_bytes=len(data))
    assert not result.ok
    assert "too small" in result.reason


def test_rejects_wellformed_image_without_expected_signature() -> None:
    result = validate_capture(_jpeg(), "png", min_bytes=0)
    assert not result.ok
    assert "signature" in result.reason


def test_rejects_signature_followed_by_garbage() -> None:
    data = b"\x89PNG\r\n\x1a\n" + b"\x00" * 10_000
    assert not validate_capture(data, "png", min_bytes=100).ok


def test_rejects_empty_buffer() -> None:
    assert validate_capture(b"", "png").reason == "empty buffer"
    assert not validate_capture(None, "png").ok


def test_rejects_flat_frames_unless_disabled() -> None:
    black = flat_png(size=(256, 256))
    assert not validate_capture(black, "png", min_bytes=0).ok
    assert validate_capture(black, "png", min_bytes=0, reject_blank=False).ok


def test_placeholder_is_a_valid_tiny_png() -> None:
    assert detect_image_format(PLACEHOLDER_PNG) == "png"
    with Image.open(io.BytesIO(PLACEHOLDER_PNG)) as image:
        assert image.size == (1, 1)
    assert not validate_capture(PLACEHOLDER_PNG, "png").ok


def test_write_image_creates_parent_directories(tmp_path) -> None:
    destination = tmp_path / "nested" / "map.png"
    write_image(destination, b"data")
    assert destination.read_bytes() == b"data"
