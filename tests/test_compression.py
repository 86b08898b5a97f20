"""Tests for the adaptive image compression pipeline."""
import io
from unittest.mock import patch

import pytest
from PIL import Image

from memvault.compression import MAX_DIMENSION, compress_image, quality_schedule
from memvault.compression.pipeline import derive_name, encode_jpeg, target_dimensions
from memvault.errors import CompressionExhausted, ImageDecodeError


class TestHelpers:
    """Tests for the pure helpers behind the pipeline."""

    def test_quality_schedule(self):
        assert list(quality_schedule()) == [90, 75, 60, 45, 30]

    @pytest.mark.parametrize("size,expected", [
        ((1000, 500), (1000, 500)),
        ((2000, 2000), (2000, 2000)),
        ((4000, 3000), (2000, 1500)),
        ((3000, 4000), (1500, 2000)),
        ((2500, 1001), (2000, 801)),
        ((100000, 1), (2000, 1)),
    ])
    def test_target_dimensions(self, size, expected):
        assert target_dimensions(*size) == expected

    @pytest.mark.parametrize("name,expected", [
        ("photo.png", "photo.jpg"),
        ("holiday.2024.webp", "holiday.2024.jpg"),
        ("scan.JPEG", "scan.jpg"),
        ("noext", "noext"),
    ])
    def test_derive_name(self, name, expected):
        assert derive_name(name) == expected


class TestCompressImage:
    """Tests for compress_image."""

    def test_payload_within_budget_is_returned_unchanged(self, noise_image, encode):
        payload = encode(noise_image(50, 50), "PNG")

        result = compress_image(payload, "image/png", "small.png", budget=len(payload))

        assert result.payload is payload
        assert result.mime_type == "image/png"
        assert result.name == "small.png"
        assert result.quality is None

    def test_first_quality_under_budget_wins(self, noise_image, encode):
        image = noise_image(300, 300)
        payload = encode(image, "BMP")
        budget = len(encode_jpeg(image, 60))
        assert len(encode_jpeg(image, 75)) > budget

        result = compress_image(payload, "image/bmp", "noise.bmp", budget=budget)

        assert result.quality == pytest.approx(0.60)
        assert result.payload == encode_jpeg(image, 60)
        assert result.size <= budget
        assert result.mime_type == "image/jpeg"
        assert result.name == "noise.jpg"
        assert (result.width, result.height) == (300, 300)

    def test_exhausted_when_lowest_quality_is_too_large(self, noise_image, encode):
        image = noise_image(300, 300)
        payload = encode(image, "PNG")
        untouched = bytes(payload)

        with pytest.raises(CompressionExhausted) as exc_info:
            compress_image(payload, "image/png", "noise.png", budget=1000)

        assert exc_info.value.budget == 1000
        assert exc_info.value.smallest == len(encode_jpeg(image, 30))
        assert exc_info.value.status_code == 422
        assert payload == untouched

    def test_large_image_is_downscaled_first(self, encode):
        image = Image.linear_gradient("L").resize((2500, 1000)).convert("RGB")
        payload = encode(image, "BMP")

        result = compress_image(payload, "image/bmp", "wide.bmp", budget=1_000_000)

        with Image.open(io.BytesIO(result.payload)) as decoded:
            assert decoded.format == "JPEG"
            assert decoded.size == (2000, 800)
        assert (result.width, result.height) == (2000, 800)
        assert result.quality == pytest.approx(0.90)

    def test_alpha_is_flattened_to_rgb(self, noise_image, encode):
        payload = encode(noise_image(200, 200, mode="RGBA"), "PNG")

        result = compress_image(payload, "image/png", "alpha.png", budget=len(payload) - 1)

        with Image.open(io.BytesIO(result.payload)) as decoded:
            assert decoded.mode == "RGB"
        assert result.size < len(payload)

    def test_undecodable_payload_fails(self):
        with pytest.raises(ImageDecodeError):
            compress_image(b"definitely not an image" * 100, "image/png", "bad.png", budget=10)

    def test_oversized_pixel_count_is_a_decode_error(self, encode):
        payload = encode(Image.new("RGB", (100, 100), color=(0, 0, 0)), "PNG")

        # Pillow refuses images over twice MAX_IMAGE_PIXELS outright
        with patch.object(Image, "MAX_IMAGE_PIXELS", 1000):
            with pytest.raises(ImageDecodeError, match="too large") as exc_info:
                compress_image(payload, "image/png", "huge.png", budget=10)

        assert exc_info.value.status_code == 422

    def test_quality_steps_run_in_order_until_one_fits(self, noise_image, encode):
        payload = encode(noise_image(64, 64), "PNG")
        sizes = {90: 5000, 75: 4000, 60: 3000, 45: 2000, 30: 900}
        tried = []

        def fake_encode(image, quality):
            tried.append(quality)
            return b"x" * sizes[quality]

        with patch("memvault.compression.pipeline.encode_jpeg", side_effect=fake_encode):
            result = compress_image(payload, "image/png", "steps.png", budget=1000)

        assert tried == [90, 75, 60, 45, 30]
        assert result.quality == pytest.approx(0.30)
        assert result.size == 900

    def test_stops_at_first_fitting_step(self, noise_image, encode):
        payload = encode(noise_image(64, 64), "PNG")
        tried = []

        def fake_encode(image, quality):
            tried.append(quality)
            return b"x" * (100 if quality <= 75 else 5000)

        with patch("memvault.compression.pipeline.encode_jpeg", side_effect=fake_encode):
            result = compress_image(payload, "image/png", "steps.png", budget=1000)

        assert tried == [90, 75]
        assert result.quality == pytest.approx(0.75)

    def test_never_tries_quality_at_or_below_floor(self, noise_image, encode):
        payload = encode(noise_image(64, 64), "PNG")
        tried = []

        def fake_encode(image, quality):
            tried.append(quality)
            return b"x" * 5000

        with patch("memvault.compression.pipeline.encode_jpeg", side_effect=fake_encode):
            with pytest.raises(CompressionExhausted):
                compress_image(payload, "image/png", "steps.png", budget=1000)

        assert tried == [90, 75, 60, 45, 30]
        assert min(tried) > 25

    def test_downscale_happens_before_encoding(self, encode):
        image = Image.new("RGB", (4000, 1000), color=(200, 10, 10))
        payload = encode(image, "BMP")
        seen_sizes = []

        def fake_encode(img, quality):
            seen_sizes.append(img.size)
            return b"x" * 10

        with patch("memvault.compression.pipeline.encode_jpeg", side_effect=fake_encode):
            compress_image(payload, "image/bmp", "wide.bmp", budget=100)

        assert seen_sizes == [(MAX_DIMENSION, 500)]
