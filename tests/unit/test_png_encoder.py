import base64
import io

import numpy as np
import pytest
from PIL import Image

from vista.imaging.exceptions import PngEncodeError
from vista.imaging.png_encoder import (
    PNG_SIGNATURE,
    PngEncoder,
    normalize_to_uint8,
    to_data_url,
)


def _decode_png(data: bytes) -> np.ndarray:
    with Image.open(io.BytesIO(data)) as image:
        return np.array(image)


class TestNormalizeToUint8:
    def test_scales_to_full_range(self) -> None:
        raster = np.array([[-1000.0, 0.0], [1000.0, 3000.0]])

        result = normalize_to_uint8(raster)

        assert result.dtype == np.uint8
        assert result.min() == 0
        assert result.max() == 255

    def test_constant_raster_becomes_zeros(self) -> None:
        result = normalize_to_uint8(np.full((4, 4), 42.0))

        assert result.dtype == np.uint8
        assert not result.any()


class TestEncode:
    def test_full_range_8bit_raster_round_trips_losslessly(self) -> None:
        raster = np.arange(256, dtype=np.uint8).reshape(16, 16)

        png = PngEncoder().encode(raster)

        assert png.startswith(PNG_SIGNATURE)
        np.testing.assert_array_equal(_decode_png(png), raster)

    def test_downscales_longest_side(self) -> None:
        raster = np.random.default_rng(0).integers(0, 4096, size=(512, 256)).astype(float)

        png = PngEncoder(max_dimension=128).encode(raster)

        with Image.open(io.BytesIO(png)) as image:
            assert image.size == (64, 128)
            assert image.mode == "L"

    def test_zero_max_dimension_keeps_size(self) -> None:
        png = PngEncoder(max_dimension=0).encode(np.zeros((300, 200)))

        with Image.open(io.BytesIO(png)) as image:
            assert image.size == (200, 300)

    def test_rejects_non_2d_raster(self) -> None:
        with pytest.raises(PngEncodeError, match="2-D"):
            PngEncoder().encode(np.zeros((2, 2, 3)))


class TestBase64:
    def test_to_base64_and_data_url(self) -> None:
        encoded = PngEncoder.to_base64(b"abc")

        assert base64.b64decode(encoded) == b"abc"
        assert to_data_url(encoded) == f"data:image/png;base64,{encoded}"
