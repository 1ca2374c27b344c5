import base64
import io

import numpy as np
from PIL import Image

from vista.imaging.exceptions import PngEncodeError

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def normalize_to_uint8(raster: np.ndarray) -> np.ndarray:
    """Min-max scale a raster to 0..255. Constant rasters become all zeros."""
    raster = np.asarray(raster, dtype=np.float64)
    lo = float(raster.min()) if raster.size else 0.0
    hi = float(raster.max()) if raster.size else 0.0
    if hi <= lo:
        return np.zeros(raster.shape, dtype=np.uint8)
    scaled = (raster - lo) / (hi - lo) * 255.0
    return np.clip(np.rint(scaled), 0, 255).astype(np.uint8)


def to_data_url(png_base64: str) -> str:
    return f"data:image/png;base64,{png_base64}"


class PngEncoder:
    """Normalizes a single-channel raster and encodes it as PNG."""

    def __init__(self, max_dimension: int = 0) -> None:
        self._max_dimension = max(0, max_dimension)

    def encode(self, raster: np.ndarray) -> bytes:
        """Return PNG bytes for a 2-D raster.

        Raises:
            PngEncodeError: if the raster is not 2-D or encoding fails.
        """
        if raster.ndim != 2:
            raise PngEncodeError(f"Expected a 2-D raster, got shape {raster.shape}")
        try:
            image = Image.fromarray(normalize_to_uint8(raster))
            return self._to_png(image)
        except PngEncodeError:
            raise
        except Exception as exc:
            raise PngEncodeError(f"PNG encoding failed: {exc}") from exc

    @staticmethod
    def to_base64(png_bytes: bytes) -> str:
        return base64.b64encode(png_bytes).decode("ascii")

    def _to_png(self, image: Image.Image) -> bytes:
        if self._max_dimension and max(image.size) > self._max_dimension:
            image = image.copy()
            image.thumbnail(
                (self._max_dimension, self._max_dimension),
                Image.Resampling.LANCZOS,
            )
        buf = io.BytesIO()
        image.save(buf, format="PNG")
        return buf.getvalue()
