"""DICOM slice decoding with pydicom.

Produces a single-channel float raster in modality units:
1. Parse the dataset (tolerating a missing preamble / file meta).
2. Require Pixel Data (7FE0,0010), Rows (0028,0010) and Columns (0028,0011).
3. Take the first frame of multi-frame data.
4. Collapse colour samples to one channel.
5. Apply RescaleSlope / RescaleIntercept.
"""

import io

import numpy as np
import pydicom
from pydicom.errors import InvalidDicomError
from pydicom.uid import ImplicitVRLittleEndian

from vista.imaging.exceptions import DicomDecodeError, MissingPixelDataError

DICOM_MAGIC_OFFSET = 128
DICOM_MAGIC = b"DICM"
RASTER_SIGNATURES = {
    b"\x89PNG\r\n\x1a\n": "PNG",
    b"\xff\xd8\xff": "JPEG",
    b"GIF8": "GIF",
}


def looks_like_dicom(data: bytes) -> bool:
    return data[DICOM_MAGIC_OFFSET:DICOM_MAGIC_OFFSET + 4] == DICOM_MAGIC


class DicomDecoder:
    """Decodes DICOM bytes into a 2-D raster."""

    def decode(self, data: bytes) -> np.ndarray:
        """Return the slice as a 2-D float64 array (rows x columns).

        Raises:
            MissingPixelDataError: if pixel data or dimensions are absent.
            DicomDecodeError: on any other parse or decode failure.
        """
        try:
            return self._decode(data)
        except DicomDecodeError:
            raise
        except Exception as exc:
            raise DicomDecodeError(f"DICOM decoding failed: {exc}") from exc

    def _decode(self, data: bytes) -> np.ndarray:
        if not data:
            raise DicomDecodeError("Empty DICOM payload")
        for signature, kind in RASTER_SIGNATURES.items():
            if data.startswith(signature) and not looks_like_dicom(data):
                raise DicomDecodeError(f"Not a DICOM file: payload is a {kind} image")
        try:
            ds = pydicom.dcmread(io.BytesIO(data), force=True)
        except InvalidDicomError as exc:
            raise DicomDecodeError(f"Not a DICOM file: {exc}") from exc

        if "PixelData" not in ds:
            raise MissingPixelDataError("DICOM dataset has no Pixel Data element")
        if "Rows" not in ds or "Columns" not in ds:
            raise MissingPixelDataError("DICOM dataset has no Rows/Columns")

        if not getattr(ds.file_meta, "TransferSyntaxUID", None):
            ds.file_meta.TransferSyntaxUID = ImplicitVRLittleEndian

        arr = ds.pixel_array
        samples = int(ds.get("SamplesPerPixel", 1))
        frames = int(ds.get("NumberOfFrames", 1) or 1)

        if frames > 1:
            arr = arr[0]
        if samples > 1 and arr.ndim == 3:
            arr = arr[..., :3].mean(axis=-1)

        if arr.ndim != 2:
            raise DicomDecodeError(f"Unsupported pixel array shape {arr.shape}")
        if arr.shape != (int(ds.Rows), int(ds.Columns)):
            raise DicomDecodeError(
                f"Pixel array shape {arr.shape} does not match "
                f"Rows/Columns ({ds.Rows}, {ds.Columns})"
            )

        slope = float(ds.get("RescaleSlope", 1) or 1)
        intercept = float(ds.get("RescaleIntercept", 0) or 0)
        return arr.astype(np.float64) * slope + intercept
