class ImagingError(Exception):
    """Base exception for slice decoding and encoding."""


class DicomDecodeError(ImagingError):
    """Raised when bytes cannot be parsed as a DICOM slice."""


class MissingPixelDataError(DicomDecodeError):
    """Raised when a DICOM dataset has no Pixel Data element or dimensions."""


class PngEncodeError(ImagingError):
    """Raised when a raster cannot be encoded as PNG."""
