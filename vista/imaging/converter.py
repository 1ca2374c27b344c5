from dataclasses import dataclass

from vista.imaging.dicom_decoder import DicomDecoder
from vista.imaging.png_encoder import PngEncoder, to_data_url


@dataclass(frozen=True)
class ConvertedSlice:
    """A slice ready for inference."""

    name: str
    png_bytes: bytes
    png_base64: str

    @property
    def data_url(self) -> str:
        return to_data_url(self.png_base64)


class SliceConverter:
    """DICOM bytes -> normalized base64 PNG."""

    def __init__(self, decoder: DicomDecoder, encoder: PngEncoder) -> None:
        self._decoder = decoder
        self._encoder = encoder

    def convert(self, name: str, data: bytes) -> ConvertedSlice:
        """Convert one slice. Anything that is not DICOM is rejected.

        Raises:
            DicomDecodeError: if the bytes cannot be decoded as DICOM.
            PngEncodeError: if the raster cannot be encoded.
        """
        raster = self._decoder.decode(data)
        png_bytes = self._encoder.encode(raster)
        return ConvertedSlice(
            name=name,
            png_bytes=png_bytes,
            png_base64=PngEncoder.to_base64(png_bytes),
        )
