from dataclasses import dataclass

from vista.analysis.models import SliceFinding
from vista.imaging.converter import ConvertedSlice


@dataclass
class SliceWork:
    """One slice as it moves through the analysis steps.

    Exactly one of `converted` / `finding` is set after conversion; a
    finding set before analysis is a recorded conversion failure.
    """

    path: str
    name: str
    converted: ConvertedSlice | None = None
    finding: SliceFinding | None = None
    preview_path: str | None = None


@dataclass(frozen=True)
class ArchiveEntry:
    """A file unpacked from a staged ZIP."""

    name: str
    data: bytes
