"""Object store layout.

    temp-uploads/{name}.zip          staged uploads
    slices/{scanId}/{entryName}      unpacked slices (+ derived .png)
"""

from pathlib import PurePosixPath

OWNER_METADATA_KEY = "userId"
UNKNOWN_OWNER = "unknown"


def staging_path(staging_prefix: str, filename: str) -> str:
    """Build path to a staged upload: {staging_prefix}{filename}"""
    return f"{staging_prefix}{filename}"


def is_staging_archive(path: str, staging_prefix: str) -> bool:
    return path.startswith(staging_prefix) and path.lower().endswith(".zip")


def scan_id_from_archive(path: str) -> str:
    """Derive the scan ID from the archive's base filename without '.zip'."""
    name = PurePosixPath(path).name
    if name.lower().endswith(".zip"):
        name = name[: -len(".zip")]
    return name


def slice_path(slices_prefix: str, scan_id: str, entry_name: str) -> str:
    """Build path to an unpacked slice: {slices_prefix}{scan_id}/{entry_name}"""
    return f"{slices_prefix}{scan_id}/{entry_name}"


def preview_path(path: str) -> str:
    """Path of the PNG derived from a slice: same folder, '.png' suffix."""
    return str(PurePosixPath(path).with_suffix(".png"))


def slice_name(path: str) -> str:
    return PurePosixPath(path).name
