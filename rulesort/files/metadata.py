#!/usr/bin/env python3
"""File metadata extraction.

Builds the flat string mapping consumed by metadata conditions and by the
template resolver:

- ``size``: byte length
- ``created`` / ``modified``: RFC3339 timestamps (local time); ``created``
  only where the platform records a birth time
- ``EXIF:<ifd>:<Tag>`` and ``EXIF:<Tag>``: EXIF fields read with Pillow
- ``EXIF:DateTime``: alias for the capture time (``DateTimeOriginal`` when present)

Extraction is total: unreadable files or images simply contribute no keys.

Example:
    >>> meta = extract_metadata("/photos/cat.jpg")
    >>> meta["size"]
    '48213'
"""

import os
from pathlib import Path
from typing import Any, Dict, Union

from PIL import ExifTags, Image

from rulesort.core.dates import timestamp_to_rfc3339
from rulesort.infrastructure.logger import get_logger

EXIF_PREFIX = "EXIF:"
EXIF_DATETIME_KEY = "EXIF:DateTime"

# Sub-IFDs read in addition to the primary image IFD
_SUB_IFDS = {
    "Exif": (ExifTags.IFD.Exif, ExifTags.TAGS),
    "GPS": (ExifTags.IFD.GPSInfo, ExifTags.GPSTAGS),
}


def _format_value(value: Any) -> str:
    """Render an EXIF value as a display string."""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, tuple):
        return ", ".join(_format_value(v) for v in value)
    return str(value).strip("\x00 ").strip()


def read_exif(path: Union[str, Path]) -> Dict[str, str]:
    """Read EXIF fields from an image file.

    Args:
        path: Image file path

    Returns:
        Mapping keyed ``EXIF:<ifd>:<Tag>`` and ``EXIF:<Tag>``; empty when the
        file is not an image or carries no EXIF block
    """
    fields: Dict[str, str] = {}
    try:
        with Image.open(path) as image:
            exif = image.getexif()
            ifds = [("Image", dict(exif), ExifTags.TAGS)]
            for ifd_name, (ifd_id, names) in _SUB_IFDS.items():
                ifds.append((ifd_name, dict(exif.get_ifd(ifd_id)), names))
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        get_logger().debug("No EXIF data found", path=str(path), error=str(e))
        return fields

    for ifd_name, entries, names in ifds:
        for tag_id, value in entries.items():
            if tag_id in (ExifTags.IFD.Exif, ExifTags.IFD.GPSInfo):
                continue
            tag = names.get(tag_id, f"0x{tag_id:04x}")
            text = _format_value(value)
            fields[f"{EXIF_PREFIX}{ifd_name}:{tag}"] = text
            fields.setdefault(f"{EXIF_PREFIX}{tag}", text)

    original = fields.get(f"{EXIF_PREFIX}Exif:DateTimeOriginal")
    if original:
        fields[EXIF_DATETIME_KEY] = original

    return fields


def extract_metadata(path: Union[str, Path]) -> Dict[str, str]:
    """Collect stat and EXIF metadata for a file.

    ``created`` is the birth time and is left out on platforms that do not
    record one.

    Args:
        path: File path

    Returns:
        Flat mapping of metadata key to string value
    """
    metadata: Dict[str, str] = {}

    try:
        stat = os.stat(path)
    except OSError as e:
        get_logger().debug("Cannot stat file for metadata", path=str(path), error=str(e))
        return metadata

    metadata["size"] = str(stat.st_size)
    created = getattr(stat, "st_birthtime", None)
    if created is not None:
        metadata["created"] = timestamp_to_rfc3339(created)
    metadata["modified"] = timestamp_to_rfc3339(stat.st_mtime)

    metadata.update(read_exif(path))
    return metadata


def lookup(metadata: Dict[str, str], key: str):
    """Case-insensitive metadata key lookup.

    Returns:
        Matching value, or None when the key is absent
    """
    if key in metadata:
        return metadata[key]
    folded = key.lower()
    for name, value in metadata.items():
        if name.lower() == folded:
            return value
    return None
