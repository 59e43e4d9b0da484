"""Capability descriptors for the record-based EDF and BDF formats.

Both formats share one header layout and one record structure; they differ in
the signature, the sample width and the sample codec.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import numpy as np

from .data import decode_int16, decode_int24
from .types import FileType

GENERAL_HEADER_BYTES = 256
CHANNEL_HEADER_BYTES = 256

# (name, width) in on-disk order; offsets follow from the running sum.
GENERAL_HEADER_FIELDS = (
    ("version", 8),
    ("patient", 80),
    ("recording", 80),
    ("start_date", 8),
    ("start_time", 8),
    ("header_bytes", 8),
    ("reserved", 44),
    ("record_count", 8),
    ("record_duration", 8),
    ("channel_count", 4),
)

# Each field holds one value per channel, stored back to back.
CHANNEL_HEADER_FIELDS = (
    ("label", 16),
    ("transducer", 80),
    ("physical_dimension", 8),
    ("physical_min", 8),
    ("physical_max", 8),
    ("digital_min", 8),
    ("digital_max", 8),
    ("prefiltering", 80),
    ("samples_per_record", 8),
    ("reserved", 32),
)


def field_offsets(fields: tuple[tuple[str, int], ...]) -> dict[str, tuple[int, int]]:
    """Map field names to ``(offset, width)`` for a general header layout."""

    offsets: dict[str, tuple[int, int]] = {}
    position = 0
    for name, width in fields:
        offsets[name] = (position, width)
        position += width
    return offsets


@dataclass(frozen=True)
class FormatDescriptor:
    name: FileType
    plus_name: FileType
    signature: bytes
    sample_width: int
    decode_samples: Callable[[np.ndarray], np.ndarray]
    general_fields: tuple[tuple[str, int], ...] = GENERAL_HEADER_FIELDS
    channel_fields: tuple[tuple[str, int], ...] = CHANNEL_HEADER_FIELDS

    @property
    def general_offsets(self) -> dict[str, tuple[int, int]]:
        return field_offsets(self.general_fields)

    def matches(self, head: bytes) -> bool:
        return head[:8].rstrip(b" \x00") == self.signature

    def continuous_tag(self) -> str:
        return f"{self.name.value}+C"

    def discontinuous_tag(self) -> str:
        return f"{self.name.value}+D"

    def file_type(self, reserved: str) -> FileType:
        return self.plus_name if reserved.startswith(self.continuous_tag()) else self.name

    def is_discontinuous(self, reserved: str) -> bool:
        return reserved.startswith(self.discontinuous_tag())


EDF_FORMAT = FormatDescriptor(
    name=FileType.EDF,
    plus_name=FileType.EDF_PLUS,
    signature=b"0",
    sample_width=2,
    decode_samples=decode_int16,
)

BDF_FORMAT = FormatDescriptor(
    name=FileType.BDF,
    plus_name=FileType.BDF_PLUS,
    signature=b"\xffBIOSEMI",
    sample_width=3,
    decode_samples=decode_int24,
)
