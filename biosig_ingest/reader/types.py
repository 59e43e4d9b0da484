from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

DATACLASS_KWARGS = {"slots": True} if sys.version_info >= (3, 10) else {}


class FileType(str, Enum):
    EDF = "EDF"
    EDF_PLUS = "EDF+"
    BDF = "BDF"
    BDF_PLUS = "BDF+"
    BRAINVISION = "BrainVision"


class ChannelRole(str, Enum):
    SIGNAL = "signal"
    MARKER = "marker"
    EVENT = "event"
    UNKNOWN = "unknown"


@dataclass(**DATACLASS_KWARGS)
class RawHeader:
    """General header of a recording, as read from disk."""

    filename: Path
    file_type: FileType
    patient: str = ""
    recording: str = ""
    recording_date: str = ""
    recording_time: str = ""
    data_offset: int = 0
    record_count: int = -1  # -1: unknown, derived from the payload size
    record_duration: float = 1.0
    channel_count: int = 0
    reserved: str = ""
    # BrainVision only
    data_file: str = ""
    marker_file: str = ""
    data_format: str = ""
    data_orientation: str = ""
    binary_format: str = ""
    sampling_interval: float = 0.0  # microseconds


@dataclass(**DATACLASS_KWARGS)
class ChannelHeader:
    """Per-channel header entry in file order."""

    label: str
    transducer: str = ""
    physical_dimension: str = ""
    physical_min: float = 0.0
    physical_max: float = 0.0
    digital_min: int = 0
    digital_max: int = 0
    prefiltering: str = ""
    samples_per_record: int = 0
    reference: str = ""
    resolution: float | None = None  # BrainVision channels carry a gain instead of ranges


@dataclass(frozen=True, **DATACLASS_KWARGS)
class Marker:
    """Marker table row; positions are zero-based sample indices."""

    id: str
    start: int
    length: int
    description: str
    channel: int = 0  # 1-based channel index, 0 means all channels


@dataclass(frozen=True, **DATACLASS_KWARGS)
class ChannelLocation:
    """Electrode position taken from a BrainVision ``[Coordinates]`` section."""

    label: str
    theta: float
    radius: float
    x: float
    y: float
    z: float
    radius_sph: float
    theta_sph: float
    phi_sph: float


@dataclass(**DATACLASS_KWARGS)
class BrainVisionHeader:
    """Parsed `.vhdr` file: general header, channel entries and coordinates."""

    raw: RawHeader
    channels: list[ChannelHeader] = field(default_factory=list)
    coordinates: list[tuple[float, float, float]] = field(default_factory=list)
