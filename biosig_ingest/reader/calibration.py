"""Digital-to-physical scaling of EDF/BDF and BrainVision channels."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import numpy as np

from .errors import ZeroRangeCalibrationError
from .types import DATACLASS_KWARGS, ChannelHeader


class PhysicalUnit(str, Enum):
    MICROVOLT = "uV"
    MILLIVOLT = "mV"
    UNKNOWN = "?"


# Exact spellings only: "uVrms" or "mV/m" are not voltages in these units.
UNIT_ALIASES = {
    "uV": PhysicalUnit.MICROVOLT,
    "µV": PhysicalUnit.MICROVOLT,  # micro sign
    "μV": PhysicalUnit.MICROVOLT,  # greek mu
    "mV": PhysicalUnit.MILLIVOLT,
}

# Millivolt channels are divided by 1000.
UNIT_SCALE = {
    PhysicalUnit.MICROVOLT: 1.0,
    PhysicalUnit.MILLIVOLT: 1.0 / 1000.0,
    PhysicalUnit.UNKNOWN: 1.0,
}


def resolve_unit(text: str, *, default: PhysicalUnit = PhysicalUnit.UNKNOWN) -> PhysicalUnit:
    cleaned = (text or "").strip()
    if not cleaned:
        return default
    return UNIT_ALIASES.get(cleaned, PhysicalUnit.UNKNOWN)


@dataclass(frozen=True, **DATACLASS_KWARGS)
class Calibration:
    """Linear mapping from raw digital samples to physical values.

    ``offset = physical_min - digital_min * gain`` is the folded form of the
    mapping (``raw * gain + offset``). ``apply`` evaluates it as
    ``(raw - digital_min) * gain + physical_min`` so it agrees bit-for-bit with
    ``apply_reference``; ``with_offset=False`` gives ``raw * gain``. Both include
    the unit scale.
    """

    gain: float
    offset: float
    digital_min: float
    physical_min: float
    unit: PhysicalUnit = PhysicalUnit.UNKNOWN
    unit_label: str = ""

    @property
    def unit_scale(self) -> float:
        return UNIT_SCALE[self.unit]

    def apply(self, raw: np.ndarray, *, with_offset: bool = True) -> np.ndarray:
        values = np.asarray(raw, dtype=np.float64)
        if with_offset:
            # Must match apply_reference bit-for-bit.
            values = (values - self.digital_min) * self.gain + self.physical_min
        else:
            values = values * self.gain
        if self.unit_scale != 1.0:
            values *= self.unit_scale
        return values

    def apply_reference(self, raw: np.ndarray) -> np.ndarray:
        values = (np.asarray(raw, dtype=np.float64) - self.digital_min) * self.gain + self.physical_min
        if self.unit_scale != 1.0:
            values *= self.unit_scale
        return values


def calibrate_channel(
    header: ChannelHeader,
    index: int,
    *,
    path: str | Path | None = None,
) -> Calibration:
    """Derive the calibration of one EDF/BDF channel (``index`` is 1-based)."""

    digital_range = header.digital_max - header.digital_min
    if digital_range == 0:
        raise ZeroRangeCalibrationError(index, header.label, path=path)
    gain = (header.physical_max - header.physical_min) / digital_range
    offset = header.physical_min - header.digital_min * gain
    return Calibration(
        gain=gain,
        offset=offset,
        digital_min=float(header.digital_min),
        physical_min=float(header.physical_min),
        unit=resolve_unit(header.physical_dimension),
        unit_label=header.physical_dimension,
    )


def calibrate_channels(
    headers: Sequence[ChannelHeader],
    *,
    path: str | Path | None = None,
) -> list[Calibration]:
    return [calibrate_channel(header, idx + 1, path=path) for idx, header in enumerate(headers)]


def calibration_from_resolution(resolution: float, unit_label: str) -> Calibration:
    """BrainVision channels store a resolution (unit per bit) and no ranges.

    A missing unit means microvolts, the BrainVision default.
    """

    return Calibration(
        gain=float(resolution),
        offset=0.0,
        digital_min=0.0,
        physical_min=0.0,
        unit=resolve_unit(unit_label, default=PhysicalUnit.MICROVOLT),
        unit_label=unit_label,
    )


def unrecognized_unit_labels(labels: Sequence[str], calibrations: Sequence[Calibration]) -> list[str]:
    return [
        label
        for label, calibration in zip(labels, calibrations)
        if calibration.unit is PhysicalUnit.UNKNOWN
    ]


def passthrough_calibration(unit_label: str = "") -> Calibration:
    """Unit gain for channels whose bytes are not samples (annotation channels)."""

    return Calibration(gain=1.0, offset=0.0, digital_min=0.0, physical_min=0.0, unit_label=unit_label)
