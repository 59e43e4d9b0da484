"""The immutable in-memory recording produced by every importer."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

import numpy as np

from .calibration import Calibration, unrecognized_unit_labels
from .types import ChannelHeader, ChannelLocation, ChannelRole, Marker, RawHeader


@dataclass(frozen=True)
class CanonicalRecording:
    """Channels x samples x epochs of calibrated data plus aligned metadata.

    ``labels``, ``channel_types``, ``calibrations`` and the first axis of
    ``signals`` always share one channel order. Marker ``channel`` fields are
    1-based positions in that order (0 means every channel). Imports always
    produce a single epoch.
    """

    header: Mapping[str, object]
    sampling_rate: int
    time_axis: np.ndarray
    epoch_time: np.ndarray
    signals: np.ndarray
    markers: tuple[Marker, ...]
    locations: tuple[ChannelLocation, ...]
    labels: tuple[str, ...]
    channel_types: tuple[ChannelRole, ...]
    calibrations: tuple[Calibration, ...]
    warnings: tuple[str, ...] = ()

    @property
    def channel_count(self) -> int:
        return int(self.signals.shape[0])

    @property
    def sample_count(self) -> int:
        return int(self.signals.shape[1])

    @property
    def epoch_count(self) -> int:
        return int(self.signals.shape[2])

    @property
    def duration_seconds(self) -> float:
        return self.sample_count * self.epoch_count / self.sampling_rate

    def channel_index(self, label: str) -> int:
        """0-based position of ``label`` in the channel order."""

        try:
            return self.labels.index(label)
        except ValueError:
            raise KeyError(f"No channel labelled {label!r}") from None

    def marker_table(self) -> list[dict[str, object]]:
        return [
            {
                "id": marker.id,
                "start": marker.start,
                "length": marker.length,
                "description": marker.description,
                "channel": marker.channel,
            }
            for marker in self.markers
        ]


def spherical_to_location(label: str, radius: float, theta: float, phi: float) -> ChannelLocation:
    """BrainVision spherical coordinates (degrees, theta from the vertex) to a location."""

    theta_rad = math.radians(theta)
    phi_rad = math.radians(phi)
    return ChannelLocation(
        label=label,
        theta=theta,
        radius=radius,
        x=radius * math.sin(theta_rad) * math.cos(phi_rad),
        y=radius * math.sin(theta_rad) * math.sin(phi_rad),
        z=radius * math.cos(theta_rad),
        radius_sph=radius,
        theta_sph=theta,
        phi_sph=phi,
    )


def _file_size_mb(path: Path) -> float:
    try:
        return round(path.stat().st_size / 1024**2, 2)
    except OSError:
        return 0.0


def _readonly(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


def build_header(
    raw: RawHeader,
    headers: Sequence[ChannelHeader],
    labels: Sequence[str],
    roles: Sequence[ChannelRole],
    calibrations: Sequence[Calibration],
    *,
    sample_count: int,
    sampling_rate: int,
    has_markers: bool,
    has_locations: bool,
) -> dict[str, object]:
    duration = sample_count / sampling_rate
    path = Path(raw.filename)
    return {
        "signal_type": "eeg",
        "file_name": str(path),
        "file_size_mb": _file_size_mb(path),
        "file_type": raw.file_type.value,
        "patient": raw.patient,
        "recording": raw.recording,
        "recording_date": raw.recording_date,
        "recording_time": raw.recording_time,
        "channel_count": len(labels),
        "channel_type": [role.value for role in roles],
        "reference": "",
        "labels": list(labels),
        "transducers": [header.transducer for header in headers],
        "units": [header.physical_dimension for header in headers],
        "prefiltering": [header.prefiltering for header in headers],
        "gain": [calibration.gain for calibration in calibrations],
        "unrecognized_units": unrecognized_unit_labels(labels, calibrations),
        "sampling_rate": sampling_rate,
        "duration_samples": sample_count,
        "duration_seconds": duration,
        "epoch_count": 1,
        "epoch_duration_samples": sample_count,
        "epoch_duration_seconds": duration,
        "has_markers": has_markers,
        "has_locations": has_locations,
        "note": "",
    }


def assemble(
    raw: RawHeader,
    headers: Sequence[ChannelHeader],
    labels: Sequence[str],
    roles: Sequence[ChannelRole],
    calibrations: Sequence[Calibration],
    signals: Sequence[np.ndarray],
    sampling_rate: int,
    *,
    markers: Sequence[Marker] = (),
    locations: Sequence[ChannelLocation] = (),
    warnings: Sequence[str] = (),
) -> CanonicalRecording:
    """Stack per-channel arrays into ``(channels, samples, 1)`` and freeze everything."""

    lengths = {int(np.asarray(signal).size) for signal in signals}
    if len(lengths) != 1:
        raise ValueError(f"Channels disagree on sample count: {sorted(lengths)}")
    data = np.stack([np.asarray(signal, dtype=np.float64) for signal in signals])[:, :, np.newaxis]
    sample_count = data.shape[1]
    time_axis = np.arange(sample_count, dtype=np.float64) / sampling_rate

    header = build_header(
        raw,
        headers,
        labels,
        roles,
        calibrations,
        sample_count=sample_count,
        sampling_rate=sampling_rate,
        has_markers=bool(markers),
        has_locations=bool(locations),
    )
    return CanonicalRecording(
        header=MappingProxyType(header),
        sampling_rate=sampling_rate,
        time_axis=_readonly(time_axis),
        epoch_time=_readonly(time_axis.copy()),
        signals=_readonly(np.ascontiguousarray(data)),
        markers=tuple(markers),
        locations=tuple(locations),
        labels=tuple(labels),
        channel_types=tuple(roles),
        calibrations=tuple(calibrations),
        warnings=tuple(warnings),
    )
