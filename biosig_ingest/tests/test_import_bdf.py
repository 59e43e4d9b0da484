from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from biosig_ingest import import_bdf
from biosig_ingest.reader.errors import DiscontinuousRecordingError
from biosig_ingest.reader.types import ChannelRole

from .synthetic import annotation_channel, signal_channel, write_record_file

FULL_SCALE = {
    "physical_min": -8388608.0,
    "physical_max": 8388607.0,
    "digital_min": -8388608,
    "digital_max": 8388607,
}


def test_bdf_24_bit_samples(tmp_path: Path) -> None:
    values = [0, 1, -1, 8388607, -8388608, 65536, -65536, 123456]
    channels = [signal_channel("Cz", values, 4, **FULL_SCALE)]
    path = write_record_file(tmp_path / "full.bdf", channels, 2, bdf=True, reserved="24BIT")

    recording = import_bdf(path)

    assert recording.header["file_type"] == "BDF"
    assert recording.sampling_rate == 4
    np.testing.assert_allclose(recording.signals[0, :, 0], values)


def test_status_channel_keeps_digital_values(tmp_path: Path) -> None:
    status = [0, 255, 65280, -8388608]
    channels = [
        signal_channel("Fp1", [100, 200, 300, 400], 4, physical_min=-262144.0, physical_max=262143.0,
                       digital_min=-8388608, digital_max=8388607),
        signal_channel("Status", status, 4, physical_min=-1.0, physical_max=1.0,
                       digital_min=-8388608, digital_max=8388607, unit="Boolean"),
    ]
    path = write_record_file(tmp_path / "status.bdf", channels, 1, bdf=True, reserved="24BIT")

    recording = import_bdf(path)

    assert recording.channel_types == (ChannelRole.SIGNAL, ChannelRole.EVENT)
    np.testing.assert_allclose(recording.signals[1, :, 0], status)
    gain = 524287.0 / 16777215.0
    np.testing.assert_allclose(
        recording.signals[0, :, 0], [(value + 8388608) * gain - 262144.0 for value in (100, 200, 300, 400)]
    )


def test_bdf_plus_annotations(tmp_path: Path) -> None:
    channels = [
        signal_channel("Fp1", np.arange(512), 256, **FULL_SCALE),
        annotation_channel(2, 20, {1: [(1.5, 0.25, "Stim")]}, label="BDF Annotations"),
    ]
    path = write_record_file(tmp_path / "plus.bdf", channels, 2, bdf=True, reserved="BDF+C")

    recording = import_bdf(path)

    assert recording.header["file_type"] == "BDF+"
    assert recording.labels == ("Fp1",)
    assert [(marker.start, marker.length, marker.description) for marker in recording.markers] == [
        (384, 64, "Stim")
    ]


def test_bdf_discontinuous(tmp_path: Path) -> None:
    channels = [signal_channel("Fp1", np.arange(4), 2, **FULL_SCALE)]
    path = write_record_file(tmp_path / "gap.bdf", channels, 2, bdf=True, reserved="BDF+D")
    with pytest.raises(DiscontinuousRecordingError, match="BDF\\+D"):
        import_bdf(path)
