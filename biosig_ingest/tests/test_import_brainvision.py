from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from biosig_ingest import import_bv
from biosig_ingest.reader.errors import (
    MissingReferencedFileError,
    TruncatedPayloadError,
    UnsupportedSubFormatError,
)
from biosig_ingest.reader.types import ChannelRole

from .synthetic import BrainVisionLayout, write_brainvision

MARKERS = [
    "New Segment,,1,1,0,20240315103000000000",
    "Stimulus,S  1,51,1,0",
    "Comment,left\\1right,11,5,2",
]


def _layout(**kwargs) -> BrainVisionLayout:
    data = np.vstack([np.arange(100), -np.arange(100)])
    options = {
        "labels": ["Resp", "Fp1"],
        "data": data,
        "resolutions": ["1", "0.1"],
        "units": ["", "µV"],
        "markers": list(MARKERS),
    }
    options.update(kwargs)
    return BrainVisionLayout(**options)


def test_int16_import(tmp_path: Path) -> None:
    vhdr = write_brainvision(tmp_path, "session", _layout())

    recording = import_bv(vhdr)

    assert recording.header["file_type"] == "BrainVision"
    assert recording.sampling_rate == 250
    assert recording.labels == ("Fp1", "Resp")
    assert recording.channel_types == (ChannelRole.SIGNAL, ChannelRole.UNKNOWN)
    assert recording.signals.shape == (2, 100, 1)
    np.testing.assert_allclose(recording.signals[0, :, 0], -np.arange(100) * 0.1)
    np.testing.assert_allclose(recording.signals[1, :, 0], np.arange(100))
    assert recording.time_axis[-1] == pytest.approx(99 / 250)


def test_markers_and_recording_date(tmp_path: Path) -> None:
    recording = import_bv(write_brainvision(tmp_path, "session", _layout()))

    assert [(m.id, m.start, m.length, m.description, m.channel) for m in recording.markers] == [
        ("New Segment", 0, 1, "", 0),
        ("Comment", 10, 5, "left,right", 1),
        ("Stimulus", 50, 1, "S  1", 0),
    ]
    assert recording.header["recording_date"] == "15.03.24"
    assert recording.header["recording_time"] == "10.30.00"
    assert recording.header["has_markers"] is True


def test_float32_import(tmp_path: Path) -> None:
    data = np.array([[1.5, -2.25, 3.0], [0.5, 0.25, -0.125]], dtype=np.float32)
    layout = _layout(
        labels=["Cz", "Pz"],
        data=data,
        binary_format="IEEE_FLOAT_32",
        resolutions=["1", "2"],
        units=["µV", "mV"],
        sampling_interval=1000,
    )
    recording = import_bv(write_brainvision(tmp_path, "floats", layout))

    assert recording.sampling_rate == 1000
    np.testing.assert_allclose(recording.signals[0, :, 0], [1.5, -2.25, 3.0])
    # Millivolt channels are divided by 1000.
    np.testing.assert_allclose(recording.signals[1, :, 0], [0.001, 0.0005, -0.00025])


def test_explicit_data_file_name(tmp_path: Path) -> None:
    vhdr = write_brainvision(tmp_path, "renamed", _layout(data_file="payload.dat", marker_file=None))
    recording = import_bv(vhdr)
    assert recording.sample_count == 100
    assert recording.markers == ()


def test_missing_marker_file(tmp_path: Path) -> None:
    vhdr = write_brainvision(tmp_path, "nomarkers", _layout(), write_markers=False)
    with pytest.raises(MissingReferencedFileError, match="nomarkers.vmrk") as excinfo:
        import_bv(vhdr)
    assert excinfo.value.stage == "header_read"
    assert isinstance(excinfo.value, FileNotFoundError)


def test_missing_data_file(tmp_path: Path) -> None:
    vhdr = write_brainvision(tmp_path, "nodata", _layout())
    (tmp_path / "nodata.eeg").unlink()
    with pytest.raises(MissingReferencedFileError, match="nodata.eeg"):
        import_bv(vhdr)


@pytest.mark.parametrize(
    "override, match",
    [
        ({"data_format": "ASCII"}, "ASCII"),
        ({"orientation": "VECTORIZED"}, "VECTORIZED"),
        ({"binary_format": "INT_32"}, "INT_32"),
    ],
)
def test_unsupported_sub_formats(tmp_path: Path, override: dict, match: str) -> None:
    vhdr = write_brainvision(tmp_path, "odd", _layout(**override))
    with pytest.raises(UnsupportedSubFormatError, match=match):
        import_bv(vhdr)


def test_truncated_data_file(tmp_path: Path) -> None:
    vhdr = write_brainvision(tmp_path, "cut", _layout())
    data_path = tmp_path / "cut.eeg"
    data_path.write_bytes(data_path.read_bytes()[:-1])
    with pytest.raises(TruncatedPayloadError) as excinfo:
        import_bv(vhdr)
    assert excinfo.value.stage == "decoded"


def test_coordinates_become_locations(tmp_path: Path) -> None:
    layout = _layout(coordinates=["1,90,0", "1,0,0"])
    recording = import_bv(write_brainvision(tmp_path, "located", layout))

    assert recording.header["has_locations"] is True
    fp1, resp = recording.locations
    assert fp1.label == "Fp1"
    assert (fp1.x, fp1.y, fp1.z) == pytest.approx((0.0, 0.0, 1.0))
    assert resp.label == "Resp"
    assert (resp.x, resp.y, resp.z) == pytest.approx((1.0, 0.0, 0.0), abs=1e-12)
    assert resp.theta_sph == 90.0


def test_marker_like_channels_are_events(tmp_path: Path) -> None:
    layout = _layout(labels=["Fp1", "Marker"], units=["", ""])
    recording = import_bv(write_brainvision(tmp_path, "events", layout))
    assert recording.channel_types == (ChannelRole.SIGNAL, ChannelRole.EVENT)
    np.testing.assert_allclose(recording.signals[1, :, 0], -np.arange(100))
