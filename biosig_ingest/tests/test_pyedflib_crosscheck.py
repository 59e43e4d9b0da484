"""Cross-check decoding against PyEDFlib, an independent EDF/BDF reader.

PyEDFlib is an optional test dependency; the module is skipped without it.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from biosig_ingest import import_bdf, import_edf

from .synthetic import signal_channel, write_record_file

pyedflib = pytest.importorskip("pyedflib", reason="pyedflib required for cross-check tests")


def _read_with_pyedflib(path: Path) -> tuple[list[str], list[np.ndarray]]:
    reader = pyedflib.EdfReader(str(path))
    try:
        labels = [label.strip() for label in reader.getSignalLabels()]
        signals = [reader.readSignal(idx) for idx in range(reader.signals_in_file)]
    finally:
        reader.close()
    return labels, signals


def test_edf_matches_pyedflib(tmp_path: Path) -> None:
    rng = np.random.default_rng(11)
    channels = [
        signal_channel("Fp1", rng.integers(-32768, 32767, size=512), 128),
        signal_channel(
            "Cz",
            rng.integers(-2048, 2047, size=512),
            128,
            physical_min=-500.0,
            physical_max=500.0,
            digital_min=-2048,
            digital_max=2047,
        ),
        signal_channel(
            "O2",
            rng.integers(0, 4095, size=512),
            128,
            physical_min=0.0,
            physical_max=1000.0,
            digital_min=0,
            digital_max=4095,
        ),
    ]
    path = write_record_file(tmp_path / "reference.edf", channels, 4)

    labels, expected = _read_with_pyedflib(path)
    recording = import_edf(path)

    assert list(recording.labels) == labels
    for idx, signal in enumerate(expected):
        np.testing.assert_allclose(recording.signals[idx, :, 0], signal, rtol=1e-6, atol=1e-6)


def test_bdf_matches_pyedflib(tmp_path: Path) -> None:
    rng = np.random.default_rng(12)
    channels = [
        signal_channel(
            label,
            rng.integers(-8388608, 8388607, size=256),
            64,
            physical_min=-262144.0,
            physical_max=262143.0,
            digital_min=-8388608,
            digital_max=8388607,
        )
        for label in ("Fp1", "Fp2")
    ]
    path = write_record_file(tmp_path / "reference.bdf", channels, 4, bdf=True, reserved="24BIT")

    labels, expected = _read_with_pyedflib(path)
    recording = import_bdf(path)

    assert list(recording.labels) == labels
    for idx, signal in enumerate(expected):
        np.testing.assert_allclose(recording.signals[idx, :, 0], signal, rtol=1e-6, atol=1e-3)
