from __future__ import annotations

import numpy as np
import pytest

from biosig_ingest.reader.calibration import Calibration, PhysicalUnit
from biosig_ingest.reader.channels import ChannelTable
from biosig_ingest.reader.data import (
    decode_int16,
    decode_int24,
    decode_multiplexed,
    resolve_record_count,
)
from biosig_ingest.reader.errors import TruncatedPayloadError, UnsupportedSubFormatError
from biosig_ingest.reader.types import ChannelHeader, ChannelRole


@pytest.mark.parametrize(
    "triple, expected",
    [
        ((0x00, 0x00, 0x00), 0),
        ((0x01, 0x00, 0x00), 1),
        ((0xFF, 0xFF, 0x7F), 8388607),
        ((0x00, 0x00, 0x80), -8388608),
        ((0xFF, 0xFF, 0xFF), -1),
        ((0x34, 0x12, 0x00), 0x1234),
        ((0x00, 0x00, 0xFF), -65536),
    ],
)
def test_decode_int24_sign_extends(triple: tuple[int, int, int], expected: int) -> None:
    decoded = decode_int24(np.array(triple, dtype=np.uint8))
    assert decoded.dtype == np.int32
    assert decoded.tolist() == [expected]


def test_decode_int24_matches_python_reference() -> None:
    rng = np.random.default_rng(7)
    raw = rng.integers(0, 256, size=3 * 500, dtype=np.uint8)
    expected = [
        int.from_bytes(bytes(raw[idx : idx + 3]), "little", signed=True)
        for idx in range(0, raw.size, 3)
    ]
    assert decode_int24(raw).tolist() == expected


def test_decode_int24_rejects_partial_samples() -> None:
    with pytest.raises(ValueError, match="multiple of three"):
        decode_int24(np.zeros(4, dtype=np.uint8))


def test_decode_int16_little_endian() -> None:
    raw = np.frombuffer(np.array([1, -2, 32767, -32768], dtype="<i2").tobytes(), dtype=np.uint8)
    assert decode_int16(raw).tolist() == [1, -2, 32767, -32768]


def test_resolve_record_count_derives_unknown_count() -> None:
    assert resolve_record_count(1000, 100, -1) == 10
    assert resolve_record_count(1050, 100, -1) == 10


def test_resolve_record_count_rejects_short_payload() -> None:
    with pytest.raises(TruncatedPayloadError, match="3 records"):
        resolve_record_count(250, 100, 3)


def test_resolve_record_count_rejects_empty_payload() -> None:
    with pytest.raises(TruncatedPayloadError, match="no complete data record"):
        resolve_record_count(50, 100, -1)


def _table(n_channels: int, roles: list[ChannelRole] | None = None, gain: float = 0.5) -> ChannelTable:
    headers = [ChannelHeader(label=f"Ch{idx + 1}") for idx in range(n_channels)]
    calibrations = [
        Calibration(gain=gain, offset=0.0, digital_min=0.0, physical_min=0.0, unit=PhysicalUnit.MICROVOLT)
        for _ in range(n_channels)
    ]
    return ChannelTable.build(headers, calibrations, roles or [ChannelRole.SIGNAL] * n_channels)


def test_decode_multiplexed_demultiplexes_and_scales() -> None:
    frames = np.array([[1, 10, 100], [2, 20, 200], [3, 30, 300]], dtype="<i2")
    signals = decode_multiplexed(frames.tobytes(), _table(3), "INT_16")
    np.testing.assert_allclose(signals[0], [0.5, 1.0, 1.5])
    np.testing.assert_allclose(signals[1], [5.0, 10.0, 15.0])
    np.testing.assert_allclose(signals[2], [50.0, 100.0, 150.0])


def test_decode_multiplexed_keeps_event_channels_raw() -> None:
    frames = np.array([[4, 7], [6, 9]], dtype="<f4")
    table = _table(2, [ChannelRole.SIGNAL, ChannelRole.EVENT])
    signals = decode_multiplexed(frames.tobytes(), table, "IEEE_FLOAT_32")
    np.testing.assert_allclose(signals[0], [2.0, 3.0])
    np.testing.assert_allclose(signals[1], [7.0, 9.0])


def test_decode_multiplexed_rejects_partial_frame() -> None:
    payload = np.arange(5, dtype="<i2").tobytes()
    with pytest.raises(TruncatedPayloadError, match="whole number"):
        decode_multiplexed(payload, _table(2), "INT_16")


def test_decode_multiplexed_rejects_unknown_binary_format() -> None:
    with pytest.raises(UnsupportedSubFormatError, match="INT_32"):
        decode_multiplexed(b"\x00" * 8, _table(2), "INT_32")
