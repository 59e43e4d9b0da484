# This file includes logic adapted from MNE-Python's mne/io/edf/edf.py.
# MNE-Python is released under the BSD-3-Clause licence. Copyright the MNE-Python contributors.

"""Binary payload decoding for record-based (EDF/BDF) and multiplexed (BrainVision) data."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

from .errors import TruncatedPayloadError, UnsupportedSubFormatError
from .types import ChannelRole

if TYPE_CHECKING:  # pragma: no cover
    from .channels import ChannelTable
    from .formats import FormatDescriptor

logger = logging.getLogger(__name__)

BRAINVISION_BINARY_FORMATS = {
    "int_16": np.dtype("<i2"),
    "ieee_float_32": np.dtype("<f4"),
}


# ---------------------------------------------------------------------------
# Sample codecs
# ---------------------------------------------------------------------------


def decode_int16(raw: np.ndarray) -> np.ndarray:
    """Little-endian signed 16-bit samples from a flat uint8 buffer."""

    buffer = np.ascontiguousarray(raw, dtype=np.uint8)
    if buffer.size % 2:
        raise ValueError("16-bit sample buffer must hold an even number of bytes")
    return buffer.view("<i2").astype(np.int32)


def decode_int24(raw: np.ndarray) -> np.ndarray:
    """Little-endian signed 24-bit samples from a flat uint8 buffer.

    Each triple ``b0, b1, b2`` becomes ``b0 | b1 << 8 | sign_extend(b2) << 16``
    in 32 bits: ``b2`` is reinterpreted as int8 so its top bit fills bits 24-31.
    """

    buffer = np.ascontiguousarray(raw, dtype=np.uint8)
    if buffer.size % 3:
        raise ValueError("24-bit sample buffer must hold a multiple of three bytes")
    triples = buffer.reshape(-1, 3)
    low = triples[:, 0].astype(np.int32)
    mid = triples[:, 1].astype(np.int32) << 8
    high = triples[:, 2].view(np.int8).astype(np.int32) << 16
    return low | mid | high


# ---------------------------------------------------------------------------
# Record-based payloads
# ---------------------------------------------------------------------------


@dataclass
class DecodedRecords:
    """Decoder output: one array per channel, raw bytes for annotation channels."""

    record_count: int
    signals: list[np.ndarray]
    annotations: dict[int, list[bytes]] = field(default_factory=dict)


def resolve_record_count(
    payload_size: int,
    record_bytes: int,
    declared: int,
    *,
    path: str | Path | None = None,
) -> int:
    """Validate ``declared`` against the payload, or derive it when it is -1."""

    if record_bytes <= 0:
        raise TruncatedPayloadError("Data records declare zero bytes", path=path)
    available = payload_size // record_bytes
    if declared < 0:
        count = available
    else:
        count = declared
        if payload_size < count * record_bytes:
            raise TruncatedPayloadError(
                f"Data section holds {payload_size} bytes but {count} records of "
                f"{record_bytes} bytes were declared",
                path=path,
            )
    if count == 0:
        raise TruncatedPayloadError("Recording contains no complete data record", path=path)
    trailing = payload_size - count * record_bytes
    if trailing:
        logger.debug("Ignoring %d trailing bytes after %d data records", trailing, count)
    return count


def decode_records(
    payload: bytes,
    descriptor: FormatDescriptor,
    table: ChannelTable,
    record_count: int,
    *,
    apply_offset: bool = True,
    max_workers: int | None = None,
    path: str | Path | None = None,
) -> DecodedRecords:
    """Decode interleaved fixed-duration data records.

    Channel ``c`` occupies ``samples_per_record[c] * sample_width`` bytes inside
    every record. Signal channels are calibrated while they are unpacked, event
    channels keep their digital values and marker channels are returned as raw
    per-record bytes for the annotation parser.
    """

    width = descriptor.sample_width
    spr = np.asarray(table.samples_per_record, dtype=np.int64)
    offsets = np.concatenate(([0], np.cumsum(spr * width)))
    record_bytes = int(offsets[-1])
    buffer = np.frombuffer(payload, dtype=np.uint8)
    count = resolve_record_count(buffer.size, record_bytes, record_count, path=path)
    records = buffer[: count * record_bytes].reshape(count, record_bytes)

    def _decode_channel(idx: int):
        block = records[:, offsets[idx] : offsets[idx + 1]]
        role = table.roles[idx]
        if role is ChannelRole.MARKER:
            return [row.tobytes() for row in block]
        digital = descriptor.decode_samples(block.reshape(-1))
        if role is ChannelRole.EVENT:
            return digital.astype(np.float64)
        return table.calibrations[idx].apply(digital, with_offset=apply_offset)

    indices = range(len(table))
    if max_workers and max_workers > 1 and len(table) > 1:
        # Workers only read the shared buffer; every result belongs to one channel.
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(_decode_channel, indices))
    else:
        results = [_decode_channel(idx) for idx in indices]

    decoded = DecodedRecords(record_count=count, signals=[])
    for idx, result in enumerate(results):
        if isinstance(result, list):
            decoded.annotations[idx] = result
            decoded.signals.append(np.empty(0, dtype=np.float64))
        else:
            decoded.signals.append(result)
    logger.debug(
        "Decoded %d records x %d channels (%d bytes per record)", count, len(table), record_bytes
    )
    return decoded


# ---------------------------------------------------------------------------
# Multiplexed payloads
# ---------------------------------------------------------------------------


def brainvision_dtype(binary_format: str, *, path: str | Path | None = None) -> np.dtype:
    dtype = BRAINVISION_BINARY_FORMATS.get(binary_format.strip().lower())
    if dtype is None:
        raise UnsupportedSubFormatError(
            f"BrainVision binary format {binary_format!r} is not supported "
            "(supported: INT_16, IEEE_FLOAT_32)",
            path=path,
        )
    return dtype


def decode_multiplexed(
    payload: bytes,
    table: ChannelTable,
    binary_format: str,
    *,
    apply_offset: bool = True,
    path: str | Path | None = None,
) -> list[np.ndarray]:
    """Split a multiplexed block: sample ``k`` of channel ``c`` sits at ``k * n + c``."""

    dtype = brainvision_dtype(binary_format, path=path)
    n_channels = len(table)
    frame_bytes = dtype.itemsize * n_channels
    if len(payload) % frame_bytes:
        raise TruncatedPayloadError(
            f"Data file holds {len(payload)} bytes, not a whole number of "
            f"{n_channels}-channel samples of {dtype.itemsize} bytes",
            path=path,
        )
    if not payload:
        raise TruncatedPayloadError("Data file is empty", path=path)
    frames = np.frombuffer(payload, dtype=dtype).reshape(-1, n_channels)
    signals: list[np.ndarray] = []
    for idx in range(n_channels):
        column = frames[:, idx]
        if table.roles[idx] is ChannelRole.EVENT:
            signals.append(column.astype(np.float64))
        else:
            signals.append(table.calibrations[idx].apply(column, with_offset=apply_offset))
    logger.debug("Decoded %d multiplexed samples x %d channels", frames.shape[0], n_channels)
    return signals
