"""Upsampling of low-rate channels onto the fastest channel's sample grid."""

from __future__ import annotations

import logging
import warnings
from collections.abc import Sequence

import numpy as np
from scipy.signal import resample

from .errors import RateReconciliationWarning
from .types import ChannelRole

logger = logging.getLogger(__name__)


def needs_reconciliation(samples_per_record: Sequence[int]) -> bool:
    return len(set(samples_per_record)) > 1


def upsample_records(signal: np.ndarray, record_count: int, source: int, target: int) -> np.ndarray:
    """Fourier-resample every record of ``signal`` from ``source`` to ``target`` samples."""

    if source == target:
        return signal
    blocks = np.asarray(signal, dtype=np.float64).reshape(record_count, source)
    return resample(blocks, target, axis=1).reshape(-1)


def reconcile_rates(
    signals: Sequence[np.ndarray],
    samples_per_record: Sequence[int],
    roles: Sequence[ChannelRole],
    labels: Sequence[str],
    record_count: int,
    record_duration: float,
) -> tuple[list[np.ndarray], int, list[str]]:
    """Bring every non-marker channel to the highest samples-per-record.

    Returns the new signals (marker entries untouched), the common sample rate
    in Hz and the warning messages that were emitted.
    """

    active = [idx for idx, role in enumerate(roles) if role is not ChannelRole.MARKER]
    if not active:
        raise ValueError("No signal channels to reconcile")
    target = max(samples_per_record[idx] for idx in active)
    rate = int(round(target / record_duration))

    output = list(signals)
    upsampled: list[str] = []
    for idx in active:
        source = samples_per_record[idx]
        if source == target:
            continue
        output[idx] = upsample_records(signals[idx], record_count, source, target)
        upsampled.append(labels[idx])

    messages: list[str] = []
    if upsampled:
        message = f"Channels upsampled to {rate} Hz: {', '.join(upsampled)}"
        logger.warning("%s", message)
        warnings.warn(message, RateReconciliationWarning, stacklevel=3)
        messages.append(message)
    return output, rate, messages
