"""Channel label cleaning, role detection and canonical ordering."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace

import numpy as np

from .calibration import Calibration
from .types import ChannelHeader, ChannelRole

# 10-10 electrode names plus the old 10-20 temporal names and ear/mastoid references.
ELECTRODE_NAMES = (
    "Fp1", "Fpz", "Fp2",
    "AF9", "AF7", "AF5", "AF3", "AF1", "AFz", "AF2", "AF4", "AF6", "AF8", "AF10",
    "F9", "F7", "F5", "F3", "F1", "Fz", "F2", "F4", "F6", "F8", "F10",
    "FT9", "FT7", "FC5", "FC3", "FC1", "FCz", "FC2", "FC4", "FC6", "FT8", "FT10",
    "T9", "T7", "C5", "C3", "C1", "Cz", "C2", "C4", "C6", "T8", "T10",
    "TP9", "TP7", "CP5", "CP3", "CP1", "CPz", "CP2", "CP4", "CP6", "TP8", "TP10",
    "P9", "P7", "P5", "P3", "P1", "Pz", "P2", "P4", "P6", "P8", "P10",
    "PO9", "PO7", "PO5", "PO3", "PO1", "POz", "PO2", "PO4", "PO6", "PO8", "PO10",
    "O1", "Oz", "O2", "I1", "Iz", "I2",
    "T3", "T4", "T5", "T6",
    "A1", "A2", "M1", "M2",
)

# Canonical grouping: signals first, then events, marker and unknown channels.
ROLE_RANK = {
    ChannelRole.SIGNAL: 0,
    ChannelRole.EVENT: 1,
    ChannelRole.MARKER: 2,
    ChannelRole.UNKNOWN: 3,
}

_EEG_PREFIX = re.compile(r"^eeg[\s\-]*")
_REF_SUFFIX = re.compile(r"[\s\-]*ref$")


def clean_label(raw: str | bytes) -> str:
    """Return the display form of a label: NUL and space padding removed."""

    if isinstance(raw, bytes):
        raw = raw.decode("latin-1")
    return raw.replace("\x00", " ").strip()


def label_key(label: str) -> str:
    """Case-folded form used for matching only; never shown to users."""

    return " ".join(clean_label(label).casefold().split())


def _electrode_key(key: str) -> str:
    return _REF_SUFFIX.sub("", _EEG_PREFIX.sub("", key))


@dataclass(frozen=True)
class RoleTable:
    """Lookup table driving :func:`classify`.

    ``exact`` maps matching keys (see :func:`label_key`) to roles; ``prefixes``
    are tried in order when no exact entry matches.
    """

    exact: Mapping[str, ChannelRole] = field(default_factory=dict)
    prefixes: tuple[tuple[str, ChannelRole], ...] = ()

    def extended(
        self,
        exact: Mapping[str, ChannelRole] | None = None,
        prefixes: Iterable[tuple[str, ChannelRole]] = (),
    ) -> RoleTable:
        merged = dict(self.exact)
        for name, role in (exact or {}).items():
            merged[label_key(name)] = role
        extra = tuple((label_key(prefix), role) for prefix, role in prefixes)
        # New prefixes take precedence over the defaults.
        return RoleTable(exact=merged, prefixes=extra + self.prefixes)


def _default_role_table() -> RoleTable:
    exact: dict[str, ChannelRole] = {name.casefold(): ChannelRole.SIGNAL for name in ELECTRODE_NAMES}
    exact.update(
        {
            "edf annotations": ChannelRole.MARKER,
            "bdf annotations": ChannelRole.MARKER,
            "status": ChannelRole.EVENT,
            "trigger": ChannelRole.EVENT,
            "event": ChannelRole.EVENT,
            "events": ChannelRole.EVENT,
            "stim": ChannelRole.EVENT,
        }
    )
    prefixes = (
        ("annotation", ChannelRole.MARKER),
        ("marker", ChannelRole.MARKER),
        ("trig", ChannelRole.EVENT),
        ("event", ChannelRole.EVENT),
        ("status", ChannelRole.EVENT),
        ("eeg", ChannelRole.SIGNAL),
        ("meg", ChannelRole.SIGNAL),
        ("ecg", ChannelRole.SIGNAL),
        ("ekg", ChannelRole.SIGNAL),
        ("eog", ChannelRole.SIGNAL),
        ("emg", ChannelRole.SIGNAL),
    )
    return RoleTable(exact=exact, prefixes=prefixes)


DEFAULT_ROLE_TABLE = _default_role_table()


def classify(label: str, table: RoleTable = DEFAULT_ROLE_TABLE) -> ChannelRole:
    key = label_key(label)
    if not key:
        return ChannelRole.UNKNOWN
    role = table.exact.get(key)
    if role is None:
        role = table.exact.get(_electrode_key(key))
    if role is not None:
        return role
    for prefix, prefix_role in table.prefixes:
        if key.startswith(prefix):
            return prefix_role
    return ChannelRole.UNKNOWN


def classify_channels(
    labels: Sequence[str],
    table: RoleTable = DEFAULT_ROLE_TABLE,
    *,
    detect_type: bool = True,
) -> list[ChannelRole]:
    if not detect_type:
        return [ChannelRole.UNKNOWN] * len(labels)
    return [classify(label, table) for label in labels]


def canonical_order(roles: Sequence[ChannelRole]) -> list[int]:
    """Stable permutation grouping channels by role; file order breaks ties."""

    return sorted(range(len(roles)), key=lambda idx: (ROLE_RANK[roles[idx]], idx))


def marker_indices(roles: Sequence[ChannelRole]) -> list[int]:
    return [idx for idx, role in enumerate(roles) if role is ChannelRole.MARKER]


@dataclass(frozen=True)
class ChannelTable:
    """Parallel per-channel vectors that must always stay aligned.

    Reordering and removal go through :meth:`select`, which rebuilds every
    vector from one index list.
    """

    headers: tuple[ChannelHeader, ...]
    labels: tuple[str, ...]
    roles: tuple[ChannelRole, ...]
    calibrations: tuple[Calibration, ...]
    source_index: tuple[int, ...]
    signals: tuple[np.ndarray, ...] = ()

    def __post_init__(self) -> None:
        n = len(self.headers)
        lengths = {
            "labels": len(self.labels),
            "roles": len(self.roles),
            "calibrations": len(self.calibrations),
            "source_index": len(self.source_index),
        }
        if self.signals:
            lengths["signals"] = len(self.signals)
        bad = {name: size for name, size in lengths.items() if size != n}
        if bad:
            raise ValueError(f"Per-channel vectors out of step with {n} headers: {bad}")

    @classmethod
    def build(
        cls,
        headers: Sequence[ChannelHeader],
        calibrations: Sequence[Calibration],
        roles: Sequence[ChannelRole],
    ) -> ChannelTable:
        return cls(
            headers=tuple(headers),
            labels=tuple(clean_label(header.label) for header in headers),
            roles=tuple(roles),
            calibrations=tuple(calibrations),
            source_index=tuple(range(len(headers))),
        )

    def __len__(self) -> int:
        return len(self.headers)

    def select(self, indices: Sequence[int]) -> ChannelTable:
        picks = [int(idx) for idx in indices]
        return ChannelTable(
            headers=tuple(self.headers[idx] for idx in picks),
            labels=tuple(self.labels[idx] for idx in picks),
            roles=tuple(self.roles[idx] for idx in picks),
            calibrations=tuple(self.calibrations[idx] for idx in picks),
            source_index=tuple(self.source_index[idx] for idx in picks),
            signals=tuple(self.signals[idx] for idx in picks) if self.signals else (),
        )

    def with_signals(self, signals: Sequence[np.ndarray]) -> ChannelTable:
        return replace(self, signals=tuple(signals))

    @property
    def samples_per_record(self) -> list[int]:
        return [header.samples_per_record for header in self.headers]
