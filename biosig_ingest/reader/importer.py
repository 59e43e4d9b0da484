"""Per-format import pipelines and the extension dispatcher."""

from __future__ import annotations

import logging
from contextlib import ExitStack, contextmanager
from enum import Enum
from pathlib import Path

from .calibration import calibrate_channel, calibration_from_resolution, passthrough_calibration
from .channels import ChannelTable, canonical_order, classify_channels, clean_label, marker_indices
from .config import ImportOptions, resolve_options
from .data import brainvision_dtype, decode_multiplexed, decode_records
from .errors import (
    BiosigImportError,
    MissingReferencedFileError,
    RecordingNotFoundError,
    StructuralError,
    UnsupportedFeatureError,
    UnsupportedFormatError,
    UnsupportedSubFormatError,
)
from .formats import BDF_FORMAT, EDF_FORMAT, FormatDescriptor
from .header import read_record_header, read_vhdr, resolve_reference
from .markers import entries_to_markers, extract_annotation_markers, new_segment_datetime, read_vmrk
from .recording import CanonicalRecording, assemble, spherical_to_location
from .resample import needs_reconciliation, reconcile_rates
from .types import ChannelRole

logger = logging.getLogger(__name__)


class ImportState(str, Enum):
    UNOPENED = "unopened"
    HEADER_READ = "header_read"
    CALIBRATED = "calibrated"
    DECODED = "decoded"
    RATE_RECONCILED = "rate_reconciled"
    MARKERS_EXTRACTED = "markers_extracted"
    ASSEMBLED = "assembled"
    FAILED = "failed"


class ImportRun:
    """Tracks one import through its stages.

    An error raised inside :meth:`stage` is tagged with the stage that was
    being entered and the file being read, and the run moves to ``FAILED``.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.state = ImportState.UNOPENED

    @contextmanager
    def stage(self, target: ImportState):
        try:
            yield
        except BiosigImportError as exc:
            self.state = ImportState.FAILED
            if exc.stage is None:
                exc.stage = target.value
            if exc.path is None:
                exc.path = self.path
            logger.debug("%s failed while entering %s: %s", self.path.name, target.value, exc)
            raise
        except Exception:
            self.state = ImportState.FAILED
            raise
        self.state = target
        logger.debug("%s: %s", self.path.name, target.value)


def _require_file(path: Path) -> None:
    if not path.is_file():
        raise RecordingNotFoundError(f"Recording not found: {path}", path=path)


def _checked_rate(samples: float, seconds: float, path: Path) -> tuple[int, str | None]:
    exact = samples / seconds
    rate = int(round(exact))
    if rate < 1:
        raise UnsupportedFeatureError(
            f"Sampling rate {exact:.4g} Hz is below 1 Hz", path=path
        )
    note = None
    if abs(exact - rate) > 1e-6:
        note = f"Sampling rate {exact:.6g} Hz rounded to {rate} Hz"
        logger.warning("%s", note)
    return rate, note


# ---------------------------------------------------------------------------
# EDF / BDF
# ---------------------------------------------------------------------------


def _import_record_based(
    path: Path,
    descriptor: FormatDescriptor,
    options: ImportOptions,
) -> CanonicalRecording:
    run = ImportRun(path)
    warnings: list[str] = []

    with ExitStack() as stack:
        with run.stage(ImportState.HEADER_READ):
            _require_file(path)
            handle = stack.enter_context(path.open("rb"))
            raw, channel_headers = read_record_header(
                handle, descriptor, path=path, encoding=options.encoding
            )

        with run.stage(ImportState.CALIBRATED):
            labels = [clean_label(header.label) for header in channel_headers]
            roles = classify_channels(labels, options.role_table, detect_type=options.detect_type)
            markers_at = marker_indices(roles)
            if len(markers_at) > 1:
                names = ", ".join(labels[idx] for idx in markers_at)
                raise UnsupportedFeatureError(
                    f"More than one annotation channel is not supported ({names})", path=path
                )
            if len(markers_at) == len(roles):
                raise StructuralError("Recording contains no signal channels", path=path)
            calibrations = [
                passthrough_calibration(header.physical_dimension)
                if role is ChannelRole.MARKER
                else calibrate_channel(header, idx + 1, path=path)
                for idx, (header, role) in enumerate(zip(channel_headers, roles))
            ]
            table = ChannelTable.build(channel_headers, calibrations, roles)

        with run.stage(ImportState.DECODED):
            payload = handle.read()
            decoded = decode_records(
                payload,
                descriptor,
                table,
                raw.record_count,
                apply_offset=options.apply_offset,
                max_workers=options.max_workers,
                path=path,
            )
            raw.record_count = decoded.record_count
            active_spr = [
                spr
                for spr, role in zip(table.samples_per_record, table.roles)
                if role is not ChannelRole.MARKER
            ]
            rate, note = _checked_rate(max(active_spr), raw.record_duration, path)
            if note:
                warnings.append(note)

    signals = decoded.signals
    if needs_reconciliation(active_spr):
        with run.stage(ImportState.RATE_RECONCILED):
            signals, _, messages = reconcile_rates(
                signals,
                table.samples_per_record,
                table.roles,
                table.labels,
                decoded.record_count,
                raw.record_duration,
            )
            warnings.extend(messages)

    with run.stage(ImportState.MARKERS_EXTRACTED):
        keep = [idx for idx in canonical_order(table.roles) if table.roles[idx] is not ChannelRole.MARKER]
        final = table.with_signals(signals).select(keep)
        markers = []
        if markers_at:
            markers = extract_annotation_markers(
                decoded.annotations[markers_at[0]],
                rate,
                final.labels,
                encoding=options.annotation_encoding,
            )

    with run.stage(ImportState.ASSEMBLED):
        recording = assemble(
            raw,
            final.headers,
            final.labels,
            final.roles,
            final.calibrations,
            final.signals,
            rate,
            markers=markers,
            warnings=warnings,
        )

    logger.info("Imported %s (%d channels @ %d Hz)", path.name, recording.channel_count, rate)
    return recording


def import_edf(path: str | Path, options: ImportOptions | None = None, **overrides) -> CanonicalRecording:
    """Import an EDF or EDF+ (continuous) file."""

    return _import_record_based(Path(path), EDF_FORMAT, resolve_options(options, **overrides))


def import_bdf(path: str | Path, options: ImportOptions | None = None, **overrides) -> CanonicalRecording:
    """Import a BDF or BDF+ (continuous) file."""

    return _import_record_based(Path(path), BDF_FORMAT, resolve_options(options, **overrides))


# ---------------------------------------------------------------------------
# BrainVision
# ---------------------------------------------------------------------------


def _referenced_file(vhdr_path: Path, reference: str, what: str) -> Path:
    target = resolve_reference(vhdr_path, reference)
    if not target.is_file():
        raise MissingReferencedFileError(
            f"{what} {target.name} referenced by the header does not exist", path=vhdr_path
        )
    return target


def import_bv(path: str | Path, options: ImportOptions | None = None, **overrides) -> CanonicalRecording:
    """Import a BrainVision recording from its ``.vhdr`` header file.

    The data file must be binary and multiplexed. The marker file is optional;
    if the header names one it has to exist.
    """

    path = Path(path)
    options = resolve_options(options, **overrides)
    run = ImportRun(path)
    warnings: list[str] = []

    with run.stage(ImportState.HEADER_READ):
        _require_file(path)
        bv = read_vhdr(path)
        raw = bv.raw
        if raw.data_format.strip().upper() != "BINARY":
            raise UnsupportedSubFormatError(
                f"BrainVision data format {raw.data_format!r} is not supported (only BINARY)",
                path=path,
            )
        if raw.data_orientation.strip().upper() != "MULTIPLEXED":
            raise UnsupportedSubFormatError(
                f"BrainVision data orientation {raw.data_orientation!r} is not supported "
                "(only MULTIPLEXED)",
                path=path,
            )
        brainvision_dtype(raw.binary_format, path=path)
        if not raw.data_file:
            raise StructuralError("Header does not name a DataFile", path=path)
        data_path = _referenced_file(path, raw.data_file, "Data file")
        marker_path = _referenced_file(path, raw.marker_file, "Marker file") if raw.marker_file else None

    with run.stage(ImportState.CALIBRATED):
        labels = [clean_label(header.label) for header in bv.channels]
        # No in-band annotations in BrainVision; marker-like names are event channels.
        roles = [
            ChannelRole.EVENT if role is ChannelRole.MARKER else role
            for role in classify_channels(labels, options.role_table, detect_type=options.detect_type)
        ]
        calibrations = [
            calibration_from_resolution(header.resolution if header.resolution is not None else 1.0, header.physical_dimension)
            for header in bv.channels
        ]
        table = ChannelTable.build(bv.channels, calibrations, roles)

    with run.stage(ImportState.DECODED):
        signals = decode_multiplexed(
            data_path.read_bytes(),
            table,
            raw.binary_format,
            apply_offset=options.apply_offset,
            path=data_path,
        )
        rate, note = _checked_rate(1e6, raw.sampling_interval, path)
        if note:
            warnings.append(note)
        sample_count = int(signals[0].size)
        raw.record_count = 1
        raw.record_duration = sample_count / rate

    with run.stage(ImportState.MARKERS_EXTRACTED):
        final = table.with_signals(signals).select(canonical_order(table.roles))
        channel_map = {source + 1: position + 1 for position, source in enumerate(final.source_index)}
        markers = []
        if marker_path is not None:
            entries = read_vmrk(marker_path)
            markers = entries_to_markers(entries, channel_map)
            raw.recording_date, raw.recording_time = new_segment_datetime(entries)
        locations = []
        if bv.coordinates:
            locations = [
                spherical_to_location(final.labels[position], *bv.coordinates[source])
                for position, source in enumerate(final.source_index)
            ]

    with run.stage(ImportState.ASSEMBLED):
        recording = assemble(
            raw,
            final.headers,
            final.labels,
            final.roles,
            final.calibrations,
            final.signals,
            rate,
            markers=markers,
            locations=locations,
            warnings=warnings,
        )

    logger.info("Imported %s (%d channels @ %d Hz)", path.name, recording.channel_count, rate)
    return recording


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

IMPORTERS = {
    ".edf": import_edf,
    ".bdf": import_bdf,
    ".vhdr": import_bv,
}


def import_recording(
    path: str | Path,
    options: ImportOptions | None = None,
    **overrides,
) -> CanonicalRecording:
    """Pick the importer from the file extension (case-insensitive)."""

    path = Path(path)
    importer = IMPORTERS.get(path.suffix.lower())
    if importer is None:
        error = UnsupportedFormatError(
            f"Unsupported file extension {path.suffix!r} (supported: {', '.join(IMPORTERS)})",
            path=path,
        )
        error.stage = ImportState.UNOPENED.value
        raise error
    return importer(path, options, **overrides)
