"""Exception taxonomy raised by the importers.

Every import either returns a complete recording or raises one of the errors
below. The classes also derive from the builtin exception a caller would
naturally catch (``ValueError``, ``FileNotFoundError``, ``NotImplementedError``),
so ``except ValueError`` keeps working for structural and numeric problems.
"""

from __future__ import annotations

from pathlib import Path

STRUCTURAL = "structural"
NOT_FOUND = "not-found"
NUMERIC = "numeric"
UNSUPPORTED = "unsupported"


class BiosigImportError(Exception):
    """Base class for every fatal import failure."""

    kind = "error"

    def __init__(
        self,
        message: str,
        *,
        path: str | Path | None = None,
        channel: int | None = None,
        field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = Path(path) if path is not None else None
        self.channel = channel
        self.field = field
        # Filled in by the importer with the name of the stage that failed.
        self.stage: str | None = None

    def __str__(self) -> str:
        text = self.message
        if self.path is not None:
            text = f"{text} [{self.path.name}]"
        return text


# Structural -----------------------------------------------------------------


class StructuralError(BiosigImportError, ValueError):
    kind = STRUCTURAL


class BadSignatureError(StructuralError):
    """The file does not start with the signature of the expected format."""


class ChannelCountMismatchError(StructuralError):
    """Two header sections disagree on the number of channels."""


class TruncatedPayloadError(StructuralError, EOFError):
    """Fewer bytes are available than the header declares."""


# Missing files ----------------------------------------------------------------


class RecordingNotFoundError(BiosigImportError, FileNotFoundError):
    kind = NOT_FOUND


class MissingReferencedFileError(RecordingNotFoundError):
    """A data or marker file named in a BrainVision header does not exist."""


# Numeric ----------------------------------------------------------------------


class NumericFieldError(BiosigImportError, ValueError):
    kind = NUMERIC


class MalformedFieldError(NumericFieldError):
    """A numeric header field could not be parsed."""

    def __init__(
        self,
        field: str,
        value: str,
        *,
        channel: int | None = None,
        path: str | Path | None = None,
    ) -> None:
        where = f" of channel {channel}" if channel is not None else ""
        super().__init__(
            f"Malformed numeric field '{field}'{where}: {value!r}",
            path=path,
            channel=channel,
            field=field,
        )
        self.value = value


class ZeroRangeCalibrationError(NumericFieldError):
    """digital_max equals digital_min, so no gain can be derived."""

    def __init__(self, channel: int, label: str = "", *, path: str | Path | None = None) -> None:
        name = f" ({label})" if label else ""
        super().__init__(
            f"Channel {channel}{name} has digital_max == digital_min; cannot derive gain",
            path=path,
            channel=channel,
            field="digital_max",
        )


# Unsupported ------------------------------------------------------------------


class UnsupportedFeatureError(BiosigImportError, NotImplementedError):
    kind = UNSUPPORTED


class DiscontinuousRecordingError(UnsupportedFeatureError):
    """EDF+D/BDF+D recordings cannot be mapped onto one contiguous time axis."""


class UnsupportedSubFormatError(UnsupportedFeatureError):
    """ASCII BrainVision data, vectorized orientation or an unknown sample type."""


class UnsupportedFormatError(UnsupportedFeatureError):
    """The file extension does not belong to any supported format."""


# Degraded ---------------------------------------------------------------------


class RateReconciliationWarning(UserWarning):
    """Channels were upsampled to a common rate; the result is best-effort."""
