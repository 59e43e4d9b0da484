"""Header parsing for EDF/BDF and BrainVision recordings."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from pathlib import Path
from typing import BinaryIO

from .errors import (
    BadSignatureError,
    ChannelCountMismatchError,
    DiscontinuousRecordingError,
    MalformedFieldError,
    StructuralError,
    TruncatedPayloadError,
)
from .formats import CHANNEL_HEADER_BYTES, GENERAL_HEADER_BYTES, FormatDescriptor
from .types import BrainVisionHeader, ChannelHeader, FileType, RawHeader

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _read_exact(handle: BinaryIO, size: int, what: str, path: Path | None) -> bytes:
    data = handle.read(size)
    if len(data) != size:
        raise TruncatedPayloadError(
            f"Unexpected end of file while reading {what} ({len(data)} of {size} bytes)",
            path=path,
        )
    return data


def _text(raw: bytes, encoding: str) -> str:
    return raw.decode(encoding, errors="replace").replace("\x00", " ").strip()


def _parse_int(text: str, field: str, *, channel: int | None = None, path: Path | None = None) -> int:
    try:
        return int(text.strip())
    except ValueError:
        raise MalformedFieldError(field, text, channel=channel, path=path) from None


def _parse_float(text: str, field: str, *, channel: int | None = None, path: Path | None = None) -> float:
    try:
        return float(text.strip())
    except ValueError:
        raise MalformedFieldError(field, text, channel=channel, path=path) from None


# ---------------------------------------------------------------------------
# EDF / BDF
# ---------------------------------------------------------------------------


def parse_general_header(
    block: bytes,
    descriptor: FormatDescriptor,
    *,
    path: Path | None = None,
    encoding: str = "latin-1",
) -> RawHeader:
    """Parse the 256-byte general header.

    The signature is checked first and discontinuous recordings are rejected
    here, before any channel header or payload byte is looked at.
    """

    if len(block) < GENERAL_HEADER_BYTES:
        raise TruncatedPayloadError("General header shorter than 256 bytes", path=path)
    if not descriptor.matches(block):
        raise BadSignatureError(
            f"File is not a {descriptor.name.value} file (signature {block[:8]!r})", path=path
        )

    fields = {
        name: block[offset : offset + width]
        for name, (offset, width) in descriptor.general_offsets.items()
    }
    reserved = _text(fields["reserved"], encoding)
    if descriptor.is_discontinuous(reserved):
        raise DiscontinuousRecordingError(
            f"{descriptor.discontinuous_tag()} (interrupted recordings) is not supported",
            path=path,
        )

    header_bytes = _parse_int(_text(fields["header_bytes"], encoding), "header_bytes", path=path)
    record_count = _parse_int(_text(fields["record_count"], encoding), "record_count", path=path)
    record_duration = _parse_float(
        _text(fields["record_duration"], encoding), "record_duration", path=path
    )
    channel_count = _parse_int(_text(fields["channel_count"], encoding), "channel_count", path=path)

    if record_count < -1:
        raise MalformedFieldError("record_count", str(record_count), path=path)
    if record_duration <= 0:
        raise MalformedFieldError("record_duration", str(record_duration), path=path)
    if channel_count <= 0:
        raise StructuralError("Header declares no channels", path=path)
    expected_bytes = GENERAL_HEADER_BYTES + channel_count * CHANNEL_HEADER_BYTES
    if header_bytes != expected_bytes:
        raise ChannelCountMismatchError(
            f"Header size {header_bytes} does not match {channel_count} channels "
            f"(expected {expected_bytes} bytes)",
            path=path,
        )

    return RawHeader(
        filename=path or Path(),
        file_type=descriptor.file_type(reserved),
        patient=_text(fields["patient"], encoding),
        recording=_text(fields["recording"], encoding),
        recording_date=_text(fields["start_date"], encoding),
        recording_time=_text(fields["start_time"], encoding),
        data_offset=header_bytes,
        record_count=record_count,
        record_duration=record_duration,
        channel_count=channel_count,
        reserved=reserved,
    )


def parse_channel_headers(
    block: bytes,
    channel_count: int,
    descriptor: FormatDescriptor,
    *,
    path: Path | None = None,
    encoding: str = "latin-1",
) -> list[ChannelHeader]:
    """Parse the per-channel block (``channel_count * 256`` bytes)."""

    if len(block) < channel_count * CHANNEL_HEADER_BYTES:
        raise TruncatedPayloadError("Channel header block is truncated", path=path)

    columns: dict[str, list[str]] = {}
    position = 0
    for name, width in descriptor.channel_fields:
        columns[name] = [
            _text(block[position + idx * width : position + (idx + 1) * width], encoding)
            for idx in range(channel_count)
        ]
        position += width * channel_count

    headers: list[ChannelHeader] = []
    for idx in range(channel_count):
        channel = idx + 1
        samples = _parse_int(
            columns["samples_per_record"][idx], "samples_per_record", channel=channel, path=path
        )
        if samples <= 0:
            raise MalformedFieldError("samples_per_record", str(samples), channel=channel, path=path)
        headers.append(
            ChannelHeader(
                label=columns["label"][idx],
                transducer=columns["transducer"][idx],
                physical_dimension=columns["physical_dimension"][idx],
                physical_min=_parse_float(
                    columns["physical_min"][idx], "physical_min", channel=channel, path=path
                ),
                physical_max=_parse_float(
                    columns["physical_max"][idx], "physical_max", channel=channel, path=path
                ),
                digital_min=_parse_int(
                    columns["digital_min"][idx], "digital_min", channel=channel, path=path
                ),
                digital_max=_parse_int(
                    columns["digital_max"][idx], "digital_max", channel=channel, path=path
                ),
                prefiltering=columns["prefiltering"][idx],
                samples_per_record=samples,
            )
        )
    return headers


def read_record_header(
    handle: BinaryIO,
    descriptor: FormatDescriptor,
    *,
    path: Path | None = None,
    encoding: str = "latin-1",
) -> tuple[RawHeader, list[ChannelHeader]]:
    """Read general and channel headers, leaving ``handle`` at the first data record."""

    general = _read_exact(handle, GENERAL_HEADER_BYTES, "general header", path)
    raw = parse_general_header(general, descriptor, path=path, encoding=encoding)
    block = _read_exact(
        handle, raw.channel_count * CHANNEL_HEADER_BYTES, "channel headers", path
    )
    channels = parse_channel_headers(
        block, raw.channel_count, descriptor, path=path, encoding=encoding
    )
    logger.debug(
        "%s header: %d channels, %d records of %.3f s",
        raw.file_type.value,
        raw.channel_count,
        raw.record_count,
        raw.record_duration,
    )
    return raw, channels


# ---------------------------------------------------------------------------
# BrainVision
# ---------------------------------------------------------------------------

_CHANNEL_KEY = re.compile(r"^(ch|mk)(\d+)$", re.IGNORECASE)


def decode_text_file(data: bytes) -> str:
    """BrainVision files are UTF-8 or a Windows code page; fall back to latin-1."""

    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def is_brainvision_identification(line: str) -> bool:
    return line.replace(" ", "").lower().startswith("brainvision")


def parse_ini_sections(lines: Iterable[str]) -> dict[str, list[tuple[str, str]]]:
    """Group ``key=value`` lines by ``[section]``.

    Section names are lower-cased with spaces removed; keys keep their case and
    order. Comment lines (``;``), blank lines and lines without ``=`` are skipped.
    """

    sections: dict[str, list[tuple[str, str]]] = {}
    current: list[tuple[str, str]] | None = None
    for raw_line in lines:
        line = raw_line.strip()
        if not line or line.startswith(";"):
            continue
        if line.startswith("[") and line.endswith("]"):
            name = line[1:-1].replace(" ", "").lower()
            current = sections.setdefault(name, [])
            continue
        if current is None or "=" not in line:
            continue
        key, value = line.split("=", 1)
        current.append((key.strip(), value.strip()))
    return sections


def numbered_entries(entries: Iterable[tuple[str, str]]) -> list[tuple[int, str]]:
    """Return ``(n, value)`` for ``Ch<n>``/``Mk<n>`` keys, sorted by ``n``."""

    numbered = []
    for key, value in entries:
        match = _CHANNEL_KEY.match(key)
        if match:
            numbered.append((int(match.group(2)), value))
    return sorted(numbered, key=lambda item: item[0])


def unescape_brainvision(text: str) -> str:
    # Commas inside values are written as "\1".
    return text.replace("\\1", ",")


def resolve_reference(vhdr_path: Path, reference: str) -> Path:
    """Resolve a DataFile/MarkerFile entry relative to the header file."""

    name = reference.replace("$b", vhdr_path.stem)
    candidate = Path(name)
    if not candidate.is_absolute():
        candidate = vhdr_path.parent / candidate
    return candidate


def parse_vhdr(text: str, *, path: Path | None = None) -> BrainVisionHeader:
    lines = text.splitlines()
    first = next((line for line in lines if line.strip()), "")
    if not is_brainvision_identification(first):
        raise BadSignatureError("This is not a BrainVision .vhdr file", path=path)

    sections = parse_ini_sections(lines[1:])
    common = {key.lower(): value for key, value in sections.get("commoninfos", [])}
    binary = {key.lower(): value for key, value in sections.get("binaryinfos", [])}

    if "numberofchannels" not in common:
        raise MalformedFieldError("NumberOfChannels", "<missing>", path=path)
    if "samplinginterval" not in common:
        raise MalformedFieldError("SamplingInterval", "<missing>", path=path)
    channel_count = _parse_int(common["numberofchannels"], "NumberOfChannels", path=path)
    sampling_interval = _parse_float(common["samplinginterval"], "SamplingInterval", path=path)
    if channel_count <= 0:
        raise StructuralError("Header declares no channels", path=path)
    if sampling_interval <= 0:
        raise MalformedFieldError("SamplingInterval", common["samplinginterval"], path=path)

    entries = numbered_entries(sections.get("channelinfos", []))
    if len(entries) != channel_count:
        raise ChannelCountMismatchError(
            f"NumberOfChannels is {channel_count} but [Channel Infos] lists {len(entries)} channels",
            path=path,
        )

    channels: list[ChannelHeader] = []
    for idx, (_, value) in enumerate(entries):
        channel = idx + 1
        parts = value.split(",")
        resolution_text = parts[2].strip() if len(parts) >= 3 else ""
        resolution = (
            _parse_float(resolution_text, "resolution", channel=channel, path=path)
            if resolution_text
            else 1.0
        )
        channels.append(
            ChannelHeader(
                label=unescape_brainvision(parts[0]),
                reference=unescape_brainvision(parts[1]) if len(parts) >= 2 else "",
                resolution=resolution,
                physical_dimension=parts[3].strip() if len(parts) >= 4 else "",
            )
        )

    coordinates: list[tuple[float, float, float]] = []
    coordinate_entries = numbered_entries(sections.get("coordinates", []))
    if coordinate_entries:
        if len(coordinate_entries) != channel_count:
            raise ChannelCountMismatchError(
                f"[Coordinates] lists {len(coordinate_entries)} channels, expected {channel_count}",
                path=path,
            )
        for idx, (_, value) in enumerate(coordinate_entries):
            parts = value.split(",")
            if len(parts) < 3:
                raise MalformedFieldError("coordinates", value, channel=idx + 1, path=path)
            coordinates.append(
                tuple(
                    _parse_float(part, "coordinates", channel=idx + 1, path=path)
                    for part in parts[:3]
                )
            )

    if "softwarefilters" in sections:
        logger.info("BrainVision software filters are not applied")

    raw = RawHeader(
        filename=path or Path(),
        file_type=FileType.BRAINVISION,
        channel_count=channel_count,
        data_file=common.get("datafile", ""),
        marker_file=common.get("markerfile", ""),
        data_format=common.get("dataformat", "BINARY"),
        data_orientation=common.get("dataorientation", "MULTIPLEXED"),
        binary_format=binary.get("binaryformat", "INT_16"),
        sampling_interval=sampling_interval,
    )
    return BrainVisionHeader(raw=raw, channels=channels, coordinates=coordinates)


def read_vhdr(path: Path) -> BrainVisionHeader:
    with path.open("rb") as handle:
        text = decode_text_file(handle.read())
    return parse_vhdr(text, path=path)
