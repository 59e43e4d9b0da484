# This file includes logic adapted from MNE-Python's mne/io/edf/edf.py.
# MNE-Python is released under the BSD-3-Clause licence. Copyright the MNE-Python contributors.

"""EDF+/BDF+ annotation channels and BrainVision `.vmrk` marker files."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from .errors import BadSignatureError, MalformedFieldError
from .header import (
    decode_text_file,
    is_brainvision_identification,
    numbered_entries,
    parse_ini_sections,
    unescape_brainvision,
)
from .types import Marker

logger = logging.getLogger(__name__)

ANNOTATION_ID = "annotation"

# One Time-stamped Annotation List: onset, optional duration, annotation texts.
_TAL = re.compile(rb"([+-]\d+(?:\.\d*)?)(?:\x15(\d+(?:\.\d*)?))?\x14(.*?)\x14\x00", re.DOTALL)
_CHANNEL_BINDING = "@@"


def seconds_to_samples(seconds: float, sampling_rate: int) -> int:
    return int(round(seconds * sampling_rate))


# ---------------------------------------------------------------------------
# In-band (EDF+/BDF+)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Annotation:
    onset: float
    duration: float
    description: str


def parse_tal_records(records: Sequence[bytes], *, encoding: str = "utf-8") -> list[Annotation]:
    """Parse the per-record bytes of an annotation channel.

    The first TAL of every record keeps time; its empty first annotation is
    dropped and any further texts in it are kept. Onsets are returned relative
    to the first record's time-keeping onset, i.e. to the first sample.
    """

    annotations: list[Annotation] = []
    start_offset = 0.0
    for record_idx, record in enumerate(records):
        for tal_idx, match in enumerate(_TAL.finditer(record)):
            onset = float(match.group(1))
            duration = float(match.group(2)) if match.group(2) else 0.0
            texts = [
                text.decode(encoding, errors="replace")
                for text in match.group(3).split(b"\x14")
                if text
            ]
            if record_idx == 0 and tal_idx == 0:
                start_offset = onset
            for text in texts:
                annotations.append(Annotation(onset=onset, duration=duration, description=text))
    return [
        Annotation(onset=item.onset - start_offset, duration=item.duration, description=item.description)
        for item in annotations
    ]


def annotations_to_markers(
    annotations: Sequence[Annotation],
    sampling_rate: int,
    labels: Sequence[str] = (),
) -> list[Marker]:
    """Convert seconds to sample indices; ``text@@label`` binds to that channel."""

    positions = {label: idx + 1 for idx, label in enumerate(labels)}
    markers: list[Marker] = []
    for item in annotations:
        description = item.description
        channel = 0
        if _CHANNEL_BINDING in description:
            text, _, bound = description.rpartition(_CHANNEL_BINDING)
            if bound in positions:
                description, channel = text, positions[bound]
        markers.append(
            Marker(
                id=ANNOTATION_ID,
                start=seconds_to_samples(item.onset, sampling_rate),
                length=seconds_to_samples(item.duration, sampling_rate),
                description=description,
                channel=channel,
            )
        )
    return sorted(markers, key=lambda marker: marker.start)


def extract_annotation_markers(
    records: Sequence[bytes],
    sampling_rate: int,
    labels: Sequence[str] = (),
    *,
    encoding: str = "utf-8",
) -> list[Marker]:
    markers = annotations_to_markers(parse_tal_records(records, encoding=encoding), sampling_rate, labels)
    logger.debug("Extracted %d annotations from %d records", len(markers), len(records))
    return markers


# ---------------------------------------------------------------------------
# Out-of-band (BrainVision)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MarkerEntry:
    """One ``Mk<n>=`` line; ``position`` is 1-based as written in the file."""

    type: str
    description: str
    position: int
    length: int
    channel: int
    date: str = ""


def parse_vmrk(text: str, *, path: Path | None = None) -> list[MarkerEntry]:
    lines = text.splitlines()
    first = next((line for line in lines if line.strip()), "")
    if not is_brainvision_identification(first):
        raise BadSignatureError("This is not a BrainVision .vmrk file", path=path)

    sections = parse_ini_sections(lines[1:])
    entries: list[MarkerEntry] = []
    for number, value in numbered_entries(sections.get("markerinfos", [])):
        parts = value.split(",")
        if len(parts) < 5:
            raise MalformedFieldError(f"Mk{number}", value, path=path)
        fields = {}
        for name, raw in (("position", parts[2]), ("length", parts[3]), ("channel", parts[4])):
            try:
                fields[name] = int(raw.strip())
            except ValueError:
                raise MalformedFieldError(f"Mk{number} {name}", raw, path=path) from None
        entries.append(
            MarkerEntry(
                type=unescape_brainvision(parts[0]),
                description=unescape_brainvision(parts[1]),
                position=fields["position"],
                length=fields["length"],
                channel=fields["channel"],
                date=parts[5].strip() if len(parts) >= 6 else "",
            )
        )
    return entries


def read_vmrk(path: Path) -> list[MarkerEntry]:
    with path.open("rb") as handle:
        text = decode_text_file(handle.read())
    return parse_vmrk(text, path=path)


def entries_to_markers(
    entries: Sequence[MarkerEntry],
    channel_map: Mapping[int, int] | None = None,
) -> list[Marker]:
    """Zero-based starts; ``channel_map`` renumbers file channels (0 stays "all")."""

    channel_map = channel_map or {}
    markers = [
        Marker(
            id=entry.type,
            start=max(entry.position - 1, 0),
            length=entry.length,
            description=entry.description,
            channel=channel_map.get(entry.channel, entry.channel) if entry.channel else 0,
        )
        for entry in entries
    ]
    return sorted(markers, key=lambda marker: marker.start)


def new_segment_datetime(entries: Sequence[MarkerEntry]) -> tuple[str, str]:
    """Recording date and time (``dd.mm.yy``, ``hh.mm.ss``) from the New Segment marker."""

    for entry in entries:
        if entry.type.strip().lower() == "new segment" and len(entry.date) >= 14:
            stamp = entry.date
            if not stamp[:14].isdigit():
                continue
            date = f"{stamp[6:8]}.{stamp[4:6]}.{stamp[2:4]}"
            time = f"{stamp[8:10]}.{stamp[10:12]}.{stamp[12:14]}"
            return date, time
    return "", ""
