"""Scan a corpus of EDF/BDF/BrainVision files and report import coverage."""

from __future__ import annotations

import argparse
import csv
import json
import logging
from pathlib import Path

from biosig_ingest.reader.errors import BiosigImportError
from biosig_ingest.reader.importer import IMPORTERS, import_recording
from biosig_ingest.reader.types import ChannelRole

FIELDS = [
    "file",
    "format",
    "channels",
    "signal_channels",
    "event_channels",
    "unknown_channels",
    "sampling_rate",
    "duration_s",
    "markers",
    "warnings",
    "stage",
    "error",
]


def _collect_files(root: Path, pattern: str | None) -> list[Path]:
    if pattern:
        files = sorted(root.glob(pattern))
    else:
        files = sorted(path for path in root.rglob("*") if path.suffix.lower() in IMPORTERS)
    return [path for path in files if path.is_file()]


def _scan_file(path: Path) -> dict[str, object]:
    try:
        recording = import_recording(path)
    except BiosigImportError as exc:
        return {
            "file": str(path),
            "format": None,
            "channels": 0,
            "signal_channels": 0,
            "event_channels": 0,
            "unknown_channels": 0,
            "sampling_rate": 0,
            "duration_s": 0.0,
            "markers": 0,
            "warnings": 0,
            "stage": exc.stage or "",
            "error": str(exc),
        }

    types = recording.channel_types
    return {
        "file": str(path),
        "format": recording.header["file_type"],
        "channels": recording.channel_count,
        "signal_channels": sum(1 for role in types if role is ChannelRole.SIGNAL),
        "event_channels": sum(1 for role in types if role is ChannelRole.EVENT),
        "unknown_channels": sum(1 for role in types if role is ChannelRole.UNKNOWN),
        "sampling_rate": recording.sampling_rate,
        "duration_s": round(recording.duration_seconds, 3),
        "markers": len(recording.markers),
        "warnings": len(recording.warnings),
        "stage": "",
        "error": "",
    }


def _write_csv(rows: list[dict[str, object]], output: Path) -> None:
    with output.open("w", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=FIELDS)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)


def _write_json(rows: list[dict[str, object]], output: Path) -> None:
    payload = {"files": rows}
    output.write_text(json.dumps(payload, indent=2))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Import every EDF/BDF/BrainVision file under a folder and report coverage."
    )
    parser.add_argument("--root", type=Path, default=Path("."), help="Root folder to scan")
    parser.add_argument(
        "--pattern",
        default=None,
        help="Glob pattern to match files (default: every .edf, .bdf and .vhdr below root)",
    )
    parser.add_argument("--csv", type=Path, default=None, help="Write CSV output to this file")
    parser.add_argument("--json", type=Path, default=None, help="Write JSON output to this file")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    files = _collect_files(args.root, args.pattern)
    rows = [_scan_file(path) for path in files]

    totals = {
        "files": len(rows),
        "errors": sum(1 for row in rows if row.get("error")),
        "markers": sum(int(row["markers"]) for row in rows),
        "warnings": sum(int(row["warnings"]) for row in rows),
    }

    print("files,errors,markers,warnings")
    print(f"{totals['files']},{totals['errors']},{totals['markers']},{totals['warnings']}")

    if args.csv:
        _write_csv(rows, args.csv)
    if args.json:
        _write_json(rows, args.json)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
