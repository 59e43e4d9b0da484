from __future__ import annotations

from dataclasses import dataclass, fields, replace

from .channels import DEFAULT_ROLE_TABLE, RoleTable


@dataclass(frozen=True)
class ImportOptions:
    """Knobs shared by every importer.

    ``apply_offset=False`` reproduces the gain-only scaling ``raw * gain`` that
    ignores the physical/digital minimum offset.
    """

    detect_type: bool = True
    apply_offset: bool = True
    max_workers: int | None = None
    role_table: RoleTable = DEFAULT_ROLE_TABLE
    encoding: str = "latin-1"  # header text
    annotation_encoding: str = "utf-8"  # EDF+ TAL text

    def __post_init__(self) -> None:
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError("max_workers must be a positive integer")


def resolve_options(options: ImportOptions | None = None, **overrides) -> ImportOptions:
    """Merge keyword overrides (``detect_type=False``) into ``options``."""

    base = options or ImportOptions()
    if not overrides:
        return base
    known = {item.name for item in fields(ImportOptions)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise TypeError(f"Unknown import option(s): {', '.join(unknown)}")
    return replace(base, **overrides)
