"""Top-level package for the EDF/BDF/BrainVision biosignal importer."""

from .reader import (
    CanonicalRecording,
    ImportOptions,
    __version__,
    import_bdf,
    import_bv,
    import_edf,
    import_recording,
)

__license__ = "GPL-3.0-only"

__all__ = [
    "CanonicalRecording",
    "ImportOptions",
    "__license__",
    "__version__",
    "import_bdf",
    "import_bv",
    "import_edf",
    "import_recording",
]
