"""EDF, BDF and BrainVision import toolkit."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("biosig-ingest")
except PackageNotFoundError:  # pragma: no cover - local editable install only
    __version__ = "0.0.0"

from .config import ImportOptions
from .importer import import_bdf, import_bv, import_edf, import_recording
from .recording import CanonicalRecording

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
