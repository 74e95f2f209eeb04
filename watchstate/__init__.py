"""watchstate — versioned watch-progress storage with background reconciliation."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("watchstate")
except PackageNotFoundError:
    __version__ = "0.1.0"  # fallback for development
