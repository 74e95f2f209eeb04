"""External metadata service boundary.

The reconciler only depends on ``MetadataProvider``; ``HttpMetadataProvider``
is the bundled JSON-over-HTTP implementation.
"""

from watchstate.metadata.base import MetadataProvider
from watchstate.metadata.client import HttpMetadataProvider

__all__ = ["HttpMetadataProvider", "MetadataProvider"]
