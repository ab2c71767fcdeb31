"""contactcache: shared, hash-keyed contact enrichment cache."""

from contactcache.version import __version__

__all__ = ["__version__"]
