"""Exception types raised across the explorer."""


class ZoneExplorerError(Exception):
    """Base class for explorer failures that reach the caller."""


class DecodeError(ZoneExplorerError):
    """Shapefile buffers are malformed, incomplete or do not belong together."""


class CacheError(ZoneExplorerError):
    """Base class for feature cache failures."""


class CacheUnavailable(CacheError):
    """The cache storage cannot be opened, read or written."""


class CacheCorrupt(CacheError):
    """A cache entry exists but its payload cannot be decoded."""
