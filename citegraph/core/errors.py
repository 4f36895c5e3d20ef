"""
exception types for citegraph.
"""


class CitegraphError(Exception):
    """base class for citegraph errors."""


class StorageError(CitegraphError):
    """article store unavailable or query failed. fatal for a build."""


class LookupFailed(CitegraphError):
    """external bibliographic lookup failed. callers degrade, never fail."""


class GraphBuildCancelled(CitegraphError):
    """enclosing request was cancelled while the graph was being built."""
