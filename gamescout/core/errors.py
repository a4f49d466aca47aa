"""
Exception hierarchy for gamescout.

Scanners and the detector recover from transient I/O locally; only
cancellation is allowed to abort a scan.
"""

__all__ = [
    "GameScoutError",
    "ScanCancelledError",
    "ManifestError",
]


class GameScoutError(Exception):
    """Root exception for all gamescout errors."""


class ScanCancelledError(GameScoutError):
    """Raised when a scan observes its cancellation token at a checkpoint."""


class ManifestError(GameScoutError):
    """Raised when a platform config or manifest file cannot be interpreted."""
