"""
Error hierarchy for the GeoLite lookup service
"""


class GeoAPIError(Exception):
    """Base error for the GeoLite lookup service."""


class ConfigError(GeoAPIError):
    """Raised when environment configuration cannot be parsed."""


class StartupError(GeoAPIError):
    """Raised when no database snapshot could be installed at startup."""


class InvalidAddress(GeoAPIError, ValueError):
    """Raised when a lookup address is not a valid IPv4 or IPv6 address."""

    def __init__(self, address: str):
        super().__init__(f"Invalid IP address: {address!r}")
        self.address = address


class SnapshotUnavailable(GeoAPIError):
    """Raised when the store is queried before any snapshot was installed."""


class RefreshError(GeoAPIError):
    """Base error for the database refresh pipeline."""


class FetchError(RefreshError):
    """Raised when the distributor archive could not be downloaded."""


class StagingError(RefreshError):
    """Raised when the downloaded archive could not be unpacked or installed."""


class SnapshotError(RefreshError):
    """Raised when a database file cannot be parsed into a usable snapshot."""
