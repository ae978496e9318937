"""Domain errors and failure typing."""


class BoundaryError(Exception):
    """Base class for boundary resolution failures."""

    error_code = "BOUNDARY_ERROR"


class ConfigError(BoundaryError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class FetchError(BoundaryError):
    """Raised when a single request against a geometry endpoint fails."""

    error_code = "FETCH_ERROR"
