"""Exception types for sod-spread.

All of these are fatal: a simulation that hits one aborts rather than
producing a result on inconsistent inputs.
"""


class SodSpreadError(Exception):
    """Base class for sod-spread errors."""


class ConfigurationError(SodSpreadError, ValueError):
    """Invalid or missing configuration value.

    The offending field is available as ``field`` (may be None).
    """

    def __init__(self, message: str, field: str = None):
        super().__init__(message)
        self.field = field


class ShapeMismatch(SodSpreadError, ValueError):
    """Two grids with different dimensions or resolution were combined."""


class DataSourceError(SodSpreadError, RuntimeError):
    """Weather data could not be read, or ran out before the horizon."""
