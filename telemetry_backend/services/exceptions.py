class TelemetryException(Exception):
    """Base exception for telemetry domain errors."""
    pass

class BoundaryViolationError(TelemetryException):
    """Reading timestamp lies outside the characterisation window."""
    pass

class UnknownVendorError(TelemetryException):
    """No poll schedule is declared for a system's vendor."""
    pass

class IngestionError(TelemetryException):
    """Raw readings could not be stored."""
    pass
