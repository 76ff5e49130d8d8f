class NoteMatchError(Exception):
    """Base class for all notematch exceptions."""


class ConfigError(NoteMatchError):
    """Raised for missing/malformed configuration."""


class DataValidationError(NoteMatchError):
    """Raised when supplied market data or vectors fail structural validation."""


class InvalidVectorDimension(DataValidationError):
    """Raised when an anchor feature vector has no usable layout."""

    def __init__(self, length: int | None, message: str | None = None):
        self.length = length
        super().__init__(
            message
            or f"anchor feature vector has unsupported dimension {length}; "
            "expected 12 or a legacy layout of 7, 8 or 18"
        )


__all__ = [
    "NoteMatchError",
    "ConfigError",
    "DataValidationError",
    "InvalidVectorDimension",
]
