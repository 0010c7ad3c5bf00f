"""
Exceptions raised by the meter reading pipeline.
API routes translate these into HTTP errors.
"""
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from meter_reader.models.quality import QualityScore


class MeterReaderError(Exception):
    """Base class for all pipeline errors."""


class QualityRejected(MeterReaderError):
    """Frame failed the quality gate (user should retake)."""

    def __init__(self, reason: str, score: Optional["QualityScore"] = None):
        self.reason = reason
        self.score = score
        super().__init__(reason)


class PreprocessFailure(MeterReaderError):
    """Source image is malformed or could not be decoded."""


class RecognizerError(MeterReaderError):
    """Base class for text recognizer failures."""


class RecognizerUnavailable(RecognizerError):
    """Recognizer engine is missing or failed to initialize."""


class RecognizerTimeout(RecognizerError):
    """Recognizer did not answer in time."""


class RecognizerFailure(RecognizerError):
    """Recognizer returned an error for a single request."""


class NoValueFound(MeterReaderError):
    """Target label/unit pattern is absent from the recognized text."""

    def __init__(self, message: str, raw_text: str = "", filtered_text: str = ""):
        self.raw_text = raw_text
        self.filtered_text = filtered_text
        super().__init__(message)


class InvalidFilterPattern(MeterReaderError):
    """A user supplied filter regex does not compile."""

    def __init__(self, pattern: str, error: Exception):
        self.pattern = pattern
        self.error = error
        super().__init__(f"Invalid filter pattern {pattern!r}: {error}")


class AlreadyProcessing(MeterReaderError):
    """A capture is already in flight."""


class CaptureCancelled(MeterReaderError):
    """The in-flight capture was cancelled before it finished."""
