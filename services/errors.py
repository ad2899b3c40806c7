# services/errors.py

class AssessmentError(Exception):
    """Base class for every error raised by the assessment core."""


class InsufficientDataError(AssessmentError):
    """Raised when training is requested with fewer records than required."""

    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(
            f"At least {required} samples are needed to train the model ({available} available)"
        )


class MalformedResponseError(AssessmentError):
    """Raised when a response is confirmed with the wrong number of digits."""

    def __init__(self, expected_length: int, actual_length: int):
        self.expected_length = expected_length
        self.actual_length = actual_length
        super().__init__(
            f"Response must contain exactly {expected_length} digits (got {actual_length})"
        )


class InvalidPhaseError(AssessmentError):
    """Raised when an action is not allowed in the current phase or state."""
