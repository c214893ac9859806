"""
Exception types raised below the pipeline boundary.

Extraction and validation problems never show up here: those are returned as
``PipelineFailure`` values. These exceptions cover the cases that stop a
request before (configuration, input) or during (transport) the model call.
"""


class QuizServiceError(Exception):
    """Base class for every error raised by the quiz service."""

    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(QuizServiceError):
    """Credentials or endpoint settings are missing or invalid."""

    code = "configuration-error"


class InvalidInputError(QuizServiceError):
    """Uploaded document was rejected before any network call."""

    code = "invalid-input"


class TransportError(QuizServiceError):
    """The completion provider could not be reached or refused the call."""

    code = "transport-error"
