class IngestionError(Exception):
    """Base class for failures surfaced to the uploading user."""

    status_code = 500
    default_message = "Statement processing failed."

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class DetectionFailed(IngestionError):
    status_code = 422
    default_message = "Could not determine the structure of the statement."


class RateLimited(IngestionError):
    status_code = 429
    default_message = "Request limit exceeded. Please try again in a few moments."


class QuotaExceeded(IngestionError):
    status_code = 402
    default_message = "Analysis credits exhausted. Please add funds to your account."


class ExtractionFailed(IngestionError):
    status_code = 422
    default_message = "No transactions were found in the statement."


class CommitFailed(IngestionError):
    status_code = 502
    default_message = "The transactions could not be saved. Your review is kept; please retry."


class ReviewError(IngestionError):
    status_code = 400
    default_message = "Invalid review operation."
