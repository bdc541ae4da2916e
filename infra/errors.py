"""
Error taxonomy shared by the ledger, split engine, transcription pipeline
and batch orchestrator.

Structural errors (NotFoundError, InvalidArgumentError, InvalidStateError)
are raised before any write happens. ServiceError covers external AI and
image failures and is always safe for the caller to retry.
"""


class FolioError(Exception):
    """Base class for all folio errors."""

    code = "folio_error"
    retryable = False


class NotFoundError(FolioError):
    code = "not_found"


class InvalidArgumentError(FolioError):
    code = "invalid_argument"


class InvalidStateError(FolioError):
    code = "invalid_state"


class ServiceError(FolioError):
    code = "service_error"
    retryable = True


class ImageUnavailableError(ServiceError):
    code = "image_unavailable"


class DetectionFailedError(ServiceError):
    code = "detection_failed"
