"""Failure taxonomy of the upload pipeline.

Every error carries a stable ``reason`` code that the HTTP layer returns to
callers. Only ``ValidationDeliveryError`` is non-fatal: the pipeline logs it
and still reports success.
"""


class IngressError(Exception):
    reason = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        # Last pipeline state reached before the failure, set by the pipeline
        self.state = ""


class ExtractionError(IngressError):
    reason = "extraction_failed"


class ExtractionCancelledError(ExtractionError):
    reason = "extraction_cancelled"


class ManifestNotFoundError(IngressError):
    reason = "manifest_not_found"


class ManifestParseError(IngressError):
    reason = "manifest_parse_error"


class ManifestValidationError(IngressError):
    reason = "manifest_invalid"


class NoSelectedFilesError(IngressError):
    reason = "no_selected_files"


class UploadError(IngressError):
    reason = "upload_failed"

    def __init__(self, file_name: str, message: str):
        super().__init__(f"failed to upload {file_name}: {message}")
        self.file_name = file_name


class DeliveryError(IngressError):
    reason = "delivery_failed"


class DeliveryTimeoutError(DeliveryError):
    reason = "delivery_timeout"


class DeadlineExceededError(IngressError):
    reason = "deadline_exceeded"


class ValidationDeliveryError(IngressError):
    reason = "validation_delivery_failed"
