"""Error taxonomy shared by the catalog manager, the image pipeline and the clients."""

from collections.abc import Mapping, Sequence


class CatalogAdminError(Exception):
    """Base class for all catalog admin errors."""

    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(CatalogAdminError):
    """Required field missing or malformed. Raised before any network call."""


class ImageTooLargeError(ValidationError):
    """Encoded image payload exceeds the size cap."""


class InvalidBase64Error(ValidationError):
    """Image payload is not valid base64."""


class ConflictError(CatalogAdminError):
    """Uniqueness violation reported by the backend."""

    def __init__(self, message: str, identifier: str | None = None) -> None:
        super().__init__(message)
        self.identifier = identifier


class PreconditionError(CatalogAdminError):
    """Operation attempted out of order."""


class NotFoundError(CatalogAdminError):
    """Referenced resource does not exist."""


class TransientError(CatalogAdminError):
    """Network failure, 5xx or malformed response. Safe to retry."""

    retryable = True


class CompressionError(CatalogAdminError):
    """Both compression tiers failed for an image."""


class ImageProcessingError(CatalogAdminError):
    """Save-time image preparation aborted.

    Retryable when every underlying failure was a service-side one.
    """

    def __init__(self, message: str, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class PartialBatchError(CatalogAdminError):
    """Some items of a batch succeeded and some failed.

    Attributes:
        succeeded: Names of the items that went through
        failed: Mapping of item name to failure reason
    """

    def __init__(
        self,
        message: str,
        succeeded: Sequence[str],
        failed: Mapping[str, str],
    ) -> None:
        super().__init__(message)
        self.succeeded = list(succeeded)
        self.failed = dict(failed)
