"""
Error taxonomy for gig operations.

Every failure raised by the core carries a ``kind`` (the category a caller
branches on), a specific ``code`` and the HTTP status the handlers render.
"""


class GigCoreError(Exception):
    """Base exception for gig core operations."""
    kind = 'Error'
    status_code = 500

    def __init__(self, code: str, message: str = None):
        self.code = code
        self.message = message or code
        super().__init__(f"{code}: {self.message}")


class NotFoundError(GigCoreError):
    """Gig, report, applicant, request or account absent."""
    kind = 'NotFound'
    status_code = 404


class PermissionDeniedError(GigCoreError):
    """Wrong role, non-owner, or suspended account."""
    kind = 'PermissionDenied'
    status_code = 403


class InvalidStateError(GigCoreError):
    """Operation not legal in the current status."""
    kind = 'InvalidState'
    status_code = 409


class DuplicateError(GigCoreError):
    """Re-application or re-request."""
    kind = 'Duplicate'
    status_code = 409


class ValidationFailedError(GigCoreError):
    """Missing or malformed input."""
    kind = 'ValidationFailed'
    status_code = 400


class ConcurrentModificationError(GigCoreError):
    """Raised when a conditional write loses against a concurrent update."""
    kind = 'ConcurrentModification'
    status_code = 409

    def __init__(self, message: str = 'Record was modified concurrently'):
        super().__init__('ConcurrentModification', message)


class CascadeFailedError(GigCoreError):
    """The moderation batch was rejected; nothing was written."""
    kind = 'CascadeFailed'
    status_code = 500

    def __init__(self, message: str = 'Moderation cascade failed; no changes were applied'):
        super().__init__('CascadeFailed', message)
