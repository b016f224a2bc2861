from typing import Optional


class StorefrontError(Exception):
    """Base class for errors raised by the order and pricing core."""


class ValidationError(StorefrontError):
    """Request is missing or has malformed fields. Nothing was persisted."""

    def __init__(self, message: str, fields: Optional[dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.fields = fields or {}


class NotFoundError(StorefrontError):
    """Referenced order does not exist."""


class ForbiddenError(StorefrontError):
    """Identity is authenticated but may not access the order."""


class PersistenceError(StorefrontError):
    """Storage operation failed; partial writes were undone before raising."""


class NotificationError(StorefrontError):
    """Email delivery failed. Never propagated past OrderService."""
