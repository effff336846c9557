"""Custom exceptions for MarketRec.

Defines specific exception types for better error handling and reporting.
Each exception carries the HTTP status code the API layer responds with.
"""

from typing import Any, Dict, Optional


class MarketRecException(Exception):
    """Base exception for MarketRec errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code for API responses
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class StoreError(MarketRecException):
    """Raised when the relational store cannot be reached or a query fails."""

    def __init__(self, operation: str, error: Exception):
        message = f"Store operation '{operation}' failed: {str(error)}"
        super().__init__(
            message=message,
            status_code=503,
            details={
                "operation": operation,
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )


class ItemNotFoundError(MarketRecException):
    """Raised when an item does not exist."""

    def __init__(self, item_id: str):
        super().__init__(
            message=f"Item '{item_id}' not found",
            status_code=404,
            details={"item_id": item_id},
        )


class ItemNotOnSaleError(MarketRecException):
    """Raised when purchasing an item that is no longer on sale."""

    def __init__(self, item_id: str):
        super().__init__(
            message=f"Item '{item_id}' is not available for purchase",
            status_code=409,
            details={"item_id": item_id},
        )


class NotAuthorizedError(MarketRecException):
    """Raised when a user modifies an item they do not own."""

    def __init__(self, item_id: str, user_id: str):
        super().__init__(
            message=f"User '{user_id}' is not authorized to update item '{item_id}'",
            status_code=403,
            details={"item_id": item_id, "user_id": user_id},
        )


class CannotUpdateSoldItemError(MarketRecException):
    """Raised when updating an item that has already been sold."""

    def __init__(self, item_id: str):
        super().__init__(
            message=f"Item '{item_id}' has been sold and cannot be updated",
            status_code=409,
            details={"item_id": item_id},
        )


class InvalidItemRequestError(MarketRecException):
    """Raised when an item create/update request fails validation."""

    def __init__(self, reason: str):
        super().__init__(
            message=f"Invalid item request: {reason}",
            status_code=400,
            details={"reason": reason},
        )


class AuthenticationRequiredError(MarketRecException):
    """Raised when an endpoint needs a user identity and none was sent."""

    def __init__(self):
        super().__init__(
            message="Authentication required",
            status_code=401,
        )


class EmbeddingError(MarketRecException):
    """Raised when the text embedding provider cannot produce a vector."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Failed to generate embedding: {message}",
            status_code=502,
            details=details,
        )
