"""Application error taxonomy.

Services raise these; the API layer turns them into
``{"success": false, ...}`` responses with the matching status code.
"""

from typing import Any, Optional

class AppError(Exception):
    status_code = 500
    default_message = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

class ValidationError(AppError):
    status_code = 400
    default_message = "Validation failed"

class PaymentNotConfirmed(AppError):
    status_code = 400
    default_message = "Order is not paid"

class Unauthorized(AppError):
    status_code = 401
    default_message = "Unauthorized"

class Forbidden(AppError):
    status_code = 403
    default_message = "Forbidden"

class NotFound(AppError):
    status_code = 404
    default_message = "Not found"

class Conflict(AppError):
    status_code = 409
    default_message = "Conflict"

class InsufficientStock(Conflict):
    default_message = "Insufficient stock"

class InvalidTransition(Conflict):
    default_message = "Fulfillment transition not allowed"

class ExternalServiceError(AppError):
    status_code = 502
    default_message = "External service error"

    def __init__(self, message: Optional[str] = None, details: Any = None, timeout: bool = False):
        super().__init__(message, details)
        if timeout:
            self.status_code = 504

class InternalError(AppError):
    status_code = 500
