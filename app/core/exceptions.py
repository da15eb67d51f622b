"""
Domain exceptions raised by services and mapped to HTTP responses in app.main
"""
from typing import Any, Dict, Optional


class ServiceError(Exception):
    """Base class for errors that carry an HTTP status code"""
    status_code: int = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(ServiceError):
    status_code = 404


class PermissionDeniedError(ServiceError):
    status_code = 403


class InvalidTransitionError(ServiceError):
    """Booking status change not permitted from the current status"""
    status_code = 400

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot change booking status from {current} to {target}",
            {"current_status": current, "target_status": target}
        )


class ValidationFailedError(ServiceError):
    status_code = 400


class RateLimitExceededError(ServiceError):
    status_code = 429


class PaymentProcessorError(ServiceError):
    """Stripe or PayPal call failed"""
    status_code = 502


class WebhookVerificationError(ServiceError):
    """Raised when a webhook signature or timestamp check fails"""
    status_code = 400


class WebhookProcessingError(ServiceError):
    """Verified webhook whose handler failed; 500 makes the provider retry"""
    status_code = 500


class ServiceUnavailableError(ServiceError):
    """Upstream dependency (CMS) unreachable or not configured"""
    status_code = 503
