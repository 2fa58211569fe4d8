# Overview: Domain error hierarchy shared by services and routes.

from __future__ import annotations


class CannasaasError(Exception):
    """
    Base class for errors that are safe to show to the caller.

    Carries a human-readable message plus a details dict so routes can
    render enough context for the user to correct and retry.
    """
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(CannasaasError):
    """Bad input: empty cart, missing delivery fields, unknown tax jurisdiction."""
    status_code = 400


class NotFoundError(CannasaasError):
    status_code = 404


class ComplianceDeniedError(CannasaasError):
    """Age, ID or purchase-limit rule rejected the sale."""
    status_code = 403

    def __init__(self, reason: str, details: dict | None = None):
        super().__init__(reason, details)
        self.reason = reason


class InvalidTransitionError(CannasaasError):
    status_code = 409

    def __init__(self, from_status: str, to_status: str, allowed: list[str] | None = None):
        allowed = allowed or []
        message = f"Cannot transition from {from_status} to {to_status}"
        super().__init__(
            message,
            details={
                "from_status": from_status,
                "to_status": to_status,
                "allowed": allowed,
            },
        )
        self.from_status = from_status
        self.to_status = to_status
        self.allowed = allowed
