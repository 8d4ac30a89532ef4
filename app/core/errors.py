"""
Domain error taxonomy.

Each error carries a stable ``code`` and an HTTP status so the API layer can
render a distinct, actionable message per kind.
"""
from typing import Optional, Sequence


class DomainError(Exception):
    code = "domain_error"
    status_code = 400
    message = "Custom domain request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class DomainValidationError(DomainError):
    code = "validation_error"
    status_code = 422
    message = "The domain name is not valid"

    def __init__(self, violations: Sequence, message: Optional[str] = None):
        self.violations = list(violations)
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["violations"] = [
            {"code": v.code, "message": v.message} for v in self.violations
        ]
        return data


class DomainConflict(DomainError):
    code = "conflict"
    status_code = 409
    message = "This domain is already in use. Choose a different domain."


class EntitlementDenied(DomainError):
    code = "entitlement_denied"
    status_code = 403
    message = (
        "Custom domains are not available on your current plan. "
        "Upgrade to Professional or Enterprise to continue."
    )


class DomainNotFound(DomainError):
    code = "not_found"
    status_code = 404
    message = "Domain not found. Refresh and try again."


class TenantNotFound(DomainError):
    code = "tenant_not_found"
    status_code = 404
    message = "Store not found."


class DomainUnverified(DomainError):
    code = "unverified"
    status_code = 409
    message = "Verify the domain's DNS records before making it your primary domain."


class ExternalCheckFailed(DomainError):
    """DNS / certificate collaborator unreachable or timed out.

    Never surfaced as an API error; recorded on the record as ``error_message``.
    """

    code = "external_check_failed"
    status_code = 503
    message = "Still checking your DNS records. Try again in a few minutes."
