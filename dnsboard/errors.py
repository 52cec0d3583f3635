"""Error taxonomy shared by the provider client, the mirror and the routes."""

from typing import Any, Dict, Optional

OUTCOME_APPLIED = "applied"
OUTCOME_NOT_APPLIED = "not_applied"
OUTCOME_UNKNOWN = "unknown"


class DnsboardError(Exception):
    """Base exception; carries everything the error response needs."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = dict(details or {})

    def with_context(self, **context: Any) -> "DnsboardError":
        """Attach operator context (zone id, record id, operation)."""
        for key, value in context.items():
            if value is not None:
                self.details.setdefault(key, value)
        return self

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": False, "error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(DnsboardError):
    """Input fails record invariants before any network call."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, fields: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(message, **kwargs)
        if fields:
            self.details["fields"] = fields
        self.details.setdefault("outcome", OUTCOME_NOT_APPLIED)


class Unauthorized(DnsboardError):
    status_code = 401
    code = "UNAUTHORIZED"


class NotFound(DnsboardError):
    status_code = 404
    code = "NOT_FOUND"


class ProviderError(DnsboardError):
    """The provider answered with a structured error."""

    code = "PROVIDER_ERROR"

    def __init__(self, message: str, provider_code: Any = None, http_status: int = 500, **kwargs):
        # a 2xx carrying success:false is still a failure for our callers
        status = http_status if http_status >= 400 else 500
        super().__init__(message, status_code=status, **kwargs)
        self.provider_code = provider_code
        self.http_status = http_status
        if provider_code is not None:
            self.details.setdefault("provider_code", provider_code)


class ProviderUnreachable(DnsboardError):
    """Transport failure talking to the provider."""

    status_code = 503
    code = "PROVIDER_UNREACHABLE"


class OutcomeUnknown(ProviderUnreachable):
    """A mutating call was sent but no answer came back."""

    status_code = 504
    code = "OUTCOME_UNKNOWN"

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.details["outcome"] = OUTCOME_UNKNOWN


class RateLimited(DnsboardError):
    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, message: str, retry_after: int = 1, source: str = "local", **kwargs):
        if source == "provider":
            kwargs.setdefault("code", "PROVIDER_RATE_LIMITED")
        super().__init__(message, **kwargs)
        self.retry_after = max(1, int(retry_after))
        self.source = source
        self.details["retry_after"] = self.retry_after


class CacheFault(DnsboardError):
    """TTL cache or mirror malfunction; callers degrade instead of failing."""

    code = "CACHE_FAULT"
