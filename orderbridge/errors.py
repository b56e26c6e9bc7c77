"""Webhook ingestion error taxonomy

Every error carries the HTTP status the sending platform should see, a
short machine-readable code for the response body and whether the event
may succeed on a later replay through the retry queue.
"""

from typing import Optional


class IngestError(Exception):
    """Base class for webhook ingestion failures"""

    status_code = 500
    code = "internal_error"
    retryable = False

    def __init__(self, message: str = "", code: Optional[str] = None):
        super().__init__(message or self.code)
        if code:
            self.code = code


class AuthenticationError(IngestError):
    """Missing or invalid signature, or no tenant-bound secret"""

    status_code = 401
    code = "unauthorized"


class TenantResolutionError(IngestError):
    """No active integration (or branch) for the tenant hint and platform"""

    status_code = 404
    code = "integration_not_found"
    retryable = True


class IntegrationConfigError(IngestError):
    """More than one active integration matched a tenant hint and platform"""

    status_code = 500
    code = "integration_misconfigured"


class UnknownPlatformError(IngestError):
    """No adapter is registered for the requested platform"""

    status_code = 404
    code = "unknown_platform"


class DecodeError(IngestError):
    """Payload is not JSON or does not match the platform's schema"""

    status_code = 400
    code = "invalid_payload"


class PersistenceError(IngestError):
    """Storage failed while applying an event"""

    status_code = 500
    code = "persistence_failure"
    retryable = True


class SchedulingError(IngestError):
    """An acceptance deadline action failed to fire or to notify the platform"""

    code = "scheduling_failure"


class MissingTenantError(IngestError):
    """Webhook URL carries no tenant routing parameter"""

    status_code = 400
    code = "missing_org"
