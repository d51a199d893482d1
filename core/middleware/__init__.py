"""
Core middleware package.

This package provides the request pipeline components:
- Error handling with sensitive data sanitization
- Structured logging with PII masking
- Authentication with JWT and token revocation
- Authorization resolving each caller's visible jobs, events and applicants
"""

from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    sanitize_error_message,
)

from core.middleware.logging import (
    StructuredLoggingMiddleware,
    setup_logging,
    get_logger,
)

from core.middleware.authentication import (
    AuthenticationMiddleware,
    get_current_user,
    get_current_principal,
    AuthenticationError,
)

from core.middleware.authorization import (
    accessible_job_ids,
    accessible_event_ids,
    accessible_applicant_filter,
    ensure_job_access,
    ensure_event_access,
    ensure_applicant_access,
    can_observe,
    require_roles,
    AuthorizationError,
    AccessDenied,
    InsufficientRole,
)

__all__ = [
    # Error handling
    "ErrorHandlingMiddleware",
    "setup_error_handlers",
    "sanitize_error_message",
    # Logging
    "StructuredLoggingMiddleware",
    "setup_logging",
    "get_logger",
    # Authentication
    "AuthenticationMiddleware",
    "get_current_user",
    "get_current_principal",
    "AuthenticationError",
    # Authorization
    "accessible_job_ids",
    "accessible_event_ids",
    "accessible_applicant_filter",
    "ensure_job_access",
    "ensure_event_access",
    "ensure_applicant_access",
    "can_observe",
    "require_roles",
    "AuthorizationError",
    "AccessDenied",
    "InsufficientRole",
]
