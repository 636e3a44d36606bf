"""
Core middleware package.

- Error handling with sensitive data sanitization
- Structured logging with PII masking
- Bearer-token authentication dependencies
- Permission and user-authority guards
"""

from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    sanitize_error_message,
)

from core.middleware.logging import (
    StructuredLoggingMiddleware,
    setup_logging,
)

from core.middleware.authentication import (
    AuthenticationError,
    get_current_actor,
    get_current_user,
    get_optional_user,
)

from core.middleware.authorization import (
    AuthorityDenied,
    AuthorizationError,
    InsufficientPermissions,
    check_authority,
    check_permission,
    require_dashboard_access,
    require_permission,
)

__all__ = [
    # Error handling
    "ErrorHandlingMiddleware",
    "setup_error_handlers",
    "sanitize_error_message",
    # Logging
    "StructuredLoggingMiddleware",
    "setup_logging",
    # Authentication
    "AuthenticationError",
    "get_current_actor",
    "get_current_user",
    "get_optional_user",
    # Authorization
    "AuthorityDenied",
    "AuthorizationError",
    "InsufficientPermissions",
    "check_authority",
    "check_permission",
    "require_dashboard_access",
    "require_permission",
]
