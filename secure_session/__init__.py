"""
secure_session package
----------------------

HTTP session wrapper that adds authorization and analytics headers to
outgoing requests and answers authentication challenges with a single
reauthorized retry.  Importing ``secure_session`` exposes the session
facade and the bundled collaborators.
"""

from .core.errors import AuthorizationFailedError, TaskCancelledError
from .clients.delegate import SessionDelegate
from .schemas.http import Request, Response
from .services.analytics import DeviceAnalyticsMetadata
from .services.authorization import TokenAuthorizationProvider
from .session import SecureSession

__all__ = [
    "AuthorizationFailedError",
    "DeviceAnalyticsMetadata",
    "Request",
    "Response",
    "SecureSession",
    "SessionDelegate",
    "TaskCancelledError",
    "TokenAuthorizationProvider",
]
