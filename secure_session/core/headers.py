"""
core/headers.py
----------------

Construction of the headers injected into every outgoing request.

These helpers centralise knowledge of the header names agreed with the
backend and the analytics service, and ensure the authorization token
is only ever copied onto requests, never interpreted or logged.
"""

from __future__ import annotations

import uuid
from typing import Dict, Optional

from secure_session.core.interfaces import AnalyticsMetadataProvider, AuthorizationProvider
from secure_session.schemas.http import Request

AUTHORIZATION_HEADER = "Authorization"
TRACKING_ID_HEADER = "x-wl-analytics-tracking-id"
ANALYTICS_METADATA_HEADER = "x-mfp-analytics-metadata"
WWW_AUTHENTICATE_HEADER = "WWW-Authenticate"


def new_tracking_id() -> str:
    """Return a fresh identifier for one request."""
    return str(uuid.uuid4()).upper()


def build_session_headers(
    authorization: AuthorizationProvider,
    analytics: Optional[AnalyticsMetadataProvider] = None,
) -> Dict[str, str]:
    """Create the dictionary of headers the session adds to a request.

    The cached token is included as-is when the provider has one; its
    absence is not an error and the request goes out unauthenticated.
    A tracking identifier is always generated.  Analytics metadata is
    only included when the provider currently holds some.

    :param authorization: source of the cached authorization header
    :param analytics: source of the analytics metadata, if any
    :return: headers to set on the outgoing request
    """
    headers: Dict[str, str] = {}
    auth_header = authorization.cached_authorization_header()
    if auth_header:
        headers[AUTHORIZATION_HEADER] = auth_header
    headers[TRACKING_ID_HEADER] = new_tracking_id()
    if analytics is not None:
        metadata = analytics.current_analytics_metadata()
        if metadata:
            headers[ANALYTICS_METADATA_HEADER] = metadata
    return headers


def decorate_request(
    request: Request,
    authorization: AuthorizationProvider,
    analytics: Optional[AnalyticsMetadataProvider] = None,
) -> Request:
    """Return a copy of ``request`` carrying the session headers.

    ``request`` itself is left untouched so it can be resubmitted later.
    """
    return request.with_headers(build_session_headers(authorization, analytics))
