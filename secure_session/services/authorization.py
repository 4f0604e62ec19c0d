"""
services/authorization.py
-------------------------

Bearer-token authorization provider.

Obtains an access token from an OAuth2-style token endpoint using the
client credentials grant, caches it and exposes it as an
``Authorization: Bearer <token>`` header.  Challenges are recognised
for 401 and 403 responses whose ``WWW-Authenticate`` header uses the
``Bearer`` scheme and, when a realm is configured, names that realm.

Token requests run on a single background thread so concurrent
refreshes are serialised and never block the caller.
"""

from __future__ import annotations

import json
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Optional

import httpx

from secure_session.core.config import Settings, get_settings
from secure_session.core.interfaces import CompletionHandler
from secure_session.logging_config import log_call, logger
from secure_session.schemas.http import Response

CHALLENGE_STATUS = {401, 403}


class TokenAuthorizationProvider:
    """Caches a bearer token and refreshes it from a token endpoint."""

    def __init__(
        self,
        token_url: str,
        *,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        realm: Optional[str] = None,
        scope: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ) -> None:
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.realm = realm
        self.scope = scope
        self._client = client or httpx.Client(timeout=timeout)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="secure-session-auth")
        self._token: Optional[str] = None
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs: Any) -> "TokenAuthorizationProvider":
        """Build a provider from ``SECURE_SESSION_*`` settings.

        :raises ValueError: if no token URL is configured
        """
        settings = settings or get_settings()
        if not settings.token_url:
            raise ValueError("SECURE_SESSION_TOKEN_URL is not configured")
        return cls(
            settings.token_url,
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            realm=settings.auth_realm,
            timeout=settings.connect_timeout,
            **kwargs,
        )

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        self._client.close()

    def cached_authorization_header(self) -> Optional[str]:
        with self._lock:
            token = self._token
        return f"Bearer {token}" if token else None

    def clear_authorization(self) -> None:
        """Forget the cached token."""
        with self._lock:
            self._token = None

    @log_call
    def is_authorization_required(self, status_code: int, www_authenticate: str) -> bool:
        if status_code not in CHALLENGE_STATUS:
            return False
        header = (www_authenticate or "").strip()
        if not header.lower().startswith("bearer"):
            return False
        if self.realm is None:
            return True
        return f'realm="{self.realm}"' in header or f"realm={self.realm}" in header

    def obtain_authorization(self, callback: CompletionHandler) -> Future:
        """Request a new token in the background and report to ``callback``.

        The callback receives the token endpoint's response, or an error
        if the endpoint could not be reached or returned no token.
        """
        return self._executor.submit(self._obtain, callback)

    def _form(self) -> Dict[str, str]:
        form = {"grant_type": "client_credentials"}
        if self.client_id:
            form["client_id"] = self.client_id
        if self.client_secret:
            form["client_secret"] = self.client_secret
        if self.scope:
            form["scope"] = self.scope
        return form

    def _obtain(self, callback: CompletionHandler) -> None:
        try:
            res = self._client.post(self.token_url, data=self._form(), headers={"Accept": "application/json"})
        except httpx.HTTPError as exc:
            logger.error(json.dumps({
                "event": "token_error",
                "url": self.token_url,
                "detail": str(exc),
            }), exc_info=True)
            callback(None, exc)
            return

        response = Response(
            status_code=res.status_code,
            headers=dict(res.headers.items()),
            body=res.content,
            url=str(res.url),
        )
        if not res.is_success:
            logger.warning(json.dumps({
                "event": "token_error",
                "url": self.token_url,
                "status_code": res.status_code,
            }))
            callback(response, None)
            return

        try:
            payload = res.json()
        except ValueError as exc:
            logger.error(json.dumps({
                "event": "token_error",
                "url": self.token_url,
                "detail": f"Token endpoint response is not JSON: {exc}",
            }))
            callback(response, exc)
            return
        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not isinstance(token, str) or not token:
            logger.error(json.dumps({
                "event": "token_error",
                "url": self.token_url,
                "detail": "Token endpoint response has no access_token",
            }))
            callback(response, ValueError("Token endpoint response has no access_token"))
            return

        with self._lock:
            self._token = token
        logger.info(json.dumps({"event": "token_obtained", "url": self.token_url}))
        callback(response, None)
