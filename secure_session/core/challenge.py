"""
core/challenge.py
------------------

Detection of authentication challenges and the single
reauthorize-then-retry cycle that follows one.

A challenge is a response carrying a ``WWW-Authenticate`` header that
the authorization provider recognises as its own.  When one arrives
the provider is asked to obtain fresh authorization; on success the
caller's original request is sent again, once, with the refreshed
``Authorization`` header.  The retried response is final: it is never
checked for a further challenge, so a rejected refreshed token cannot
cause a reauthorization loop.
"""

from __future__ import annotations

import json
import threading
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from secure_session.core.errors import AuthorizationFailedError
from secure_session.core.headers import AUTHORIZATION_HEADER, WWW_AUTHENTICATE_HEADER
from secure_session.core.interfaces import (
    AuthorizationProvider,
    CompletionHandler,
    TransferTask,
    TransportSession,
)
from secure_session.logging_config import logger
from secure_session.schemas.http import Request, Response

# Receives AuthorizationFailedError, or the transport error raised while resubmitting.
FailureHandler = Callable[[BaseException], None]


def is_authorization_challenge(response: Optional[Response], authorization: AuthorizationProvider) -> bool:
    """Return ``True`` if ``response`` is a challenge ``authorization`` should answer.

    :param response: response received for a request, possibly ``None``
    :param authorization: provider whose predicate decides
    """
    if response is None:
        return False
    www_authenticate = response.header(WWW_AUTHENTICATE_HEADER)
    if www_authenticate is None:
        return False
    return bool(authorization.is_authorization_required(response.status_code, www_authenticate))


class ChallengeState(str, Enum):
    IDLE = "idle"
    AWAITING_AUTHORIZATION = "awaiting_authorization"
    RETRIED = "retried"
    FAILED = "failed"


class ReauthorizationAttempt:
    """One reauthorization cycle for one challenged request.

    The attempt moves ``IDLE -> AWAITING_AUTHORIZATION`` when started,
    then to ``RETRIED`` or ``FAILED`` when the provider reports back.
    ``finished`` is set once the retry has been submitted or the
    attempt has failed; ``retry_task`` holds the resubmitted task.
    If the transport refuses the retry, the error goes to
    ``completion`` when there is one, otherwise to ``on_failure``.
    The provider callback is single-shot: later invocations are logged
    and ignored.

    ``request`` must be the caller's undecorated request.  For uploads
    pass the same ``data`` or ``file`` the original task was created
    with so the retry carries the body again.
    """

    def __init__(
        self,
        transport: TransportSession,
        authorization: AuthorizationProvider,
        request: Request,
        on_failure: FailureHandler,
        *,
        completion: Optional[CompletionHandler] = None,
        data: Optional[bytes] = None,
        file: Optional[Path] = None,
        challenge_response: Optional[Response] = None,
    ) -> None:
        self.transport = transport
        self.authorization = authorization
        self.request = request
        self.on_failure = on_failure
        self.completion = completion
        self.data = data
        self.file = file
        self.challenge_response = challenge_response
        self.state = ChallengeState.IDLE
        self.retry_task: Optional[TransferTask] = None
        self.finished = threading.Event()
        self._lock = threading.Lock()

    def start(self) -> "ReauthorizationAttempt":
        with self._lock:
            if self.state is not ChallengeState.IDLE:
                raise RuntimeError(f"Reauthorization already started (state={self.state.value})")
            self.state = ChallengeState.AWAITING_AUTHORIZATION
        logger.info(json.dumps({
            "event": "authorization_challenge",
            "method": self.request.method,
            "url": self.request.url,
            "status": self.challenge_response.status_code if self.challenge_response else None,
        }))
        self.authorization.obtain_authorization(self._on_authorization)
        return self

    def _on_authorization(self, response: Optional[Response], error: Optional[BaseException]) -> None:
        with self._lock:
            if self.state is not ChallengeState.AWAITING_AUTHORIZATION:
                logger.warning(json.dumps({
                    "event": "authorization_duplicate_callback",
                    "url": self.request.url,
                    "state": self.state.value,
                }))
                return
            succeeded = error is None and response is not None and response.is_success
            self.state = ChallengeState.RETRIED if succeeded else ChallengeState.FAILED

        if succeeded:
            self._resubmit()
            return

        self.finished.set()
        logger.error(json.dumps({
            "event": "authorization_failed",
            "url": self.request.url,
            "status": response.status_code if response is not None else None,
            "detail": str(error) if error is not None else None,
        }))
        self.on_failure(AuthorizationFailedError(
            "Authorization process failed",
            challenge_response=self.challenge_response,
            authorization_response=response,
            cause=error,
        ))

    def _resubmit(self) -> None:
        request = self.request
        auth_header = self.authorization.cached_authorization_header()
        if auth_header:
            request = request.with_header(AUTHORIZATION_HEADER, auth_header)
        logger.info(json.dumps({
            "event": "authorization_retry",
            "method": request.method,
            "url": request.url,
        }))
        try:
            if self.file is not None:
                task = self.transport.upload_task_from_file(request, self.file, self.completion)
            elif self.data is not None:
                task = self.transport.upload_task(request, self.data, self.completion)
            else:
                task = self.transport.data_task(request, self.completion)
            task.resume()
        except Exception as exc:
            with self._lock:
                self.state = ChallengeState.FAILED
            self.finished.set()
            logger.error(json.dumps({
                "event": "authorization_retry_error",
                "method": request.method,
                "url": request.url,
                "detail": str(exc),
            }), exc_info=True)
            if self.completion is not None:
                self.completion(None, exc)
            else:
                self.on_failure(exc)
            return
        self.retry_task = task
        self.finished.set()


def handle_authorization_challenge(
    transport: TransportSession,
    authorization: AuthorizationProvider,
    request: Request,
    on_failure: FailureHandler,
    **kwargs,
) -> ReauthorizationAttempt:
    """Start a :class:`ReauthorizationAttempt` and return it."""
    return ReauthorizationAttempt(transport, authorization, request, on_failure, **kwargs).start()
