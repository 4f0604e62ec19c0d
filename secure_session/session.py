"""
session.py
-----------

:class:`SecureSession` wraps a transport session and adds the
authorization and analytics headers to every request it creates.

Tasks created with a completion callback answer authentication
challenges transparently: the caller's callback receives either the
original ``(response, error)`` pair or, after a challenge, the outcome
of the single reauthorized retry.  When reauthorization fails the
callback receives ``(None, AuthorizationFailedError)`` instead of the
stale challenge response.

Usage example:

    session = SecureSession(authorization=provider, analytics=metadata)
    task = session.data_task("https://api.example.com/items", on_done)
    task.resume()
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

from secure_session.clients.delegate import ChallengeAwareDelegate, SessionDelegate
from secure_session.clients.http_client import HTTPXTransport
from secure_session.core.challenge import ReauthorizationAttempt, is_authorization_challenge
from secure_session.core.config import Settings
from secure_session.core.headers import decorate_request
from secure_session.core.interfaces import (
    AnalyticsMetadataProvider,
    AuthorizationProvider,
    CompletionHandler,
    TransferTask,
    TransportSession,
)
from secure_session.schemas.http import Request, Response


class SecureSession:
    """Header-injecting, challenge-answering facade over a transport.

    Parameters
    ----------
    authorization : AuthorizationProvider
        Supplies the cached ``Authorization`` header and refreshes it.
    analytics : AnalyticsMetadataProvider, optional
        Supplies the ``x-mfp-analytics-metadata`` header value.
    settings : Settings, optional
        Used to build the default :class:`HTTPXTransport`.
    delegate : SessionDelegate, optional
        Caller delegate for tasks created without a completion callback.
        It is wrapped so challenged tasks are reauthorized before the
        caller sees them.
    transport : TransportSession, optional
        Prebuilt transport.  When given, ``settings`` is ignored and the
        delegate must already be wired into it by the caller.
    """

    def __init__(
        self,
        authorization: AuthorizationProvider,
        analytics: Optional[AnalyticsMetadataProvider] = None,
        *,
        settings: Optional[Settings] = None,
        delegate: Optional[SessionDelegate] = None,
        transport: Optional[TransportSession] = None,
    ) -> None:
        self.authorization = authorization
        self.analytics = analytics
        self.delegate: Optional[ChallengeAwareDelegate] = None
        if delegate is not None:
            self.delegate = ChallengeAwareDelegate(delegate, authorization)
        if transport is None:
            transport = HTTPXTransport(settings, delegate=self.delegate)
        if self.delegate is not None:
            self.delegate.bind(transport)
        self.transport = transport

    def __enter__(self) -> "SecureSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        close = getattr(self.transport, "close", None)
        if close is not None:
            close()

    def prepare_request(self, request: Request) -> Request:
        """Return ``request`` decorated with the session headers."""
        return decorate_request(request, self.authorization, self.analytics)

    # Data tasks

    def data_task(self, url_or_request: Union[str, Request],
                  completion: Optional[CompletionHandler] = None) -> TransferTask:
        """Create a data task for a URL or a request.

        :param url_or_request: absolute URL (sent as ``GET``) or a request
        :param completion: optional ``(response, error)`` callback
        :return: a suspended task; call ``resume()`` to send it
        """
        request = url_or_request if isinstance(url_or_request, Request) else Request(url=str(url_or_request))
        wrapped = self._wrap(completion, request)
        task = self.transport.data_task(self.prepare_request(request), wrapped)
        return self._track(task, request, wrapped)

    # Upload tasks

    def upload_task(self, request: Request, data: Optional[bytes],
                    completion: Optional[CompletionHandler] = None) -> TransferTask:
        """Create a task uploading ``data`` as the body of ``request``."""
        wrapped = self._wrap(completion, request, data=data)
        task = self.transport.upload_task(self.prepare_request(request), data, wrapped)
        return self._track(task, request, wrapped)

    def upload_task_from_file(self, request: Request, path: Union[str, Path],
                              completion: Optional[CompletionHandler] = None) -> TransferTask:
        """Create a task uploading the file at ``path`` as the body of ``request``."""
        path = Path(path)
        wrapped = self._wrap(completion, request, file=path)
        task = self.transport.upload_task_from_file(self.prepare_request(request), path, wrapped)
        return self._track(task, request, wrapped)

    def _track(self, task: TransferTask, request: Request,
               wrapped: Optional["_ChallengeCompletion"]) -> TransferTask:
        task.original_request = request
        if wrapped is not None:
            wrapped.task = task
        return task

    def _wrap(
        self,
        completion: Optional[CompletionHandler],
        request: Request,
        *,
        data: Optional[bytes] = None,
        file: Optional[Path] = None,
    ) -> Optional["_ChallengeCompletion"]:
        if completion is None:
            return None
        return _ChallengeCompletion(self, completion, request, data=data, file=file)


class _ChallengeCompletion:
    """Completion wrapper routing challenge responses into a reauthorization.

    The attempt is recorded on the task as ``reauthorization`` so that
    waiting on the task follows the retry instead of stopping at the
    challenge.
    """

    def __init__(self, session: SecureSession, completion: CompletionHandler, request: Request, *,
                 data: Optional[bytes] = None, file: Optional[Path] = None) -> None:
        self.session = session
        self.completion = completion
        self.request = request
        self.data = data
        self.file = file
        self.task: Optional[TransferTask] = None

    def __call__(self, response: Optional[Response], error: Optional[BaseException]) -> None:
        if error is not None or not is_authorization_challenge(response, self.session.authorization):
            self.completion(response, error)
            return

        def on_failure(exc: BaseException) -> None:
            self.completion(None, exc)

        attempt = ReauthorizationAttempt(
            self.session.transport,
            self.session.authorization,
            self.request,
            on_failure,
            completion=self.completion,
            data=self.data,
            file=self.file,
            challenge_response=response,
        )
        if self.task is not None:
            self.task.reauthorization = attempt
        attempt.start()
