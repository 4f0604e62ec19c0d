"""
core/interfaces.py
------------------

Structural contracts for the collaborators the session depends on.

``typing.Protocol`` keeps the session decoupled from concrete
implementations: the bundled httpx transport, token provider and
analytics metadata satisfy these contracts, and so do the small fakes
used in the tests.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from secure_session.schemas.http import Request, Response

# (response, error) -> None
CompletionHandler = Callable[[Optional[Response], Optional[BaseException]], None]


@runtime_checkable
class TransferTask(Protocol):
    """A request scheduled on a transport; nothing is sent until ``resume``.

    ``original_request`` is the caller's undecorated request, set by the
    session so a challenged task can be replayed.  ``data`` and ``file``
    hold the upload body, if any.  ``reauthorization`` is set when a
    challenge on this task started a reauthorization attempt.
    """

    request: Request
    original_request: Optional[Request]
    data: Optional[bytes]
    file: Optional[Path]
    reauthorization: Optional[Any]

    def resume(self) -> None:
        ...

    def cancel(self) -> None:
        ...


@runtime_checkable
class TransportSession(Protocol):
    """Networking engine that creates data and upload tasks."""

    def data_task(self, request: Request, completion: Optional[CompletionHandler] = None) -> TransferTask:
        ...

    def upload_task(self, request: Request, data: Optional[bytes],
                    completion: Optional[CompletionHandler] = None) -> TransferTask:
        ...

    def upload_task_from_file(self, request: Request, path: Path,
                              completion: Optional[CompletionHandler] = None) -> TransferTask:
        ...


@runtime_checkable
class AuthorizationProvider(Protocol):
    """Owns the authorization token cache and the refresh logic."""

    def cached_authorization_header(self) -> Optional[str]:
        ...

    def is_authorization_required(self, status_code: int, www_authenticate: str) -> bool:
        ...

    def obtain_authorization(self, callback: CompletionHandler) -> None:
        """Refresh authorization and report ``(response, error)`` to ``callback``.

        The callback may be invoked on any thread, later.
        """
        ...


@runtime_checkable
class AnalyticsMetadataProvider(Protocol):
    """Supplies the analytics metadata string attached to requests."""

    def current_analytics_metadata(self) -> Optional[str]:
        ...
