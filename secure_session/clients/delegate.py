"""
clients/delegate.py
--------------------

Session delegate hooks and the wrapper that lets a caller supply their
own delegate while the session still answers authentication
challenges.

Tasks created without a completion callback report their progress to
the transport's delegate.  :class:`ChallengeAwareDelegate` implements
every hook: it forwards each one to the caller's delegate, except that
a challenged task is turned into a reauthorization and retry first.
The caller's delegate never sees the challenge itself: neither
``task_did_receive_response`` nor ``task_did_complete`` is forwarded
for it.  It receives the retried task's events instead, or
``task_did_complete(task, None, error)`` for the original task when
reauthorization or the resubmission fails.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Optional

from secure_session.core.challenge import ReauthorizationAttempt, is_authorization_challenge
from secure_session.core.interfaces import AuthorizationProvider, TransferTask
from secure_session.logging_config import logger
from secure_session.schemas.http import Response

if TYPE_CHECKING:
    from secure_session.core.interfaces import TransportSession


class SessionDelegate:
    """Receives events for tasks created without a completion callback.

    Subclass and override the hooks you need; the defaults do nothing.
    """

    def task_did_send_body_data(self, task: TransferTask, bytes_sent: int, total_bytes: int) -> None:
        pass

    def task_did_receive_response(self, task: TransferTask, response: Response) -> None:
        pass

    def task_did_complete(self, task: TransferTask, response: Optional[Response],
                          error: Optional[BaseException]) -> None:
        pass

    def session_did_become_invalid(self, error: Optional[BaseException]) -> None:
        pass


class ChallengeAwareDelegate(SessionDelegate):
    """Wraps a caller's delegate and handles challenges for delegate-driven tasks."""

    def __init__(self, parent: SessionDelegate, authorization: AuthorizationProvider) -> None:
        self.parent = parent
        self.authorization = authorization
        self.transport: Optional["TransportSession"] = None

    def bind(self, transport: "TransportSession") -> None:
        """Attach the transport used to resubmit challenged requests."""
        self.transport = transport

    def _will_reauthorize(self, task: TransferTask, response: Optional[Response]) -> bool:
        # Retried tasks carry no original_request, so they are never re-challenged.
        return (task.original_request is not None and self.transport is not None
                and is_authorization_challenge(response, self.authorization))

    def task_did_send_body_data(self, task: TransferTask, bytes_sent: int, total_bytes: int) -> None:
        self.parent.task_did_send_body_data(task, bytes_sent, total_bytes)

    def task_did_receive_response(self, task: TransferTask, response: Response) -> None:
        if self._will_reauthorize(task, response):
            return
        self.parent.task_did_receive_response(task, response)

    def task_did_complete(self, task: TransferTask, response: Optional[Response],
                          error: Optional[BaseException]) -> None:
        if error is None and self._will_reauthorize(task, response):

            def on_failure(exc: BaseException) -> None:
                self.parent.task_did_complete(task, None, exc)

            attempt = ReauthorizationAttempt(
                self.transport,
                self.authorization,
                task.original_request,
                on_failure,
                data=task.data,
                file=task.file,
                challenge_response=response,
            )
            task.reauthorization = attempt
            attempt.start()
            return
        self.parent.task_did_complete(task, response, error)

    def session_did_become_invalid(self, error: Optional[BaseException]) -> None:
        logger.debug(json.dumps({"event": "session_invalidated", "detail": str(error) if error else None}))
        self.parent.session_did_become_invalid(error)

    def __getattr__(self, name: str):
        # Hooks added by the caller's delegate beyond the standard set.
        if name == "parent":
            raise AttributeError(name)
        return getattr(self.parent, name)
