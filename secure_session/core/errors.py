"""Exceptions raised or reported by the secure session."""

from __future__ import annotations

from typing import Optional

from secure_session.schemas.http import Response


class AuthorizationFailedError(RuntimeError):
    """Reauthorization after a challenge did not succeed.

    Either the authorization provider reported an error or it answered
    with a status outside ``[200, 300)``.
    """

    def __init__(
        self,
        message: str,
        *,
        challenge_response: Optional[Response] = None,
        authorization_response: Optional[Response] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.challenge_response = challenge_response
        self.authorization_response = authorization_response
        self.cause = cause


class TaskCancelledError(RuntimeError):
    """A transfer task was cancelled before it was sent."""
