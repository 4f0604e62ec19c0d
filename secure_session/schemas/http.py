"""
schemas/http.py
----------------

Immutable request and response values exchanged between the session
facade, the challenge handler and the transport.  Both are frozen
Pydantic models: "changing" a request always produces a copy, so the
caller's original request stays pristine and can be resubmitted after
a reauthorization.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import BaseModel, Field


def _lookup(headers: Dict[str, str], name: str) -> Optional[str]:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


class Request(BaseModel):
    url: str
    method: str = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Union[bytes, Path]] = None

    model_config = {
        "frozen": True,
    }

    def header(self, name: str) -> Optional[str]:
        """Return the value of header ``name`` (case-insensitive) or ``None``."""
        return _lookup(self.headers, name)

    def with_header(self, name: str, value: str) -> "Request":
        """Return a copy of this request with header ``name`` set to ``value``.

        Any existing header with the same name, in any letter case, is
        replaced.
        """
        headers = {k: v for k, v in self.headers.items() if k.lower() != name.lower()}
        headers[name] = value
        return self.model_copy(update={"headers": headers})

    def with_headers(self, extra: Dict[str, str]) -> "Request":
        request = self
        for name, value in extra.items():
            request = request.with_header(name, value)
        return request


class Response(BaseModel):
    status_code: int
    headers: Dict[str, str] = Field(default_factory=dict)
    body: bytes = b""
    url: Optional[str] = None

    model_config = {
        "frozen": True,
    }

    def header(self, name: str) -> Optional[str]:
        """Return the value of header ``name`` (case-insensitive) or ``None``."""
        return _lookup(self.headers, name)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300
