from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import pytest

from secure_session.schemas.http import Request, Response


class FakeTask:
    def __init__(self, kind, request, completion=None, data=None, file=None):
        self.kind = kind
        self.request = request
        self.completion = completion
        self.data = data
        self.file = file
        self.original_request: Optional[Request] = None
        self.reauthorization = None
        self.resumed = 0
        self.cancelled = False

    def resume(self):
        self.resumed += 1

    def cancel(self):
        self.cancelled = True

    def complete(self, response=None, error=None):
        self.completion(response, error)


class FakeTransport:
    """Records created tasks; tests drive their completion by hand."""

    def __init__(self):
        self.tasks: List[FakeTask] = []

    def _add(self, task):
        self.tasks.append(task)
        return task

    def data_task(self, request, completion=None):
        return self._add(FakeTask("data", request, completion))

    def upload_task(self, request, data, completion=None):
        return self._add(FakeTask("upload", request, completion, data=data))

    def upload_task_from_file(self, request, path: Path, completion=None):
        return self._add(FakeTask("file", request, completion, file=path))


class FakeAuthorization:
    """Authorization provider whose refresh outcome is set by the test."""

    def __init__(self, token=None, required=True):
        self.token = token
        self.required = required
        self.callbacks = []
        self.predicate_calls = []

    def cached_authorization_header(self):
        return self.token

    def is_authorization_required(self, status_code, www_authenticate):
        self.predicate_calls.append((status_code, www_authenticate))
        return self.required

    def obtain_authorization(self, callback):
        self.callbacks.append(callback)

    def succeed(self, token, status=200):
        self.token = token
        self.callbacks[-1](Response(status_code=status), None)

    def fail(self, error=None, status=None):
        response = Response(status_code=status) if status is not None else None
        self.callbacks[-1](response, error)


class FakeAnalytics:
    def __init__(self, metadata=None):
        self.metadata = metadata

    def current_analytics_metadata(self):
        return self.metadata


class Recorder:
    """Completion callback that records every invocation."""

    def __init__(self):
        self.calls = []

    def __call__(self, response, error):
        self.calls.append((response, error))


def challenge_response(status=401, scheme="Bearer"):
    return Response(status_code=status, headers={"WWW-Authenticate": scheme}, body=b"denied")


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def authorization():
    return FakeAuthorization()


@pytest.fixture
def analytics():
    return FakeAnalytics()


@pytest.fixture
def recorder():
    return Recorder()
