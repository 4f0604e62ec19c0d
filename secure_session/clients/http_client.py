"""
clients/http_client.py
----------------------

Transport session backed by ``httpx``.

The transport owns one pooled ``httpx.Client`` and a thread pool.
Creating a task does nothing on the network; ``resume()`` schedules it
on the pool, where the request is sent and the outcome reported either
to the task's completion callback or, for tasks created without one,
to the transport's delegate.  One instance should be created per
process (or per :class:`~secure_session.session.SecureSession`) and
closed when no longer needed to release connections and threads.
"""

from __future__ import annotations

import itertools
import json
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Optional

import httpx

from secure_session.clients.delegate import SessionDelegate
from secure_session.core.challenge import ReauthorizationAttempt
from secure_session.core.config import Settings, get_settings
from secure_session.core.errors import TaskCancelledError
from secure_session.core.interfaces import CompletionHandler
from secure_session.logging_config import log_http_request, logger
from secure_session.schemas.http import Request, Response

_task_ids = itertools.count(1)


class HTTPXTask:
    """A request scheduled on an :class:`HTTPXTransport`.

    States: ``suspended`` until :meth:`resume`, then ``running``, then
    ``completed`` or ``cancelled``.
    """

    def __init__(
        self,
        transport: "HTTPXTransport",
        request: Request,
        completion: Optional[CompletionHandler] = None,
        *,
        data: Optional[bytes] = None,
        file: Optional[Path] = None,
    ) -> None:
        self.task_id = next(_task_ids)
        self.transport = transport
        self.request = request
        self.completion = completion
        self.data = data
        self.file = file
        self.original_request: Optional[Request] = None
        self.response: Optional[Response] = None
        self.error: Optional[BaseException] = None
        self.reauthorization: Optional[ReauthorizationAttempt] = None
        self.state = "suspended"
        self._future: Optional[Future] = None
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"<HTTPXTask {self.task_id} {self.request.method} {self.request.url} {self.state}>"

    def resume(self) -> None:
        """Schedule the task.  Resuming a started task does nothing."""
        with self._lock:
            if self.state != "suspended":
                return
            self._future = self.transport._submit(self)
            if self.state == "suspended":
                self.state = "running"

    def cancel(self) -> None:
        """Cancel the task if it has not started sending yet.

        A cancelled task reports :class:`TaskCancelledError`.  A request
        already on the wire runs to completion.
        """
        with self._lock:
            if self.state == "suspended" or (self._future is not None and self._future.cancel()):
                self.state = "cancelled"
            else:
                return
        self.transport._finish(self, None, TaskCancelledError(f"Task {self.task_id} cancelled"))

    def wait(self, timeout: Optional[float] = None) -> Optional[Response]:
        """Block until the task has finished and its callbacks have run.

        For a challenged task the wait follows the reauthorization: it
        returns the retried task's response, or ``None`` when
        reauthorization failed.  ``timeout`` applies to each stage.
        """
        if self._future is None:
            if self.state == "cancelled":
                return None
            raise RuntimeError("Task has not been resumed")
        if not self._future.cancelled():
            self._future.result(timeout)
        attempt = self.reauthorization
        if attempt is None:
            return self.response
        if not attempt.finished.wait(timeout):
            raise TimeoutError(f"Reauthorization for task {self.task_id} still pending")
        if attempt.retry_task is None:
            return None
        return attempt.retry_task.wait(timeout)


class HTTPXTransport:
    """Thread-pooled httpx transport with delegate callbacks.

    Parameters
    ----------
    settings : Settings, optional
        Timeouts, pool limits and worker count.  Defaults to
        :func:`get_settings`.
    delegate : SessionDelegate, optional
        Receives events for tasks created without a completion callback.
    client : httpx.Client, optional
        Prebuilt client, mainly for tests using ``httpx.MockTransport``.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        delegate: Optional[SessionDelegate] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        settings = settings or get_settings()
        self.delegate = delegate
        # HTTPX Client uses connection pooling
        self._client = client or httpx.Client(
            http2=settings.http2,
            timeout=httpx.Timeout(settings.http_timeout, connect=settings.connect_timeout),
            limits=httpx.Limits(
                max_connections=settings.max_connections,
                max_keepalive_connections=settings.max_keepalive_connections,
            ),
            verify=settings.verify_tls,
        )
        self._executor = ThreadPoolExecutor(max_workers=settings.max_workers, thread_name_prefix="secure-session")
        self._closed = False

    def __enter__(self) -> "HTTPXTransport":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Wait for running tasks, then close the client and release threads."""
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True)
        self._client.close()
        if self.delegate is not None:
            self.delegate.session_did_become_invalid(None)

    # Task constructors

    def data_task(self, request: Request, completion: Optional[CompletionHandler] = None) -> HTTPXTask:
        return HTTPXTask(self, request, completion)

    def upload_task(self, request: Request, data: Optional[bytes],
                    completion: Optional[CompletionHandler] = None) -> HTTPXTask:
        return HTTPXTask(self, request, completion, data=data)

    def upload_task_from_file(self, request: Request, path: Path,
                              completion: Optional[CompletionHandler] = None) -> HTTPXTask:
        return HTTPXTask(self, request, completion, file=Path(path))

    # Execution

    def _submit(self, task: HTTPXTask) -> Future:
        if self._closed:
            raise RuntimeError("Transport is closed")
        future = self._executor.submit(self._run, task)
        future.add_done_callback(_log_callback_failure)
        return future

    def _run(self, task: HTTPXTask) -> None:
        try:
            response = self._send(task)
        except (httpx.HTTPError, OSError) as exc:
            self._finish(task, None, exc)
            return
        self._finish(task, response, None)

    def _send(self, task: HTTPXTask) -> Response:
        request = task.request
        method = request.method.upper()
        start_time = time.time()
        body = task.data if task.data is not None else task.file
        if body is None:
            body = request.body
        body_size = _body_size(body)
        log_http_request(method, request.url, headers=request.headers, body_size=body_size)
        try:
            content = body.read_bytes() if isinstance(body, Path) else body
            resp = self._client.request(method, request.url, headers=request.headers, content=content)
        except (httpx.HTTPError, OSError) as exc:
            logger.error(json.dumps({
                "event": "http_error",
                "method": method,
                "url": request.url,
                "detail": str(exc),
            }), exc_info=True)
            raise
        duration_ms = (time.time() - start_time) * 1000
        log_http_request(method, request.url, status=resp.status_code, duration_ms=duration_ms)
        if body_size and task.completion is None and self.delegate is not None:
            self.delegate.task_did_send_body_data(task, body_size, body_size)
        return Response(
            status_code=resp.status_code,
            headers=dict(resp.headers.items()),
            body=resp.content,
            url=str(resp.url),
        )

    def _finish(self, task: HTTPXTask, response: Optional[Response], error: Optional[BaseException]) -> None:
        task.response = response
        task.error = error
        if task.state != "cancelled":
            task.state = "completed"
        if task.completion is not None:
            task.completion(response, error)
            return
        if self.delegate is None:
            return
        if response is not None:
            self.delegate.task_did_receive_response(task, response)
        self.delegate.task_did_complete(task, response, error)


def _body_size(body: Any) -> Optional[int]:
    if body is None:
        return None
    if isinstance(body, Path):
        try:
            return body.stat().st_size
        except OSError:
            return None
    return len(body)


def _log_callback_failure(future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error(json.dumps({
            "event": "callback_error",
            "detail": str(exc),
        }), exc_info=exc)
