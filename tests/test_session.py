from secure_session.clients.delegate import SessionDelegate
from secure_session.core.errors import AuthorizationFailedError
from secure_session.core.headers import AUTHORIZATION_HEADER, TRACKING_ID_HEADER
from secure_session.schemas.http import Request, Response
from secure_session.session import SecureSession

from conftest import FakeAnalytics, FakeAuthorization, FakeTask, FakeTransport, Recorder, challenge_response


def _session(transport, auth=None, analytics=None, delegate=None):
    return SecureSession(auth or FakeAuthorization(), analytics, transport=transport, delegate=delegate)


def test_data_task_from_url_is_decorated(transport):
    session = _session(transport, FakeAuthorization("Bearer t"), FakeAnalytics("meta"))
    task = session.data_task("https://api.example.com/api/data")

    assert task.request.method == "GET"
    assert task.request.headers[AUTHORIZATION_HEADER] == "Bearer t"
    assert task.request.headers["x-mfp-analytics-metadata"] == "meta"
    assert task.original_request == Request(url="https://api.example.com/api/data")
    assert task.completion is None
    assert task.resumed == 0


def test_non_challenge_response_passes_through(transport, recorder):
    session = _session(transport)
    task = session.data_task(Request(url="https://api.example.com"), recorder)
    ok = Response(status_code=200, body=b"{}")
    task.complete(ok, None)
    assert recorder.calls == [(ok, None)]


def test_transport_error_passes_through(transport, recorder):
    session = _session(transport)
    task = session.data_task(Request(url="https://api.example.com"), recorder)
    err = ConnectionError("reset")
    task.complete(None, err)
    assert recorder.calls == [(None, err)]


def test_unrecognised_challenge_passes_through(transport, recorder):
    session = _session(transport, FakeAuthorization(required=False))
    task = session.data_task(Request(url="https://api.example.com"), recorder)
    denied = challenge_response()
    task.complete(denied, None)
    assert recorder.calls == [(denied, None)]
    assert len(transport.tasks) == 1


def test_end_to_end_challenge_and_retry(transport, recorder):
    auth = FakeAuthorization(token=None)
    session = _session(transport, auth)
    original = Request(url="https://api.example.com/api/data")

    task = session.data_task(original, recorder)
    assert TRACKING_ID_HEADER in task.request.headers
    assert AUTHORIZATION_HEADER not in task.request.headers

    task.complete(challenge_response(401, "Bearer"), None)
    assert recorder.calls == []
    assert auth.predicate_calls == [(401, "Bearer")]

    auth.succeed("Bearer fresh")
    assert len(transport.tasks) == 2
    retry = transport.tasks[1]
    assert retry.request == original.with_header(AUTHORIZATION_HEADER, "Bearer fresh")
    assert retry.resumed == 1

    final = Response(status_code=200, body=b"data")
    retry.complete(final, None)
    assert recorder.calls == [(final, None)]


def test_retried_response_is_final_even_if_challenged(transport, recorder):
    auth = FakeAuthorization()
    session = _session(transport, auth)
    session.data_task("https://api.example.com", recorder).complete(challenge_response(), None)
    auth.succeed("Bearer rejected")

    again = challenge_response()
    transport.tasks[1].complete(again, None)

    assert recorder.calls == [(again, None)]
    assert len(auth.callbacks) == 1
    assert len(transport.tasks) == 2


def test_failed_reauthorization_reports_error_not_stale_response(transport, recorder):
    auth = FakeAuthorization()
    session = _session(transport, auth)
    session.data_task("https://api.example.com", recorder).complete(challenge_response(), None)

    auth.fail(status=500)

    assert len(recorder.calls) == 1
    response, error = recorder.calls[0]
    assert response is None
    assert isinstance(error, AuthorizationFailedError)
    assert len(transport.tasks) == 1


def test_upload_with_completion_retries_with_same_data(transport, recorder):
    auth = FakeAuthorization()
    session = _session(transport, auth)
    request = Request(url="https://api.example.com/upload", method="POST")
    task = session.upload_task(request, b"bytes", recorder)
    assert task.kind == "upload"
    assert task.data == b"bytes"

    task.complete(challenge_response(), None)
    auth.succeed("Bearer u")

    retry = transport.tasks[1]
    assert retry.kind == "upload"
    assert retry.data == b"bytes"
    assert retry.request.headers == {AUTHORIZATION_HEADER: "Bearer u"}


def test_upload_from_file_without_completion(transport, tmp_path):
    path = tmp_path / "body.txt"
    session = _session(transport)
    task = session.upload_task_from_file(Request(url="https://api.example.com", method="PUT"), str(path))
    assert task.kind == "file"
    assert task.file == path
    assert task.completion is None


class _RecordingDelegate(SessionDelegate):
    def __init__(self):
        self.completed = []
        self.custom = []

    def task_did_complete(self, task, response, error):
        self.completed.append((task, response, error))

    def task_did_redirect(self, task, location):
        self.custom.append(location)


def test_delegate_driven_task_is_reauthorized():
    transport = FakeTransport()
    auth = FakeAuthorization()
    parent = _RecordingDelegate()
    session = _session(transport, auth, delegate=parent)
    wrapper = session.delegate
    assert wrapper.transport is transport

    task = session.data_task("https://api.example.com")
    wrapper.task_did_complete(task, challenge_response(), None)
    assert parent.completed == []

    auth.succeed("Bearer d")
    retry = transport.tasks[1]
    assert retry.completion is None
    assert retry.original_request is None

    final = Response(status_code=200)
    wrapper.task_did_complete(retry, final, None)
    assert parent.completed == [(retry, final, None)]


def test_delegate_receives_authorization_failure():
    transport = FakeTransport()
    auth = FakeAuthorization()
    parent = _RecordingDelegate()
    session = _session(transport, auth, delegate=parent)

    task = session.data_task("https://api.example.com")
    session.delegate.task_did_complete(task, challenge_response(), None)
    auth.fail(RuntimeError("nope"))

    [(reported_task, response, error)] = parent.completed
    assert reported_task is task
    assert response is None
    assert isinstance(error, AuthorizationFailedError)


def test_delegate_forwards_unhandled_hooks():
    parent = _RecordingDelegate()
    session = _session(FakeTransport(), delegate=parent)
    session.delegate.task_did_redirect(None, "https://elsewhere")
    ok = Response(status_code=204)
    session.delegate.task_did_complete(FakeTask("data", Request(url="https://x")), ok, None)
    assert parent.custom == ["https://elsewhere"]
    assert parent.completed[0][1] is ok


class _RefusingTransport(FakeTransport):
    """Transport that accepts the first task and refuses to resume any retry."""

    def data_task(self, request, completion=None):
        task = super().data_task(request, completion)
        if len(self.tasks) > 1:
            def refuse():
                raise RuntimeError("Transport is closed")
            task.resume = refuse
        return task


def test_refused_retry_reaches_caller_callback(recorder):
    transport = _RefusingTransport()
    auth = FakeAuthorization()
    session = _session(transport, auth)
    task = session.data_task("https://api.example.com", recorder)
    task.complete(challenge_response(), None)

    auth.succeed("Bearer late")

    [(response, error)] = recorder.calls
    assert response is None
    assert isinstance(error, RuntimeError)
    assert task.reauthorization.finished.is_set()
    assert task.reauthorization.retry_task is None


def test_refused_retry_reaches_delegate():
    transport = _RefusingTransport()
    auth = FakeAuthorization()
    parent = _RecordingDelegate()
    session = _session(transport, auth, delegate=parent)
    task = session.data_task("https://api.example.com")
    session.delegate.task_did_complete(task, challenge_response(), None)

    auth.succeed("Bearer late")

    [(reported_task, response, error)] = parent.completed
    assert reported_task is task
    assert response is None
    assert isinstance(error, RuntimeError)


class _ResponseDelegate(_RecordingDelegate):
    def __init__(self):
        super().__init__()
        self.responses = []

    def task_did_receive_response(self, task, response):
        self.responses.append((task, response.status_code))


def test_delegate_does_not_see_challenge_response():
    transport = FakeTransport()
    auth = FakeAuthorization()
    parent = _ResponseDelegate()
    session = _session(transport, auth, delegate=parent)

    task = session.data_task("https://api.example.com")
    denied = challenge_response()
    session.delegate.task_did_receive_response(task, denied)
    session.delegate.task_did_complete(task, denied, None)
    assert parent.responses == []
    assert parent.completed == []

    auth.succeed("Bearer d")
    retry = transport.tasks[1]
    session.delegate.task_did_receive_response(retry, Response(status_code=200))
    assert parent.responses == [(retry, 200)]


def test_delegate_sees_unhandled_challenge_response():
    parent = _ResponseDelegate()
    session = _session(FakeTransport(), FakeAuthorization(required=False), delegate=parent)
    task = session.data_task("https://api.example.com")
    session.delegate.task_did_receive_response(task, challenge_response())
    assert parent.responses == [(task, 401)]
