from __future__ import annotations

import json

import pytest
import requests

from src.nexus.client import sync_client as sc
from src.nexus.domain.models import ProjectFile, ProjectState

STATE = {
    "files": {"index.html": {"path": "index.html", "content": "<button/>", "language": "html"}},
    "history": [{"role": "user", "text": "make a button"}, {"role": "model", "text": "Updated 1 file."}],
    "prompt": "",
}


def _response(status=200, body=None, raw=None, reason="OK"):
    resp = requests.Response()
    resp.status_code = status
    resp.reason = reason
    resp.encoding = "utf-8"
    resp.url = "http://test"
    resp._content = raw if raw is not None else json.dumps(body).encode("utf-8")
    return resp


class FakeSession:
    """Replays scripted responses/exceptions and records each request."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append((method, url, kwargs))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _client(session, sleeps=None):
    recorder = sleeps if sleeps is not None else []
    return sc.SyncClient("http://test/", session=session, sleep=recorder.append)


def test_backoff_schedule_in_milliseconds():
    assert [d * 1000 for d in sc.backoff_delays()] == [1000, 1500, 2250, 3375, 5062.5]


def test_boot_returns_state_on_first_success():
    session = FakeSession(_response(body=STATE))
    state = _client(session).boot()
    assert isinstance(state, ProjectState)
    assert state.files["index.html"].content == "<button/>"
    assert session.calls[0][:2] == ("GET", "http://test/api/boot")


def test_boot_null_means_fresh_session_without_retry():
    sleeps = []
    session = FakeSession(_response(body=None))
    assert _client(session, sleeps).boot() is None
    assert len(session.calls) == 1
    assert sleeps == []


def test_boot_degrades_to_none_after_five_failures():
    sleeps = []
    session = FakeSession(requests.exceptions.ConnectionError("connection refused"))
    assert _client(session, sleeps).boot() is None
    assert len(session.calls) == 5
    assert sleeps == sc.backoff_delays()[:4]


def test_boot_retries_on_bad_status_and_malformed_body():
    sleeps = []
    session = FakeSession(
        _response(status=502, raw=b"Bad Gateway", reason="Bad Gateway"),
        _response(raw=b"<html>proxy not ready</html>"),
        _response(body={"files": "nope"}),
        _response(body=STATE),
    )
    state = _client(session, sleeps).boot()
    assert state is not None
    assert len(session.calls) == 4
    assert sleeps == [1.0, 1.5, 2.25]


def test_process_returns_files_and_is_single_attempt():
    files = [{"path": "index.html", "content": "<button/>", "language": "html"}]
    session = FakeSession(_response(body=files))
    state = ProjectState(files={}, history=[], prompt="make a button")
    result = _client(session).process(state)
    assert result == [ProjectFile(path="index.html", content="<button/>", language="html")]
    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "http://test/api/process")
    assert kwargs["json"] == {"files": {}, "history": [], "prompt": "make a button"}


def test_process_extracts_structured_error():
    session = FakeSession(_response(status=500, body={"error": "The architect returned an invalid response."}))
    with pytest.raises(sc.ServerResponseError) as info:
        _client(session).process(ProjectState(files={}, history=[], prompt="x"))
    assert info.value.status == 500
    assert str(info.value) == "The architect returned an invalid response."
    assert len(session.calls) == 1
    assert sc.classify_error(info.value) is sc.ErrorCategory.SERVER_FAULT


def test_process_falls_back_to_status_message():
    session = FakeSession(_response(status=503, raw=b"upstream down", reason="Service Unavailable"))
    with pytest.raises(sc.ServerResponseError) as info:
        _client(session).process(ProjectState(files={}, history=[], prompt="x"))
    assert str(info.value) == "Server Error: 503 - upstream down"


def test_process_network_failure_is_not_retried():
    session = FakeSession(requests.exceptions.ConnectionError("refused"))
    with pytest.raises(sc.TransportError) as info:
        _client(session).process(ProjectState(files={}, history=[], prompt="x"))
    assert len(session.calls) == 1
    assert sc.classify_error(info.value) is sc.ErrorCategory.CONNECTIVITY


def test_process_timeout_and_invalid_body():
    with pytest.raises(sc.RequestTimeoutError) as info:
        _client(FakeSession(requests.exceptions.ReadTimeout("slow"))).process(
            ProjectState(files={}, history=[], prompt="x")
        )
    assert sc.classify_error(info.value) is sc.ErrorCategory.TIMEOUT

    with pytest.raises(sc.InvalidResponseError) as info:
        _client(FakeSession(_response(raw=b"not json"))).process(ProjectState(files={}, history=[], prompt="x"))
    assert sc.classify_error(info.value) is sc.ErrorCategory.INVALID_RESPONSE


@pytest.mark.parametrize(
    "exc, category",
    [
        (sc.ServerResponseError("Invalid Request Format", status=400), sc.ErrorCategory.BAD_REQUEST),
        (sc.ServerResponseError("gateway", status=504), sc.ErrorCategory.TIMEOUT),
        (RuntimeError("Failed to fetch"), sc.ErrorCategory.CONNECTIVITY),
        (RuntimeError("Server Error: 500"), sc.ErrorCategory.SERVER_FAULT),
        (RuntimeError("invalid request body"), sc.ErrorCategory.BAD_REQUEST),
        (RuntimeError("Unexpected token in JSON"), sc.ErrorCategory.INVALID_RESPONSE),
        (RuntimeError("socket timeout"), sc.ErrorCategory.TIMEOUT),
        (RuntimeError("something odd"), sc.ErrorCategory.GENERIC),
    ],
)
def test_classify_error(exc, category):
    assert sc.classify_error(exc) is category


def test_user_message_generic_includes_detail():
    assert sc.user_message(RuntimeError("something odd")) == "System error: something odd"
    assert "port 3001" in sc.user_message(sc.TransportError("refused"))


def test_submit_turn_reconciles_working_copy():
    files = [{"path": "index.html", "content": "<b/>", "language": "html"}]
    session = FakeSession(_response(body=files))
    base = ProjectState(
        files={"a.css": ProjectFile(path="a.css", content="x", language="css")}, history=[], prompt="bold"
    )
    state, delta = _client(session).submit_turn(base)
    assert [f.path for f in delta] == ["index.html"]
    assert set(state.files) == {"a.css", "index.html"}
    assert [m.role for m in state.history] == ["user", "model"]
    assert state.prompt == ""
