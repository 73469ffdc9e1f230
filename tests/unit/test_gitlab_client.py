from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import pytest
import requests

from trigger_build.errors import RemoteCallError
from trigger_build.gitlab import GitLabClient, encode_project

ENDPOINT = "https://gitlab.example/api/v4"


class DummyResponse:
    def __init__(
        self,
        status_code: int = 200,
        json_data: Any = None,
        headers: Optional[Dict[str, str]] = None,
        links: Optional[Dict[str, Dict[str, str]]] = None,
    ) -> None:
        self.status_code = status_code
        self._json_data = json_data
        self.headers = headers or {}
        self.links = links or {}
        self.content = b"" if json_data is None else json.dumps(json_data).encode()
        self.text = self.content.decode()

    def json(self) -> Any:
        if self._json_data is None:
            raise ValueError("no body")
        return self._json_data


class DummySession:
    def __init__(self, responses=None, exceptions=None) -> None:
        self.headers: Dict[str, str] = {}
        self._responses = list(responses or [])
        self._exceptions = list(exceptions or [])
        self.requests: List[Dict[str, Any]] = []

    def request(self, method, url, timeout=None, **kwargs):
        self.requests.append({"method": method, "url": url, "timeout": timeout, **kwargs})
        if self._exceptions:
            raise self._exceptions.pop(0)
        return self._responses.pop(0)


def _client(session: DummySession, token: Optional[str] = "access-token") -> GitLabClient:
    return GitLabClient(ENDPOINT, token, timeout=7.5, session=session)  # type: ignore[arg-type]


def test_client_sets_private_token_header() -> None:
    session = DummySession()
    _client(session)
    assert session.headers["PRIVATE-TOKEN"] == "access-token"


def test_client_without_token_sends_no_private_token() -> None:
    session = DummySession()
    _client(session, token=None)
    assert "PRIVATE-TOKEN" not in session.headers


def test_encode_project() -> None:
    assert encode_project("gitlab-org/build/CNG-mirror") == "gitlab-org%2Fbuild%2FCNG-mirror"


def test_run_trigger_posts_form_with_variables() -> None:
    session = DummySession(responses=[DummyResponse(201, {"id": 42, "web_url": "pipeline_url"})])

    payload = _client(session).run_trigger("foo/bar", "job-token", "main", {"A": "1", "EMPTY": ""})

    assert payload == {"id": 42, "web_url": "pipeline_url"}
    request = session.requests[0]
    assert request["method"] == "POST"
    assert request["url"] == f"{ENDPOINT}/projects/foo%2Fbar/trigger/pipeline"
    assert request["timeout"] == 7.5
    assert request["data"] == {
        "token": "job-token",
        "ref": "main",
        "variables[A]": "1",
        "variables[EMPTY]": "",
    }


def test_pagination_follows_next_page_header() -> None:
    session = DummySession(
        responses=[
            DummyResponse(200, [{"id": 1, "name": "a"}], headers={"X-Next-Page": "2"}),
            DummyResponse(200, [{"id": 2, "name": "b"}], headers={"X-Next-Page": ""}),
        ]
    )

    jobs = list(_client(session).pipeline_jobs("foo/bar", 42))

    assert [job["id"] for job in jobs] == [1, 2]
    assert session.requests[0]["params"] == {"per_page": 100}
    assert session.requests[1]["params"] == {"per_page": 100, "page": "2"}
    assert session.requests[1]["url"] == f"{ENDPOINT}/projects/foo%2Fbar/pipelines/42/jobs"


def test_pagination_falls_back_to_link_header() -> None:
    next_url = f"{ENDPOINT}/projects/foo%2Fbar/merge_requests/7/notes?page=2&per_page=100"
    session = DummySession(
        responses=[
            DummyResponse(200, [{"id": 1}], links={"next": {"url": next_url}}),
            DummyResponse(200, [{"id": 2}]),
        ]
    )

    notes = list(_client(session).merge_request_notes("foo/bar", "7"))

    assert [note["id"] for note in notes] == [1, 2]
    assert session.requests[1]["url"] == next_url
    assert session.requests[1]["params"] == {}


def test_http_error_raises_remote_call_error_with_detail() -> None:
    session = DummySession(responses=[DummyResponse(401, {"message": "401 Unauthorized"})])

    with pytest.raises(RemoteCallError) as excinfo:
        _client(session).run_trigger("foo/bar", "bad-token", "main", {})

    error = excinfo.value
    assert error.status == 401
    assert error.method == "POST"
    assert error.url.endswith("/projects/foo%2Fbar/trigger/pipeline")
    assert "401 Unauthorized" in str(error)


def test_transport_error_raises_remote_call_error() -> None:
    session = DummySession(exceptions=[requests.ConnectionError("boom")])

    with pytest.raises(RemoteCallError) as excinfo:
        _client(session).pipeline("foo/bar", 42)

    assert excinfo.value.status is None
    assert "boom" in str(excinfo.value)
    assert len(session.requests) == 1


def test_non_json_body_raises_remote_call_error() -> None:
    response = DummyResponse(200, None)
    response.content = b"<html>"
    session = DummySession(responses=[response])

    with pytest.raises(RemoteCallError):
        _client(session).job("foo/bar", 1)


def test_note_create_and_edit_endpoints() -> None:
    session = DummySession(responses=[DummyResponse(201, {"id": 5}), DummyResponse(200, {"id": 5})])
    client = _client(session)

    client.create_merge_request_note("group/project", "7", "hello")
    client.edit_merge_request_note("group/project", "7", 5, "updated")

    create, edit = session.requests
    assert (create["method"], create["url"]) == ("POST", f"{ENDPOINT}/projects/group%2Fproject/merge_requests/7/notes")
    assert create["data"] == {"body": "hello"}
    assert (edit["method"], edit["url"]) == ("PUT", f"{ENDPOINT}/projects/group%2Fproject/merge_requests/7/notes/5")
    assert edit["data"] == {"body": "updated"}


def test_create_commit_comment_endpoint() -> None:
    session = DummySession(responses=[DummyResponse(201, {"note": "hello", "author": {"username": "bot"}})])

    payload = _client(session).create_commit_comment("group/project", "abc123", "hello")

    assert payload["note"] == "hello"
    request = session.requests[0]
    assert request["method"] == "POST"
    assert request["url"] == f"{ENDPOINT}/projects/group%2Fproject/repository/commits/abc123/comments"
    assert request["data"] == {"note": "hello"}
