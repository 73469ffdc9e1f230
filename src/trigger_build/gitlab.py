from __future__ import annotations

from typing import Any, Dict, Iterator, List, Mapping, Optional
from urllib.parse import quote

import requests

from .constants import PER_PAGE
from .errors import RemoteCallError

DEFAULT_HTTP_TIMEOUT_SECONDS = 15.0


def encode_project(project_path: str) -> str:
    return quote(str(project_path), safe="")


class GitLabClient:
    """Thin GitLab REST v4 client. One instance per endpoint and credential."""

    def __init__(
        self,
        endpoint: str,
        private_token: Optional[str] = None,
        *,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "trigger-build"})
        if private_token:
            self.session.headers.update({"PRIVATE-TOKEN": private_token})

    # Pipelines

    def run_trigger(
        self,
        project_path: str,
        token: str,
        ref: str,
        variables: Mapping[str, str],
    ) -> Dict[str, Any]:
        data: Dict[str, str] = {"token": token, "ref": ref}
        for key, value in variables.items():
            data[f"variables[{key}]"] = value
        return self._request("POST", f"/projects/{encode_project(project_path)}/trigger/pipeline", data=data)

    def pipeline(self, project_path: str, pipeline_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/projects/{encode_project(project_path)}/pipelines/{pipeline_id}")

    def pipeline_jobs(self, project_path: str, pipeline_id: int) -> Iterator[Dict[str, Any]]:
        return self._paginate(f"/projects/{encode_project(project_path)}/pipelines/{pipeline_id}/jobs")

    def job(self, project_path: str, job_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/projects/{encode_project(project_path)}/jobs/{job_id}")

    # Comments

    def create_commit_comment(self, project_path: str, sha: str, note: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/projects/{encode_project(project_path)}/repository/commits/{sha}/comments",
            data={"note": note},
        )

    # Merge request notes

    def merge_request_notes(self, project_path: str, iid: str) -> Iterator[Dict[str, Any]]:
        return self._paginate(f"/projects/{encode_project(project_path)}/merge_requests/{iid}/notes")

    def create_merge_request_note(self, project_path: str, iid: str, body: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/projects/{encode_project(project_path)}/merge_requests/{iid}/notes",
            data={"body": body},
        )

    def edit_merge_request_note(self, project_path: str, iid: str, note_id: int, body: str) -> Dict[str, Any]:
        return self._request(
            "PUT",
            f"/projects/{encode_project(project_path)}/merge_requests/{iid}/notes/{note_id}",
            data={"body": body},
        )

    # Environments

    def environments(self, project_path: str, name: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"name": name} if name else {}
        return list(self._paginate(f"/projects/{encode_project(project_path)}/environments", params))

    def stop_environment(self, project_path: str, environment_id: int) -> Dict[str, Any]:
        return self._request("POST", f"/projects/{encode_project(project_path)}/environments/{environment_id}/stop")

    # Transport

    def _paginate(self, path: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        """Yield every item of a paginated listing, following ``X-Next-Page`` (or ``Link: rel=next``)."""
        query: Dict[str, Any] = {"per_page": PER_PAGE, **(params or {})}
        url = self._url(path)
        while url:
            response = self._send("GET", url, params=query)
            for item in self._json(response, "GET", url) or []:
                yield item

            next_page = (response.headers.get("X-Next-Page") or "").strip()
            if next_page:
                query = {**query, "page": next_page}
                continue
            next_link = (response.links or {}).get("next", {}).get("url")
            if next_link:
                url, query = next_link, {}
                continue
            url = ""

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = self._url(path)
        response = self._send(method, url, **kwargs)
        return self._json(response, method, url) or {}

    def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise RemoteCallError(f"GitLab request failed: {exc}", method=method, url=url) from exc
        if response.status_code >= 400:
            raise RemoteCallError(
                f"GitLab API error: {_error_message(response)}",
                method=method,
                url=url,
                status=response.status_code,
            )
        return response

    @staticmethod
    def _json(response: requests.Response, method: str, url: str) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteCallError(
                "GitLab returned a non-JSON body", method=method, url=url, status=response.status_code
            ) from exc

    def _url(self, path: str) -> str:
        return f"{self.endpoint}{path}"


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return (response.text or "").strip()[:500]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)[:500]
    return str(body)[:500]
