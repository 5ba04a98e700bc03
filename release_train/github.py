"""Async client for the GitHub REST API.

Only the operations the release workflows need are wrapped. Each method is
a single REST call; failures are raised as RemoteOperationFailure (or its
NotFound subclass for 404) so the orchestrator sees one error kind for
every remote problem.

The client is bound to one repository at construction time and nothing is
looked up from ambient state.
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any
from urllib.parse import quote

import httpx

from .errors import NotFound, RemoteOperationFailure
from .models import PullRequest

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
RAW_MEDIA_TYPE = "application/vnd.github.raw+json"

__all__ = ["GitHubClient", "DEFAULT_API_URL"]


class GitHubClient:
    """REST client for a single repository.

    Args:
        repository: Repository in "owner/name" format.
        token: Access token; requests are anonymous when omitted.
        api_url: API root, for GitHub Enterprise installs.
        http: Pre-built httpx client (tests pass one with a MockTransport).
    """

    def __init__(
        self,
        repository: str,
        token: str | None = None,
        *,
        api_url: str = DEFAULT_API_URL,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.repository = repository
        self.owner = repository.split("/", 1)[0]
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if http is None:
            http = httpx.AsyncClient(base_url=api_url, headers=headers, timeout=30.0)
        else:
            http.headers.update(headers)
        self._http = http

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        url = f"/repos/{self.repository}{path}"
        logger.debug("%s %s", method, url)
        try:
            response = await self._http.request(
                method, url, json=json, params=params, headers=headers
            )
        except httpx.HTTPError as exc:
            raise RemoteOperationFailure(method, path, None, str(exc)) from exc

        if response.status_code == 404:
            raise NotFound(method, path, 404, _error_message(response))
        if response.is_error:
            raise RemoteOperationFailure(
                method, path, response.status_code, _error_message(response)
            )
        return response

    # --- contents -------------------------------------------------------

    async def get_file_content(self, path: str, ref: str | None = None) -> str:
        """Return a file's raw text, optionally at a branch, tag or commit."""
        params = {"ref": ref} if ref else None
        response = await self._request(
            "GET",
            f"/contents/{quote(path)}",
            params=params,
            headers={"Accept": RAW_MEDIA_TYPE},
        )
        return response.text

    # --- refs, tags, trees, commits -------------------------------------

    async def get_branch_ref(self, branch: str) -> str:
        """Return the commit SHA a branch points at."""
        response = await self._request("GET", f"/git/ref/heads/{branch}")
        return response.json()["object"]["sha"]

    async def create_ref(self, ref: str, sha: str) -> None:
        """Create a fully qualified ref, e.g. "refs/heads/release/1.3.0"."""
        await self._request("POST", "/git/refs", json={"ref": ref, "sha": sha})

    async def update_ref(self, ref: str, sha: str, *, force: bool = False) -> None:
        """Move a ref given without its "refs/" prefix, e.g. "heads/stable"."""
        await self._request(
            "PATCH", f"/git/refs/{ref}", json={"sha": sha, "force": force}
        )

    async def delete_ref(self, ref: str) -> None:
        await self._request("DELETE", f"/git/refs/{ref}")

    async def create_tag(self, object_sha: str, tag: str, message: str) -> str:
        """Create an annotated tag object and return its SHA."""
        response = await self._request(
            "POST",
            "/git/tags",
            json={"tag": tag, "message": message, "object": object_sha, "type": "commit"},
        )
        return response.json()["sha"]

    async def get_commit(self, sha: str) -> str:
        """Return the tree SHA of a commit."""
        response = await self._request("GET", f"/git/commits/{sha}")
        return response.json()["tree"]["sha"]

    async def create_tree(self, base_tree: str, entries: list[dict[str, str]]) -> str:
        response = await self._request(
            "POST", "/git/trees", json={"base_tree": base_tree, "tree": entries}
        )
        return response.json()["sha"]

    async def create_commit(self, message: str, parents: list[str], tree: str) -> str:
        response = await self._request(
            "POST",
            "/git/commits",
            json={"message": message, "parents": parents, "tree": tree},
        )
        return response.json()["sha"]

    # --- pull requests --------------------------------------------------

    async def create_pull_request(
        self,
        *,
        base: str,
        head: str,
        title: str,
        body: str,
        draft: bool = False,
        maintainer_can_modify: bool = True,
    ) -> PullRequest:
        response = await self._request(
            "POST",
            "/pulls",
            json={
                "base": base,
                "head": head,
                "title": title,
                "body": body,
                "draft": draft,
                "maintainer_can_modify": maintainer_can_modify,
            },
        )
        return PullRequest.from_api(response.json())

    async def get_pull_request(self, number: int) -> PullRequest:
        response = await self._request("GET", f"/pulls/{number}")
        return PullRequest.from_api(response.json())

    async def update_pull_request(self, number: int, **fields: Any) -> PullRequest:
        response = await self._request("PATCH", f"/pulls/{number}", json=fields)
        return PullRequest.from_api(response.json())

    async def list_pull_requests(
        self, *, head: str, base: str | None = None, state: str = "open"
    ) -> list[PullRequest]:
        """List pull requests whose head is a branch of this repository."""
        params = {"head": f"{self.owner}:{head}", "state": state, "per_page": 100}
        if base:
            params["base"] = base
        response = await self._request("GET", "/pulls", params=params)
        return [PullRequest.from_api(item) for item in response.json()]

    async def merge_pull_request(
        self, number: int, *, commit_title: str, sha: str, merge_method: str = "rebase"
    ) -> None:
        await self._request(
            "PUT",
            f"/pulls/{number}/merge",
            json={"commit_title": commit_title, "sha": sha, "merge_method": merge_method},
        )

    # --- issues ---------------------------------------------------------

    async def create_issue_comment(self, issue_number: int, body: str) -> int:
        """Post a comment and return its id."""
        response = await self._request(
            "POST", f"/issues/{issue_number}/comments", json={"body": body}
        )
        return response.json()["id"]

    async def update_issue_comment(self, comment_id: int, body: str) -> None:
        await self._request(
            "PATCH", f"/issues/comments/{comment_id}", json={"body": body}
        )

    async def add_labels(self, issue_number: int, labels: list[str]) -> None:
        await self._request(
            "POST", f"/issues/{issue_number}/labels", json={"labels": labels}
        )

    async def update_issue(self, issue_number: int, **fields: Any) -> None:
        await self._request("PATCH", f"/issues/{issue_number}", json=fields)

    async def create_reaction(self, issue_number: int, content: str) -> None:
        await self._request(
            "POST", f"/issues/{issue_number}/reactions", json={"content": content}
        )


def _error_message(response: httpx.Response) -> str:
    """Pull the "message" field out of an error body, falling back to text."""
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(data, dict) and "message" in data:
        return str(data["message"])
    return response.text[:200]
