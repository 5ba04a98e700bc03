"""Shared test fixtures."""

from __future__ import annotations

import itertools
from typing import Any

import pytest

from release_train.config import Settings
from release_train.errors import NotFound, RemoteOperationFailure
from release_train.models import PullRequest

MANIFEST = """\
{
  "name": "app",
  "version": "2.0.0",
  "permissions": ["storage"]
}
"""


class FakeGitHub:
    """In-memory stand-in for GitHubClient.

    Keeps trees, commits, refs, tags, pull requests and comments in dicts so
    tests can assert on the resulting repository state rather than on call
    arguments. `fail_on` maps a method name to the error it should raise;
    `fail_once` raises only on the next call.
    """

    def __init__(self, repository: str = "octo/app") -> None:
        self.repository = repository
        self.owner = repository.split("/", 1)[0]
        self._shas = itertools.count(1)
        self._numbers = itertools.count(1)
        self.trees: dict[str, dict[str, str]] = {}
        self.commits: dict[str, dict[str, Any]] = {}
        self.refs: dict[str, str] = {}
        self.tags: dict[str, dict[str, str]] = {}
        self.pulls: dict[int, PullRequest] = {}
        self.pull_options: dict[int, dict[str, Any]] = {}
        self.comments: dict[int, dict[str, Any]] = {}
        self.issues: dict[int, dict[str, Any]] = {}
        self.labels: dict[int, list[str]] = {}
        self.reactions: list[tuple[int, str]] = []
        self.merges: list[dict[str, Any]] = []
        self.calls: list[str] = []
        self.fail_on: dict[str, Exception] = {}
        self.fail_once: dict[str, Exception] = {}

    # --- helpers --------------------------------------------------------

    def _sha(self) -> str:
        return f"{next(self._shas):040x}"

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_once:
            raise self.fail_once.pop(name)
        if name in self.fail_on:
            raise self.fail_on[name]

    def seed(self, files: dict[str, str], branches: tuple[str, ...] = ("stable", "mainline")) -> str:
        """Create one commit holding `files` and point `branches` at it."""
        tree = self._sha()
        self.trees[tree] = dict(files)
        commit = self._sha()
        self.commits[commit] = {"tree": tree, "parents": [], "message": "initial"}
        for branch in branches:
            self.refs[f"refs/heads/{branch}"] = commit
        return commit

    def files_at(self, ref: str) -> dict[str, str]:
        sha = ref if ref in self.commits else self.refs[f"refs/heads/{ref}"]
        return self.trees[self.commits[sha]["tree"]]

    def comment_bodies(self, issue_number: int) -> list[str]:
        return [c["body"] for c in self.comments.values() if c["issue"] == issue_number]

    # --- contents -------------------------------------------------------

    async def get_file_content(self, path: str, ref: str | None = None) -> str:
        self._record("get_file_content")
        ref = ref or "mainline"
        sha = ref if ref in self.commits else self.refs.get(f"refs/heads/{ref}")
        if sha is None:
            raise NotFound("GET", f"/contents/{path}", 404, "No commit found for the ref")
        tree = self.trees[self.commits[sha]["tree"]]
        if path not in tree:
            raise NotFound("GET", f"/contents/{path}", 404, "Not Found")
        return tree[path]

    # --- refs, tags, trees, commits -------------------------------------

    async def get_branch_ref(self, branch: str) -> str:
        self._record("get_branch_ref")
        try:
            return self.refs[f"refs/heads/{branch}"]
        except KeyError:
            raise NotFound("GET", f"/git/ref/heads/{branch}", 404, "Not Found") from None

    async def create_ref(self, ref: str, sha: str) -> None:
        self._record("create_ref")
        if ref in self.refs:
            raise RemoteOperationFailure("POST", "/git/refs", 422, "Reference already exists")
        self.refs[ref] = sha

    async def update_ref(self, ref: str, sha: str, *, force: bool = False) -> None:
        self._record("update_ref")
        key = f"refs/{ref}"
        if key not in self.refs:
            raise RemoteOperationFailure("PATCH", f"/git/refs/{ref}", 422, "Reference does not exist")
        if not force and self.refs[key] not in self.commits[sha]["parents"]:
            raise RemoteOperationFailure(
                "PATCH", f"/git/refs/{ref}", 422, "Update is not a fast forward"
            )
        self.refs[key] = sha

    async def delete_ref(self, ref: str) -> None:
        self._record("delete_ref")
        key = f"refs/{ref}"
        if key not in self.refs:
            raise RemoteOperationFailure("DELETE", f"/git/refs/{ref}", 422, "Reference does not exist")
        del self.refs[key]

    async def create_tag(self, object_sha: str, tag: str, message: str) -> str:
        self._record("create_tag")
        sha = self._sha()
        self.tags[sha] = {"tag": tag, "object": object_sha, "message": message}
        return sha

    async def get_commit(self, sha: str) -> str:
        self._record("get_commit")
        return self.commits[sha]["tree"]

    async def create_tree(self, base_tree: str, entries: list[dict[str, str]]) -> str:
        self._record("create_tree")
        tree = dict(self.trees[base_tree])
        for entry in entries:
            tree[entry["path"]] = entry["content"]
        sha = self._sha()
        self.trees[sha] = tree
        return sha

    async def create_commit(self, message: str, parents: list[str], tree: str) -> str:
        self._record("create_commit")
        sha = self._sha()
        self.commits[sha] = {"tree": tree, "parents": list(parents), "message": message}
        return sha

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
        self._record("create_pull_request")
        number = next(self._numbers)
        pr = PullRequest(
            number=number,
            html_url=f"https://github.com/{self.repository}/pull/{number}",
            title=title,
            body=body,
            draft=draft,
            head_ref=head,
            base_ref=base,
        )
        self.pulls[number] = pr
        self.pull_options[number] = {"maintainer_can_modify": maintainer_can_modify}
        return pr

    async def get_pull_request(self, number: int) -> PullRequest:
        self._record("get_pull_request")
        if number not in self.pulls:
            raise NotFound("GET", f"/pulls/{number}", 404, "Not Found")
        return self.pulls[number].model_copy()

    async def update_pull_request(self, number: int, **fields: Any) -> PullRequest:
        self._record("update_pull_request")
        self.pulls[number] = self.pulls[number].model_copy(update=fields)
        return self.pulls[number].model_copy()

    async def list_pull_requests(
        self, *, head: str, base: str | None = None, state: str = "open"
    ) -> list[PullRequest]:
        self._record("list_pull_requests")
        return [
            pr.model_copy(update={"mergeable": None})
            for pr in self.pulls.values()
            if pr.head_ref == head
            and pr.state == state
            and (base is None or pr.base_ref == base)
        ]

    async def merge_pull_request(
        self, number: int, *, commit_title: str, sha: str, merge_method: str = "rebase"
    ) -> None:
        self._record("merge_pull_request")
        self.merges.append(
            {"number": number, "commit_title": commit_title, "sha": sha, "method": merge_method}
        )
        self.pulls[number] = self.pulls[number].model_copy(update={"state": "closed"})

    # --- issues ---------------------------------------------------------

    async def create_issue_comment(self, issue_number: int, body: str) -> int:
        self._record("create_issue_comment")
        comment_id = 1000 + len(self.comments)
        self.comments[comment_id] = {"issue": issue_number, "body": body, "edits": []}
        return comment_id

    async def update_issue_comment(self, comment_id: int, body: str) -> None:
        self._record("update_issue_comment")
        self.comments[comment_id]["body"] = body
        self.comments[comment_id]["edits"].append(body)

    async def add_labels(self, issue_number: int, labels: list[str]) -> None:
        self._record("add_labels")
        self.labels.setdefault(issue_number, []).extend(labels)

    async def update_issue(self, issue_number: int, **fields: Any) -> None:
        self._record("update_issue")
        self.issues.setdefault(issue_number, {}).update(fields)

    async def create_reaction(self, issue_number: int, content: str) -> None:
        self._record("create_reaction")
        self.reactions.append((issue_number, content))


@pytest.fixture
def fake() -> FakeGitHub:
    """A fake remote with stable and mainline at one commit holding a manifest."""
    remote = FakeGitHub()
    remote.seed({"manifest.json": MANIFEST, "README.md": "# app\n"})
    return remote


@pytest.fixture
def settings() -> Settings:
    return Settings(repository="octo/app", report_interval=0.01, maintainer="octocat")
