"""Data models for release-train.

These Pydantic models represent the versions, branches, pull requests,
events and per-run state passed between the workflow components.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from typing import Any

import semver
from pydantic import BaseModel, ConfigDict, Field

from .errors import InvalidVersionString


class BumpKind(str, enum.Enum):
    """Which version component a release increments.

    A patch bump uses the hotfix branching convention; major and minor
    bumps use the release convention.
    """

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"

    @property
    def is_hotfix(self) -> bool:
        return self is BumpKind.PATCH


class Stage(enum.IntEnum):
    """Ordered stages of a release run, used only to render progress."""

    FETCHING_VERSION = 1
    CHECKING_BRANCH_COLLISION = 2
    CREATING_BRANCH = 3
    COMMITTING_BUMPED_FILES = 4
    CREATING_PULL_REQUESTS = 5
    DONE = 6

    @property
    def label(self) -> str:
        return _STAGE_LABELS[self]

    @property
    def previous(self) -> Stage | None:
        if self is Stage.FETCHING_VERSION:
            return None
        return Stage(self - 1)


_STAGE_LABELS = {
    Stage.FETCHING_VERSION: "Get latest version",
    Stage.CHECKING_BRANCH_COLLISION: "Check if the target branch exists",
    Stage.CREATING_BRANCH: "Check out to the target branch",
    Stage.COMMITTING_BUMPED_FILES: "Bump version",
    Stage.CREATING_PULL_REQUESTS: "Create PR",
    Stage.DONE: "Done",
}


class Version(BaseModel):
    """A parsed major.minor.patch version.

    Invalid input still produces a Version (with is_valid=False) so callers
    can decide to stop without handling an exception. Asking an invalid
    version for a successor raises InvalidVersionString.

    Attributes:
        text: The string the version was parsed from.
        is_valid: True iff text is exactly three non-negative integers.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    major: int = Field(default=0, ge=0)
    minor: int = Field(default=0, ge=0)
    patch: int = Field(default=0, ge=0)
    is_valid: bool = False

    def __str__(self) -> str:
        if not self.is_valid:
            return self.text
        return f"{self.major}.{self.minor}.{self.patch}"

    def _semver(self) -> semver.Version:
        if not self.is_valid:
            raise InvalidVersionString(self.text)
        return semver.Version(self.major, self.minor, self.patch)

    @property
    def next_major(self) -> str:
        return str(self._semver().bump_major())

    @property
    def next_minor(self) -> str:
        return str(self._semver().bump_minor())

    @property
    def next_patch(self) -> str:
        return str(self._semver().bump_patch())

    def next_for(self, bump: BumpKind) -> str:
        """Return the successor version for the given bump kind."""
        if bump is BumpKind.MAJOR:
            return self.next_major
        if bump is BumpKind.MINOR:
            return self.next_minor
        return self.next_patch


class BranchHandle(BaseModel):
    """A branch name together with the commit its ref points at."""

    name: str
    sha: str


class PullRequest(BaseModel):
    """The subset of a hosted pull request that release-train uses.

    Attributes:
        mergeable: True/False once the host has computed mergeability;
                   None while it is still being computed.
    """

    number: int
    html_url: str
    title: str
    body: str | None = None
    draft: bool = False
    mergeable: bool | None = None
    state: str = "open"
    head_ref: str = ""
    base_ref: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> PullRequest:
        """Build from a REST pull request payload."""
        return cls(
            number=data["number"],
            html_url=data["html_url"],
            title=data.get("title", ""),
            body=data.get("body"),
            draft=data.get("draft", False),
            mergeable=data.get("mergeable"),
            state=data.get("state", "open"),
            head_ref=(data.get("head") or {}).get("ref", ""),
            base_ref=(data.get("base") or {}).get("ref", ""),
        )


class PullRequestPair(BaseModel):
    """The two pull requests opened for a hotfix.

    Attributes:
        primary: PR-A, hotfix branch into stable, opened as a draft.
        companion: PR-B, hotfix branch into mainline.
    """

    primary: PullRequest
    companion: PullRequest


class ReplaceContent(BaseModel):
    """File edit that replaces the whole file with literal text."""

    model_config = ConfigDict(frozen=True)

    text: str


class TransformContent(BaseModel):
    """File edit computed from the file's current content."""

    model_config = ConfigDict(frozen=True)

    transform: Callable[[str], str]


FileEdit = ReplaceContent | TransformContent


class ReleaseRequested(BaseModel):
    """A maintainer asked for a new release from an issue."""

    bump: BumpKind
    triggering_user: str
    issue_number: int


class HotfixReadyForReview(BaseModel):
    """A hotfix pull request was converted from draft to ready."""

    pull_number: int
    title: str
    head_branch: str
    head_sha: str
    base_branch: str
    assignees: list[str] = Field(default_factory=list)
    sender_login: str


class ReleaseMerged(BaseModel):
    """A release pull request was merged into the mainline branch."""

    pull_number: int
    head_branch: str
    head_sha: str
    base_branch: str


class WorkflowRun(BaseModel):
    """State of one release run, owned by the orchestrator until it ends.

    Never persisted: a rerun reconstructs everything from the remote
    repository's branches, pull requests and tags.

    Attributes:
        stage: The stage currently in progress, None before the first one.
        prs_created: Pull requests created so far in CREATING_PULL_REQUESTS.
        prs_total: Pull requests this run will create (1 or 2).
        failure: Rendered failure text when the run stopped on an error.
    """

    bump: BumpKind
    current_version: str = ""
    next_version: str = ""
    new_branch: str = ""
    base_branch: str = ""
    stage: Stage | None = None
    last_message: str = "⚙ Working..."
    prs_created: int = 0
    prs_total: int = 1
    pull_requests: list[PullRequest] = Field(default_factory=list)
    failure: str | None = None

    @property
    def last_completed_stage(self) -> Stage | None:
        if self.stage is None:
            return None
        if self.stage is Stage.DONE:
            return Stage.DONE
        return self.stage.previous
