"""Error types for release-train.

Every failure path in a workflow run carries one of these kinds so that the
final status comment can name what went wrong without guessing at the shape
of arbitrary exceptions.
"""

from __future__ import annotations


class ReleaseTrainError(Exception):
    """Base class for all release-train failures."""

    @property
    def kind(self) -> str:
        return type(self).__name__


class ConfigError(ReleaseTrainError):
    """Configuration is missing or malformed."""


class InvalidVersionString(ReleaseTrainError):
    """A version string is not exactly major.minor.patch."""

    def __init__(self, text: str) -> None:
        super().__init__(f"{text!r} is not a major.minor.patch version")
        self.text = text


class BranchCollision(ReleaseTrainError):
    """The branch to create already exists on the remote."""

    def __init__(self, branch: str, sha: str | None = None) -> None:
        detail = f" (on commit {sha})" if sha else ""
        super().__init__(f"Branch {branch} already exists{detail}")
        self.branch = branch
        self.sha = sha


class TemplateMissing(ReleaseTrainError):
    """The project's PR body template file does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Template {path} not found")
        self.path = path


class RemoteOperationFailure(ReleaseTrainError):
    """A call to the hosted version-control API failed.

    Attributes:
        method: HTTP method of the failed call.
        path: API path of the failed call, relative to the API root.
        status: HTTP status code, or None when no response was received.
    """

    def __init__(
        self, method: str, path: str, status: int | None, message: str
    ) -> None:
        status_text = status if status is not None else "no response"
        super().__init__(f"{method} {path} failed ({status_text}): {message}")
        self.method = method
        self.path = path
        self.status = status


class NotFound(RemoteOperationFailure):
    """The remote reported that the requested object does not exist."""
