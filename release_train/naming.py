"""Branch, tag and title naming rules.

Branch and title conventions are load-bearing: the hotfix completion flow
recovers the version from the branch name, and the companion pull request
can be rediscovered from its "(2 of 2)" title suffix.
"""

from __future__ import annotations

import re

from .models import BumpKind

HOTFIX_PREFIX = "hotfix/"
RELEASE_PREFIX = "release/"
COMPANION_TITLE_MARKER = "2 of 2"

_COMPANION_RE = re.compile(r"<!--\s*release-train:companion=#(\d+)\s*-->")


class NamingPolicy:
    """Derives names from a version and bump kind.

    Args:
        stable_branch: Branch holding the currently shipped revision.
        mainline_branch: Ongoing development branch.
    """

    def __init__(
        self, stable_branch: str = "stable", mainline_branch: str = "mainline"
    ) -> None:
        self.stable_branch = stable_branch
        self.mainline_branch = mainline_branch

    def branch_name(self, bump: BumpKind, version: str) -> str:
        prefix = HOTFIX_PREFIX if bump.is_hotfix else RELEASE_PREFIX
        return prefix + version

    def base_branch(self, bump: BumpKind) -> str:
        return self.stable_branch if bump.is_hotfix else self.mainline_branch

    @staticmethod
    def tag_name(version: str) -> str:
        return f"v{version}"

    @staticmethod
    def release_title(bump: BumpKind, current: str, next_version: str) -> str:
        """Title shared by the release issue and its pull request(s)."""
        if bump.is_hotfix:
            return f"[Release] Hotfix {current} => {next_version} ({bump.value})"
        return f"[Release] New release {next_version} ({bump.value})"

    @staticmethod
    def pair_title(title: str, index: int) -> str:
        """Suffix a hotfix PR title with its position in the pair."""
        return f"{title} ({index} of 2)"

    @staticmethod
    def companion_title(primary_title: str) -> str:
        """Title the companion of a "(1 of 2)" pull request is expected to have."""
        return primary_title.replace("1 of 2", COMPANION_TITLE_MARKER)

    @staticmethod
    def version_from_branch(prefix: str, branch: str) -> str | None:
        """Return the version part of e.g. "hotfix/1.2.4", or None."""
        if not branch.startswith(prefix):
            return None
        return branch[len(prefix) :]


def companion_marker(number: int) -> str:
    """Hidden marker linking PR-A's body to its companion's number."""
    return f"<!-- release-train:companion=#{number} -->"


def parse_companion_marker(body: str | None) -> int | None:
    """Read the companion number back out of a PR body."""
    if not body:
        return None
    match = _COMPANION_RE.search(body)
    return int(match.group(1)) if match else None
