"""Pull request creation, companion discovery and conditional merging."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from .errors import NotFound, RemoteOperationFailure
from .github import GitHubClient
from .models import PullRequest, PullRequestPair
from .naming import COMPANION_TITLE_MARKER, NamingPolicy, parse_companion_marker
from .templates import hotfix_body, mirror_body

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], Awaitable[None]]


async def _no_progress(created: int, total: int) -> None:
    return None


class PullRequestCoordinator:
    """Opens release pull requests and merges hotfix companions.

    Args:
        client: Remote API client.
        naming: Branch naming policy (stable and mainline names).
        label: Label attached to every pull request opened.
    """

    def __init__(self, client: GitHubClient, naming: NamingPolicy, label: str) -> None:
        self.client = client
        self.naming = naming
        self.label = label

    async def create_release_pr(
        self, base: str, head: str, title: str, body: str
    ) -> PullRequest:
        """Open the single, non-draft pull request of a major/minor release."""
        pr = await self.client.create_pull_request(
            base=base, head=head, title=title, body=body, maintainer_can_modify=True
        )
        await self.client.add_labels(pr.number, [self.label])
        logger.info("Opened release PR #%d %s", pr.number, pr.html_url)
        return pr

    async def create_hotfix_pair(
        self,
        head: str,
        title: str,
        *,
        shared: str,
        tag: str,
        project_template: str,
        on_progress: ProgressCallback = _no_progress,
    ) -> PullRequestPair:
        """Open PR-A (draft, into stable) and PR-B (mirror, into mainline).

        Each body wants the other's URL, so PR-A is created first with a
        placeholder link and its body is rewritten once PR-B exists.
        """
        stable = self.naming.stable_branch
        mainline = self.naming.mainline_branch

        await on_progress(0, 2)
        primary = await self.client.create_pull_request(
            base=stable,
            head=head,
            title=self.naming.pair_title(title, 1),
            body=hotfix_body(shared, tag, mainline, project_template),
            draft=True,
            maintainer_can_modify=True,
        )
        await self.client.add_labels(primary.number, [self.label])
        await on_progress(1, 2)

        companion = await self.client.create_pull_request(
            base=mainline,
            head=head,
            title=self.naming.pair_title(title, 2),
            body=mirror_body(primary.html_url, stable),
        )
        await self.client.add_labels(companion.number, [self.label])
        await on_progress(2, 2)

        primary = await self.client.update_pull_request(
            primary.number,
            body=hotfix_body(
                shared,
                tag,
                mainline,
                project_template,
                companion_url=companion.html_url,
                companion_number=companion.number,
            ),
        )
        logger.info(
            "Opened hotfix PRs #%d and #%d for %s", primary.number, companion.number, head
        )
        return PullRequestPair(primary=primary, companion=companion)

    async def find_companion(
        self, head_branch: str, primary_number: int | None = None
    ) -> PullRequest | None:
        """Find the open mirror PR of a hotfix branch.

        The marker in PR-A's body is tried first; pull requests opened
        before the marker existed are found by their "2 of 2" title.

        Returns:
            The companion with `mergeable` populated, or None.
        """
        if primary_number is not None:
            primary = await self.client.get_pull_request(primary_number)
            number = parse_companion_marker(primary.body)
            if number is not None:
                try:
                    companion = await self.client.get_pull_request(number)
                except NotFound:
                    companion = None
                if companion is not None and companion.state == "open":
                    return companion
                logger.warning("Companion #%d of %s is gone", number, head_branch)

        candidates = await self.client.list_pull_requests(
            head=head_branch, base=self.naming.mainline_branch, state="open"
        )
        for candidate in candidates:
            if COMPANION_TITLE_MARKER in candidate.title:
                # Listing does not include mergeability
                return await self.client.get_pull_request(candidate.number)
        return None

    async def merge_if_possible(
        self, pr: PullRequest, commit_title: str, sha: str
    ) -> bool:
        """Rebase-merge `pr` if the host says it is mergeable.

        `mergeable` is None while the host is still computing it; that is
        treated as not mergeable and left to a human.

        Returns:
            True if the pull request was merged.
        """
        if pr.mergeable is not True:
            logger.info("PR #%d is not mergeable (%s)", pr.number, pr.mergeable)
            return False
        try:
            await self.client.merge_pull_request(
                pr.number, commit_title=commit_title, sha=sha, merge_method="rebase"
            )
        except RemoteOperationFailure as exc:
            logger.warning("Could not merge PR #%d: %s", pr.number, exc)
            return False
        logger.info("Merged PR #%d", pr.number)
        return True
