"""Branch and tag operations on the remote repository."""

from __future__ import annotations

import logging

from .errors import BranchCollision, NotFound, RemoteOperationFailure
from .github import GitHubClient
from .models import BranchHandle

logger = logging.getLogger(__name__)


class BranchRepository:
    """Maps branch-level operations onto the remote ref and tag primitives."""

    def __init__(self, client: GitHubClient) -> None:
        self.client = client

    async def exists(self, name: str) -> BranchHandle | None:
        """Look up a branch.

        Returns:
            The branch and its tip commit, or None if the remote reports
            it does not exist. Any other failure propagates.
        """
        try:
            sha = await self.client.get_branch_ref(name)
        except NotFound:
            return None
        return BranchHandle(name=name, sha=sha)

    async def create_from(self, base: str, name: str) -> BranchHandle:
        """Create branch `name` at the tip of `base`.

        Not idempotent: callers must delete an existing branch first.

        Raises:
            BranchCollision: If the remote says `name` already exists.
        """
        base_sha = await self.client.get_branch_ref(base)
        try:
            await self.client.create_ref(f"refs/heads/{name}", base_sha)
        except RemoteOperationFailure as exc:
            # The REST API reports an existing ref as 422 "Reference already exists"
            if exc.status == 422 and "already exists" in str(exc):
                raise BranchCollision(name) from exc
            raise
        logger.info("Created %s from %s at %s", name, base, base_sha)
        return BranchHandle(name=name, sha=base_sha)

    async def delete(self, name: str) -> None:
        await self.client.delete_ref(f"heads/{name}")
        logger.info("Deleted branch %s", name)

    async def force_push(self, name: str, sha: str) -> None:
        """Move `name` to `sha` unconditionally, discarding its history.

        Only ever used for the stable branch.
        """
        await self.client.update_ref(f"heads/{name}", sha, force=True)
        logger.info("Force-pushed %s to %s", name, sha)

    async def tag_commit(self, sha: str, tag: str) -> None:
        """Create annotated tag `tag` on commit `sha`.

        The tag object must exist before its ref is created. If ref creation
        fails the orphaned tag object is left for the host to collect.
        """
        tag_sha = await self.client.create_tag(sha, tag, tag)
        await self.client.create_ref(f"refs/tags/{tag}", tag_sha)
        logger.info("Tagged %s as %s", sha, tag)
