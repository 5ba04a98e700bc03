"""Build a single commit from a set of file edits via the git data API.

No working copy is involved: the new tree is created remotely on top of
the branch tip's tree, so files that are not edited are inherited as-is.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import assert_never

from .github import GitHubClient
from .models import BranchHandle, FileEdit, ReplaceContent, TransformContent

logger = logging.getLogger(__name__)

BLOB_MODE = "100644"


def bump_manifest_version(old: str, new: str) -> TransformContent:
    """Edit that rewrites the manifest's version field in place.

    Only the literal `"version": "<old>"` substring is replaced so the rest
    of the file keeps its formatting and key order. A manifest written any
    other way is left unchanged, with a warning.
    """
    needle = f'"version": "{old}"'

    def transform(text: str) -> str:
        if needle not in text:
            logger.warning("Manifest has no %s field, version left unchanged", needle)
            return text
        return text.replace(needle, f'"version": "{new}"')

    return TransformContent(transform=transform)


class TreeCommitBuilder:
    """Applies file edits to a branch as one atomic commit."""

    def __init__(self, client: GitHubClient) -> None:
        self.client = client

    async def _render(self, branch: BranchHandle, path: str, edit: FileEdit) -> str:
        if isinstance(edit, ReplaceContent):
            return edit.text
        if isinstance(edit, TransformContent):
            # Read at the tip being edited, not the default branch
            current = await self.client.get_file_content(path, ref=branch.sha)
            return edit.transform(current)
        assert_never(edit)

    async def commit_edits(
        self, branch: BranchHandle, edits: Mapping[str, FileEdit], message: str
    ) -> str:
        """Commit all edits to `branch` and move the branch to the new commit.

        Args:
            branch: Branch to commit on, with the tip the edits apply to.
            edits: Map of repository path → edit.
            message: Commit message.

        Returns:
            SHA of the new commit. Its sole parent is `branch.sha`.
        """
        base_tree = await self.client.get_commit(branch.sha)

        paths = list(edits)
        contents = await asyncio.gather(
            *(self._render(branch, path, edits[path]) for path in paths)
        )
        entries = [
            {"path": path, "mode": BLOB_MODE, "type": "blob", "content": content}
            for path, content in zip(paths, contents)
        ]

        tree = await self.client.create_tree(base_tree, entries)
        commit = await self.client.create_commit(message, [branch.sha], tree)
        await self.client.update_ref(f"heads/{branch.name}", commit)
        logger.info("Committed %d file(s) to %s as %s", len(entries), branch.name, commit)
        return commit
