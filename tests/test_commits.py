"""Tests for release_train.commits."""

from __future__ import annotations

import pytest
from conftest import MANIFEST, FakeGitHub

from release_train.commits import TreeCommitBuilder, bump_manifest_version
from release_train.models import BranchHandle, ReplaceContent, TransformContent


@pytest.fixture
def branch(fake: FakeGitHub) -> BranchHandle:
    fake.seed({"A.txt": "a", "B.txt": "b", "C.txt": "c"}, branches=("work",))
    return BranchHandle(name="work", sha=fake.refs["refs/heads/work"])


class TestCommitEdits:
    @pytest.mark.asyncio
    async def test_single_commit_with_all_edits(
        self, fake: FakeGitHub, branch: BranchHandle
    ) -> None:
        sha = await TreeCommitBuilder(fake).commit_edits(
            branch,
            {
                "A.txt": ReplaceContent(text="new a"),
                "B.txt": TransformContent(transform=lambda text: text + "!"),
            },
            "edit two files",
        )

        commit = fake.commits[sha]
        assert commit["parents"] == [branch.sha]
        assert commit["message"] == "edit two files"
        assert fake.trees[commit["tree"]] == {"A.txt": "new a", "B.txt": "b!", "C.txt": "c"}
        assert fake.refs["refs/heads/work"] == sha
        assert fake.calls.count("create_commit") == 1

    @pytest.mark.asyncio
    async def test_literal_edits_fetch_nothing(
        self, fake: FakeGitHub, branch: BranchHandle
    ) -> None:
        await TreeCommitBuilder(fake).commit_edits(
            branch, {"new.txt": ReplaceContent(text="hello")}, "add"
        )
        assert "get_file_content" not in fake.calls
        assert fake.files_at("work")["new.txt"] == "hello"

    @pytest.mark.asyncio
    async def test_transform_reads_branch_tip_not_default_branch(
        self, fake: FakeGitHub, branch: BranchHandle
    ) -> None:
        # mainline has no A.txt; reading it there would raise NotFound
        await TreeCommitBuilder(fake).commit_edits(
            branch, {"A.txt": TransformContent(transform=str.upper)}, "upper"
        )
        assert fake.files_at("work")["A.txt"] == "A"


class TestBumpManifestVersion:
    def test_replaces_only_the_version_field(self) -> None:
        edit = bump_manifest_version("2.0.0", "2.1.0")
        result = edit.transform(MANIFEST)
        assert '"version": "2.1.0"' in result
        assert result.replace("2.1.0", "2.0.0") == MANIFEST

    def test_leaves_other_occurrences_alone(self) -> None:
        text = '{"version": "1.0.0", "min": "1.0.0"}'
        result = bump_manifest_version("1.0.0", "1.1.0").transform(text)
        assert result == '{"version": "1.1.0", "min": "1.0.0"}'

    def test_unmatched_layout_is_left_unchanged_with_warning(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        text = '{"version":"2.0.0"}'
        with caplog.at_level("WARNING", logger="release_train.commits"):
            result = bump_manifest_version("2.0.0", "2.1.0").transform(text)
        assert result == text
        assert "version left unchanged" in caplog.text
