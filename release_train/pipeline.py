"""Release workflows: request → branch → bump → PR(s), and their completion.

This module orchestrates the three workflows release-train runs:

1. run_release: a maintainer asked for a major/minor/patch release.
   Read the current version, create release/<v> or hotfix/<v>, commit the
   version bump, and open one PR (release) or two linked PRs (hotfix),
   streaming progress into a single live comment on the issue.
2. complete_hotfix: the hotfix PR into stable was marked ready. Tag it,
   force-push stable, and merge the mainline companion if possible.
3. complete_release: the release PR was merged into mainline. Tag it,
   force-push stable, and delete the release branch.

Nothing is kept between runs. Every run reads what it needs from the
remote repository, and a failed run leaves whatever it already created in
place for a human to finish or clean up.
"""

from __future__ import annotations

import asyncio
import logging

from .branches import BranchRepository
from .commits import TreeCommitBuilder, bump_manifest_version
from .config import Settings
from .errors import RemoteOperationFailure
from .github import GitHubClient
from .models import (
    BranchHandle,
    HotfixReadyForReview,
    ReleaseMerged,
    ReleaseRequested,
    Stage,
    Version,
    WorkflowRun,
)
from .naming import HOTFIX_PREFIX, RELEASE_PREFIX, NamingPolicy
from .pulls import PullRequestCoordinator
from .report import LiveComment, LiveReport, render_failure
from .templates import load_project_template, release_body, shared_preamble
from .versions import parse_version, read_manifest_version

logger = logging.getLogger(__name__)


class ReleaseOrchestrator:
    """Runs the release workflows against one repository.

    Holds no per-run state: each workflow method builds its own WorkflowRun,
    so concurrent runs only meet at the remote repository.

    Args:
        client: Remote API client bound to the repository.
        settings: Project settings.
    """

    def __init__(self, client: GitHubClient, settings: Settings) -> None:
        self.client = client
        self.settings = settings
        self.naming = NamingPolicy(settings.stable_branch, settings.mainline_branch)
        self.branches = BranchRepository(client)
        self.commits = TreeCommitBuilder(client)
        self.pulls = PullRequestCoordinator(client, self.naming, settings.release_label)

    # --- new release ----------------------------------------------------

    async def fetch_current_version(self, ref: str) -> Version:
        """Read the project version from the manifest on `ref`."""
        manifest = await self.client.get_file_content(self.settings.manifest_path, ref=ref)
        return read_manifest_version(manifest)

    async def run_release(self, event: ReleaseRequested) -> WorkflowRun | None:
        """Prepare a release or hotfix branch and its pull request(s).

        Returns:
            The finished run (with `failure` set if it stopped on an
            error), or None if the manifest version is invalid, in which
            case nothing on the remote was touched.
        """
        run = WorkflowRun(
            bump=event.bump,
            base_branch=self.naming.base_branch(event.bump),
            stage=Stage.FETCHING_VERSION,
        )
        try:
            current = await self.fetch_current_version(run.base_branch)
        except RemoteOperationFailure as exc:
            # Nothing was mutated yet, but the requester still needs to hear why
            logger.error("Cannot read %s: %s", self.settings.manifest_path, exc)
            report = await self._open_report(event, run)
            return await self._fail(report, run, exc)

        if not current.is_valid:
            logger.warning(
                "Manifest %s has invalid version %r, not releasing",
                self.settings.manifest_path,
                current.text,
            )
            return None

        run.current_version = current.text
        run.next_version = current.next_for(event.bump)
        run.new_branch = self.naming.branch_name(event.bump, run.next_version)
        run.prs_total = 2 if event.bump.is_hotfix else 1

        report = await self._open_report(event, run)
        try:
            await self._release_steps(event, run, report)
        except Exception as exc:
            return await self._fail(report, run, exc)

        run.stage = Stage.DONE
        await report.close(run)
        logger.info("Release %s prepared on %s", run.next_version, run.new_branch)
        return run

    async def _open_report(self, event: ReleaseRequested, run: WorkflowRun) -> LiveReport:
        report = await LiveReport.open(
            self.client,
            event.issue_number,
            run,
            interval=self.settings.report_interval,
        )
        report.publish(run)
        return report

    async def _fail(
        self, report: LiveReport, run: WorkflowRun, exc: BaseException
    ) -> WorkflowRun:
        logger.error("Release run failed during %s", run.stage, exc_info=exc)
        last = run.last_completed_stage
        run.failure = render_failure(
            exc, last.label if last else None, self.settings.maintainer
        )
        run.last_message = run.failure
        await report.close(run)
        return run

    def _advance(self, report: LiveReport, run: WorkflowRun, stage: Stage) -> None:
        run.stage = stage
        report.publish(run)

    async def _release_steps(
        self, event: ReleaseRequested, run: WorkflowRun, report: LiveReport
    ) -> None:
        bump = event.bump
        title = self.naming.release_title(bump, run.current_version, run.next_version)
        template_path = (
            self.settings.hotfix_template if bump.is_hotfix else self.settings.release_template
        )

        # Issue bookkeeping and the template fetch do not depend on each other
        try:
            async with asyncio.TaskGroup() as group:
                group.create_task(self.client.create_reaction(event.issue_number, "rocket"))
                group.create_task(
                    self.client.update_issue(
                        event.issue_number,
                        title=title,
                        assignees=[],
                        labels=[self.settings.release_label],
                    )
                )
                template_task = group.create_task(
                    load_project_template(
                        self.client, template_path, run.next_version, ref=run.base_branch
                    )
                )
        except ExceptionGroup as errors:
            # Report the first step error itself, not the group wrapping it
            raise errors.exceptions[0] from None
        project_template = template_task.result()
        shared = shared_preamble(event.issue_number, self.settings.stable_branch)

        self._advance(report, run, Stage.CHECKING_BRANCH_COLLISION)
        existing = await self.branches.exists(run.new_branch)
        if existing is not None:
            await self._replace_existing_branch(event, existing)

        self._advance(report, run, Stage.CREATING_BRANCH)
        branch = await self.branches.create_from(run.base_branch, run.new_branch)

        self._advance(report, run, Stage.COMMITTING_BUMPED_FILES)
        await self.commits.commit_edits(
            branch,
            {
                self.settings.manifest_path: bump_manifest_version(
                    run.current_version, run.next_version
                )
            },
            f"chore: bump version from {run.current_version} to {run.next_version}",
        )

        self._advance(report, run, Stage.CREATING_PULL_REQUESTS)
        user = event.triggering_user
        if not bump.is_hotfix:
            pr = await self.pulls.create_release_pr(
                base=self.settings.mainline_branch,
                head=run.new_branch,
                title=title,
                body=release_body(shared, project_template),
            )
            run.pull_requests = [pr]
            run.prs_created = 1
            run.last_message = (
                f"Hi @{user}! I have created [a PR for the next version "
                f"{run.next_version}]({pr.html_url}). "
                "Please test it, feel free to add new patches."
            )
            report.publish(run)
            return

        async def on_progress(created: int, total: int) -> None:
            run.prs_created = created
            run.prs_total = total
            report.publish(run)

        pair = await self.pulls.create_hotfix_pair(
            run.new_branch,
            title,
            shared=shared,
            tag=self.naming.tag_name(run.next_version),
            project_template=project_template,
            on_progress=on_progress,
        )
        run.pull_requests = [pair.primary, pair.companion]
        run.last_message = (
            f"Hi @{user}! I have created [a PR for the next version "
            f"{run.next_version}]({pair.primary.html_url}) and there is "
            f"[another PR to make sure patches are merged into the mainline]"
            f"({pair.companion.html_url})."
        )
        report.publish(run)

    async def _replace_existing_branch(
        self, event: ReleaseRequested, existing: BranchHandle
    ) -> None:
        # Last writer wins: an earlier run (or a human) left this branch behind
        logger.warning("Branch %s exists at %s, replacing it", existing.name, existing.sha)
        await self.client.create_issue_comment(
            event.issue_number,
            f"The branch {existing.name} already exists, I removed it to continue. "
            f"FYI that branch was on commit {existing.sha}",
        )
        await self.branches.delete(existing.name)

    # --- completion -----------------------------------------------------

    async def _tag_and_publish(self, version: str, sha: str) -> None:
        # Tag first: stable must never point at an untagged release
        await self.branches.tag_commit(sha, self.naming.tag_name(version))
        await self.branches.force_push(self.settings.stable_branch, sha)

    async def _report_failure(
        self, comment: LiveComment, exc: BaseException, last_completed: str | None
    ) -> None:
        logger.error("Completion failed after %s", last_completed, exc_info=exc)
        await comment.update(
            render_failure(exc, last_completed, self.settings.maintainer)
        )

    def _completion_version(self, prefix: str, branch: str) -> Version | None:
        version_text = self.naming.version_from_branch(prefix, branch)
        if version_text is None:
            return None
        version = parse_version(version_text)
        if not version.is_valid:
            logger.warning("Ignoring %s: invalid version", branch)
            return None
        return version

    async def complete_hotfix(self, event: HotfixReadyForReview) -> bool | None:
        """Ship a hotfix whose stable PR left draft state.

        Tags the head commit, force-pushes stable to it, then tries to merge
        the mainline companion. A missing or unmergeable companion is
        reported for a human to handle, not treated as a failure.

        Returns:
            None if the event is not for a hotfix PR into stable (or the
            branch carries an invalid version); otherwise whether the
            mainline companion was merged too.

        Raises:
            Exception: Any step failure, after reporting it on the pull request.
        """
        if event.base_branch != self.settings.stable_branch:
            return None
        version = self._completion_version(HOTFIX_PREFIX, event.head_branch)
        if version is None:
            return None

        cc_logins = dict.fromkeys([event.sender_login, *event.assignees])
        cc = "\n\n(CC: " + " ".join(f"@{login}" for login in cc_logins) + ")"

        comment = await LiveComment.open(
            self.client,
            event.pull_number,
            "⚡ This PR is marked as ready. Preparing hotfix...",
        )
        done: str | None = None
        try:
            await self._tag_and_publish(str(version), event.head_sha)
            done = f"Tag and force-push `{self.settings.stable_branch}`"
            companion = await self.pulls.find_companion(
                event.head_branch, event.pull_number
            )
            done = "Find the related PR"
            if companion is None:
                expected = self.naming.companion_title(event.title)
                await comment.update(
                    "✔ This PR is automatically merged.\n\n"
                    "⚠ I can't find the related PR for this PR so I can't merge it "
                    f'for you. It should be titled as "{expected}"{cc}'
                )
                return False

            merged = await self.pulls.merge_if_possible(
                companion,
                f"chore: merge {version} into {self.settings.mainline_branch}",
                event.head_sha,
            )
            if not merged:
                await comment.update(
                    "✔ This PR is automatically merged.\n\n"
                    f"⚠ I can't automatically merge [the related PR]({companion.html_url}). "
                    f"You should do it yourself.{cc}"
                )
                return False

            done = "Merge the related PR"
            await self.branches.delete(event.head_branch)
            await comment.update(
                "✔ This PR is automatically merged.\n\n"
                f"✔ [The related PR]({companion.html_url}) is automatically merged too.\n\n"
                f"🎉 Don't forget to upload them to the store!{cc}"
            )
            return True
        except Exception as exc:
            await self._report_failure(comment, exc, done)
            raise

    async def complete_release(self, event: ReleaseMerged) -> bool | None:
        """Ship a release whose PR was merged into mainline.

        Returns:
            None if the event is not for a merged release PR, else True.

        Raises:
            Exception: Any step failure, after reporting it on the pull request.
        """
        if event.base_branch != self.settings.mainline_branch:
            return None
        version = self._completion_version(RELEASE_PREFIX, event.head_branch)
        if version is None:
            return None

        stable = self.settings.stable_branch
        tag = self.naming.tag_name(str(version))
        comment = await LiveComment.open(
            self.client,
            event.pull_number,
            f"⚡ Force pushing {event.head_sha} to `{stable}`...",
        )
        done: str | None = None
        try:
            await self._tag_and_publish(str(version), event.head_sha)
            done = f"Tag and force-push `{stable}`"
            await self.branches.delete(event.head_branch)
        except Exception as exc:
            await self._report_failure(comment, exc, done)
            raise
        await comment.update(
            f"✔ The `{stable}` branch has been updated to {event.head_sha}.\n\n"
            f"✔ The commit {event.head_sha} is tagged as {tag}.\n\n"
            f"✔ The branch {event.head_branch} is deleted."
        )
        return True
