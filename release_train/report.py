"""Live status reporting through a single, repeatedly edited comment.

A workflow run posts one comment and keeps editing it instead of posting a
comment per step. LiveComment owns the comment and serializes edits.
LiveReport sits on top for release runs: the orchestrator publishes
WorkflowRun snapshots onto a queue, and a reporting task renders the newest
one at most once per interval, skipping edits that would not change the
text.
"""

from __future__ import annotations

import asyncio
import logging
import traceback
from types import TracebackType

from .errors import ReleaseTrainError, RemoteOperationFailure
from .github import GitHubClient
from .models import Stage, WorkflowRun

logger = logging.getLogger(__name__)

# Stages rendered as a checklist; CREATING_PULL_REQUESTS is rendered separately
_CHECKLIST = (
    Stage.FETCHING_VERSION,
    Stage.CHECKING_BRANCH_COLLISION,
    Stage.CREATING_BRANCH,
    Stage.COMMITTING_BUMPED_FILES,
)


def render_progress(run: WorkflowRun) -> str:
    """Render a run's stage checklist followed by its last message."""
    # Stage values start at 1, so "not started" compares below every stage
    current = run.stage if run.stage is not None else 0
    lines: list[str] = []
    for stage in _CHECKLIST:
        if current < stage:
            lines.append(f"- {stage.label}...")
        elif current == stage:
            lines.append(f"- ⏳ {stage.label}")
        else:
            lines.append(f"- ✅ {stage.label}")

    if current >= Stage.CREATING_PULL_REQUESTS:
        if run.prs_created >= run.prs_total:
            lines.append("- ✅ PR created")
        else:
            counter = f" ({run.prs_created} of {run.prs_total})" if run.prs_total > 1 else ""
            lines.append(f"- ⏳ Creating PR...{counter}")
    else:
        lines.append("- Create PR")

    return "\n".join(lines) + "\n\n\n" + run.last_message


def render_failure(
    error: BaseException, last_completed: str | None, maintainer: str | None = None
) -> str:
    """Render a failure for the live report.

    Includes the error kind, its message, the traceback and the last step
    that completed, so a human can pick the release up by hand.
    """
    kind = error.kind if isinstance(error, ReleaseTrainError) else "UnexpectedError"
    trace = "".join(traceback.format_exception(error)).rstrip()
    fence = "```"
    text = (
        f"❌ {kind}: {error}\n"
        f"{fence}\n{trace}\n{fence}\n\n"
        f"Last completed stage: {last_completed or 'none'}"
    )
    if maintainer:
        text += f"\n\n@{maintainer} please fix me!"
    return text


class LiveComment:
    """One comment whose body is replaced on every update.

    Use LiveComment.open() to create it; update() calls are applied in call
    order, never two at once.
    """

    def __init__(self, client: GitHubClient, comment_id: int, body: str) -> None:
        self.client = client
        self.comment_id = comment_id
        self.body = body
        self._lock = asyncio.Lock()

    @classmethod
    async def open(
        cls, client: GitHubClient, issue_number: int, initial_text: str
    ) -> LiveComment:
        comment_id = await client.create_issue_comment(issue_number, initial_text)
        return cls(client, comment_id, initial_text)

    async def update(self, text: str) -> None:
        async with self._lock:
            await self.client.update_issue_comment(self.comment_id, text)
            self.body = text


class LiveReport:
    """Rate-limited progress reporting for a release run.

    Args:
        comment: The live comment to edit.
        interval: Minimum seconds between two edits.
    """

    def __init__(self, comment: LiveComment, *, interval: float = 1.0) -> None:
        self.comment = comment
        self.interval = interval
        self.last_sent = comment.body
        self._queue: asyncio.Queue[WorkflowRun | None] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None

    @classmethod
    async def open(
        cls,
        client: GitHubClient,
        issue_number: int,
        run: WorkflowRun,
        *,
        interval: float = 1.0,
    ) -> LiveReport:
        comment = await LiveComment.open(client, issue_number, run.last_message)
        report = cls(comment, interval=interval)
        report.start()
        return report

    async def __aenter__(self) -> LiveReport:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    def publish(self, run: WorkflowRun) -> None:
        """Queue a snapshot of the run; never waits for the edit."""
        self._queue.put_nowait(run.model_copy(deep=True))

    async def close(self, final: WorkflowRun | None = None) -> None:
        """Send the final state, if any, and stop the reporting task."""
        if final is not None:
            self.publish(final)
        self._queue.put_nowait(None)
        if self._task is not None:
            task, self._task = self._task, None
            await task

    async def _send(self, run: WorkflowRun) -> None:
        text = render_progress(run)
        if text == self.last_sent:
            return
        await self.comment.update(text)
        self.last_sent = text

    async def _run(self) -> None:
        closing = False
        while not closing:
            run = await self._queue.get()
            if run is None:
                break
            # Coalesce everything queued since the last edit into the newest state
            while not self._queue.empty():
                queued = self._queue.get_nowait()
                if queued is None:
                    closing = True
                    break
                run = queued
            try:
                await self._send(run)
            except RemoteOperationFailure as exc:
                # last_sent is untouched, so a later state retries the edit
                logger.warning("Could not update the live report: %s", exc)
            if not closing:
                await asyncio.sleep(self.interval)
