"""CLI entry point for release-train.

Each sub-command receives one already-classified event as options, which
is how a CI job reacting to issue and pull request webhooks invokes it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import click

from .config import Settings, load_settings
from .errors import ReleaseTrainError
from .github import GitHubClient
from .models import (
    BumpKind,
    HotfixReadyForReview,
    ReleaseMerged,
    ReleaseRequested,
)
from .pipeline import ReleaseOrchestrator

T = TypeVar("T")


def _run(
    ctx: click.Context,
    workflow: Callable[[ReleaseOrchestrator], Awaitable[T]],
) -> T:
    """Run one workflow with a fresh client and surface errors to click."""
    settings: Settings = ctx.obj["settings"]
    token: str | None = ctx.obj["token"]

    async def main() -> T:
        async with GitHubClient(
            settings.repository, token, api_url=settings.api_url
        ) as client:
            return await workflow(ReleaseOrchestrator(client, settings))

    try:
        return asyncio.run(main())
    except ReleaseTrainError as exc:
        raise click.ClickException(f"{exc.kind}: {exc}") from exc


@click.group()
@click.version_option(package_name="release-train")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Settings file (release-train.toml or pyproject.toml).",
)
@click.option("--repo", default=None, help="Repository as OWNER/NAME.")
@click.option(
    "--token", envvar="GITHUB_TOKEN", default=None, help="API token. [env: GITHUB_TOKEN]"
)
@click.option("-v", "--verbose", is_flag=True, help="Log every API call.")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    repo: str | None,
    token: str | None,
    verbose: bool,
) -> None:
    """Release and hotfix automation on top of the GitHub API."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        settings = load_settings(config_path, repository=repo)
    except ReleaseTrainError as exc:
        raise click.ClickException(str(exc)) from exc
    ctx.obj = {"settings": settings, "token": token}


@cli.command()
@click.argument("bump", type=click.Choice([b.value for b in BumpKind]))
@click.option("--issue", "issue_number", type=int, required=True, help="Triggering issue.")
@click.option("--user", "triggering_user", required=True, help="Login of the requester.")
@click.pass_context
def release(
    ctx: click.Context, bump: str, issue_number: int, triggering_user: str
) -> None:
    """Prepare a BUMP release: branch, version bump and pull request(s)."""
    event = ReleaseRequested(
        bump=BumpKind(bump), triggering_user=triggering_user, issue_number=issue_number
    )
    run = _run(ctx, lambda orchestrator: orchestrator.run_release(event))
    if run is None:
        click.echo("Manifest version is invalid; nothing was done.")
        return
    if run.failure is not None:
        raise click.ClickException(f"Release {run.next_version or bump} failed")
    for pr in run.pull_requests:
        click.echo(f"✓ #{pr.number} {pr.html_url}")


@cli.command("hotfix-ready")
@click.option("--pr", "pull_number", type=int, required=True, help="Hotfix PR number.")
@click.option("--title", required=True, help="Hotfix PR title.")
@click.option("--head", "head_branch", required=True, help="Head branch.")
@click.option("--sha", "head_sha", required=True, help="Head commit.")
@click.option("--base", "base_branch", required=True, help="Base branch.")
@click.option("--assignee", "assignees", multiple=True, help="Assignee login (repeatable).")
@click.option("--sender", "sender_login", required=True, help="Login that marked it ready.")
@click.pass_context
def hotfix_ready(
    ctx: click.Context,
    pull_number: int,
    title: str,
    head_branch: str,
    head_sha: str,
    base_branch: str,
    assignees: tuple[str, ...],
    sender_login: str,
) -> None:
    """Ship a hotfix whose PR was marked ready for review."""
    event = HotfixReadyForReview(
        pull_number=pull_number,
        title=title,
        head_branch=head_branch,
        head_sha=head_sha,
        base_branch=base_branch,
        assignees=list(assignees),
        sender_login=sender_login,
    )
    merged = _run(ctx, lambda orchestrator: orchestrator.complete_hotfix(event))
    if merged is None:
        click.echo("Not a hotfix pull request; ignored.")
    elif merged:
        click.echo("✓ Hotfix shipped and merged into mainline")
    else:
        click.echo("✓ Hotfix shipped; the mainline PR needs a manual merge")


@cli.command("release-merged")
@click.option("--pr", "pull_number", type=int, required=True, help="Release PR number.")
@click.option("--head", "head_branch", required=True, help="Head branch.")
@click.option("--sha", "head_sha", required=True, help="Merged head commit.")
@click.option("--base", "base_branch", required=True, help="Base branch.")
@click.pass_context
def release_merged(
    ctx: click.Context,
    pull_number: int,
    head_branch: str,
    head_sha: str,
    base_branch: str,
) -> None:
    """Tag and publish a release whose PR was merged."""
    event = ReleaseMerged(
        pull_number=pull_number,
        head_branch=head_branch,
        head_sha=head_sha,
        base_branch=base_branch,
    )
    shipped = _run(ctx, lambda orchestrator: orchestrator.complete_release(event))
    if shipped is None:
        click.echo("Not a release pull request; ignored.")
    else:
        click.echo(f"✓ {head_branch} shipped")
