"""Pull request body rendering.

Bodies are assembled from the markdown files bundled in templates/, with
__PLACEHOLDER__ tokens substituted. Projects can add their own section by
committing .github/RELEASE-TEMPLATE.md or .github/HOTFIX-TEMPLATE.md; in
those files $version stands for the version being released.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .errors import NotFound, TemplateMissing
from .github import GitHubClient
from .naming import companion_marker

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"
COMPANION_PENDING = "#"


def _render(name: str, **values: str) -> str:
    text = (TEMPLATES_DIR / name).read_text()
    for key, value in values.items():
        text = text.replace(f"__{key.upper()}__", value)
    return text


def shared_preamble(issue_number: int, stable_branch: str) -> str:
    """Preamble every release PR starts with; closes the triggering issue."""
    return _render("shared.md", issue=str(issue_number), stable=stable_branch)


def default_project_template(version: str, path: str) -> str:
    return _render("default-project-template.md", version=version, path=path).strip()


def release_body(shared: str, project_template: str) -> str:
    return _render("release-pr.md", shared=shared, project_template=project_template)


def hotfix_body(
    shared: str,
    tag: str,
    mainline_branch: str,
    project_template: str,
    companion_url: str = COMPANION_PENDING,
    companion_number: int | None = None,
) -> str:
    """Body of PR-A.

    Rendered twice: first without the companion (it does not exist yet),
    then again once PR-B's URL and number are known. The second rendering
    ends with the marker used to find PR-B again on completion.
    """
    body = _render(
        "hotfix-pr.md",
        shared=shared,
        tag=tag,
        mainline=mainline_branch,
        companion_url=companion_url,
        project_template=project_template,
    )
    if companion_number is not None:
        body = body.rstrip("\n") + "\n\n" + companion_marker(companion_number) + "\n"
    return body


def mirror_body(primary_url: str, stable_branch: str) -> str:
    """Body of PR-B, pointing back at PR-A."""
    return _render("hotfix-mirror-pr.md", primary_url=primary_url, stable=stable_branch)


async def fetch_project_template(
    client: GitHubClient, path: str, version: str, ref: str | None = None
) -> str:
    """Fetch the project's template and substitute $version.

    Raises:
        TemplateMissing: If the file does not exist at `ref`.
    """
    try:
        text = await client.get_file_content(path, ref=ref)
    except NotFound as exc:
        raise TemplateMissing(path) from exc
    return text.replace("$version", version)


async def load_project_template(
    client: GitHubClient, path: str, version: str, ref: str | None = None
) -> str:
    """Like fetch_project_template, but falls back to a generated default."""
    try:
        return await fetch_project_template(client, path, version, ref)
    except TemplateMissing:
        logger.info("No %s in the repository, using the default template", path)
        return default_project_template(version, path)
