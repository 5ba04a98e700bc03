"""Settings and TOML loading.

Settings live either in a standalone release-train.toml (top-level keys) or
in the [tool.release-train] table of pyproject.toml. tomlkit is used for
reading so the same parser handles both files. Keys may use dashes or
underscores.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import tomlkit
from pydantic import BaseModel, ValidationError
from tomlkit.exceptions import ParseError

from .errors import ConfigError
from .github import DEFAULT_API_URL

CONFIG_FILENAME = "release-train.toml"
TOOL_TABLE = "release-train"


class Settings(BaseModel):
    """Project settings for the release workflows.

    Attributes:
        repository: "owner/name" of the repository to operate on.
        manifest_path: JSON file whose "version" field is the project version.
        stable_branch: Branch representing the shipped revision.
        mainline_branch: Ongoing development branch.
        release_label: Label attached to issues and PRs of a release.
        report_interval: Minimum seconds between live report edits.
        maintainer: Login mentioned when a run fails.
    """

    repository: str = ""
    api_url: str = DEFAULT_API_URL
    manifest_path: str = "manifest.json"
    stable_branch: str = "stable"
    mainline_branch: str = "mainline"
    release_label: str = "Release"
    release_template: str = ".github/RELEASE-TEMPLATE.md"
    hotfix_template: str = ".github/HOTFIX-TEMPLATE.md"
    report_interval: float = 1.0
    maintainer: str | None = None


def load_toml(path: Path) -> tomlkit.TOMLDocument:
    return tomlkit.parse(path.read_text())


def _normalize_keys(table: Any) -> dict[str, Any]:
    # tomlkit items unwrap to plain Python values
    return {str(key).replace("-", "_"): value for key, value in table.unwrap().items()}


def find_settings_table(root: Path) -> dict[str, Any]:
    """Return the raw settings table found under `root`, or {}.

    release-train.toml wins over pyproject.toml when both exist.
    """
    standalone = root / CONFIG_FILENAME
    if standalone.exists():
        return _normalize_keys(load_toml(standalone))

    pyproject = root / "pyproject.toml"
    if pyproject.exists():
        table = load_toml(pyproject).get("tool", {}).get(TOOL_TABLE)
        if table is not None:
            return _normalize_keys(table)
    return {}


def load_settings(path: Path | None = None, **overrides: Any) -> Settings:
    """Load settings from `path` (or the current directory) plus overrides.

    Overrides that are None are ignored. GITHUB_REPOSITORY, which GitHub
    Actions sets for every job, fills `repository` when nothing else does.

    Raises:
        ConfigError: If the file cannot be parsed or has invalid values.
    """
    try:
        if path is None:
            raw = find_settings_table(Path.cwd())
        elif path.name == "pyproject.toml":
            table = load_toml(path).get("tool", {}).get(TOOL_TABLE)
            raw = _normalize_keys(table) if table is not None else {}
        else:
            raw = _normalize_keys(load_toml(path))
    except OSError as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc
    except ParseError as exc:
        raise ConfigError(f"Invalid TOML in {path or CONFIG_FILENAME}: {exc}") from exc

    raw.update({k: v for k, v in overrides.items() if v is not None})
    if not raw.get("repository"):
        raw["repository"] = os.environ.get("GITHUB_REPOSITORY", "")

    try:
        settings = Settings.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc
    if settings.repository.count("/") != 1:
        raise ConfigError(
            f"repository must be OWNER/NAME, got {settings.repository!r}. "
            "Set it in the config file, pass --repo, or set GITHUB_REPOSITORY."
        )
    return settings
