"""Merge run configuration, optionally loaded from ``.covmerge.yml``."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from covmerge.models.records import RepoCommit

if TYPE_CHECKING:
    from covmerge.resolvers.base import FileVersionResolver

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".covmerge.yml"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

_DEFAULT_JOBS = 4
_DEFAULT_GIT_TIMEOUT = 600.0


class ConfigError(Exception):
    """Raised when the configuration file cannot be parsed."""


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        else:
            result[key] = value
    return result


@dataclass
class MergeConfig:
    """Everything one merge run needs besides the input stream."""

    workdir: Path = field(default_factory=lambda: Path("workdir"))
    """Scratch space for clones, checkouts and staged fixtures."""

    base: RepoCommit = field(default_factory=lambda: RepoCommit(repo="", commit=""))
    """Commit whose line numbers the merged result is expressed in."""

    jobs: int = _DEFAULT_JOBS
    """Maximum number of files merged concurrently."""

    resolver: str = "git"
    """Content backend: ``git`` or ``fixture``."""

    skip_checkout: bool = False
    """Read pre-staged content from ``workdir/repos/<commit>/`` instead of git."""

    git_timeout: float = _DEFAULT_GIT_TIMEOUT
    """Seconds allowed for a single git command."""

    resolver_backend: FileVersionResolver | None = field(default=None, repr=False, compare=False)
    """Explicit resolver instance; overrides ``resolver`` and ``skip_checkout``."""


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return bool(value)


def _parse_config(raw: dict[str, Any]) -> MergeConfig:
    base_raw = raw.get("base", {})
    if not isinstance(base_raw, dict):
        raise ConfigError("'base' must be a mapping with 'repo' and 'commit'")

    try:
        return MergeConfig(
            workdir=Path(str(raw.get("workdir", os.environ.get("COVMERGE_WORKDIR", "workdir")))),
            base=RepoCommit(
                repo=str(base_raw.get("repo", "")),
                commit=str(base_raw.get("commit", "")),
            ),
            jobs=int(raw.get("jobs", os.environ.get("COVMERGE_JOBS", _DEFAULT_JOBS))),
            resolver=str(raw.get("resolver", "git")),
            skip_checkout=_as_bool(raw.get("skip_checkout", False)),
            git_timeout=float(raw.get("git_timeout", _DEFAULT_GIT_TIMEOUT)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid configuration value: {exc}") from exc


def load_config(path: str | Path | None = None) -> MergeConfig:
    """Load a merge configuration.

    Reads *path*, or ``.covmerge.yml`` in the current directory when *path*
    is ``None``.  A missing default file yields the defaults (plus the
    ``COVMERGE_WORKDIR`` and ``COVMERGE_JOBS`` environment fallbacks); a
    missing explicit file is an error.

    Raises:
        ConfigError: If the file is missing, is not a YAML mapping, or holds
            values of the wrong type.
    """
    config_path = Path(path) if path is not None else Path.cwd() / CONFIG_FILE_NAME

    raw: dict[str, Any] = {}
    if config_path.is_file():
        try:
            parsed = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse {config_path}: {exc}") from exc
        if parsed is not None and not isinstance(parsed, dict):
            raise ConfigError(f"{config_path} must contain a YAML mapping")
        raw = _resolve_dict(parsed or {})
        logger.debug("Loaded configuration from %s", config_path)
    elif path is not None:
        raise ConfigError(f"Configuration file not found: {config_path}")

    return _parse_config(raw)


def validate_config(config: MergeConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors: list[str] = []

    if not config.base.repo:
        errors.append("base.repo is required")
    if not config.base.commit:
        errors.append("base.commit is required")
    if config.jobs < 1:
        errors.append(f"jobs must be at least 1, got {config.jobs}")
    if config.git_timeout <= 0:
        errors.append(f"git_timeout must be positive, got {config.git_timeout}")
    if config.resolver_backend is None and config.resolver not in {"git", "fixture"}:
        errors.append(f"resolver must be 'git' or 'fixture', got {config.resolver!r}")

    return errors
