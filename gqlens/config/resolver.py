"""Resolve the endpoint (URL, subscription URL, headers) for a project.

Resolution reads the project's config file, merges the environment from the
process and the workspace ``.env`` files, and expands header templates.
Results are cached per config file and dropped as soon as the file's
modification time changes.  An ``EndpointConfig`` is frozen: a changed
config produces a new instance while running executions keep the old one.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
import logging
import os
from pathlib import Path
from types import MappingProxyType
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from gqlens.config.env import expand_template, expand_value, merge_environment
from gqlens.config.models import GraphQLConfig, ProjectConfig, load_config
from gqlens.errors import ConfigurationInvalid, ConfigurationMissing

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = (
    ".graphqlconfig",
    ".graphqlconfig.json",
    ".graphqlconfig.yml",
    ".graphqlconfig.yaml",
)

MISSING_CONFIG_MESSAGE = (
    "gqlens requires a valid .graphqlconfig or .graphqlconfig.yml file in the "
    "project root. You can read more about that in "
    "https://github.com/prisma-labs/graphql-config."
)

DEFAULT_ENDPOINT = "default"


@dataclass(frozen=True)
class EndpointConfig:
    """Network target and headers for one project endpoint."""

    http_url: str
    subscription_url: str | None
    headers: Mapping[str, str]
    resolved_from: str  # "<config path>#<project>/<endpoint>"
    endpoint_name: str = DEFAULT_ENDPOINT
    connection_params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        object.__setattr__(
            self, "connection_params", MappingProxyType(dict(self.connection_params))
        )

    @property
    def duplex_url(self) -> str:
        """Subscription URL, derived from ``http_url`` when not configured."""
        return self.subscription_url or derive_ws_url(self.http_url)


def derive_ws_url(http_url: str) -> str:
    """``http://`` becomes ``ws://`` and ``https://`` becomes ``wss://``."""
    parts = urlsplit(http_url)
    scheme = {"http": "ws", "https": "wss"}.get(parts.scheme.lower(), parts.scheme)
    return urlunsplit(parts._replace(scheme=scheme))


def find_config(root: str | Path) -> Path | None:
    """Return the first config file present at *root*, or None."""
    root = Path(root)
    for name in CONFIG_FILENAMES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    return None


def require_config(folders: Sequence[str | Path]) -> Path:
    """Startup precondition: some workspace folder must hold a config file."""
    for folder in folders:
        path = find_config(folder)
        if path is not None:
            return path
    raise ConfigurationMissing(MISSING_CONFIG_MESSAGE)


@dataclass
class _LoadedConfig:
    mtime_ns: int
    config: GraphQLConfig
    env: dict[str, str]
    endpoints: dict[tuple[str | None, str], EndpointConfig] = field(
        default_factory=lambda: dict[tuple[str | None, str], EndpointConfig]()
    )


class EndpointResolver:
    """Resolve and cache ``EndpointConfig`` for workspace folders.

    *folders* are the workspace folders in declared order; their ``.env``
    files are merged in that order.  *environ* defaults to a snapshot of
    ``os.environ`` taken at construction.
    """

    def __init__(
        self,
        folders: Sequence[str | Path],
        environ: Mapping[str, str] | None = None,
    ):
        self.folders = [Path(f) for f in folders]
        self._environ = dict(os.environ if environ is None else environ)
        self._loaded: dict[Path, _LoadedConfig] = {}

    def root_for(self, file_path: str | Path | None) -> Path:
        """The (deepest) workspace folder containing *file_path*."""
        if not self.folders:
            if file_path is None:
                raise ConfigurationMissing(MISSING_CONFIG_MESSAGE)
            return Path(file_path).resolve().parent
        if file_path is not None:
            target = Path(file_path).resolve()
            matches = [f for f in self.folders if target.is_relative_to(f.resolve())]
            if matches:
                return max(matches, key=lambda f: len(f.resolve().parts))
        return self.folders[0]

    def resolve(
        self,
        root: str | Path | None = None,
        *,
        project: str | None = None,
        endpoint: str | None = None,
        file_path: str | Path | None = None,
    ) -> EndpointConfig:
        """Resolve the endpoint for *file_path* (or an explicit *project*).

        Raises ``ConfigurationMissing`` when no config file exists and
        ``ConfigurationInvalid`` when it cannot provide an endpoint.
        """
        root_path = Path(root) if root is not None else self.root_for(file_path)
        config_path = find_config(root_path)
        if config_path is None:
            raise ConfigurationMissing(MISSING_CONFIG_MESSAGE)

        loaded = self._load(config_path)
        project_name, project_config = _select_project(
            loaded.config, project, file_path, root_path
        )
        endpoints = project_config.extensions.endpoints or loaded.config.extensions.endpoints
        if not endpoints:
            raise ConfigurationInvalid(
                f"No endpoints configured in {config_path.name}"
                + (f" for project '{project_name}'" if project_name else "")
            )

        if endpoint is not None:
            endpoint_name = endpoint
        elif DEFAULT_ENDPOINT in endpoints:
            endpoint_name = DEFAULT_ENDPOINT
        else:
            endpoint_name = next(iter(endpoints))
        if endpoint_name not in endpoints:
            raise ConfigurationInvalid(
                f"Unknown endpoint '{endpoint_name}'. Available: {sorted(endpoints)}"
            )

        key = (project_name, endpoint_name)
        cached = loaded.endpoints.get(key)
        if cached is not None:
            return cached

        entry = endpoints[endpoint_name]
        env = loaded.env
        http_url = expand_template(entry.url, env).strip()
        if not http_url:
            raise ConfigurationInvalid(f"Endpoint '{endpoint_name}' has an empty URL")
        subscription_url = None
        connection_params: dict[str, Any] = {}
        if entry.subscription is not None:
            subscription_url = expand_template(entry.subscription.url, env).strip() or None
            connection_params = expand_value(entry.subscription.connection_params, env)

        resolved = EndpointConfig(
            http_url=http_url,
            subscription_url=subscription_url,
            headers={k: expand_template(v, env) for k, v in entry.headers.items()},
            resolved_from=f"{config_path}#{project_name or ''}/{endpoint_name}",
            endpoint_name=endpoint_name,
            connection_params=connection_params,
        )
        loaded.endpoints[key] = resolved
        logger.debug("resolved endpoint %s -> %s", resolved.resolved_from, http_url)
        return resolved

    def invalidate(self, root: str | Path | None = None) -> None:
        """Forget cached results for *root* (all roots when None)."""
        if root is None:
            self._loaded.clear()
            return
        config_path = find_config(root)
        if config_path is not None:
            self._loaded.pop(config_path, None)

    def _load(self, config_path: Path) -> _LoadedConfig:
        mtime_ns = config_path.stat().st_mtime_ns
        loaded = self._loaded.get(config_path)
        if loaded is not None and loaded.mtime_ns == mtime_ns:
            return loaded

        logger.debug("loading %s", config_path)
        loaded = _LoadedConfig(
            mtime_ns=mtime_ns,
            config=load_config(config_path),
            env=merge_environment(self.folders, self._environ),
        )
        self._loaded[config_path] = loaded
        return loaded


def _select_project(
    config: GraphQLConfig,
    project: str | None,
    file_path: str | Path | None,
    root: Path,
) -> tuple[str | None, ProjectConfig]:
    if project is not None:
        if project not in config.projects:
            raise ConfigurationInvalid(
                f"Unknown project '{project}'. Available: {sorted(config.projects)}"
            )
        return project, config.projects[project]

    if file_path is not None and config.projects:
        relative = _relative_posix(Path(file_path), root)
        for name, candidate in config.projects.items():
            if _includes_file(candidate, relative):
                return name, candidate
    return None, config


def _relative_posix(file_path: Path, root: Path) -> str:
    try:
        return file_path.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return file_path.as_posix()


def _includes_file(project: ProjectConfig, relative: str) -> bool:
    """graphql-config semantics: no ``includes`` means every file."""
    if project.includes and not any(_glob_match(relative, p) for p in project.includes):
        return False
    return not any(_glob_match(relative, p) for p in project.excludes)


def _glob_match(path: str, pattern: str) -> bool:
    pattern = pattern.removeprefix("./")
    # "src/**/*.ts" should also match "src/a.ts"
    return fnmatchcase(path, pattern) or fnmatchcase(path, pattern.replace("**/", ""))
