"""Environment merging and ``${env:NAME}`` template expansion."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import logging
from pathlib import Path
import re
from typing import Any

from dotenv import dotenv_values

logger = logging.getLogger(__name__)

DOTENV_FILENAME = ".env"

# ${env:NAME} (graphql-config style) or plain ${NAME}
_ENV_REF = re.compile(r"\$\{\s*(?:env:)?\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}")


def merge_environment(
    folders: Iterable[str | Path], environ: Mapping[str, str]
) -> dict[str, str]:
    """Merge ``.env`` files of *folders* with *environ*.

    Folders are read in the given order and later files override earlier
    ones; *environ* always wins over any file.  Nothing is written back to
    the process environment.
    """
    merged: dict[str, str] = {}
    for folder in folders:
        path = Path(folder) / DOTENV_FILENAME
        if not path.is_file():
            continue
        values = dotenv_values(path)
        logger.debug("loaded %d value(s) from %s", len(values), path)
        merged.update({k: v for k, v in values.items() if v is not None})
    merged.update(environ)
    return merged


def expand_template(value: str, env: Mapping[str, str]) -> str:
    """Replace env references in *value*; unknown names become ``""``."""
    return _ENV_REF.sub(lambda m: env.get(m.group(1), ""), value)


def expand_value(value: Any, env: Mapping[str, str]) -> Any:
    """Expand env references in every string nested inside *value*."""
    if isinstance(value, str):
        return expand_template(value, env)
    if isinstance(value, dict):
        return {k: expand_value(v, env) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_value(v, env) for v in value]
    return value
