"""Pydantic models for the project configuration file (.graphqlconfig).

The layout follows graphql-config v2 with the ``endpoints`` extension.  An
endpoint (or its ``subscription`` entry) may be written as a bare URL.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator
import yaml

from gqlens.errors import ConfigurationInvalid


class SubscriptionEndpoint(BaseModel):
    url: str
    connection_params: dict[str, Any] = Field(default_factory=dict, alias="connectionParams")

    model_config = {"populate_by_name": True}


class EndpointEntry(BaseModel):
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    subscription: SubscriptionEndpoint | None = None

    @field_validator("headers", mode="before")
    @classmethod
    def _stringify_headers(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(k): "" if v is None else str(v) for k, v in value.items()}
        return value

    @field_validator("subscription", mode="before")
    @classmethod
    def _subscription_url(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"url": value}
        return value


class Extensions(BaseModel):
    endpoints: dict[str, EndpointEntry] = Field(default_factory=dict)

    model_config = {"extra": "allow"}

    @field_validator("endpoints", mode="before")
    @classmethod
    def _endpoint_urls(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: {"url": v} if isinstance(v, str) else v for k, v in value.items()}
        return value


class ProjectConfig(BaseModel):
    schema_path: str | None = Field(default=None, alias="schemaPath")
    includes: list[str] = []
    excludes: list[str] = []
    extensions: Extensions = Field(default_factory=Extensions)

    model_config = {"populate_by_name": True, "extra": "allow"}


class GraphQLConfig(ProjectConfig):
    projects: dict[str, ProjectConfig] = Field(default_factory=dict)


def load_config(path: str | Path) -> GraphQLConfig:
    """Read a JSON or YAML config file (YAML is a superset of JSON)."""
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationInvalid(f"Cannot read {path.name}: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationInvalid(f"{path.name} must contain a mapping at the top level")
    try:
        return GraphQLConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationInvalid(f"Invalid {path.name}: {exc}") from exc
