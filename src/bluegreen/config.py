"""Release configuration, loadable from YAML."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

BUILD_NUMBER_ENV = "BUILD_NUMBER"


class ResolutionMode(str, Enum):
    """Where the resolver learns which slot is active."""

    SELECTOR = "selector"  # service selector first, replica heuristic as fallback
    BLUE_REPLICAS = "blue-replicas"  # replica heuristic only


class ReleaseConfig(BaseModel):
    """Everything a release needs to know about the application and cluster."""

    app_name: str = Field(..., min_length=1, description="Slot names derive as <app_name>-<color>")
    namespace: str = Field(default="default")
    service_name: str = Field(default="", description="Defaults to app_name")
    container_name: str = Field(default="", description="Defaults to app_name")
    color_label: str = Field(default="color")

    image_repository: str = Field(default="", description="Defaults to app_name")
    build_context: str = Field(default=".")
    dockerfile: str = Field(default="Dockerfile")
    push: bool = Field(default=True, description="Push built tags to the registry")

    deployment_template: str = Field(default="manifests/deployment-blue.yaml")
    service_template: str = Field(default="manifests/service.yaml")

    readiness_timeout_seconds: float = Field(default=300.0, gt=0)
    poll_interval_seconds: float = Field(default=5.0, gt=0)
    confirmation_timeout_seconds: float = Field(default=900.0, gt=0)
    resolution_mode: ResolutionMode = Field(default=ResolutionMode.SELECTOR)

    kube_context: str | None = Field(default=None)
    in_cluster: bool = Field(default=False)

    @model_validator(mode="after")
    def _fill_defaults(self) -> ReleaseConfig:
        if not self.service_name:
            self.service_name = self.app_name
        if not self.container_name:
            self.container_name = self.app_name
        if not self.image_repository:
            self.image_repository = self.app_name
        return self

    @classmethod
    def from_yaml(cls, path: str | Path) -> ReleaseConfig:
        """Load a release config from a YAML file.

        Relative template and build-context paths are resolved against the
        directory holding the config file.

        Raises:
            ValueError: The file does not hold a mapping.
        """
        path = Path(path)
        with open(path, encoding="utf-8") as f:
            data: dict[str, Any] = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"config {path} must be a mapping, got {type(data).__name__}")
        base = path.resolve().parent
        for key in ("deployment_template", "service_template", "build_context"):
            value = data.get(key)
            if value and not Path(value).is_absolute():
                data[key] = str(base / value)
        return cls.model_validate(data)

    def to_yaml(self, path: str | Path) -> None:
        path = Path(path)
        data = self.model_dump(mode="json", exclude_none=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def build_id_from_env(environ: dict[str, str] | None = None) -> int | None:
    """Read the CI run counter, if the environment provides one."""
    env = os.environ if environ is None else environ
    raw = env.get(BUILD_NUMBER_ENV)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{BUILD_NUMBER_ENV} must be an integer, got {raw!r}") from None
