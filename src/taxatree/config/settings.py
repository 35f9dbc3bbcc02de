"""Runtime settings layered from YAML files, environment variables and keyword overrides."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Literal, Mapping

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .overrides import deep_merge, env_overrides, read_yaml_mapping
from .policies import Policies, load_policies

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_CONFIG_DIR = PROJECT_ROOT / "config"
SETTINGS_ENV_PREFIX = "TAXATREE_SETTINGS__"


class PathsConfig(BaseModel):
    """Where exported tables and log files go.

    Relative paths are anchored at the project root so the CLI behaves the
    same from any working directory.
    """

    output_dir: Path = Path("output")
    logs_dir: Path = Path("logs")

    @field_validator("output_dir", "logs_dir")
    @classmethod
    def _anchor(cls, value: Path) -> Path:
        value = value.expanduser()
        return value if value.is_absolute() else PROJECT_ROOT / value

    def create(self) -> None:
        for directory in (self.output_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)


class Settings(BaseSettings):
    """Resolved runtime configuration.

    Layers, lowest first: class defaults, ``<config_dir>/default.yaml``,
    ``<config_dir>/<environment>.yaml``, ``TAXATREE_SETTINGS__A__B`` variables
    and finally keyword arguments. The environment comes from the keyword,
    then ``TAXATREE_ENV``, then ``default.yaml``.
    """

    model_config = SettingsConfigDict(
        env_prefix="TAXATREE_",
        validate_assignment=True,
        extra="ignore",
    )

    environment: Literal["development", "testing", "production"] = "development"
    config_dir: Path = DEFAULT_CONFIG_DIR
    paths: PathsConfig = Field(default_factory=PathsConfig)
    create_dirs: bool = Field(
        default=False,
        description="Create the directories in `paths` while loading.",
    )
    log_level: str = "INFO"
    policies: Policies = Field(default_factory=Policies)

    @model_validator(mode="before")
    @classmethod
    def _layer_sources(cls, values: Any) -> Any:
        if not isinstance(values, Mapping):
            return values
        explicit = {key: value for key, value in values.items() if value is not None}
        config_dir = Path(explicit.get("config_dir") or DEFAULT_CONFIG_DIR)
        base = read_yaml_mapping(config_dir / "default.yaml")
        environment = (
            explicit.get("environment")
            or os.getenv("TAXATREE_ENV")
            or base.get("environment")
            or "development"
        )

        layered: Dict[str, Any] = {}
        for layer in (
            base,
            read_yaml_mapping(config_dir / f"{environment}.yaml"),
            env_overrides(SETTINGS_ENV_PREFIX),
            explicit,
        ):
            layered = deep_merge(layered, layer)
        layered["environment"] = environment

        policies = layered.get("policies")
        if not isinstance(policies, Policies):
            layered["policies"] = load_policies(policies or {})
        return layered

    @model_validator(mode="after")
    def _create_directories(self) -> "Settings":
        if self.create_dirs:
            self.paths.create()
        return self

    @property
    def policy_version(self) -> str:
        return self.policies.policy_version

    @property
    def log_file(self) -> Path:
        return self.paths.logs_dir / "taxatree.log"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, loaded once."""

    return Settings()


__all__ = ["Settings", "get_settings", "PathsConfig", "SETTINGS_ENV_PREFIX"]
