"""Layered application settings.

Layers, lowest first: class defaults, ``config/default.yaml``,
``config/<environment>.yaml``, ``KEYING_SETTINGS__*`` variables, then explicit
keyword arguments (which is where CLI ``--override`` values land). Policy
sections may appear at the top level of the YAML (``multi_access:``) or under a
``policies:`` block; both are merged into :class:`Policies`.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .overrides import apply_env_overrides, deep_merge, read_yaml_mapping
from .policies import Policies, load_policies

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_CONFIG_DIR = PROJECT_ROOT / "config"
SETTINGS_ENV_PREFIX = "KEYING_SETTINGS__"
LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


def _layered_config(config_dir: Path, environment: str) -> Dict[str, Any]:
    layered = deep_merge(
        read_yaml_mapping(config_dir / "default.yaml"),
        read_yaml_mapping(config_dir / f"{environment}.yaml"),
    )
    return apply_env_overrides(layered, SETTINGS_ENV_PREFIX)


def _collect_policy_sections(combined: Dict[str, Any]) -> Dict[str, Any]:
    """Pop top-level policy sections and fold an explicit ``policies`` block over them."""

    sections = {
        name: combined.pop(name)
        for name in Policies.sections()
        if name in combined and combined[name] is not None
    }
    explicit = combined.pop("policies", None)
    if isinstance(explicit, Policies):
        explicit = explicit.model_dump()
    return deep_merge(sections, explicit or {})


class PathsConfig(BaseModel):
    """Where key exports are read from and where bundles and logs are written.

    Relative paths are anchored at the project root.
    """

    data_dir: Path = Field(default=PROJECT_ROOT / "data")
    output_dir: Path = Field(default=PROJECT_ROOT / "output")
    logs_dir: Path = Field(default=PROJECT_ROOT / "logs")

    @field_validator("data_dir", "output_dir", "logs_dir")
    @classmethod
    def _anchor_relative(cls, value: Path) -> Path:
        path = Path(value).expanduser()
        return path if path.is_absolute() else PROJECT_ROOT / path

    def ensure_exists(self) -> None:
        for directory in (self.data_dir, self.output_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def resolve(self, reference: str | Path) -> Path:
        """Resolve ``reference`` against :attr:`data_dir` unless it is absolute."""

        candidate = Path(reference).expanduser()
        return candidate if candidate.is_absolute() else self.data_dir / candidate


class Settings(BaseSettings):
    """Configuration for the keying CLI and loaders."""

    model_config = SettingsConfigDict(
        env_prefix="KEYING_",
        validate_assignment=True,
        extra="allow",
    )

    environment: Literal["development", "testing", "production"] = Field(default="development")
    config_dir: Path = Field(default=DEFAULT_CONFIG_DIR)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    create_dirs: bool = Field(
        default=False,
        description="Create the directories named in `paths` while validating.",
    )
    log_level: str = Field(default="INFO")
    policies: Policies = Field(default_factory=Policies)

    @model_validator(mode="before")
    @classmethod
    def _load_layers(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        explicit = {key: value for key, value in dict(values).items() if value is not None}
        config_dir = Path(explicit.get("config_dir") or DEFAULT_CONFIG_DIR)
        environment = explicit.get("environment") or os.getenv("KEYING_ENV", "development")

        combined = deep_merge(_layered_config(config_dir, environment), explicit)
        combined["policies"] = load_policies(_collect_policy_sections(combined))
        return combined

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_level(cls, value: Any) -> str:
        level = str(value).strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @model_validator(mode="after")
    def _create_directories(self) -> "Settings":
        if self.create_dirs:
            self.paths.ensure_exists()
        return self

    @property
    def policy_version(self) -> str:
        return self.policies.policy_version

    @property
    def log_file(self) -> Path:
        return self.paths.logs_dir / "keying.log"

    @property
    def multi_access_dir(self) -> Path:
        return self.paths.resolve(self.policies.sources.multi_access_dir)

    @property
    def dichotomous_dir(self) -> Path:
        return self.paths.resolve(self.policies.sources.dichotomous_dir)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings built from the default layers."""

    return Settings()


__all__ = ["Settings", "PathsConfig", "get_settings", "PROJECT_ROOT", "SETTINGS_ENV_PREFIX"]
