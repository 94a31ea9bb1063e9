"""Configuration models and loading logic."""

from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from cm_remap.models import DEFAULT_CATEGORY_ORDER, ObjectKind

DEFAULT_SETTINGS_FILE = Path("configs/settings.yaml")
SETTINGS_FILE_ENV = "CM_REMAP_SETTINGS_FILE"


class ProjectConfig(BaseModel):
    """Project metadata settings."""

    name: str = "cm_remap"
    env: str = "dev"


class SiteConfig(BaseModel):
    """Management-plane endpoint used to establish the working context."""

    server: str = "cm01.contoso.local"
    site_code: str = "PS1"
    verify_tls: bool = True
    username: str | None = None
    password: str | None = None
    timeout_seconds: float = Field(default=60.0, gt=0.0)

    @field_validator("site_code")
    @classmethod
    def _upper_site_code(cls, value: str) -> str:
        return value.strip().upper()


class RemapConfig(BaseModel):
    """Remap run behavior switches."""

    category_order: list[ObjectKind] = Field(
        default_factory=lambda: list(DEFAULT_CATEGORY_ORDER),
        min_length=1,
    )
    abort_category_on_failure: bool = False
    progress_every: int = Field(default=1, ge=1)
    dry_run: bool = False

    @field_validator("category_order")
    @classmethod
    def _unique_categories(cls, value: list[ObjectKind]) -> list[ObjectKind]:
        if len(set(value)) != len(value):
            raise ValueError("category_order must not repeat a category")
        return value


class PathsConfig(BaseModel):
    """Filesystem paths for run artifacts and logs."""

    artifacts_root: Path = Path("./artifacts")
    logs_root: Path = Path("./logs")

    def resolved(self, project_root: Path) -> "PathsConfig":
        """Return a copy with project-relative paths resolved to absolute paths."""

        updates: dict[str, Path] = {}
        for field_name in type(self).model_fields:
            value = getattr(self, field_name)
            updates[field_name] = value if value.is_absolute() else (project_root / value).resolve()
        return self.model_copy(update=updates)


class AppSettings(BaseSettings):
    """Top-level application settings."""

    _yaml_file_override: ClassVar[Path | None] = None

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    site: SiteConfig = Field(default_factory=SiteConfig)
    remap: RemapConfig = Field(default_factory=RemapConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)

    model_config = SettingsConfigDict(
        env_prefix="CM_REMAP_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Use YAML defaults while allowing env vars to override values."""

        yaml_file = resolve_settings_file(cls._yaml_file_override)
        yaml_settings = YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            yaml_settings,
            file_secret_settings,
        )

    def as_dict(self) -> dict[str, object]:
        """Return settings as a nested dictionary with the password masked."""

        payload = self.model_dump(mode="json")
        if payload["site"].get("password"):
            payload["site"]["password"] = "********"
        return payload


def find_project_root(start: Path | None = None) -> Path:
    """Locate the project root by traversing upward for config markers."""

    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / "configs/settings.yaml").exists():
            return candidate
    return current


def resolve_settings_file(override: Path | None = None) -> Path:
    """Resolve settings file from explicit override, env var, or default."""

    chosen = override
    if chosen is None:
        env_value = os.getenv(SETTINGS_FILE_ENV)
        if env_value:
            chosen = Path(env_value)
    if chosen is None:
        chosen = DEFAULT_SETTINGS_FILE

    if not chosen.is_absolute():
        chosen = (find_project_root() / chosen).resolve()
    return chosen


def load_settings(config_file: Path | None = None) -> AppSettings:
    """Load settings with YAML defaults and environment variable overrides."""

    settings_file = resolve_settings_file(config_file)
    project_root = settings_file.parent.parent.resolve()
    AppSettings._yaml_file_override = settings_file
    try:
        settings = AppSettings()
    finally:
        AppSettings._yaml_file_override = None
    resolved_paths = settings.paths.resolved(project_root=project_root)
    return settings.model_copy(update={"paths": resolved_paths})
