"""toolforge — Configuration.

Configuration is loaded from (in order of increasing priority):
    1. Built-in defaults (this file)
    2. System config: /etc/toolforge/config.yaml
    3. User config:   ~/.toolforge/config.yaml
    4. An explicit config file passed to ``Settings.load()``
    5. Environment variables prefixed with TOOLFORGE_
       (nested keys use ``__``, e.g. TOOLFORGE_CREDENTIALS__ENCRYPTION_KEY)

Safety limits (row cap, connect/query timeouts, exact-count threshold) are
module constants in the data source layer and are not configurable here.
"""

from __future__ import annotations

import re
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import (
    BaseSettings,
    InitSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

_HEX_KEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")

# Merged YAML file values for the ``Settings.load()`` call in progress.
_file_layer: ContextVar[dict[str, Any]] = ContextVar("toolforge_file_layer", default={})


# ---------------------------------------------------------------------------
# Sub-configuration blocks
# ---------------------------------------------------------------------------


class DataSourceConfig(BaseModel):
    """Settings applied to every connection opened against a data source."""

    application_name: str = Field(
        default="toolforge",
        max_length=63,
        description="Reported to PostgreSQL as application_name (visible in pg_stat_activity).",
    )
    verify_tls: bool = Field(
        default=False,
        description=(
            "Verify the server certificate when a data source uses TLS. "
            "Off by default: most hosted databases present certificates "
            "that are not in the system trust store."
        ),
    )


class CredentialsConfig(BaseModel):
    encryption_key: SecretStr | None = Field(
        default=None,
        description="AES-256 key for stored data source credentials, as 64 hex characters.",
    )

    @field_validator("encryption_key")
    @classmethod
    def check_key_format(cls, v: SecretStr | None) -> SecretStr | None:
        if v is not None and not _HEX_KEY_RE.match(v.get_secret_value()):
            raise ValueError("encryption_key must be 64 hex characters (32 bytes)")
        return v


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    format: Literal["json", "console"] = "console"
    file: Path | None = None


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TOOLFORGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    datasources: DataSourceConfig = Field(default_factory=DataSourceConfig)
    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Highest priority first: YAML files sit below the environment.
        yaml_settings = InitSettingsSource(settings_cls, init_kwargs=_file_layer.get())
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            yaml_settings,
            file_secret_settings,
        )

    @classmethod
    def load(cls, config_file: Path | None = None) -> "Settings":
        """Load settings from YAML files, overridden by environment variables."""
        data: dict[str, Any] = {}

        candidates = [
            Path("/etc/toolforge/config.yaml"),
            Path.home() / ".toolforge" / "config.yaml",
        ]
        if config_file:
            candidates.append(config_file)

        for path in candidates:
            if path.exists():
                import yaml  # lazy import, only needed when a file exists

                with path.open() as f:
                    loaded = yaml.safe_load(f) or {}
                    data.update(loaded)

        token = _file_layer.set(data)
        try:
            return cls()
        finally:
            _file_layer.reset(token)


# Module-level singleton, replaced by ``Settings.load()`` at process startup.
_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def override_settings(settings: Settings) -> None:
    """Replace the module-level singleton. Used in tests."""
    global _settings
    _settings = settings
