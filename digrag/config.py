"""Application configuration.

Values are resolved, highest priority first, from explicit keyword
arguments, ``DIGRAG_*`` environment variables, a ``.env`` file, the TOML
config file and finally the defaults below.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Optional, Tuple, Type

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from .exceptions import ConfigError
from .models import SearchMode
from .paths import get_default_config_path, resolve_path


class DigragConfig(BaseSettings):  # type: ignore[misc]
    """Settings controlling index location, embeddings and search defaults."""

    index_dir: Path = Field(Path(".rag"), description="Directory holding the index artifacts")
    openrouter_api_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices(
            "DIGRAG_OPENROUTER_API_KEY", "OPENROUTER_API_KEY", "openrouter_api_key"
        ),
        description="API key for OpenRouter embeddings",
    )
    embedding_model: str = Field("openai/text-embedding-3-small")
    embedding_base_url: str = Field("https://openrouter.ai/api/v1")
    request_timeout_s: float = Field(60.0, gt=0, description="Timeout for embedding requests")
    embedding_batch_size: int = Field(10, ge=1)
    embedding_batch_delay_s: float = Field(0.5, ge=0)
    default_top_k: int = Field(10, ge=1)
    default_search_mode: SearchMode = Field(SearchMode.BM25)
    rrf_k: int = Field(60, ge=0)
    tag_overfetch_factor: int = Field(3, ge=1)
    cache_max_entries: int = Field(100, ge=1)
    cache_ttl_s: float = Field(3600.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="DIGRAG_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        toml_settings = TomlConfigSettingsSource(settings_cls, toml_file=get_default_config_path())
        return init_settings, env_settings, dotenv_settings, toml_settings

    def model_post_init(self, __context: Any) -> None:
        """Normalize paths to absolute locations."""

        self.index_dir = resolve_path(self.index_dir)

    @field_validator("default_search_mode", mode="before")
    @classmethod
    def parse_search_mode(cls, value: Any) -> SearchMode:
        return SearchMode.parse(value)

    @field_validator("openrouter_api_key")
    @classmethod
    def blank_key_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value.strip()

    @property
    def has_api_key(self) -> bool:
        return self.openrouter_api_key is not None


def load_config(**overrides: Any) -> DigragConfig:
    """Build a :class:`DigragConfig`, ignoring overrides that are ``None``."""

    explicit = {key: value for key, value in overrides.items() if value is not None}
    try:
        return DigragConfig(**explicit)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid config file {get_default_config_path()}: {exc}") from exc


def render_default_toml(config: Optional[DigragConfig] = None) -> str:
    """Render a commented config file; the API key is never written out."""

    cfg = config or DigragConfig.model_construct(
        **{name: field.default for name, field in DigragConfig.model_fields.items()}
    )
    return "\n".join(
        [
            "# digrag configuration",
            "# Set OPENROUTER_API_KEY in the environment to enable embeddings.",
            "",
            f'index_dir = "{Path(cfg.index_dir).as_posix()}"',
            f'embedding_model = "{cfg.embedding_model}"',
            f'embedding_base_url = "{cfg.embedding_base_url}"',
            f"request_timeout_s = {float(cfg.request_timeout_s)}",
            f"embedding_batch_size = {cfg.embedding_batch_size}",
            f"embedding_batch_delay_s = {float(cfg.embedding_batch_delay_s)}",
            f"default_top_k = {cfg.default_top_k}",
            f'default_search_mode = "{SearchMode.parse(cfg.default_search_mode).value}"',
            f"rrf_k = {cfg.rrf_k}",
            f"tag_overfetch_factor = {cfg.tag_overfetch_factor}",
            f"cache_max_entries = {cfg.cache_max_entries}",
            f"cache_ttl_s = {float(cfg.cache_ttl_s)}",
            "",
        ]
    )


__all__ = ["DigragConfig", "load_config", "render_default_toml"]
