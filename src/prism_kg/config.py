"""Configuration management for prism-kg using pydantic-settings.

Settings priority (highest to lowest):
1. CLI flags (applied after PrismConfig creation)
2. Environment variables (PRISM_* prefix)
3. .env file
4. prism.yaml project config
5. Default values
"""

import logging
import os
from pathlib import Path

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

logger = logging.getLogger(__name__)

# Map prism.yaml keys to PrismConfig field names
_YAML_TO_FIELD = {
    "data_dir": "data_dir",
    "auto_mode": "auto_mode",
    "provider": "selected_provider",
    "model": "selected_model",
    "temperature": "temperature",
    "rpm": "rpm",
}

# LiteLLM provider prefix -> (config field, environment variable LiteLLM reads)
_PROVIDER_KEYS = {
    "gemini": ("gemini_api_key", "GEMINI_API_KEY"),
    "openai": ("openai_api_key", "OPENAI_API_KEY"),
    "xai": ("xai_api_key", "XAI_API_KEY"),
    "anthropic": ("anthropic_api_key", "ANTHROPIC_API_KEY"),
    "deepseek": ("deepseek_api_key", "DEEPSEEK_API_KEY"),
}


class _ProjectYamlSource(PydanticBaseSettingsSource):
    """Read project config from prism.yaml (lower priority than env vars)."""

    def get_field_value(self, field, field_name):  # type: ignore[override]
        return None, field_name, False

    def __call__(self) -> dict:
        project_file = Path("prism.yaml")
        if not project_file.exists():
            return {}

        raw = yaml.safe_load(project_file.read_text()) or {}

        result: dict = {}
        for yaml_key, field_name in _YAML_TO_FIELD.items():
            if yaml_key in raw:
                result[field_name] = raw[yaml_key]
        return result


class PrismConfig(BaseSettings):
    """Settings for prism-kg, loaded from PRISM_* environment variables.

    Empty string values in environment variables are treated as unset.

    Example:
        >>> config = PrismConfig()
        >>> config.has_api_key("gemini")
        >>> print(config.graph_path)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PRISM_",
        extra="ignore",
        env_ignore_empty=True,
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
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            _ProjectYamlSource(settings_cls),
            file_secret_settings,
        )

    gemini_api_key: str | None = Field(default=None, description="Google Gemini API key")
    openai_api_key: str | None = Field(default=None, description="OpenAI API key")
    xai_api_key: str | None = Field(default=None, description="xAI (Grok) API key")
    anthropic_api_key: str | None = Field(default=None, description="Anthropic (Claude) API key")
    deepseek_api_key: str | None = Field(default=None, description="DeepSeek API key")

    data_dir: Path = Field(
        default=Path("prism_data"),
        description="Directory holding the graph file and provider quota state",
    )

    auto_mode: bool = Field(
        default=True,
        description="Rotate across providers (heavy models first) instead of using the selected one",
    )
    selected_provider: str | None = Field(
        default=None,
        description="Provider name used when auto_mode is off (e.g. Gemini, OpenAI, Claude)",
    )
    selected_model: str | None = Field(
        default=None,
        description="Model id used when auto_mode is off (provider default if unset)",
    )

    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    rpm: int = Field(default=40, description="Max LLM requests per minute")

    @model_validator(mode="after")
    def _export_api_keys(self) -> "PrismConfig":
        """Export API keys to environment so LiteLLM can find them."""
        for field_name, env_var in _PROVIDER_KEYS.values():
            value = getattr(self, field_name)
            if value and env_var not in os.environ:
                os.environ[env_var] = value
        return self

    @field_validator("data_dir", mode="before")
    @classmethod
    def resolve_data_dir(cls, v: Path | str) -> Path:
        """Convert data_dir to an absolute path and create it if missing."""
        path = Path(v) if isinstance(v, str) else v
        path = path.resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def graph_path(self) -> Path:
        return self.data_dir / "graph.json"

    @property
    def quota_path(self) -> Path:
        return self.data_dir / "quota.yaml"

    def has_api_key(self, provider_prefix: str) -> bool:
        """True if a key for the LiteLLM provider prefix is set here or in the environment."""
        if provider_prefix not in _PROVIDER_KEYS:
            # Unknown/local providers (e.g. ollama) need no key
            return True
        field_name, env_var = _PROVIDER_KEYS[provider_prefix]
        return bool(getattr(self, field_name) or os.environ.get(env_var))

    def validate_api_keys(self, model: str) -> None:
        """Raise if the provider of ``model`` (``prefix/model-name``) has no API key.

        Raises:
            ValueError: If the required API key is missing
        """
        prefix = model.split("/", 1)[0]
        if not self.has_api_key(prefix):
            _, env_var = _PROVIDER_KEYS[prefix]
            raise ValueError(
                f"{env_var} not found. Set PRISM_{env_var} in environment or .env file."
            )
