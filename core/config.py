import math
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

ROOT = Path(__file__).resolve().parents[1]

HOME_URL = "https://m.huxiu.com/"


class Settings(BaseSettings):
    fetch_retry_max: int = 3
    fetch_retry_base_delay_ms: float = 500
    fetch_retry_max_delay_ms: float = 8000
    fetch_timeout: float = 15.0

    sandbox_timeout: float = 1.0

    home_url: str = HOME_URL
    feed_title: str = "虎嗅 - 热门文章(hotArticlesList)"
    # Falls back to home_url when unset
    feed_link: Optional[str] = None
    feed_description: str = "从虎嗅移动端首页 __NUXT__ 中提取的热门文章列表"

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        yaml_file=ROOT / "config" / "feed.yaml",
        yaml_file_encoding="utf-8",
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
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    @field_validator(
        "fetch_retry_max",
        "fetch_retry_base_delay_ms",
        "fetch_retry_max_delay_ms",
        "fetch_timeout",
        "sandbox_timeout",
        mode="before",
    )
    @classmethod
    def _number_or_default(cls, value, info):
        """Non-numeric, non-finite or negative overrides silently fall back to the default."""
        field = cls.model_fields[info.field_name]
        if value is None or (isinstance(value, str) and not value.strip()):
            return field.default
        try:
            n = float(value)
        except (TypeError, ValueError):
            return field.default
        if not math.isfinite(n) or n < 0:
            return field.default
        return int(n) if field.annotation is int else n

    @property
    def channel_link(self) -> str:
        return self.feed_link or self.home_url


settings = Settings()
