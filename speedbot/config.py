"""Speedbot configuration"""

import logging
from collections.abc import Iterable
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from speedbot.shared.models.stream import Blacklist, FilterCriteria, Thresholds

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).parent.parent


class BlacklistSettings(BaseModel):
    keywords: list[str] = Field(default_factory=list)
    tag_ids: list[str] = Field(default_factory=list)
    user_ids: list[str] = Field(default_factory=list)


class WhitelistSettings(BaseModel):
    user_ids: list[str] = Field(default_factory=list)


class ThresholdSettings(BaseModel):
    reconnect_minutes: int = Field(default=5, ge=0)
    shoutout_hours: int = Field(default=6, ge=0)


class Settings(BaseSettings):
    """Speedbot settings, read from the environment and ``.env``.

    Lists are JSON (``KEYWORDS='["any%", "glitchless"]'``); nested fields use
    ``__`` (``BLACKLIST__USER_IDS='["1234"]'``).
    """

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Twitch OAuth
    client_id: str = Field(..., description="Twitch OAuth Client ID")
    client_secret: str = Field(..., description="Twitch OAuth Client Secret")

    # Database
    database_url: str = Field(..., description="PostgreSQL database URL")

    # Webhooks
    callback_domain: str = Field(default="", description="Base URL for webhook callbacks")

    # Notifications
    discord_webhook_url: str = Field(..., description="Discord webhook receiving live alerts")

    # Filters
    game_names: list[str] = Field(default_factory=list, description="Games resolved via /games")
    game_ids: list[str] = Field(default_factory=list)
    tag_ids: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    blacklist: BlacklistSettings = Field(default_factory=BlacklistSettings)
    whitelist: WhitelistSettings = Field(default_factory=WhitelistSettings)
    thresholds: ThresholdSettings = Field(default_factory=ThresholdSettings)

    # Polling
    poll_interval: int = Field(default=60, ge=1, description="Seconds between polling cycles")

    # Environment
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v.startswith("postgresql://"):
            raise ValueError("DATABASE_URL must start with 'postgresql://'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    def filter_criteria(self, resolved_game_ids: Iterable[str] = ()) -> FilterCriteria:
        """Freeze the filter settings, adding game ids resolved from names."""
        return FilterCriteria(
            game_ids=frozenset(self.game_ids).union(resolved_game_ids),
            tag_ids=frozenset(self.tag_ids),
            keywords=frozenset(self.keywords),
            blacklist=Blacklist(
                keywords=frozenset(self.blacklist.keywords),
                tag_ids=frozenset(self.blacklist.tag_ids),
                user_ids=frozenset(self.blacklist.user_ids),
            ),
            whitelist_user_ids=frozenset(self.whitelist.user_ids),
        )

    @property
    def threshold_values(self) -> Thresholds:
        return Thresholds(
            reconnect_minutes=self.thresholds.reconnect_minutes,
            shoutout_hours=self.thresholds.shoutout_hours,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()  # type: ignore[call-arg]
