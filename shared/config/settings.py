"""
Configuration management using Pydantic Settings
"""
import sys
from decimal import Decimal
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from loguru import logger


class SessionSettings(BaseSettings):
    """UTC hour boundaries of the trading sessions"""

    asia_start: int = Field(default=0, ge=0, le=24, description="Asia session start hour (UTC)")
    london_start: int = Field(default=8, ge=0, le=24, description="London session start hour (UTC)")
    new_york_start: int = Field(default=16, ge=0, le=24, description="New York session start hour (UTC)")

    model_config = SettingsConfigDict(env_prefix="TRADEBOOK_SESSION_")

    def session_for_hour(self, hour: int) -> str:
        """Name of the session an hour-of-day falls into"""
        if self.london_start <= hour < self.new_york_start:
            return "london"
        if hour >= self.new_york_start:
            return "new_york"
        return "asia"


class AnalyticsSettings(BaseSettings):
    """Matching and analytics configuration"""

    epsilon: Decimal = Field(
        default=Decimal("1e-12"),
        description="Quantity/PnL dust threshold treated as zero"
    )
    bullish_ratio: Decimal = Field(default=Decimal("1.2"), description="Long/short ratio above which bias is bullish")
    bearish_ratio: Decimal = Field(default=Decimal("0.8"), description="Long/short ratio below which bias is bearish")
    mark_symbol_separators: list[str] = Field(
        default=["/", "-"],
        description="Separators used to derive the base asset of a symbol for mark lookup"
    )

    model_config = SettingsConfigDict(env_prefix="TRADEBOOK_")


class Settings(BaseSettings):
    """Main application settings"""

    app_name: str = Field(default="Tradebook", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: str = Field(default="development", description="Environment")

    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[str] = Field(default=None, description="Log file path")

    # Sub-configurations
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    sessions: SessionSettings = Field(default_factory=SessionSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore"
    )


def configure_logging(config: Optional[Settings] = None) -> None:
    """Install loguru sinks according to settings"""
    config = config or settings

    logger.remove()
    logger.add(sys.stderr, level=config.log_level.upper())
    if config.log_file:
        logger.add(config.log_file, level=config.log_level.upper(), rotation="1 day")


# Global settings instance
settings = Settings()
