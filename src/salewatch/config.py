"""Configuration management for SaleWatch.

Loads configuration from YAML files and environment variables using Pydantic.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from salewatch.matcher.rules import RuleSet


class RedditConfig(BaseModel):
    """Configuration for the Reddit listing source."""

    auth_host: str = Field(
        default="https://www.reddit.com/api/v1/",
        description="Base URL of the OAuth token endpoint",
    )
    api_host: str = Field(
        default="https://oauth.reddit.com/",
        description="Base URL of the authenticated API",
    )
    token_file: Path = Field(
        default=Path("./data/token.json"),
        description="Where the access token and rate-limit state are persisted",
    )
    username: str = Field(default="", description="Reddit account username")
    password: str = Field(default="", description="Reddit account password")
    client_id: str = Field(default="", description="API client ID")
    client_secret: str = Field(default="", description="API client secret")
    user_agent: str = Field(
        default="salewatch/0.1",
        description="User-Agent header sent with every request",
    )
    wait_time_secs: int = Field(
        default=5,
        ge=1,
        le=3600,
        description="Delay between polls while quota remains",
    )
    subreddit: str = Field(default="buildapcsales", description="Subreddit to watch")
    page_size: int = Field(
        default=10,
        ge=1,
        le=100,
        description="How many of the newest posts to fetch per poll",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="HTTP request timeout",
    )

    @field_validator("token_file", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Path:
        """Expand user home directory."""
        return Path(os.path.expanduser(str(v)))


class DiscordConfig(BaseModel):
    """Configuration for Discord notifications."""

    enabled: bool = Field(default=False, description="Enable Discord notifications")
    webhook_url: str = Field(default="", description="Discord webhook URL")
    username: str = Field(default="SaleWatch", description="Name the webhook posts as")
    sending_interval_secs: int = Field(
        default=10,
        ge=1,
        le=3600,
        description="How often queued matches are flushed as one message",
    )


class TwilioConfig(BaseModel):
    """Configuration for SMS alerts via Twilio."""

    enabled: bool = Field(default=False, description="Enable SMS alerts")
    api_url: str = Field(
        default="https://api.twilio.com/2010-04-01/Accounts/",
        description="Base URL of the Twilio accounts API",
    )
    api_key: str = Field(default="", description="API key SID")
    api_key_secret: str = Field(default="", description="API key secret")
    account_sid: str = Field(default="", description="Account SID")
    phone_number_from: str = Field(default="", description="Number to send from")
    phone_number_to: str = Field(default="", description="Number to send to")


class DatabaseConfig(BaseModel):
    """Configuration for the SQLite database."""

    path: Path = Field(
        default=Path("./data/salewatch.db"),
        description="Path to the SQLite database file",
    )

    @field_validator("path", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Path:
        """Expand user home directory and make path absolute."""
        if isinstance(v, str):
            v = Path(v)
        return Path(os.path.expanduser(str(v))).resolve()


class PipelineConfig(BaseModel):
    """Configuration for the ingestion/match/notify pipeline."""

    channel_capacity: int = Field(
        default=32,
        ge=1,
        le=10_000,
        description="Slots in each queue between pipeline stages",
    )


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="console", description="Log format (console or json)")
    file: Path | None = Field(default=None, description="Optional log file path")

    @field_validator("level", mode="before")
    @classmethod
    def validate_level(cls, v: Any) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if isinstance(v, str):
            v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="SALEWATCH_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    reddit: RedditConfig = Field(default_factory=RedditConfig)
    discord: DiscordConfig = Field(default_factory=DiscordConfig)
    twilio: TwilioConfig = Field(default_factory=TwilioConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    rules_file: Path | None = Field(
        default=None,
        description="JSON file holding the ordered list of match rules",
    )
    rules: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Inline rule definitions, checked after the rule file's",
    )

    def load_rule_set(self) -> RuleSet:
        """Compile the configured rules.

        Rules from ``rules_file`` come first, then inline ``rules``.

        Raises:
            RuleError: If any rule is invalid.
        """
        from salewatch.matcher.rules import RuleSet, load_rules

        rule_set = RuleSet()
        if self.rules_file is not None:
            rule_set = load_rules(self.rules_file)
        if self.rules:
            rule_set = rule_set + RuleSet.from_definitions(self.rules)
        return rule_set


def load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Dictionary containing the configuration.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        yaml.YAMLError: If the YAML is invalid.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        config = yaml.safe_load(f)

    return config or {}


_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ``${VAR_NAME}`` references in configuration values.

    Unset variables expand to an empty string.
    """

    def expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
        elif isinstance(value, dict):
            return {k: expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [expand_value(item) for item in value]
        return value

    return expand_value(config)


def load_settings(config_path: Path | None = None) -> Settings:
    """Load application settings from YAML file and environment variables.

    Relative ``rules_file`` paths are resolved against the directory of the
    config file.

    Args:
        config_path: Optional path to YAML config file. If not provided,
                    looks for config.yaml in the current directory.

    Returns:
        Validated Settings object.
    """
    if config_path is None:
        config_path = Path("config.yaml")

    yaml_config: dict[str, Any] = {}
    if config_path.exists():
        yaml_config = load_yaml_config(config_path)
        yaml_config = expand_env_vars(yaml_config)

        rules_file = yaml_config.get("rules_file")
        if rules_file and not Path(rules_file).is_absolute():
            yaml_config["rules_file"] = config_path.parent / rules_file

    # Init kwargs take priority over env vars in pydantic-settings
    return Settings(**yaml_config)


# Global settings instance (lazy-loaded)
_settings: Settings | None = None


def get_settings(config_path: Path | None = None, reload: bool = False) -> Settings:
    """Get the global settings instance.

    Args:
        config_path: Optional path to config file for initial load.
        reload: Force reload of settings.

    Returns:
        The global Settings instance.
    """
    global _settings
    if _settings is None or reload:
        _settings = load_settings(config_path)
    return _settings
