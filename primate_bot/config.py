"""Configuration management for the review-tracking bot."""

import os
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator

REMINDER_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")
_ENV_REFERENCE = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-(.*))?\}$", re.DOTALL)


def parse_reminder_time(value: str) -> tuple[int, int]:
    """Parse an ``HH:MM`` 24-hour string into ``(hour, minute)``.

    Raises:
        ValueError: If the string is not a valid time of day.
    """
    match = REMINDER_TIME_PATTERN.match(value.strip())
    if not match:
        raise ValueError(
            "Invalid reminder time format. Use HH:MM in 24-hour format (e.g. 09:00)"
        )
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(
            "Invalid reminder time format. Use HH:MM in 24-hour format (e.g. 09:00)"
        )
    return hour, minute


class SlackConfig(BaseModel):
    """Slack workspace connection settings."""

    bot_token: SecretStr = Field(..., description="Bot user OAuth token (xoxb-...)")
    app_token: SecretStr | None = Field(default=None, description="App-level token for Socket Mode")
    signing_secret: SecretStr | None = Field(default=None, description="Signing secret for HTTP mode")
    bot_user_id: str = Field(..., description="Bot's own user ID, excluded from mentions")
    channel_ids: list[str] = Field(default_factory=list, description="Channels where links are tracked")
    workspace: str = Field(default="", description="Workspace subdomain used in permalinks")

    @field_validator("channel_ids", mode="before")
    @classmethod
    def split_channel_ids(cls, value):
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value


class GitLabConfig(BaseModel):
    """GitLab instance settings."""

    host: str = Field(..., description="GitLab hostname, e.g. gitlab.example.com")
    token: SecretStr = Field(..., description="Personal or project access token")
    direct_merge_patterns: list[str] = Field(
        default_factory=list,
        description="Project path substrings of repositories that allow direct merging",
    )
    merge_on_signal: bool = False
    timeout: float = Field(default=10.0, gt=0)

    @field_validator("host")
    @classmethod
    def strip_scheme(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        for prefix in ("https://", "http://"):
            if value.startswith(prefix):
                value = value[len(prefix):]
        return value

    def allows_direct_merge(self, project_path: str) -> bool:
        """Whether a project belongs to the direct-merge category."""
        return any(pattern in project_path for pattern in self.direct_merge_patterns)


class BotConfig(BaseModel):
    """Bot behavior settings."""

    reminder_time: str = Field(default="09:00", description="Daily reminder time (HH:MM, 24h)")
    database_path: str = Field(
        default="~/.primate-bot/primate.db", description="Path to SQLite database file"
    )
    comment_requires_reviewer: bool = True
    reminder_batch_size: int = Field(default=15, ge=1)

    @field_validator("reminder_time")
    @classmethod
    def validate_reminder_time(cls, value: str) -> str:
        hour, minute = parse_reminder_time(value)
        return f"{hour:02d}:{minute:02d}"


class Config(BaseModel):
    """Root configuration model."""

    slack: SlackConfig
    gitlab: GitLabConfig
    bot: BotConfig = BotConfig()


def expand_env_vars(obj):
    """Recursively replace ``${VAR}`` and ``${VAR:-default}`` string values."""
    if isinstance(obj, dict):
        return {k: expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        match = _ENV_REFERENCE.match(obj)
        if not match:
            return obj
        env_var, default = match.group(1), match.group(2)
        value = os.getenv(env_var)
        if value is None or (value == "" and default is not None):
            if default is None:
                raise ValueError(f"Environment variable '{env_var}' is not set")
            return default
        return value
    return obj


def load_config(config_path: str | Path = "config.yaml") -> Config:
    """Load and validate configuration from YAML file.

    Supports ${VAR_NAME} and ${VAR_NAME:-default} syntax for environment
    variable expansion.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Validated Config object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValidationError: If config is invalid (including a bad reminder time).
        ValueError: If referenced environment variable is not set.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}\n"
            "Copy config.example.yaml to config.yaml and fill in your values."
        )

    with path.open() as f:
        raw_config = yaml.safe_load(f) or {}

    return Config(**expand_env_vars(raw_config))
