"""Application configuration from environment variables."""

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_SLACK_API_BASE_URL = "https://slack.com/api"


def _int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _float_from_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass
class AppConfig:
    """Process-wide configuration.

    Repository-specific behaviour lives in each repository's
    ``.pr-sheriff.yml``; this only covers credentials, endpoints and
    operational knobs.
    """

    github_app_id: str = ""
    github_private_key: str = ""
    github_webhook_secret: str = ""
    github_installation_id: str | None = None
    slack_bot_token: str = ""
    slack_api_base_url: str = DEFAULT_SLACK_API_BASE_URL
    database_url: str | None = None
    notification_max_attempts: int = 3
    notification_backoff_ms: int = 1000
    http_timeout_seconds: float = 30.0
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load configuration from environment variables."""
        # GitHub Private Key - can be path or direct content
        private_key_path = os.environ.get("GITHUB_PRIVATE_KEY_PATH", "")
        private_key = os.environ.get("GITHUB_PRIVATE_KEY", "")

        if private_key_path and not private_key:
            key_file = Path(private_key_path).expanduser()
            if not key_file.exists():
                raise ValueError(f"GITHUB_PRIVATE_KEY_PATH does not exist: {key_file}")
            private_key = key_file.read_text()

        max_attempts = _int_from_env("NOTIFICATION_MAX_ATTEMPTS", 3)
        if max_attempts < 1:
            raise ValueError("NOTIFICATION_MAX_ATTEMPTS must be at least 1")

        return cls(
            github_app_id=os.environ.get("GITHUB_APP_ID", ""),
            github_private_key=private_key,
            github_webhook_secret=os.environ.get("GITHUB_WEBHOOK_SECRET", ""),
            github_installation_id=os.environ.get("GITHUB_INSTALLATION_ID") or None,
            slack_bot_token=os.environ.get("SLACK_BOT_TOKEN", ""),
            slack_api_base_url=os.environ.get(
                "SLACK_API_BASE_URL", DEFAULT_SLACK_API_BASE_URL
            ).rstrip("/"),
            database_url=os.environ.get("DATABASE_URL") or None,
            notification_max_attempts=max_attempts,
            notification_backoff_ms=_int_from_env("NOTIFICATION_BACKOFF_MS", 1000),
            http_timeout_seconds=_float_from_env("HTTP_TIMEOUT_SECONDS", 30.0),
            host=os.environ.get("HOST", "0.0.0.0"),
            port=_int_from_env("PORT", 3000),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
