"""Environment-driven settings and fixed constants."""

import os
from pathlib import Path

NEW_CHAT_TITLE = "New Chat"
TITLE_MAX_CHARS = 25

# Seconds a slide stays up during autoplay when it has no narration.
AUTOPLAY_INTERVAL = 5.0

HISTORY_KEY = "chatHistory"
ACTIVE_SESSION_KEY = "activeChatSessionId"

DEFAULT_TIMEOUT = 120.0


def get_webhook_url() -> str | None:
    """Return the processing endpoint URL, or None when it is not configured."""
    url = os.environ.get("DIGITAL_TEAM_WEBHOOK_URL", "").strip()
    return url or None


def get_generation_url() -> str | None:
    """Return the base URL of the text-generation service."""
    url = os.environ.get("DIGITAL_TEAM_GENERATION_URL", "").strip()
    return url.rstrip("/") or None


def get_data_dir() -> Path:
    """Return the directory that holds the durable chat history."""
    env = os.environ.get("DIGITAL_TEAM_DATA_DIR")
    if env:
        return Path(env)

    return Path.home() / ".digital-team"


def get_history_path() -> Path:
    return get_data_dir() / "chat_history.json"


def get_timeout() -> float:
    env = os.environ.get("DIGITAL_TEAM_TIMEOUT")
    if env:
        try:
            return float(env)
        except ValueError:
            pass
    return DEFAULT_TIMEOUT
