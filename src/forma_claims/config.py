"""Runtime settings and the on-disk login record."""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from forma_claims.errors import InvalidUsageError, NotLoggedInError

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.joinforma.com"
DEFAULT_CONFIG_PATH = Path.home() / ".forma-claims.json"
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_MODEL = "claude-haiku-4-5-20251001"


@dataclass(frozen=True)
class Settings:
    api_base_url: str = DEFAULT_API_BASE_URL
    config_path: Path = DEFAULT_CONFIG_PATH
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    model: str = DEFAULT_MODEL

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from FORMA_* environment variables, falling back to defaults."""
        return cls(
            api_base_url=os.environ.get("FORMA_API_BASE_URL", DEFAULT_API_BASE_URL),
            config_path=Path(os.environ.get("FORMA_CLAIMS_CONFIG", str(DEFAULT_CONFIG_PATH))).expanduser(),
            http_timeout=_http_timeout(),
            model=os.environ.get("FORMA_CLAIMS_MODEL", DEFAULT_MODEL),
        )


def _http_timeout() -> float:
    raw = os.environ.get("FORMA_HTTP_TIMEOUT")
    if raw is None:
        return DEFAULT_HTTP_TIMEOUT
    try:
        return float(raw)
    except ValueError as e:
        raise InvalidUsageError(f"FORMA_HTTP_TIMEOUT must be a number of seconds, got '{raw}'.") from e


@dataclass(frozen=True)
class Config:
    access_token: str | None = None
    email: str | None = None


class ConfigStore:
    """Reads and writes the `{"accessToken", "email"}` JSON file as a whole."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> Config:
        if not self.path.exists():
            return Config()
        raw = json.loads(self.path.read_text(encoding="utf-8"))
        return Config(access_token=raw.get("accessToken"), email=raw.get("email") or None)

    def save_access_token(self, access_token: str, email: str | None = None) -> None:
        """Store a new token, keeping the existing email unless a new one is given."""
        existing = self.load()
        record: dict[str, str] = {"accessToken": access_token}
        stored_email = email or existing.email
        if stored_email:
            record["email"] = stored_email

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(record), encoding="utf-8")
        logger.info("Saved access token to %s", self.path)

    def resolve_access_token(self, override: str | None = None) -> str:
        """Return the override if given, otherwise the stored token."""
        if override:
            return override
        token = self.load().access_token
        if not token:
            raise NotLoggedInError()
        return token
