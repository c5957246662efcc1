"""
Helpdesk Settings

Environment-driven configuration for the server and sync client.

Remote store:
- KV_URL (or HELPDESK_KV_URL) enables the Redis-compatible primary store
- Unset = local JSON files only
"""

import os
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from . import __version__


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Runtime settings. Build with ``Settings.from_env()``."""

    version: str = __version__
    env: str = "development"

    # Persistence
    data_dir: Path = Path("data")
    kv_url: Optional[str] = None
    kv_prefix: str = ""

    # Share links handed to clients via /api/config
    app_url: str = ""
    shared_app_url: str = ""

    # Reporting day/month boundaries
    timezone: str = "UTC"

    # Completing a ticket needs a sign-off signature
    require_signature: bool = True

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    @property
    def kv_enabled(self) -> bool:
        return bool(self.kv_url)

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def from_env(cls) -> "Settings":
        env = os.environ
        return cls(
            env=env.get("HELPDESK_ENV") or env.get("NODE_ENV") or "development",
            data_dir=Path(env.get("HELPDESK_DATA_DIR", "data")),
            kv_url=env.get("HELPDESK_KV_URL") or env.get("KV_URL") or None,
            kv_prefix=env.get("HELPDESK_KV_PREFIX", ""),
            app_url=env.get("APP_URL", ""),
            shared_app_url=env.get("SHARED_APP_URL", ""),
            timezone=env.get("HELPDESK_TIMEZONE", "UTC"),
            require_signature=_env_flag("HELPDESK_REQUIRE_SIGNATURE", True),
            host=env.get("HOST", "0.0.0.0"),
            port=int(env.get("PORT", 3000)),
            log_level=env.get("LOG_LEVEL", "INFO"),
        )
