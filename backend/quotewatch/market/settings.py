"""Environment-driven settings for the refresh engine.

Settings are re-read on every ``apply()`` / ``refresh()`` so edits to the
environment (or to whatever mapping backs ``settings_source``) take effect on
the next cycle.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from .errors import ConfigIncompleteError
from .models import WatchEntry, parse_watch_list

DEFAULT_CRON_EXPRESSION = "*/10 * * * * ?"
DEFAULT_WINDOW_NAME = "Stock"
DEFAULT_LONGBRIDGE_HTTP_URL = "https://openapi.longportapp.cn"

ENV_PREFIX = "QUOTEWATCH_"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _flag(values: Mapping[str, str], key: str, default: bool = False) -> bool:
    raw = values.get(ENV_PREFIX + key)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _text(values: Mapping[str, str], key: str, default: str = "") -> str:
    raw = values.get(ENV_PREFIX + key)
    if raw is None:
        return default
    return raw.strip() or default


@dataclass(frozen=True)
class LongbridgeCredentials:
    app_key: str
    app_secret: str
    access_token: str


@dataclass(frozen=True)
class Settings:
    """Snapshot of every setting the coordinator and providers read."""

    stocks: str = ""
    cron_expression: str = DEFAULT_CRON_EXPRESSION
    use_sina: bool = False
    use_longbridge: bool = False
    longbridge_app_key: str = ""
    longbridge_app_secret: str = ""
    longbridge_access_token: str = ""
    longbridge_http_url: str = DEFAULT_LONGBRIDGE_HTTP_URL
    longbridge_overnight_fallback: bool = True
    colorful: bool = True
    table_striped: bool = False
    proxy: str = ""
    window_name: str = DEFAULT_WINDOW_NAME

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> Settings:
        """Build settings from ``QUOTEWATCH_*`` keys; absent or blank keys use defaults."""
        return cls(
            stocks=_text(values, "STOCKS"),
            cron_expression=_text(values, "CRON", DEFAULT_CRON_EXPRESSION),
            use_sina=_flag(values, "SINA"),
            use_longbridge=_flag(values, "LONGBRIDGE"),
            longbridge_app_key=_text(values, "LONGBRIDGE_APP_KEY"),
            longbridge_app_secret=_text(values, "LONGBRIDGE_APP_SECRET"),
            longbridge_access_token=_text(values, "LONGBRIDGE_ACCESS_TOKEN"),
            longbridge_http_url=_text(values, "LONGBRIDGE_HTTP_URL", DEFAULT_LONGBRIDGE_HTTP_URL),
            longbridge_overnight_fallback=_flag(values, "LONGBRIDGE_OVERNIGHT_FALLBACK", default=True),
            colorful=_flag(values, "COLORFUL", default=True),
            table_striped=_flag(values, "TABLE_STRIPED"),
            proxy=_text(values, "PROXY"),
            window_name=_text(values, "WINDOW", DEFAULT_WINDOW_NAME),
        )

    @classmethod
    def from_env(cls) -> Settings:
        return cls.from_mapping(os.environ)

    @property
    def watch_list(self) -> list[WatchEntry]:
        return parse_watch_list(self.stocks)

    def longbridge_credentials(self) -> LongbridgeCredentials:
        """Return the Longbridge credentials, or raise ConfigIncompleteError if any is blank."""
        fields = {
            "app_key": self.longbridge_app_key,
            "app_secret": self.longbridge_app_secret,
            "access_token": self.longbridge_access_token,
        }
        missing = [name for name, value in fields.items() if not value]
        if missing:
            raise ConfigIncompleteError(
                "Longbridge credentials incomplete",
                {"missing": missing},
            )
        return LongbridgeCredentials(**fields)
