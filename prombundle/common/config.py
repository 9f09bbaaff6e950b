from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from prombundle.infra.observability.errors import ConfigurationError
from prombundle.infra.observability.filters import MUTUALLY_EXCLUSIVE_MESSAGE

ENV_FILE = Path(".env")


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_optional_list(value: str | None) -> list[str] | None:
    # 未设置与空字符串都视为“未配置”，区别于显式给出的列表
    if value is None or not value.strip():
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class Settings:
    ENABLE_METRICS: bool = True
    METRICS_WHITELIST: list[str] | None = None
    METRICS_BLACKLIST: list[str] | None = None
    METRICS_ROUTES_TO_DETAIL: list[str] | None = None
    LOG_LEVEL: str = "INFO"

    def __post_init__(self) -> None:
        if self.METRICS_WHITELIST is not None and self.METRICS_BLACKLIST is not None:
            raise ConfigurationError(
                f"METRICS_WHITELIST / METRICS_BLACKLIST: {MUTUALLY_EXCLUSIVE_MESSAGE}"
            )
        self.LOG_LEVEL = self.LOG_LEVEL.upper()

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            ENABLE_METRICS=_as_bool(
                os.environ.get("ENABLE_METRICS"), cls.ENABLE_METRICS
            ),
            METRICS_WHITELIST=_as_optional_list(os.environ.get("METRICS_WHITELIST")),
            METRICS_BLACKLIST=_as_optional_list(os.environ.get("METRICS_BLACKLIST")),
            METRICS_ROUTES_TO_DETAIL=_as_optional_list(
                os.environ.get("METRICS_ROUTES_TO_DETAIL")
            ),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
