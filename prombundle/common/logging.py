import json
import logging
import re
from logging.config import dictConfig
from typing import Any

STARTUP_LOGGER = "prombundle.startup"

# 启动日志以 "[event=xxx]" 结尾，JSON 输出时拆成独立字段
EVENT_TAG = re.compile(r"\s*\[event=(?P<event>[\w.-]+)\]")


def logging_config(level: str = "INFO") -> dict[str, Any]:
    """Root 输出 JSON 行；启动日志走纯文本，便于容器启动时直接阅读。"""
    level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JsonFormatter},
            "plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stdout",
            },
            "startup_console": {
                "class": "logging.StreamHandler",
                "formatter": "plain",
                "stream": "ext://sys.stderr",
            },
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            STARTUP_LOGGER: {
                "handlers": ["startup_console"],
                "level": level,
                "propagate": False,
            },
            # 中间件误用等请求级错误
            "http": {"level": level},
        },
    }


def setup_logging(level: str = "INFO") -> None:
    dictConfig(logging_config(level))


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        payload: dict[str, Any] = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
        }
        match = EVENT_TAG.search(message)
        if match:
            payload["event"] = match.group("event")
            message = (message[: match.start()] + message[match.end() :]).strip()
        payload["message"] = message
        if hasattr(record, "extra") and isinstance(record.extra, dict):
            payload.update(record.extra)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)
