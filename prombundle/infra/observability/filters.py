"""Metric name selection from whitelist / blacklist patterns.

Patterns are parsed once into ``ExactMatch`` or ``PatternMatch`` so that
matching never has to guess what kind of pattern it was given.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Sequence, Union

from prombundle.infra.observability.errors import ConfigurationError

MUTUALLY_EXCLUSIVE_MESSAGE = "whitelist and blacklist are mutually exclusive options"


@dataclass(frozen=True, slots=True)
class ExactMatch:
    value: str

    def matches(self, name: str) -> bool:
        return name == self.value


@dataclass(frozen=True, slots=True)
class PatternMatch:
    pattern: re.Pattern[str]

    def matches(self, name: str) -> bool:
        return self.pattern.search(name) is not None


Matcher = Union[ExactMatch, PatternMatch]
RawPattern = Union[str, re.Pattern, ExactMatch, PatternMatch]


def parse_pattern(raw: RawPattern) -> Matcher:
    """Turn a configured pattern into a matcher.

    ``"/^http_/"`` (slash-delimited) compiles to a regular expression, any
    other string is compared verbatim.
    """
    if isinstance(raw, (ExactMatch, PatternMatch)):
        return raw
    if isinstance(raw, re.Pattern):
        return PatternMatch(raw)
    if not isinstance(raw, str):
        raise ConfigurationError(
            f"metric name pattern must be a string or a compiled regex, got {type(raw).__name__}"
        )
    if len(raw) >= 2 and raw.startswith("/") and raw.endswith("/"):
        try:
            return PatternMatch(re.compile(raw[1:-1]))
        except re.error as exc:
            raise ConfigurationError(f"invalid metric name pattern {raw!r}: {exc}") from exc
    return ExactMatch(raw)


def parse_patterns(raw: Iterable[RawPattern] | None) -> tuple[Matcher, ...] | None:
    if raw is None:
        return None
    if isinstance(raw, (str, re.Pattern)):
        # 单个模式也按列表处理
        raw = [raw]
    return tuple(parse_pattern(item) for item in raw)


@dataclass(frozen=True)
class FilterConfig:
    whitelist: tuple[Matcher, ...] | None = None
    blacklist: tuple[Matcher, ...] | None = None

    def __post_init__(self) -> None:
        if self.whitelist is not None and self.blacklist is not None:
            raise ConfigurationError(MUTUALLY_EXCLUSIVE_MESSAGE)

    @classmethod
    def parse(
        cls,
        whitelist: Iterable[RawPattern] | None = None,
        blacklist: Iterable[RawPattern] | None = None,
    ) -> "FilterConfig":
        return cls(whitelist=parse_patterns(whitelist), blacklist=parse_patterns(blacklist))


def _matches_any(name: str, matchers: Sequence[Matcher]) -> bool:
    return any(matcher.matches(name) for matcher in matchers)


def select_metric_names(names: Sequence[str], config: FilterConfig) -> list[str]:
    """Return the names that stay active under ``config``, in input order."""
    if config.whitelist is not None and config.blacklist is not None:
        # 手工拼装的配置同样需要校验
        raise ConfigurationError(MUTUALLY_EXCLUSIVE_MESSAGE)
    if config.whitelist is not None:
        return [name for name in names if _matches_any(name, config.whitelist)]
    if config.blacklist is not None:
        return [name for name in names if not _matches_any(name, config.blacklist)]
    return list(names)
