"""测试指标名称的白名单 / 黑名单筛选。"""

from __future__ import annotations

import re

import pytest

from prombundle.infra.observability.catalog import METRIC_DEFINITIONS
from prombundle.infra.observability.errors import ConfigurationError
from prombundle.infra.observability.filters import (
    ExactMatch,
    FilterConfig,
    PatternMatch,
    parse_pattern,
    select_metric_names,
)

CATALOG_NAMES = [definition.name for definition in METRIC_DEFINITIONS]


class TestParsePattern:
    """测试模式解析。"""

    def test_plain_string_is_exact_match(self) -> None:
        """普通字符串按原样比较。"""
        matcher = parse_pattern("http_request_seconds")
        assert matcher == ExactMatch("http_request_seconds")
        assert matcher.matches("http_request_seconds")
        assert not matcher.matches("http_request_seconds_total")

    def test_compiled_regex_is_pattern_match(self) -> None:
        """已编译的正则表达式直接使用。"""
        matcher = parse_pattern(re.compile(r"^http_"))
        assert isinstance(matcher, PatternMatch)
        assert matcher.matches("http_request_seconds")
        assert not matcher.matches("up")

    def test_slash_delimited_string_compiles(self) -> None:
        """/.../ 形式的字符串编译为正则。"""
        matcher = parse_pattern("/duration$/")
        assert isinstance(matcher, PatternMatch)
        assert matcher.matches("http_request_long_duration")
        assert not matcher.matches("http_request_seconds")

    def test_regex_is_unanchored(self) -> None:
        """正则按 search 语义匹配任意位置。"""
        assert parse_pattern("/memory/").matches("nodejs_memory_heap_used_bytes")

    def test_single_slash_is_exact(self) -> None:
        assert parse_pattern("/") == ExactMatch("/")

    def test_invalid_regex_is_configuration_error(self) -> None:
        """非法正则在解析阶段报错。"""
        with pytest.raises(ConfigurationError, match="invalid metric name pattern"):
            parse_pattern("/(unclosed/")

    def test_non_string_is_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            parse_pattern(42)  # type: ignore[arg-type]


class TestFilterConfig:
    """测试 FilterConfig 的构造约束。"""

    def test_whitelist_and_blacklist_are_mutually_exclusive(self) -> None:
        with pytest.raises(ConfigurationError, match="mutually exclusive"):
            FilterConfig.parse(whitelist=["up"], blacklist=["up"])

    def test_empty_lists_still_count_as_configured(self) -> None:
        """空列表也是显式配置。"""
        with pytest.raises(ConfigurationError):
            FilterConfig.parse(whitelist=[], blacklist=[])

    def test_single_pattern_is_wrapped(self) -> None:
        config = FilterConfig.parse(whitelist="up")
        assert config.whitelist == (ExactMatch("up"),)


class TestSelectMetricNames:
    """测试 select_metric_names。"""

    def test_no_filter_returns_all_names_in_order(self) -> None:
        assert select_metric_names(CATALOG_NAMES, FilterConfig()) == CATALOG_NAMES

    def test_whitelist_regex(self) -> None:
        names = ["up", "http_request_seconds", "http_request_detail_duration"]
        config = FilterConfig.parse(whitelist=[re.compile(r"^http_")])
        assert select_metric_names(names, config) == [
            "http_request_seconds",
            "http_request_detail_duration",
        ]

    def test_whitelist_is_or_of_patterns_and_keeps_input_order(self) -> None:
        """任一模式命中即保留，输出顺序跟随输入。"""
        config = FilterConfig.parse(
            whitelist=["http_request_long_duration", "/^nodejs_/", "up"]
        )
        assert select_metric_names(CATALOG_NAMES, config) == [
            "up",
            "nodejs_memory_heap_total_bytes",
            "nodejs_memory_heap_used_bytes",
            "http_request_long_duration",
        ]

    def test_whitelist_does_not_duplicate_names_matched_twice(self) -> None:
        config = FilterConfig.parse(whitelist=["up", "/^u/", re.compile("p$")])
        assert select_metric_names(CATALOG_NAMES, config) == ["up"]

    def test_empty_whitelist_selects_nothing(self) -> None:
        assert select_metric_names(CATALOG_NAMES, FilterConfig.parse(whitelist=[])) == []

    @pytest.mark.parametrize(
        "blacklist",
        [
            ["up"],
            ["/^http_/"],
            [re.compile("memory"), "http_request_seconds"],
            [],
            ["does_not_exist"],
        ],
    )
    def test_blacklist_partitions_catalog(self, blacklist) -> None:
        """保留项与被屏蔽项恰好划分整个目录。"""
        kept = select_metric_names(CATALOG_NAMES, FilterConfig.parse(blacklist=blacklist))
        blocked = select_metric_names(CATALOG_NAMES, FilterConfig.parse(whitelist=blacklist))
        assert sorted(kept + blocked) == sorted(CATALOG_NAMES)
        assert not set(kept) & set(blocked)
        assert kept == [name for name in CATALOG_NAMES if name in kept]

    def test_blacklist_removes_matching_names(self) -> None:
        config = FilterConfig.parse(blacklist=["/^nodejs_/", "up"])
        assert select_metric_names(CATALOG_NAMES, config) == [
            "http_request_seconds",
            "http_request_detail_duration",
            "http_request_long_duration",
        ]

    def test_hand_built_config_with_both_lists_is_rejected(self) -> None:
        config = FilterConfig()
        object.__setattr__(config, "whitelist", (ExactMatch("up"),))
        object.__setattr__(config, "blacklist", (ExactMatch("up"),))
        with pytest.raises(ConfigurationError):
            select_metric_names(CATALOG_NAMES, config)

    def test_input_is_not_mutated(self) -> None:
        names = list(CATALOG_NAMES)
        select_metric_names(names, FilterConfig.parse(blacklist=["up"]))
        assert names == CATALOG_NAMES
