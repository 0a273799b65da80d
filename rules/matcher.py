"""
Exclusion rule matching.

``matches_rule`` tests one address against one rule; ``find_best_match`` picks the
single rule that governs an address when several apply. Both are total: invalid
regular expressions and unparsable addresses yield "no match", never an exception.
"""
from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Optional, Pattern, Tuple

from error_handling import MalformedPatternError
from models.rule_models import (
    RULE_TYPE_PRIORITY,
    BaseExclusionRule,
    DomainAllRule,
    DomainPathRule,
    DomainRule,
    ExactRule,
    PathExactRule,
    PathRule,
    RegexRule,
    SubdomainRule,
)
from utils.event_logger import get_event_logger
from utils.url_utils import ParsedURL, parse_url


@lru_cache(maxsize=512)
def _compile(pattern: str) -> Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise MalformedPatternError(f"Invalid regex pattern: {pattern} ({exc})") from exc


def compile_regex(pattern: str) -> Optional[Pattern[str]]:
    """Compiled pattern, or None (logged as an invalid rule) when it does not compile."""
    try:
        return _compile(pattern)
    except MalformedPatternError as exc:
        get_event_logger().rule_invalid(pattern, error=str(exc.__cause__))
        return None


def _split_host_path(pattern: str) -> Tuple[str, str]:
    """'host/a/b' -> ('host', 'a/b'); the host part is lowercased."""
    host, _, rest = pattern.partition("/")
    return host.strip().lower(), rest


def _strip_prefix(pattern: str, prefix: str) -> str:
    pattern = pattern.strip().lower()
    if pattern.startswith(prefix):
        return pattern[len(prefix):]
    return pattern


def _match_path(parsed: ParsedURL, pattern: str) -> bool:
    host, path_pattern = _split_host_path(pattern)
    if parsed.hostname != host:
        return False

    path = parsed.path[1:] if parsed.path.startswith("/") else parsed.path
    wanted = path_pattern[1:] if path_pattern.startswith("/") else path_pattern

    if wanted.endswith("*"):
        prefix = wanted[:-1]
        base = prefix[:-1] if prefix.endswith("/") else prefix
        return path == base or path.startswith(prefix)
    return path == wanted


def _match_path_exact(parsed: ParsedURL, pattern: str) -> bool:
    if "?" in pattern:
        target = pattern if pattern.startswith("http") else "https://" + pattern
        expected = parse_url(target)
        if expected is None:
            return False
        return (
            parsed.hostname == expected.hostname
            and parsed.path == expected.path
            and parsed.search == expected.search
        )

    host, path_pattern = _split_host_path(pattern)
    return parsed.hostname == host and parsed.path == "/" + path_pattern


def matches_rule(url: str, rule: BaseExclusionRule) -> bool:
    """
    Test whether an address is covered by a rule.

    Args:
        url: Full address of the tab
        rule: Any exclusion rule variant

    Returns:
        True if the rule is enabled and its pattern covers the address
    """
    if not rule.enabled or not isinstance(url, str):
        return False

    if isinstance(rule, ExactRule):
        return url == rule.pattern

    if isinstance(rule, RegexRule):
        compiled = compile_regex(rule.pattern)
        return bool(compiled and compiled.search(url))

    parsed = parse_url(url)
    if parsed is None or not parsed.hostname:
        return False

    if isinstance(rule, DomainRule):
        return parsed.hostname == rule.pattern.strip().lower()

    if isinstance(rule, SubdomainRule):
        base = _strip_prefix(rule.pattern, "*.")
        return parsed.hostname != base and parsed.hostname.endswith("." + base)

    if isinstance(rule, DomainAllRule):
        base = _strip_prefix(rule.pattern, "**.")
        return parsed.hostname == base or parsed.hostname.endswith("." + base)

    if isinstance(rule, PathRule):
        return _match_path(parsed, rule.pattern)

    if isinstance(rule, PathExactRule):
        return _match_path_exact(parsed, rule.pattern)

    if isinstance(rule, DomainPathRule):
        host, _ = _split_host_path(rule.pattern)
        return parsed.hostname == host

    return False


def rule_priority(rule: BaseExclusionRule) -> int:
    return RULE_TYPE_PRIORITY.get(getattr(rule, "type", ""), 0)


def rule_rank(rule: BaseExclusionRule) -> Tuple[int, int, int]:
    """
    Sort key for conflict resolution (higher wins).

    Type priority first; within a priority a never-close rule beats any numeric
    countdown, and a longer countdown beats a shorter one.
    """
    never_close = 1 if rule.custom_countdown is None else 0
    return rule_priority(rule), never_close, rule.custom_countdown or 0


def find_best_match(url: str, rules: Iterable[BaseExclusionRule]) -> Optional[BaseExclusionRule]:
    """
    Pick the rule that governs an address.

    Returns:
        The highest-ranked matching rule (earliest in list order on a full tie),
        or None when nothing matches
    """
    best: Optional[BaseExclusionRule] = None
    best_rank: Optional[Tuple[int, int, int]] = None
    for rule in rules:
        if not matches_rule(url, rule):
            continue
        rank = rule_rank(rule)
        if best_rank is None or rank > best_rank:
            best, best_rank = rule, rank
    return best
