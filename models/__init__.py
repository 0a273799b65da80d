"""
Data models for the idle tab closer.
"""
from .rule_models import (
    RULE_TYPE_PRIORITY,
    BaseExclusionRule,
    ExclusionRule,
    ExactRule,
    DomainRule,
    SubdomainRule,
    DomainAllRule,
    PathRule,
    PathExactRule,
    DomainPathRule,
    RegexRule,
    parse_rule,
    parse_rules,
)
from .tab_models import TabRecord, TabSnapshot, WindowSnapshot, compute_remaining
from .history_models import CloseReason, HistoryEntry

__all__ = [
    "RULE_TYPE_PRIORITY",
    "BaseExclusionRule",
    "ExclusionRule",
    "ExactRule",
    "DomainRule",
    "SubdomainRule",
    "DomainAllRule",
    "PathRule",
    "PathExactRule",
    "DomainPathRule",
    "RegexRule",
    "parse_rule",
    "parse_rules",
    "TabRecord",
    "TabSnapshot",
    "WindowSnapshot",
    "compute_remaining",
    "CloseReason",
    "HistoryEntry",
]
