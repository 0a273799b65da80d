"""Exclusion rule matching."""
from .matcher import compile_regex, find_best_match, matches_rule, rule_priority, rule_rank

__all__ = [
    "compile_regex",
    "find_best_match",
    "matches_rule",
    "rule_priority",
    "rule_rank",
]
