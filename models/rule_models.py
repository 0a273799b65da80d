"""Exclusion rule models: one pydantic class per rule type, joined in a discriminated union."""
from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


# Precedence used when several rules match one address (higher wins).
RULE_TYPE_PRIORITY: Dict[str, int] = {
    "exact": 8,
    "regex": 7,
    "path_exact": 6,
    "path": 5,
    "domain": 4,
    "subdomain": 3,
    "domain_path": 2,
    "domain_all": 1,
}


class BaseExclusionRule(BaseModel):
    """Fields shared by every rule type."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: str = Field(description="Unique rule identifier")
    pattern: str = Field(description="Pattern string; meaning depends on the rule type")
    custom_countdown: Optional[int] = Field(
        default=None,
        ge=0,
        alias="customCountdown",
        description="Countdown in seconds for matching tabs (None = never close)"
    )
    enabled: bool = Field(default=True, description="Disabled rules never match")

    @property
    def priority(self) -> int:
        return RULE_TYPE_PRIORITY[self.type]  # type: ignore[attr-defined]

    @property
    def never_closes(self) -> bool:
        return self.custom_countdown is None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class ExactRule(BaseExclusionRule):
    """Full address equality."""
    type: Literal["exact"] = "exact"


class DomainRule(BaseExclusionRule):
    """Hostname equals the pattern; subdomains excluded."""
    type: Literal["domain"] = "domain"


class SubdomainRule(BaseExclusionRule):
    """Strict subdomains of the pattern; the bare domain excluded. Accepts a '*.' prefix."""
    type: Literal["subdomain"] = "subdomain"


class DomainAllRule(BaseExclusionRule):
    """Domain plus all of its subdomains. Accepts a '**.' prefix."""
    type: Literal["domain_all"] = "domain_all"


class PathRule(BaseExclusionRule):
    """`host/path` with an optional trailing '*' for the whole subtree."""
    type: Literal["path"] = "path"


class PathExactRule(BaseExclusionRule):
    """Exact `host/path`; compares the querystring only when the pattern has one."""
    type: Literal["path_exact"] = "path_exact"


class DomainPathRule(BaseExclusionRule):
    """Any path on the pattern's host."""
    type: Literal["domain_path"] = "domain_path"


class RegexRule(BaseExclusionRule):
    """Regular expression searched in the full address."""
    type: Literal["regex"] = "regex"


ExclusionRule = Annotated[
    Union[
        ExactRule,
        DomainRule,
        SubdomainRule,
        DomainAllRule,
        PathRule,
        PathExactRule,
        DomainPathRule,
        RegexRule,
    ],
    Field(discriminator="type"),
]

_RULE_ADAPTER: TypeAdapter = TypeAdapter(ExclusionRule)
_RULE_LIST_ADAPTER: TypeAdapter = TypeAdapter(List[ExclusionRule])


def parse_rule(data: Any) -> BaseExclusionRule:
    """Validate a raw mapping (camelCase or snake_case keys) into its rule class."""
    return _RULE_ADAPTER.validate_python(data)


def parse_rules(data: Any) -> List[BaseExclusionRule]:
    return _RULE_LIST_ADAPTER.validate_python(data or [])
