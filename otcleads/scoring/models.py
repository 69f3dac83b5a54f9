"""Ideal customer profile models, rules and score results."""

from __future__ import annotations

import json
import math
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional

_INT_TEXT = re.compile(r"[+-]?\d+")


class ModelLoadError(ValueError):
    """Raised when a stored rules document cannot be parsed."""


@dataclass
class Requirement:
    """A condition a company must (or must not) satisfy."""

    field: str
    operator: str = ""
    value: Any = None
    description: str = ""


@dataclass
class ScoringRule:
    """A weighted condition that adds points when it triggers."""

    field: str
    operator: str = ""
    value: Any = None
    weight: int = 0
    description: str = ""


@dataclass
class ICPModel:
    """An Ideal Customer Profile scoring model."""

    id: str
    name: str
    description: str = ""
    version: int = 0
    requirements: list[Requirement] = field(default_factory=list)
    exclusions: list[Requirement] = field(default_factory=list)
    rules: list[ScoringRule] = field(default_factory=list)
    min_score: int = 0
    is_active: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def rules_document(self) -> dict[str, Any]:
        """Return the rules in the layout they are stored in."""
        return {
            "must_have": [asdict(req) for req in self.requirements],
            "must_not": [asdict(req) for req in self.exclusions],
            "scoring_rules": [asdict(rule) for rule in self.rules],
            "minimum_score": self.min_score,
        }


@dataclass
class ScoreDetail:
    """Detail about one component of a score."""

    points: int = 0
    triggered: bool = False
    description: str = ""
    value: str = ""


@dataclass
class ScoreResult:
    """The result of scoring one company against one model."""

    scoring_model_id: str
    company_id: str = ""
    score: int = 0
    qualified: bool = False
    requirements_met: bool = True
    breakdown: dict[str, ScoreDetail] = field(default_factory=dict)
    scored_at: datetime = field(default_factory=datetime.now)


def _format_float(number: float) -> str:
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "+Inf" if number > 0 else "-Inf"
    if number.is_integer() and abs(number) < 1e21:
        return str(int(number))
    return repr(number)


def _format_value(value: Any) -> str:
    """Render a value the way the stored documents expect plain text."""
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_format_value(item) for item in value) + "]"
    if isinstance(value, dict):
        parts = (f"{_format_value(k)}:{_format_value(value[k])}" for k in sorted(value, key=str))
        return "map[" + " ".join(parts) + "]"
    return str(value)


def _get_string(item: dict[str, Any], key: str) -> str:
    if key in item:
        return _format_value(item[key])
    return ""


def _get_int(item: dict[str, Any], key: str) -> int:
    value = item.get(key)
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return 0
        return int(value)
    if isinstance(value, str) and _INT_TEXT.fullmatch(value):
        return int(value)
    return 0


def _entries(rules: dict[str, Any], key: str):
    items = rules.get(key)
    if isinstance(items, list):
        yield from (item for item in items if isinstance(item, dict))


def _requirement(item: dict[str, Any]) -> Requirement:
    return Requirement(
        field=_get_string(item, "field"),
        operator=_get_string(item, "operator"),
        value=item.get("value"),
        description=_get_string(item, "description"),
    )


def load_icp_model_from_json(
    model_id, name, description, version, rules_json, is_active, created_at, updated_at
) -> ICPModel:
    """Build a model from its stored rules document."""
    try:
        rules = json.loads(rules_json)
    except (TypeError, ValueError) as exc:
        raise ModelLoadError(f"failed to parse rules JSON: {exc}") from exc
    if rules is None:
        rules = {}
    if not isinstance(rules, dict):
        raise ModelLoadError("failed to parse rules JSON: expected an object")

    model = ICPModel(
        id=model_id,
        name=name,
        description=description,
        version=version,
        is_active=is_active,
        created_at=created_at,
        updated_at=updated_at,
    )
    model.requirements = [_requirement(item) for item in _entries(rules, "must_have")]
    model.exclusions = [_requirement(item) for item in _entries(rules, "must_not")]

    for item in _entries(rules, "scoring_rules"):
        rule = ScoringRule(
            field=_get_string(item, "field"),
            operator=_get_string(item, "operator"),
            value=item.get("value"),
            weight=_get_int(item, "weight"),
            description=_get_string(item, "description"),
        )
        condition = _get_string(item, "condition")
        if condition:
            rule.description = condition
        model.rules.append(rule)

    if "minimum_score" in rules:
        model.min_score = _get_int(rules, "minimum_score")
    return model


def _default_rules(include_tier_risk: bool) -> list[ScoringRule]:
    rules = [
        ScoringRule("delinquent_10k", weight=1, description="Delinquent 10-K filing (>15 months)"),
        ScoringRule("delinquent_10q", weight=1, description="Delinquent 10-Q filing (>6 months)"),
        ScoringRule("no_verified_profile", weight=1, description="Profile not verified"),
    ]
    if include_tier_risk:
        rules.append(ScoringRule("pink_limited_or_expert", weight=1, description="In risky market tier"))
    rules += [
        ScoringRule("no_recent_activity", weight=1, description="No recent activity (>12 months)"),
        ScoringRule("reverse_merger_shell", weight=1, description="Reverse merger or shell company indicators"),
        ScoringRule("asian_management", weight=1, description="Asian management team"),
        ScoringRule("cannabis_or_crypto", weight=1, description="Cannabis or crypto business"),
        ScoringRule("holding_company_or_spac", weight=1, description="Holding company or SPAC"),
        ScoringRule("active_transfer_agent", weight=-1, description="Has active transfer agent"),
        ScoringRule("domain_linked_to_company", weight=-1, description="Website matches company name"),
        ScoringRule("auditor_identified", weight=-1, description="Has identified auditor"),
    ]
    return rules


def default_icp_models() -> list[ICPModel]:
    """Return the default seed models."""
    return [
        ICPModel(
            id="double-black-diamond",
            name="Double Black Diamond",
            description="Companies in Expert Market needing services to regain eligibility",
            version=1,
            requirements=[
                Requirement("market_tier", "equals", "Expert Market", "Must be in Expert Market tier"),
                Requirement("quote_status", "contains", "Ineligible", "Must be ineligible for solicited quotes"),
            ],
            rules=_default_rules(include_tier_risk=True),
            min_score=3,
            is_active=True,
        ),
        ICPModel(
            id="pink-market-opportunity",
            name="Pink Market Opportunity",
            description="Active Pink sheet companies with potential compliance gaps",
            version=1,
            requirements=[
                Requirement("market_tier", "equals", "OTC Pink", "Must be in OTC Pink tier"),
                Requirement("trading_volume", "greater_than", 0, "Must have trading volume"),
            ],
            exclusions=[
                Requirement(
                    "last_filing_date", "less_than", "2023-01-01", "Must not have filings older than 2023"
                ),
            ],
            rules=_default_rules(include_tier_risk=False),
            min_score=3,
            is_active=True,
        ),
    ]


def _flag(field_name: str, weight: int, description: str) -> ScoringRule:
    return ScoringRule(field_name, "is_true", True, weight, description)


def double_black_diamond_icp() -> ICPModel:
    """Return the Double Black Diamond model."""
    return ICPModel(
        id="double_black_diamond",
        name="Double Black Diamond",
        description="Find companies in the highest-risk tier who need services to regain eligibility",
        version=1,
        requirements=[
            Requirement("market_tier", "contains", "Expert Market", "Market Tier must be Expert Market (⚫⚫)"),
            Requirement(
                "quote_status", "contains", "Ineligible",
                "Quote Status must be 'Ineligible for solicited quotes'",
            ),
        ],
        rules=[
            _flag("delinquent_10k", 1, "No 10-K filing in last 15 months"),
            _flag("delinquent_10q", 1, "No 10-Q filing in last 6 months"),
            _flag("no_verified_profile", 1, "Profile not verified on OTC Markets"),
            _flag("no_recent_activity", 1, "No news/filings in last 12 months"),
            _flag("reverse_merger_shell", 1, "Business description suggests reverse merger or shell company"),
            _flag("asian_management", 1, "Officers or address in Taiwan, Hong Kong, or China"),
            _flag("cannabis_or_crypto", 1, "Business involves cannabis, CBD, blockchain, or cryptocurrency"),
            _flag("holding_company_or_spac", 1, "Company is a holding company, SPAC, or investment vehicle"),
            _flag("active_transfer_agent", -1, "Has reputable transfer agent (reduces risk)"),
            _flag("auditor_identified", -1, "Has identified CPA firm (reduces risk)"),
        ],
        min_score=3,
    )


def pink_market_icp() -> ICPModel:
    """Return the Pink Market Opportunity model."""
    return ICPModel(
        id="pink_market_opportunity",
        name="Pink Market Opportunity",
        description="Find companies in Pink sheets that are active but may have compliance gaps",
        version=1,
        requirements=[
            Requirement("market_tier", "contains", "Pink", "Market Tier must be OTC Pink"),
            Requirement("trading_volume", "greater_than", 0, "Must have trading volume > 0"),
        ],
        rules=[
            ScoringRule("months_since_last_filing", "less_than", 24, 2, "Recent filing activity (since 2023)"),
            _flag("delinquent_10k", 1, "No 10-K filing in last 15 months"),
            _flag("delinquent_10q", 1, "No 10-Q filing in last 6 months"),
            _flag("no_verified_profile", 1, "Profile not verified on OTC Markets"),
            _flag("no_recent_activity", 1, "No news/filings in last 12 months"),
            _flag("reverse_merger_shell", 1, "Business description suggests reverse merger or shell company"),
            _flag("asian_management", 1, "Officers or address in Asia"),
            _flag("cannabis_or_crypto", 1, "Cannabis or crypto business"),
            _flag("holding_company_or_spac", 1, "Holding company or SPAC structure"),
            _flag("active_transfer_agent", -1, "Has reputable transfer agent"),
            _flag("auditor_identified", -1, "Has identified auditor"),
        ],
        min_score=3,
    )


def all_icp_models() -> list[ICPModel]:
    """Return every built-in model."""
    return [double_black_diamond_icp(), pink_market_icp()]