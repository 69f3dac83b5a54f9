"""Evaluates companies against ideal customer profile models."""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any, Iterable

from otcleads.scoring.models import ICPModel, ScoreDetail, ScoreResult, _format_value

_DAYS_PER_MONTH = 30.44
_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")

_RISK_TIERS = ("pink limited", "expert market", "grey market", "gray market")
_SHELL_KEYWORDS = ("reverse merger", "shell company", "shell corporation")
_CANNABIS_CRYPTO_KEYWORDS = ("cannabis", "cbd", "marijuana", "blockchain", "crypto", "bitcoin")
_HOLDING_KEYWORDS = ("blank check", "spac", "holding company", "special purpose")
_ASIAN_INDICATORS = (
    "taiwan", "tw", "hong kong", "hk", "china", "cn", "singapore", "sg",
    "beijing", "shanghai", "shenzhen", "taipei", "macau", "mo",
)
_REPUTABLE_AGENTS = (
    "computershare", "continental", "american stock", "island stock",
    "vstock", "pacific stock", "securities transfer", "registrar and transfer",
)
_GENERIC_NAME_WORDS = frozenset({"inc", "corp", "company", "ltd"})


def _to_float(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _as_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        if not _ISO_DATE.fullmatch(value):
            return None
        try:
            parsed = datetime.strptime(value, "%Y-%m-%d")
        except ValueError:
            return None
        return parsed.replace(tzinfo=timezone.utc)
    return None


def _months_since(moment: datetime) -> float:
    now = datetime.now(moment.tzinfo) if moment.tzinfo else datetime.now()
    return (now - moment).total_seconds() / 3600 / 24 / _DAYS_PER_MONTH


class ScoringEngine:
    """Scores company data against ICP models."""

    def score_company(self, company_data: dict[str, Any], model: ICPModel) -> ScoreResult:
        """Score one company's data against a model."""
        result = ScoreResult(scoring_model_id=model.id)

        for req in model.requirements:
            met, value = self.evaluate_condition(company_data, req.field, req.operator, req.value)
            if not met:
                result.requirements_met = False
            label = "REQUIREMENT MET" if met else "REQUIREMENT"
            result.breakdown[f"{req.field}_requirement"] = ScoreDetail(
                points=0,
                triggered=met,
                description=f"{label}: {req.description}",
                value=_format_value(value),
            )

        for exclusion in model.exclusions:
            met, value = self.evaluate_condition(
                company_data, exclusion.field, exclusion.operator, exclusion.value
            )
            if met:
                result.requirements_met = False
            label = "EXCLUSION VIOLATED" if met else "EXCLUSION OK"
            result.breakdown[f"{exclusion.field}_exclusion"] = ScoreDetail(
                points=0,
                triggered=met,
                description=f"{label}: {exclusion.description}",
                value=_format_value(value),
            )

        if result.requirements_met:
            for rule in model.rules:
                triggered, value = self.evaluate_condition(
                    company_data, rule.field, rule.operator, rule.value
                )
                points = rule.weight if triggered else 0
                result.score += points
                result.breakdown[rule.field] = ScoreDetail(
                    points=points,
                    triggered=triggered,
                    description=rule.description,
                    value=_format_value(value),
                )
            result.qualified = result.score >= model.min_score

        return result

    def evaluate_condition(
        self, data: dict[str, Any], field: str, operator: str, expected_value: Any
    ) -> tuple[bool, Any]:
        """Evaluate one condition; return whether it holds and the value looked at."""
        computed = self._computed_field(data, field)
        if computed is not None:
            return computed

        if field not in data:
            return False, None
        actual = data[field]

        if operator == "equals":
            return _format_value(actual) == _format_value(expected_value), actual
        if operator == "not_equals":
            return _format_value(actual) != _format_value(expected_value), actual
        if operator == "contains":
            needle = _format_value(expected_value).lower()
            return needle in _format_value(actual).lower(), actual
        comparisons = {
            "greater_than": lambda a, b: a > b,
            "less_than": lambda a, b: a < b,
            "greater_than_or_equal": lambda a, b: a >= b,
            "less_than_or_equal": lambda a, b: a <= b,
        }
        if operator in comparisons:
            left, right = _to_float(actual), _to_float(expected_value)
            if left is None or right is None:
                return False, actual
            return comparisons[operator](left, right), actual
        if operator == "is_true":
            if isinstance(actual, bool):
                return actual, actual
            return _format_value(actual) == "true", actual
        if operator == "is_false":
            if isinstance(actual, bool):
                return not actual, actual
            return _format_value(actual) == "false", actual
        if operator == "in":
            return self._in_list(actual, expected_value), actual
        if operator == "not_in":
            return not self._in_list(actual, expected_value), actual
        if operator == "regex":
            return self._matches_regex(actual, expected_value), actual
        return False, actual

    def _computed_field(self, data: dict[str, Any], field: str) -> tuple[bool, Any] | None:
        if field == "delinquent_10k":
            return self.evaluate_delinquency(data, "last_10k_date", 15), data.get("last_10k_date")
        if field == "delinquent_10q":
            return self.evaluate_delinquency(data, "last_10q_date", 6), data.get("last_10q_date")
        if field == "no_recent_activity":
            return self.evaluate_delinquency(data, "last_filing_date", 12), data.get("last_filing_date")
        if field == "pink_limited_or_expert":
            return self.evaluate_market_tier_risk(data), data.get("market_tier")
        if field == "reverse_merger_shell":
            return self.evaluate_description_keywords(data, _SHELL_KEYWORDS), data.get("description")
        if field == "asian_management":
            return self.evaluate_asian_management(data), data.get("officers", "No officer data")
        if field == "cannabis_or_crypto":
            return (
                self.evaluate_description_keywords(data, _CANNABIS_CRYPTO_KEYWORDS),
                data.get("description"),
            )
        if field == "holding_company_or_spac":
            return self.evaluate_description_keywords(data, _HOLDING_KEYWORDS), data.get("description")
        if field == "active_transfer_agent":
            return self.evaluate_active_transfer_agent(data), data.get("transfer_agent")
        if field == "domain_linked_to_company":
            return self.evaluate_domain_match(data), data.get("website")
        if field == "auditor_identified":
            return self.evaluate_auditor_present(data), data.get("auditor")
        if field == "no_verified_profile":
            verified = data.get("profile_verified")
            if isinstance(verified, bool):
                return not verified, verified
            return True, False
        return None

    def evaluate_delinquency(self, data: dict[str, Any], date_field: str, months_threshold: int) -> bool:
        """Whether the date in a field is missing, unreadable or older than the threshold."""
        moment = _as_datetime(data.get(date_field))
        if moment is None:
            return True
        return _months_since(moment) > float(months_threshold)

    def evaluate_market_tier_risk(self, data: dict[str, Any]) -> bool:
        """Whether the market tier is one of the risky tiers."""
        if "market_tier" not in data:
            return False
        tier = _format_value(data["market_tier"]).lower()
        return any(risk in tier for risk in _RISK_TIERS)

    def evaluate_description_keywords(self, data: dict[str, Any], keywords: Iterable[str]) -> bool:
        """Whether the business description contains any of the keywords."""
        description = data.get("description")
        if description is None:
            return False
        text = _format_value(description).lower()
        return any(keyword.lower() in text for keyword in keywords)

    def evaluate_asian_management(self, data: dict[str, Any]) -> bool:
        """Whether officers or address point to an Asian location."""
        return any(
            data.get(key) is not None and self._contains_asian_location(_format_value(data[key]))
            for key in ("officers", "address")
        )

    @staticmethod
    def _contains_asian_location(text: str) -> bool:
        lowered = text.lower()
        return any(indicator in lowered for indicator in _ASIAN_INDICATORS)

    def evaluate_active_transfer_agent(self, data: dict[str, Any]) -> bool:
        """Whether the company has a plausible transfer agent."""
        agent = data.get("transfer_agent")
        if agent is None:
            return False
        text = _format_value(agent).lower()
        if not text.strip():
            return False
        if any(reputable in text for reputable in _REPUTABLE_AGENTS):
            return True
        return "unknown" not in text and "none" not in text

    def evaluate_domain_match(self, data: dict[str, Any]) -> bool:
        """Whether a significant word of the company name appears in its website domain."""
        website = data.get("website")
        company_name = data.get("company_name")
        if website is None or company_name is None:
            return False

        domain = _format_value(website).lower()
        if "//" in domain:
            domain = domain.split("//")[1]
        if "/" in domain:
            domain = domain.split("/")[0]
        if domain.startswith("www."):
            domain = domain[4:]

        words = _format_value(company_name).lower().replace(",", " ").split()
        return any(
            len(word.encode("utf-8")) > 3 and word not in _GENERIC_NAME_WORDS and word in domain
            for word in words
        )

    def evaluate_auditor_present(self, data: dict[str, Any]) -> bool:
        """Whether an auditor is identified."""
        auditor = data.get("auditor")
        if auditor is None:
            return False
        text = _format_value(auditor).strip()
        lowered = text.lower()
        return bool(text) and "unknown" not in lowered and "none" not in lowered

    @staticmethod
    def _in_list(actual: Any, expected: Any) -> bool:
        actual_text = _format_value(actual)
        if isinstance(expected, (list, tuple)):
            return any(_format_value(item) == actual_text for item in expected)
        if isinstance(expected, str):
            return any(item.strip() == actual_text for item in expected.split(","))
        return False

    @staticmethod
    def _matches_regex(actual: Any, expected: Any) -> bool:
        try:
            return re.search(_format_value(expected), _format_value(actual)) is not None
        except re.error:
            return False