from datetime import datetime, timedelta

import pytest

from otcleads.scoring.engine import ScoringEngine
from otcleads.scoring.models import (
    ICPModel,
    Requirement,
    ScoringRule,
    all_icp_models,
    double_black_diamond_icp,
    load_icp_model_from_json,
    pink_market_icp,
)


def months_ago(months: int) -> datetime:
    return datetime.now() - timedelta(days=int(months * 30.5))


@pytest.fixture
def engine():
    return ScoringEngine()


def expert_company():
    return {
        "ticker": "ABCD",
        "company_name": "Test Company Inc",
        "market_tier": "Expert Market",
        "quote_status": "Ineligible for solicited quotes",
        "trading_volume": 100,
        "website": "https://testcompany.com",
        "description": "A test company for verification",
        "transfer_agent": "Computershare Trust Company",
        "auditor": "Test CPA Firm",
        "last_10k_date": months_ago(18),
        "last_10q_date": months_ago(8),
        "last_filing_date": months_ago(3),
        "profile_verified": False,
    }


def test_score_company_expert_market(engine):
    model = double_black_diamond_icp()
    result = engine.score_company(expert_company(), model)

    assert result.scoring_model_id == model.id
    assert result.requirements_met is True
    assert result.score > 0
    assert result.breakdown["delinquent_10k"].triggered is True
    assert result.breakdown["delinquent_10q"].triggered is True
    assert result.breakdown["no_verified_profile"].triggered is True
    detail = result.breakdown["active_transfer_agent"]
    assert detail.triggered is True
    assert detail.points < 0


def test_score_breakdown_descriptions(engine):
    result = engine.score_company(expert_company(), double_black_diamond_icp())
    req = result.breakdown["market_tier_requirement"]
    assert req.triggered is True
    assert req.description.startswith("REQUIREMENT MET: ")
    assert req.value == "Expert Market"


def test_unmet_requirement_skips_rules(engine):
    data = expert_company()
    data["market_tier"] = "OTCQX"
    result = engine.score_company(data, double_black_diamond_icp())
    assert result.requirements_met is False
    assert result.score == 0
    assert result.qualified is False
    assert "delinquent_10k" not in result.breakdown
    assert result.breakdown["market_tier_requirement"].description.startswith("REQUIREMENT: ")


def test_exclusion_violated(engine):
    model = ICPModel(
        id="m",
        name="M",
        exclusions=[Requirement("market_tier", "equals", "Grey Market", "no grey")],
        rules=[ScoringRule("trading_volume", "greater_than", 0, 5, "volume")],
    )
    result = engine.score_company({"market_tier": "Grey Market", "trading_volume": 10}, model)
    assert result.requirements_met is False
    detail = result.breakdown["market_tier_exclusion"]
    assert detail.triggered is True
    assert detail.description == "EXCLUSION VIOLATED: no grey"


def test_qualified_when_score_reaches_minimum(engine):
    model = ICPModel(
        id="m",
        name="M",
        rules=[ScoringRule("trading_volume", "greater_than", 0, 3, "volume")],
        min_score=3,
    )
    result = engine.score_company({"trading_volume": 10}, model)
    assert result.score == 3
    assert result.qualified is True
    assert result.breakdown["trading_volume"].points == 3


def test_load_icp_model_then_score(engine):
    rules_json = """{
        "must_have": [{"field": "market_tier", "operator": "equals",
                       "value": "Expert Market", "description": "Must be in Expert Market"}],
        "must_not": [{"field": "last_filing_date", "operator": "less_than",
                      "value": "2020-01-01", "description": "Must not have very old filings"}],
        "scoring_rules": [
            {"field": "delinquent_10k", "operator": "is_true", "value": true, "weight": 2,
             "description": "Delinquent 10-K filing"},
            {"field": "active_transfer_agent", "operator": "is_true", "value": true, "weight": -1,
             "description": "Has reputable transfer agent"}
        ],
        "minimum_score": 3
    }"""
    model = load_icp_model_from_json(
        "test-model", "Test Model", "A test scoring model", 1, rules_json, True,
        datetime.now(), datetime.now(),
    )
    assert model.id == "test-model"
    assert len(model.requirements) == 1
    assert len(model.exclusions) == 1
    assert len(model.rules) == 2
    assert model.min_score == 3

    result = engine.score_company(expert_company(), model)
    assert result.requirements_met is True
    assert result.breakdown["delinquent_10k"].points == 2


@pytest.mark.parametrize(
    "data, field, operator, value, expected",
    [
        ({"market_tier": "Expert Market"}, "market_tier", "equals", "Expert Market", True),
        ({"market_tier": "OTC Pink"}, "market_tier", "equals", "Expert Market", False),
        ({"quote_status": "Ineligible for solicited quotes"}, "quote_status", "contains", "Ineligible", True),
        ({"trading_volume": 1000}, "trading_volume", "greater_than", 500, True),
        ({"trading_volume": 300}, "trading_volume", "greater_than", 500, False),
        ({"profile_verified": True}, "profile_verified", "is_true", True, True),
        ({"profile_verified": False}, "profile_verified", "is_false", False, True),
    ],
)
def test_evaluate_conditions(engine, data, field, operator, value, expected):
    result, _ = engine.evaluate_condition(data, field, operator, value)
    assert result is expected


@pytest.mark.parametrize(
    "data, operator, value, expected",
    [
        ({"x": "a"}, "not_equals", "b", True),
        ({"x": 5}, "less_than_or_equal", 5, True),
        ({"x": 5}, "greater_than_or_equal", 6.5, False),
        ({"x": "10"}, "greater_than", 5, False),
        ({"x": "true"}, "is_true", None, True),
        ({"x": "B"}, "in", "A, B, C", True),
        ({"x": 2}, "in", [1, 2, 3], True),
        ({"x": "D"}, "not_in", ["A", "B"], True),
        ({"x": "ABC123"}, "regex", r"\d+", True),
        ({"x": "ABC"}, "regex", "(", False),
        ({"x": "ABC"}, "bogus", "ABC", False),
        ({"x": 1.0}, "equals", 1, True),
    ],
)
def test_evaluate_other_operators(engine, data, operator, value, expected):
    result, _ = engine.evaluate_condition(data, "x", operator, value)
    assert result is expected


def test_missing_field_returns_none(engine):
    assert engine.evaluate_condition({}, "market_tier", "equals", "x") == (False, None)


def test_no_verified_profile_defaults(engine):
    assert engine.evaluate_condition({}, "no_verified_profile", "", None) == (True, False)
    assert engine.evaluate_condition({"profile_verified": True}, "no_verified_profile", "", None) == (
        False,
        True,
    )


def test_asian_management_value_without_officers(engine):
    _, value = engine.evaluate_condition({}, "asian_management", "", None)
    assert value == "No officer data"


@pytest.mark.parametrize(
    "date_value, threshold, expected",
    [
        (months_ago(3), 6, False),
        (months_ago(18), 15, True),
        (None, 6, True),
        ("2020-01-01", 12, True),
        ("not a date", 12, True),
        ("2020-1-1", 12, True),
        (12345, 12, True),
    ],
)
def test_evaluate_delinquency(engine, date_value, threshold, expected):
    data = {"test_date": date_value}
    assert engine.evaluate_delinquency(data, "test_date", threshold) is expected


def test_recent_string_date_not_delinquent(engine):
    recent = (datetime.now() - timedelta(days=10)).strftime("%Y-%m-%d")
    assert engine.evaluate_delinquency({"d": recent}, "d", 6) is False


@pytest.mark.parametrize(
    "description, keywords, expected",
    [
        ("This company operates in the cannabis industry", ["cannabis", "cbd", "marijuana"], True),
        ("We develop blockchain and cryptocurrency solutions", ["blockchain", "crypto", "bitcoin"], True),
        ("This is a traditional manufacturing company", ["cannabis", "crypto", "blockchain"], False),
        ("SPAC investment vehicle", ["spac", "blank check"], True),
    ],
)
def test_evaluate_description_keywords(engine, description, keywords, expected):
    assert engine.evaluate_description_keywords({"description": description}, keywords) is expected


def test_description_keywords_missing(engine):
    assert engine.evaluate_description_keywords({"description": None}, ["x"]) is False


@pytest.mark.parametrize(
    "agent, expected",
    [
        ("Computershare Trust Company", True),
        ("Continental Stock Transfer & Trust Company", True),
        ("Unknown Transfer Agent", False),
        ("", False),
        ("None", False),
    ],
)
def test_evaluate_transfer_agent(engine, agent, expected):
    assert engine.evaluate_active_transfer_agent({"transfer_agent": agent}) is expected


@pytest.mark.parametrize(
    "tier, expected",
    [
        ("Pink Limited", True),
        ("EXPERT MARKET", True),
        ("Gray Market", True),
        ("OTCQX", False),
    ],
)
def test_market_tier_risk(engine, tier, expected):
    assert engine.evaluate_market_tier_risk({"market_tier": tier}) is expected


def test_market_tier_risk_missing(engine):
    assert engine.evaluate_market_tier_risk({}) is False


def test_asian_management(engine):
    assert engine.evaluate_asian_management({"address": "Central, Hong Kong"}) is True
    assert engine.evaluate_asian_management({"officers": "Jane Roe, Paris"}) is False
    assert engine.evaluate_asian_management({}) is False


@pytest.mark.parametrize(
    "website, name, expected",
    [
        ("https://www.testcompany.com/about", "Test Company Inc", True),
        ("https://acme.com", "Globex, Corp", False),
        ("globex.io", "Globex, Corp", True),
        ("https://abc.com", "ABC Inc", False),
    ],
)
def test_domain_match(engine, website, name, expected):
    assert engine.evaluate_domain_match({"website": website, "company_name": name}) is expected


def test_domain_match_missing(engine):
    assert engine.evaluate_domain_match({"website": "x.com"}) is False


@pytest.mark.parametrize(
    "auditor, expected",
    [("Test CPA Firm", True), ("  ", False), ("Unknown", False), ("none listed", False)],
)
def test_auditor_present(engine, auditor, expected):
    assert engine.evaluate_auditor_present({"auditor": auditor}) is expected


def test_default_models():
    dbd = double_black_diamond_icp()
    assert dbd.id == "double_black_diamond"
    assert len(dbd.requirements) > 0
    assert len(dbd.rules) > 0
    pink = pink_market_icp()
    assert pink.id == "pink_market_opportunity"
    assert len(pink.requirements) > 0
    assert len(pink.rules) > 0
    assert len(all_icp_models()) == 2


def test_pink_market_scoring(engine):
    data = {
        "ticker": "PINK",
        "company_name": "Pink Test Company",
        "market_tier": "OTC Pink",
        "quote_status": "Current Information",
        "trading_volume": 5000,
        "website": "https://pinktest.com",
        "description": "A legitimate pink sheet company",
        "transfer_agent": "American Stock Transfer",
        "auditor": "Regional CPA Firm",
        "last_10k_date": months_ago(6),
        "last_10q_date": months_ago(2),
        "last_filing_date": months_ago(1),
        "profile_verified": True,
    }
    result = engine.score_company(data, pink_market_icp())
    assert result.requirements_met is True
    assert result.score < 5