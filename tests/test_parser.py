from datetime import datetime, timezone

import pytest
from bs4 import BeautifulSoup

from otcleads.scraper.parser import Parser

UTC = timezone.utc


def _doc(body: str, title: str = "") -> BeautifulSoup:
    head = f"<head><title>{title}</title></head>" if title else "<head></head>"
    return BeautifulSoup(f"<html>{head}<body>{body}</body></html>", "html.parser")


def _parser(year: int = 2024, month: int = 6, day: int = 1) -> Parser:
    return Parser(clock=lambda: datetime(year, month, day, tzinfo=UTC))


def test_overview_title_gives_ticker_and_name():
    doc = _doc("<p>nothing</p>", title="ECGP - Envit Capital Group, Inc. | Overview | OTC Markets")
    data = _parser().parse_overview_page(doc)
    assert data["ticker"] == "ECGP"
    assert data["company_name"] == "Envit Capital Group, Inc."


def test_overview_tier_and_quote_status_from_text():
    doc = _doc("<p>Market tier: Expert Market</p>\n<p>Ineligible for solicited quotes</p>")
    data = _parser().parse_overview_page(doc)
    assert data["market_tier"] == "Expert Market"
    assert data["quote_status"] == "Ineligible for solicited quotes"


def test_overview_volume_and_website():
    doc = _doc("<p>Volume: 12,345</p>\n<p>Website: example.com</p>")
    data = _parser().parse_overview_page(doc)
    assert data["trading_volume"] == 12345
    assert data["website"] == "https://example.com"


def test_overview_description_flags():
    text = "The company is a holding company focused on cannabis cultivation and retail"
    doc = _doc(f'<div class="company-description">{text}</div>')
    data = _parser().parse_overview_page(doc)
    assert data["description"] == text
    assert data["cannabis_or_crypto"] is True
    assert data["holding_company_or_spac"] is True
    assert "reverse_merger_shell" not in data


def test_overview_officers_with_asian_location():
    doc = _doc("<table><tr><th>Officers</th></tr><tr><td>Jane Roe, CEO, Taipei</td></tr></table>")
    data = _parser().parse_overview_page(doc)
    assert data["officers"] == [{"info": "Jane Roe, CEO, Taipei"}]
    assert data["asian_management"] is True


def test_overview_officers_without_asian_location():
    doc = _doc("<table><tr><th>Officers</th></tr><tr><td>John Smith, President, Denver</td></tr></table>")
    data = _parser().parse_overview_page(doc)
    assert data["officers"] == [{"info": "John Smith, President, Denver"}]
    assert "asian_management" not in data


def test_overview_transfer_agent():
    doc = _doc("<p>Transfer Agent: Computershare Trust Company</p>\n<p>2024</p>")
    data = _parser().parse_overview_page(doc)
    assert data["transfer_agent"] == "Computershare Trust Company"
    assert data["active_transfer_agent"] is True


def test_overview_generic_website():
    doc = _doc('<div class="info">Site www.example.org</div>')
    data = _parser().parse_overview_page(doc)
    assert data["website"] == "https://www.example.org"


def test_financials_dates_and_delinquency():
    doc = _doc("<p>10-K filed: 01/15/2020</p>\n<p>10-Q filed: 03/31/2024</p>")
    data = _parser(2024, 6, 1).parse_financials_page(doc)
    assert data["last_10k_date"] == datetime(2020, 1, 15, tzinfo=UTC)
    assert data["last_10q_date"] == datetime(2024, 3, 31, tzinfo=UTC)
    assert data["delinquent_10k"] is True
    assert data["months_since_10k"] > 15
    assert data["delinquent_10q"] is False
    assert 0 <= data["months_since_10q"] <= 6


def test_financials_without_filings_is_delinquent():
    data = _parser().parse_financials_page(_doc("<p>No reports here</p>"))
    assert data["delinquent_10k"] is True
    assert data["delinquent_10q"] is True
    assert "months_since_10k" not in data
    assert "last_10k_date" not in data


def test_financials_table_overrides_date_after_flags():
    doc = _doc(
        "<p>10-K filed: 01/15/2020</p>\n"
        "<table><tr><td>10-K 02/01/2023</td></tr></table>"
    )
    data = _parser(2023, 6, 1).parse_financials_page(doc)
    assert data["last_10k_date"] == datetime(2023, 2, 1, tzinfo=UTC)
    assert data["delinquent_10k"] is True


def test_financials_auditor():
    doc = _doc("<p>Independent auditor: Smith & Jones LLP</p>")
    data = _parser().parse_financials_page(doc)
    assert data["auditor"] == "Smith & Jones LLP"


def test_disclosure_verified_and_latest_date():
    doc = _doc(
        "<p>Profile Verified</p>\n<p>Filed 01/02/2020</p>\n<p>Report dated March 5, 2024</p>"
    )
    data = _parser(2024, 6, 1).parse_disclosure_page(doc)
    assert data["profile_verified"] is True
    assert data["last_filing_date"] == datetime(2024, 3, 5, tzinfo=UTC)
    assert data["no_recent_activity"] is False
    assert 0 <= data["months_since_last_filing"] <= 12


def test_disclosure_not_verified_and_no_dates():
    data = _parser().parse_disclosure_page(_doc("<p>Profile Not Verified</p>"))
    assert data["profile_verified"] is False
    assert data["no_verified_profile"] is True
    assert data["no_recent_activity"] is True
    assert "last_filing_date" not in data


@pytest.mark.parametrize(
    "text, expected",
    [
        ("01/02/2006", datetime(2006, 1, 2, tzinfo=UTC)),
        ("1/2/2006", datetime(2006, 1, 2, tzinfo=UTC)),
        ("1-2-2006", datetime(2006, 1, 2, tzinfo=UTC)),
        ("2006-01-02", datetime(2006, 1, 2, tzinfo=UTC)),
        ("January 2, 2006", datetime(2006, 1, 2, tzinfo=UTC)),
        ("Jan 2 2006", datetime(2006, 1, 2, tzinfo=UTC)),
        ("2006-01-02T15:04:05Z", datetime(2006, 1, 2, 15, 4, 5, tzinfo=UTC)),
        ("2006-01-02T15:04:05", datetime(2006, 1, 2, 15, 4, 5, tzinfo=UTC)),
    ],
)
def test_parse_date_formats(text, expected):
    assert Parser().parse_date(text) == expected


@pytest.mark.parametrize("text", ["", "01/02/06", "13/45/2020", "02/30/2020", "Sept 2, 2006", "1/2-2006"])
def test_parse_date_rejects(text):
    assert Parser().parse_date(text) is None


@pytest.mark.parametrize(
    "text, expected",
    [("Volume 1,234,567", 1234567), ("none", 0), ("99999999999999999999", 0)],
)
def test_parse_volume(text, expected):
    assert Parser().parse_volume(text) == expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Visit www.example.com now", "https://www.example.com"),
        ("https://example.org/path", "https://example.org/path"),
        ("no site here", ""),
    ],
)
def test_extract_website(text, expected):
    assert Parser().extract_website(text) == expected


@pytest.mark.parametrize(
    "text, expected",
    [("Pink Limited Information", True), ("OTCQX International", True), ("OTC Pink", False)],
)
def test_is_market_tier(text, expected):
    assert Parser().is_market_tier(text) is expected


@pytest.mark.parametrize(
    "text, expected",
    [("Caveat Emptor", True), ("No Information", True), ("Trading normally", False)],
)
def test_is_quote_status(text, expected):
    assert Parser().is_quote_status(text) is expected