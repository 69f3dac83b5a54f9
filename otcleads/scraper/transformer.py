"""Turns scraped page data into company records."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Callable, Optional

from otcleads.records import Company
from otcleads.scraper.scraper import ScrapedData

_TEXT_FIELDS = (
    "company_name",
    "market_tier",
    "quote_status",
    "website",
    "description",
    "transfer_agent",
    "auditor",
)
_DATE_FIELDS = ("last_10k_date", "last_10q_date", "last_filing_date")
_JSON_FIELDS = ("officers", "address")


def _as_json_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, (list, dict)):
        return json.dumps(value, default=str)
    return None


class Transformer:
    """Converts scraped data into Company records."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock

    def transform_to_company(self, scraped: Optional[ScrapedData]) -> Company:
        """Merge the three pages (later pages win) and map them onto a company."""
        if scraped is None:
            raise ValueError("scraped data is missing")

        merged = {**scraped.overview, **scraped.financials, **scraped.disclosure}
        company = Company(ticker=scraped.ticker, updated_at=self._clock())

        for name in _TEXT_FIELDS:
            value = merged.get(name)
            if isinstance(value, str):
                setattr(company, name, value)

        volume = merged.get("trading_volume")
        if isinstance(volume, int) and not isinstance(volume, bool):
            company.trading_volume = volume

        for name in _JSON_FIELDS:
            text = _as_json_text(merged.get(name))
            if text is not None:
                setattr(company, name, text)

        for name in _DATE_FIELDS:
            value = merged.get(name)
            if isinstance(value, datetime):
                setattr(company, name, value)

        verified = merged.get("profile_verified")
        if isinstance(verified, bool):
            company.profile_verified = verified

        return company

    def validate_company_data(self, company: Company) -> list[str]:
        """Return the problems that keep the company short of the minimum data."""
        problems = []
        if not company.ticker:
            problems.append("ticker is required")
        if not company.company_name:
            problems.append("company name is missing")
        if not company.market_tier:
            problems.append("market tier is missing")
        return problems