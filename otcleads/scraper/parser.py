"""Extracts company facts from OTC Markets overview, financials and disclosure pages."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from bs4 import BeautifulSoup

from otcleads.scoring.models import _format_value

_DAYS_PER_MONTH = 30.44
_MAX_INT64 = 2**63 - 1


def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.ASCII)


def _icompile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.ASCII | re.IGNORECASE)


_MARKET_TIER_SELECTORS = (
    "[data-testid*='tier']",
    ".market-tier",
    "[class*='tier']",
    "[class*='market']",
    ".otc-tier",
    "span:-soup-contains('Pink')",
    "span:-soup-contains('Expert')",
    "span:-soup-contains('OTCQX')",
    "span:-soup-contains('OTCQB')",
)
_QUOTE_STATUS_SELECTORS = (
    "[data-testid*='quote']",
    ".quote-status",
    "[class*='quote']",
    "span:-soup-contains('Caveat Emptor')",
    "span:-soup-contains('Ineligible')",
    "span:-soup-contains('Limited Information')",
)
_DESCRIPTION_SELECTORS = (
    "[class*='description']",
    "[class*='business']",
    "[class*='overview']",
    ".company-description",
    "#business-description",
    "p:-soup-contains('business')",
)
_GENERIC_SELECTOR = "[data-testid], [class*='data'], [class*='info'], [id*='data'], [id*='info']"

_TIER_PATTERNS = tuple(
    _icompile(p)
    for p in (r"Pink\s+Limited", r"Pink\s+Market", r"Expert\s+Market", r"OTCQX", r"OTCQB", r"Grey\s+Market")
)
_QUOTE_PATTERNS = tuple(
    _icompile(p)
    for p in (
        r"Caveat\s+Emptor",
        r"Ineligible\s+for\s+solicited\s+quotes",
        r"Limited\s+Information",
        r"Current\s+Information",
        r"Adequate\s+Information",
    )
)
_VOLUME = _icompile(r"volume[:\s]+([0-9,]+)")
_WEBSITE = _icompile(r"website[:\s]+([a-zA-Z0-9\.\-]+\.[a-zA-Z]{2,})")
_WEBSITE_ANYWHERE = _icompile(
    r"(https?://[a-zA-Z0-9\.\-/]+|www\.[a-zA-Z0-9\.\-/]+|[a-zA-Z0-9\.\-]+\.(com|org|net|co|io))"
)
_HAS_NUMBER = _compile(r"[0-9,]+")
_DIGITS = _compile(r"\d+")

_DATE = r"[0-9]{1,2}[/\-][0-9]{1,2}[/\-][0-9]{2,4}"
_NAMED_DATE = r"[A-Za-z]+\s+[0-9]{1,2},?\s+[0-9]{4}"

_TEN_K_PATTERNS = tuple(
    _icompile(p)
    for p in (
        rf"10-?K[:\s]*filed[:\s]*({_DATE})",
        rf"10-?K[:\s]*({_DATE})",
        rf"annual\s+report[:\s]*({_DATE})",
        rf"form\s+10-?K[:\s]*({_DATE})",
    )
)
_TEN_Q_PATTERNS = tuple(
    _icompile(p)
    for p in (
        rf"10-?Q[:\s]*filed[:\s]*({_DATE})",
        rf"10-?Q[:\s]*({_DATE})",
        rf"quarterly\s+report[:\s]*({_DATE})",
        rf"form\s+10-?Q[:\s]*({_DATE})",
    )
)
_AUDITOR_PATTERNS = tuple(
    _icompile(p)
    for p in (
        r"auditor[:\s]+([A-Za-z\s&,]+(?:LLP|LLC|CPA|PC))",
        r"independent\s+auditor[:\s]+([A-Za-z\s&,]+(?:LLP|LLC|CPA|PC))",
    )
)
_VERIFIED_PATTERNS = tuple(
    _icompile(p)
    for p in (
        r"profile\s+verified",
        r"verified\s+profile",
        r"profile\s+status[:\s]+verified",
        r"company\s+profile[:\s]*verified",
        r"verification[:\s]*complete",
    )
)
_NOT_VERIFIED_PATTERNS = tuple(
    _icompile(p)
    for p in (
        r"profile\s+not\s+verified",
        r"unverified\s+profile",
        r"profile\s+status[:\s]+not\s+verified",
        r"verification[:\s]*pending",
    )
)
_DISCLOSURE_DATE_PATTERNS = (_compile(f"({_DATE})"), _compile(f"({_NAMED_DATE})"))
_ANY_DATE = _compile(f"({_DATE}|{_NAMED_DATE})")
_DESCRIPTION_PATTERNS = tuple(
    _icompile(p)
    for p in (
        r"business[:\s]+([^.]{50,300})",
        r"company\s+engages?\s+in[:\s]*([^.]{50,300})",
        r"principal\s+business[:\s]+([^.]{50,300})",
    )
)
_TRANSFER_AGENT_PATTERNS = tuple(
    _icompile(p)
    for p in (
        r"transfer\s+agent[:\s]+([A-Za-z\s&,\.]+(?:LLC|Inc|Corp|Company))",
        r"registrar[:\s]+([A-Za-z\s&,\.]+(?:LLC|Inc|Corp|Company))",
        r"stock\s+transfer[:\s]+([A-Za-z\s&,\.]+(?:LLC|Inc|Corp|Company))",
    )
)

_MARKET_TIERS = (
    "pink limited", "pink market", "expert market", "otcqx", "otcqb", "grey market", "gray market",
)
_QUOTE_STATUSES = (
    "caveat emptor", "ineligible", "limited information",
    "current information", "adequate information", "no information",
)
_SHELL_KEYWORDS = (
    "reverse merger", "shell company", "blank check", "business combination", "acquisition vehicle",
)
_CANNABIS_CRYPTO_KEYWORDS = (
    "cannabis", "cbd", "marijuana", "hemp", "blockchain",
    "cryptocurrency", "bitcoin", "crypto", "digital currency",
)
_HOLDING_KEYWORDS = (
    "holding company", "spac", "special purpose acquisition", "investment company", "capital company",
)
_ASIAN_INDICATORS = (
    "taiwan", "hong kong", "china", "singapore", "tw", "hk", "cn", "beijing", "shanghai", "taipei",
)
_REPUTABLE_AGENTS = ("computershare", "continental", "american stock", "vstock", "pacific stock")

_MONTHS = {
    name.lower(): number
    for number, names in enumerate(
        (
            ("January", "Jan"), ("February", "Feb"), ("March", "Mar"), ("April", "Apr"),
            ("May", "May"), ("June", "Jun"), ("July", "Jul"), ("August", "Aug"),
            ("September", "Sep"), ("October", "Oct"), ("November", "Nov"), ("December", "Dec"),
        ),
        start=1,
    )
    for name in names
}
_NUMERIC_DATE = _compile(r"(\d{1,2})([/-])(\d{1,2})\2(\d{4})")
_ISO_DATE = _compile(r"(\d{4})-(\d{2})-(\d{2})")
_ISO_DATETIME = _compile(r"(\d{4})-(\d{2})-(\d{2})T(\d{1,2}):(\d{2}):(\d{2})(?:[.,](\d+))?Z?")
_NAMED_DATE_PARTS = _compile(r"([A-Za-z]+) +(\d{1,2}),? +(\d{4})")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _size(text: str) -> int:
    return len(text.encode("utf-8"))


def _body_text(doc: BeautifulSoup) -> str:
    bodies = doc.find_all("body")
    if bodies:
        return "".join(body.get_text() for body in bodies)
    return doc.get_text()


def _months_between(then: datetime, now: datetime) -> int:
    return int((now - then).total_seconds() / 3600 / 24 / _DAYS_PER_MONTH)


def _utc(year: int, month: int, day: int, *rest: int) -> Optional[datetime]:
    try:
        return datetime(year, month, day, *rest, tzinfo=timezone.utc)
    except ValueError:
        return None


class Parser:
    """Parses OTC Markets pages into plain dictionaries of facts."""

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._clock = clock

    def parse_overview_page(self, doc: BeautifulSoup) -> dict[str, Any]:
        """Extract tier, quote status, volume, website, description, officers and agent."""
        data: dict[str, Any] = {}

        title = "".join(tag.get_text() for tag in doc.find_all("title"))
        if title:
            parts = title.split(" - ")
            if len(parts) >= 2:
                data["company_name"] = parts[1].strip().split(" | ")[0]
                data["ticker"] = parts[0].strip()

        for selector in _MARKET_TIER_SELECTORS:
            for element in doc.select(selector):
                text = element.get_text().strip()
                if self.is_market_tier(text):
                    data["market_tier"] = text

        for selector in _QUOTE_STATUS_SELECTORS:
            for element in doc.select(selector):
                text = element.get_text().strip()
                if self.is_quote_status(text):
                    data["quote_status"] = text

        all_text = _body_text(doc)

        for pattern in _TIER_PATTERNS:
            match = pattern.search(all_text)
            if match and match.group(0):
                data["market_tier"] = match.group(0).strip()
                break

        for pattern in _QUOTE_PATTERNS:
            match = pattern.search(all_text)
            if match and match.group(0):
                data["quote_status"] = match.group(0).strip()
                break

        match = _VOLUME.search(all_text)
        if match:
            volume = self.parse_volume(match.group(1))
            if volume > 0:
                data["trading_volume"] = volume

        match = _WEBSITE.search(all_text)
        if match:
            data["website"] = "https://" + match.group(1)

        self._extract_business_description(doc, data, all_text)
        self._extract_officer_info(doc, data)
        self._extract_transfer_agent(data, all_text)
        self._extract_generic_data(doc, data)
        return data

    def parse_financials_page(self, doc: BeautifulSoup) -> dict[str, Any]:
        """Extract filing dates, delinquency flags and the auditor."""
        data: dict[str, Any] = {}
        all_text = _body_text(doc)

        for key, patterns in (("last_10k_date", _TEN_K_PATTERNS), ("last_10q_date", _TEN_Q_PATTERNS)):
            for pattern in patterns:
                match = pattern.search(all_text)
                if match:
                    parsed = self.parse_date(match.group(1))
                    if parsed is not None:
                        data[key] = parsed
                        break

        now = self._clock()
        for date_key, flag, months_key, threshold in (
            ("last_10k_date", "delinquent_10k", "months_since_10k", 15),
            ("last_10q_date", "delinquent_10q", "months_since_10q", 6),
        ):
            filed = data.get(date_key)
            if isinstance(filed, datetime):
                months = _months_between(filed, now)
                data[flag] = months > threshold
                data[months_key] = months
            else:
                data[flag] = True

        for pattern in _AUDITOR_PATTERNS:
            match = pattern.search(all_text)
            if match:
                data["auditor"] = match.group(1).strip()
                break

        for element in doc.select("table, ul, ol"):
            text = element.get_text().lower()
            if "10-k" in text or "10-q" in text or "filing" in text:
                self._extract_filing_dates(element, data)

        return data

    def parse_disclosure_page(self, doc: BeautifulSoup) -> dict[str, Any]:
        """Extract profile verification and the latest filing activity."""
        data: dict[str, Any] = {"profile_verified": False}
        all_text = _body_text(doc)

        if any(pattern.search(all_text) for pattern in _VERIFIED_PATTERNS):
            data["profile_verified"] = True
        if any(pattern.search(all_text) for pattern in _NOT_VERIFIED_PATTERNS):
            data["profile_verified"] = False
            data["no_verified_profile"] = True

        latest: Optional[datetime] = None
        for pattern in _DISCLOSURE_DATE_PATTERNS:
            for match in pattern.finditer(all_text):
                parsed = self.parse_date(match.group(0))
                if parsed is not None and (latest is None or parsed > latest):
                    latest = parsed

        if latest is not None:
            data["last_filing_date"] = latest
            months = _months_between(latest, self._clock())
            data["months_since_last_filing"] = months
            data["no_recent_activity"] = months > 12
        else:
            data["no_recent_activity"] = True

        return data

    def is_market_tier(self, text: str) -> bool:
        """Whether the text names a market tier."""
        lowered = text.strip().lower()
        return any(tier in lowered for tier in _MARKET_TIERS)

    def is_quote_status(self, text: str) -> bool:
        """Whether the text names a quote status."""
        lowered = text.strip().lower()
        return any(status in lowered for status in _QUOTE_STATUSES)

    def extract_website(self, text: str) -> str:
        """Return the first website found in the text as a URL, or an empty string."""
        match = _WEBSITE_ANYWHERE.search(text)
        if not match or not match.group(0):
            return ""
        found = match.group(0)
        return found if found.startswith("http") else "https://" + found

    def parse_volume(self, volume_text: str) -> int:
        """Return the first number in the text, ignoring thousands separators; 0 if none."""
        match = _DIGITS.search(volume_text.replace(",", ""))
        if not match:
            return 0
        number = int(match.group(0))
        return number if number <= _MAX_INT64 else 0

    def parse_date(self, date_text: str) -> Optional[datetime]:
        """Parse the date formats used on OTC Markets pages into a UTC datetime."""
        text = date_text.strip()
        if not text:
            return None

        match = _NUMERIC_DATE.fullmatch(text)
        if match:
            month, _, day, year = match.groups()
            return _utc(int(year), int(month), int(day))

        match = _ISO_DATE.fullmatch(text)
        if match:
            year, month, day = match.groups()
            return _utc(int(year), int(month), int(day))

        match = _NAMED_DATE_PARTS.fullmatch(text)
        if match:
            name, day, year = match.groups()
            month_number = _MONTHS.get(name.lower())
            if month_number is None:
                return None
            return _utc(int(year), month_number, int(day))

        match = _ISO_DATETIME.fullmatch(text)
        if match:
            year, month, day, hour, minute, second, fraction = match.groups()
            micros = int((fraction or "")[:6].ljust(6, "0"))
            return _utc(int(year), int(month), int(day), int(hour), int(minute), int(second), micros)

        return None

    def _extract_filing_dates(self, element: Any, data: dict[str, Any]) -> None:
        for cell in element.select("td, li, div"):
            text = cell.get_text().strip()
            lowered = text.lower()
            if "10-k" in lowered:
                parsed = self._extract_date_from_text(text)
                if parsed is not None:
                    data["last_10k_date"] = parsed
            if "10-q" in lowered:
                parsed = self._extract_date_from_text(text)
                if parsed is not None:
                    data["last_10q_date"] = parsed

    def _extract_date_from_text(self, text: str) -> Optional[datetime]:
        match = _ANY_DATE.search(text)
        if match and match.group(0):
            return self.parse_date(match.group(0))
        return None

    def _extract_generic_data(self, doc: BeautifulSoup, data: dict[str, Any]) -> None:
        for element in doc.select(_GENERIC_SELECTOR):
            text = element.get_text().strip()
            if not text or _size(text) >= 200:
                continue
            lowered = text.lower()
            if "volume" in lowered and _HAS_NUMBER.search(text):
                volume = self.parse_volume(text)
                if volume > 0:
                    data["trading_volume"] = volume
            if "website" in lowered or "www." in lowered:
                website = self.extract_website(text)
                if website:
                    data["website"] = website

    def _extract_business_description(
        self, doc: BeautifulSoup, data: dict[str, Any], all_text: str
    ) -> None:
        description = ""
        for selector in _DESCRIPTION_SELECTORS:
            for element in doc.select(selector):
                text = element.get_text().strip()
                if _size(text) > _size(description) and _size(text) > 50:
                    description = text

        if not description:
            for pattern in _DESCRIPTION_PATTERNS:
                match = pattern.search(all_text)
                if match:
                    description = match.group(1).strip()
                    break

        if not description:
            return

        data["description"] = description
        lowered = description.lower()
        if any(keyword in lowered for keyword in _SHELL_KEYWORDS):
            data["reverse_merger_shell"] = True
        if any(keyword in lowered for keyword in _CANNABIS_CRYPTO_KEYWORDS):
            data["cannabis_or_crypto"] = True
        if any(keyword in lowered for keyword in _HOLDING_KEYWORDS):
            data["holding_company_or_spac"] = True

    def _extract_officer_info(self, doc: BeautifulSoup, data: dict[str, Any]) -> None:
        officers: list[dict[str, Any]] = []
        for section in doc.select("table, div, section"):
            text = section.get_text().lower()
            if not ("officer" in text or "director" in text or "management" in text):
                continue
            for row in section.select("tr, div, p"):
                row_text = row.get_text().strip()
                lowered = row_text.lower()
                if _size(row_text) > 10 and (
                    "ceo" in lowered or "president" in lowered or "director" in lowered
                ):
                    officers.append({"info": row_text})

        if not officers:
            return

        data["officers"] = officers
        officer_text = _format_value(officers).lower()
        if any(indicator in officer_text for indicator in _ASIAN_INDICATORS):
            data["asian_management"] = True

    def _extract_transfer_agent(self, data: dict[str, Any], all_text: str) -> None:
        for pattern in _TRANSFER_AGENT_PATTERNS:
            match = pattern.search(all_text)
            if not match:
                continue
            agent = match.group(1).strip()
            data["transfer_agent"] = agent
            lowered = agent.lower()
            if any(reputable in lowered for reputable in _REPUTABLE_AGENTS):
                data["active_transfer_agent"] = True
            break