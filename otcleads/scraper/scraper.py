"""Scrapes the overview, financials and disclosure pages of OTC tickers."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Iterator, Optional

from bs4 import BeautifulSoup

from otcleads.scraper.health_monitor import HealthMonitor, HealthStatus
from otcleads.scraper.oxylabs_client import OxyLabsClient, OxyLabsError
from otcleads.scraper.parser import Parser

logger = logging.getLogger(__name__)

_PAGES = ("overview", "financials", "disclosure")
_OPTIMIZED_BATCH_SIZE = 10
DEFAULT_MAX_CONCURRENCY = 5


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def page_urls(ticker: str) -> list[str]:
    """Return the overview, financials and disclosure page URLs for a ticker."""
    return [f"https://www.otcmarkets.com/stock/{ticker}/{page}" for page in _PAGES]


@dataclass
class ScrapedData:
    """Raw facts scraped from the three pages of one ticker."""

    ticker: str
    scraped_at: datetime = field(default_factory=_utc_now)
    overview: dict[str, Any] = field(default_factory=dict)
    financials: dict[str, Any] = field(default_factory=dict)
    disclosure: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


class Scraper:
    """Fetches and parses OTC Markets pages through an OxyLabs client."""

    def __init__(
        self,
        client: OxyLabsClient,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        *,
        parser: Optional[Parser] = None,
        health_monitor: Optional[HealthMonitor] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency
        self._client = client
        self._parser = parser if parser is not None else Parser()
        self._health = health_monitor if health_monitor is not None else HealthMonitor()
        self._clock = clock

    def __enter__(self) -> Scraper:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _parse(self, page: str, doc: BeautifulSoup) -> dict[str, Any]:
        if page == "overview":
            return self._parser.parse_overview_page(doc)
        if page == "financials":
            return self._parser.parse_financials_page(doc)
        return self._parser.parse_disclosure_page(doc)

    def _fill(
        self,
        scraped: ScrapedData,
        docs: dict[str, BeautifulSoup],
        errors: dict[str, Exception],
        record_failures: bool,
    ) -> list[str]:
        failures = []
        for page, url in zip(_PAGES, page_urls(scraped.ticker)):
            if url in docs:
                setattr(scraped, page, self._parse(page, docs[url]))
            elif url in errors:
                message = f"{page}: {errors[url]}"
                scraped.errors.append(message)
                failures.append(message)
                if record_failures:
                    self._health.record_failure(scraped.ticker, message, url)
        return failures

    def scrape_ticker(self, ticker: str) -> ScrapedData:
        """Scrape all three pages of one ticker in a single batch request."""
        scraped = ScrapedData(ticker=ticker, scraped_at=self._clock())
        docs, errors = self._client.get_batch(page_urls(ticker))

        failures = self._fill(scraped, docs, errors, record_failures=True)
        # A partial result still counts as a success.
        if not failures or docs:
            self._health.record_success(ticker)

        if not self._health.is_healthy():
            logger.warning("Scraper health warning for ticker %s: %s", ticker, failures)
        return scraped

    def scrape_tickers_batch(self, tickers: Iterable[str]) -> Iterator[ScrapedData]:
        """Scrape tickers concurrently, yielding each result as it completes."""
        tickers = list(tickers)
        if not tickers:
            return
        with ThreadPoolExecutor(max_workers=self.max_concurrency) as pool:
            futures = {pool.submit(self.scrape_ticker, ticker): ticker for ticker in tickers}
            for future in as_completed(futures):
                ticker = futures[future]
                try:
                    result = future.result()
                except Exception as exc:  # noqa: BLE001 - every ticker must yield a result
                    logger.error("Error scraping ticker %s: %s", ticker, exc)
                    result = ScrapedData(ticker=ticker, scraped_at=self._clock(), errors=[str(exc)])
                yield result

    def scrape_tickers_optimized(self, tickers: Iterable[str]) -> Iterator[ScrapedData]:
        """Scrape tickers in groups of ten, fetching each group in one batch request."""
        tickers = list(tickers)
        for start in range(0, len(tickers), _OPTIMIZED_BATCH_SIZE):
            batch = tickers[start:start + _OPTIMIZED_BATCH_SIZE]
            urls = [url for ticker in batch for url in page_urls(ticker)]
            docs, errors = self._client.get_batch(urls)
            for ticker in batch:
                scraped = ScrapedData(ticker=ticker, scraped_at=self._clock())
                self._fill(scraped, docs, errors, record_failures=False)
                yield scraped

    def health_status(self) -> HealthStatus:
        """Return the current health status of the scraper."""
        return self._health.health_status()

    def is_healthy(self) -> bool:
        """Whether the scraper is operating within healthy parameters."""
        return self._health.is_healthy()

    def failure_rate(self) -> float:
        """The fraction of recorded operations that failed."""
        return self._health.failure_rate()

    def reset_health_monitor(self) -> None:
        """Clear all health monitoring data."""
        self._health.reset()

    def health(self) -> None:
        """Check the API and the recorded health; raise if either is bad."""
        try:
            self._client.health()
        except OxyLabsError as exc:
            self._health.record_failure("health_check", str(exc), "")
            raise OxyLabsError(f"OxyLabs client health check failed: {exc}") from exc

        status = self._health.health_status()
        if not status.is_healthy:
            issues = " ".join(status.health_issues)
            raise RuntimeError(f"scraper health check failed: [{issues}]")

        self._health.record_success("health_check")

    def close(self) -> None:
        """Release the client's resources."""
        self._client.close()