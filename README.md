# otcleads

A library for building a lead list of companies quoted on the OTC markets:
fetch the overview, financials and disclosure pages of a ticker, parse them
into plain facts, turn those into a company record, score the record against
ideal-customer-profile (ICP) models, and keep companies, models and scores in
a database.

Install with `pip install .` (add `.[test]` for the test tools).

## Modules

- `otcleads.scoring.models` – `ICPModel`, `Requirement`, `ScoringRule`,
  `ScoreResult` and `ScoreDetail`. Built-in models:
  `double_black_diamond_icp()`, `pink_market_icp()` and `all_icp_models()`
  (both of them), plus the seed set `default_icp_models()`. A model stored as a
  JSON rules document (`must_have`, `must_not`, `scoring_rules`,
  `minimum_score`) is read with `load_icp_model_from_json(...)`, which raises
  `ModelLoadError` on unreadable JSON; `ICPModel.rules_document()` gives the
  document back.
- `otcleads.scoring.engine` – `ScoringEngine`, which scores a dictionary of
  company data against a model.
- `otcleads.scraper.oxylabs_client` – `OxyLabsClient`, fetching rendered
  pages through the OxyLabs scraper API and returning BeautifulSoup
  documents; failures raise `OxyLabsError`.
- `otcleads.scraper.parser` – `Parser`, pulling market tier, quote status,
  volume, website, description, officers, transfer agent, auditor, filing
  dates and profile verification out of those pages.
- `otcleads.scraper.scraper` – `Scraper` and `ScrapedData`, driving client
  and parser for one ticker or many.
- `otcleads.scraper.transformer` – `Transformer`, turning `ScrapedData` into
  a `Company` and listing missing essentials.
- `otcleads.scraper.health_monitor` – `HealthMonitor`, `HealthStatus` and
  `categorize_error`.
- `otcleads.repository.companies` – `CompanyRepository`, `CompanyFilters`,
  `UnscoredCriteria` and `NotFoundError`.
- `otcleads.repository.scores` – `ScoringRepository` for models and scores.
- `otcleads.records` – `Company`, `ScoringModel` (with `to_icp_model()`),
  `ScoringModelForm`, `CompanyScore`, `RegisterRequest` and
  `from_icp_model(model, rules)`. `ScoringModelForm` requires a name and
  rules; `RegisterRequest` requires a valid e-mail address and a password of
  at least eight characters, raising `ValueError` otherwise.

## Scoring a company

```python
from otcleads.scoring.engine import ScoringEngine
from otcleads.scoring.models import double_black_diamond_icp

engine = ScoringEngine()
company = {
    "ticker": "ABCD",
    "company_name": "Test Company Inc",
    "market_tier": "Expert Market",
    "quote_status": "Ineligible for solicited quotes",
    "trading_volume": 100,
    "transfer_agent": "Computershare Trust Company",
    "last_10k_date": "2020-01-01",
    "profile_verified": False,
}

result = engine.score_company(company, double_black_diamond_icp())
print(result.requirements_met, result.score, result.qualified)
for name, detail in result.breakdown.items():
    print(name, detail.points, detail.description)
```

Requirements are checked first; if any requirement fails or any exclusion
matches, no points are awarded. Otherwise each triggered rule adds its weight
(quality signals carry negative weights), and the company qualifies when the
total reaches the model's minimum score.

Operators for plain fields are `equals`, `not_equals`, `contains`,
`greater_than`, `less_than`, `greater_than_or_equal`, `less_than_or_equal`,
`is_true`, `is_false`, `in`, `not_in` and `regex`. Some field names are
computed from the data instead: `delinquent_10k` (no 10-K date within 15
months), `delinquent_10q` (6 months), `no_recent_activity` (12 months),
`pink_limited_or_expert`, `reverse_merger_shell`, `asian_management`,
`cannabis_or_crypto`, `holding_company_or_spac`, `active_transfer_agent`,
`domain_linked_to_company`, `auditor_identified` and `no_verified_profile`.
Dates may be `datetime`/`date` objects or `YYYY-MM-DD` strings; a missing or
unreadable date counts as delinquent.

## Scraping tickers

```python
from otcleads.scraper.oxylabs_client import OxyLabsClient
from otcleads.scraper.scraper import Scraper
from otcleads.scraper.transformer import Transformer

password = "password"
client = OxyLabsClient("user", password, "https://scraper.example.com/v1/queries")

with Scraper(client, max_concurrency=5) as scraper:
    scraped = scraper.scrape_ticker("ABCD")
    company = Transformer().transform_to_company(scraped)
    print(company.market_tier, Transformer().validate_company_data(company))

    for result in scraper.scrape_tickers_batch(["ABCD", "EFGH"]):
        print(result.ticker, result.errors)
```

`scrape_ticker` asks for the three pages in one batch request;
`OxyLabsClient.get_batch` falls back to one request per page if the batch
request fails. `scrape_tickers_batch` runs tickers on a thread pool and yields
results as they complete; `scrape_tickers_optimized` fetches ten tickers (30
pages) per request and yields results in order. Page errors are kept in
`ScrapedData.errors` as `"overview: ..."` and so on. `Scraper.health()` checks
the API and the recorded health and raises if either is bad.

`Parser` works on BeautifulSoup documents, so saved pages can be parsed
without network access:

```python
from bs4 import BeautifulSoup
from otcleads.scraper.parser import Parser

doc = BeautifulSoup(open("overview.html").read(), "html.parser")
facts = Parser().parse_overview_page(doc)
```

## Watching scraper health

```python
from otcleads.scraper.health_monitor import HealthMonitor, categorize_error

monitor = HealthMonitor()
monitor.record_success("AAPL")
monitor.record_failure("BADTICKER", "connection timeout", "")

status = monitor.health_status()
print(status.is_healthy, status.success_rate, status.health_issues)
print(monitor.failure_rate())
print(categorize_error("HTTP 429"))  # "rate_limit"
```

The monitor reports a problem when more than 20% of at least ten requests
fail, after five failures in a row, or when nothing has succeeded for an hour.
It keeps the last 50 failures and, when more than half of them (at least
three) share a category — timeout, rate limit, authentication or network —
adds a matching issue and recommended action.

## Storing companies and scores

The repositories work on any DB-API connection. Placeholders default to
`?` (`paramstyle="qmark"`); `"format"`, `"numeric"` and `"dollar"` are also
accepted. Each write is committed unless `commit=False` is passed.

```python
import sqlite3
from otcleads.records import Company
from otcleads.repository.companies import CompanyFilters, CompanyRepository, NotFoundError

conn = sqlite3.connect("leads.db")
companies = CompanyRepository(conn)
companies.create(Company(ticker="ABCD", company_name="Test Company Inc",
                         market_tier="Expert Market"))
print(companies.get_all(CompanyFilters(market_tier=["Expert Market"], limit=20)))

try:
    companies.get_by_ticker("ZZZZ")
except NotFoundError as exc:
    print(exc)
```

`ScoringRepository` stores models (`create_model`, `update_model` which bumps
the version, `delete_model` which only deactivates), stores scores with
`store_score` (one score per company and model, replaced on conflict) and
reads them back with `scores_by_company` and `scores_by_model`.

## What this package does not do

- It does not create the database tables; `companies`, `scoring_models` and
  `company_scores` must already exist with the columns the repositories use.
- It has no user accounts storage, login or tokens; `RegisterRequest` only
  validates its fields.
- It does not track scrape jobs or store scraped snapshots, and it does not
  score companies automatically after scraping.
- It has no command-line program and no web server.