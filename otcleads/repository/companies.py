"""Company storage on top of a DB-API connection."""

from __future__ import annotations

import json
from contextlib import closing
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Sequence
from uuid import UUID, uuid4

from otcleads.records import Company

_MARKERS: dict[str, Callable[[int], str]] = {
    "qmark": lambda n: "?",
    "format": lambda n: "%s",
    "numeric": lambda n: f":{n}",
    "dollar": lambda n: f"${n}",
}

_COLUMNS = (
    "id", "ticker", "company_name", "market_tier", "quote_status", "trading_volume",
    "website", "description", "officers", "address", "transfer_agent", "auditor",
    "last_10k_date", "last_10q_date", "last_filing_date", "profile_verified",
    "created_at", "updated_at",
)
_TEXT_COLUMNS = (
    "ticker", "company_name", "market_tier", "quote_status", "website", "description",
    "officers", "address", "transfer_agent", "auditor",
)
_DATE_COLUMNS = ("last_10k_date", "last_10q_date", "last_filing_date", "created_at", "updated_at")
_UPDATABLE = tuple(c for c in _COLUMNS if c not in ("id", "ticker", "created_at"))


class NotFoundError(LookupError):
    """Raised when a requested record does not exist."""


@dataclass
class CompanyFilters:
    """Filters for listing companies; unset filters are not applied."""

    market_tier: list[str] = field(default_factory=list)
    quote_status: list[str] = field(default_factory=list)
    has_website: Optional[bool] = None
    is_verified: Optional[bool] = None
    min_volume: Optional[int] = None
    max_volume: Optional[int] = None
    last_filing_from: Optional[datetime] = None
    last_filing_to: Optional[datetime] = None
    limit: int = 0
    offset: int = 0


@dataclass
class UnscoredCriteria:
    """Criteria for finding companies a model has not scored yet."""

    model_id: str = ""
    market_tiers: list[str] = field(default_factory=list)
    exclude_scored: bool = False
    limit: int = 0


def _db_value(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


def _to_uuid(value: Any) -> Optional[UUID]:
    if value is None:
        return None
    if isinstance(value, UUID):
        return value
    if isinstance(value, bytes):
        value = value.decode()
    return UUID(str(value))


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, bytes):
        value = value.decode()
    return datetime.fromisoformat(str(value))


class _Binder:
    """Collects query arguments and renders placeholders in order of appearance."""

    def __init__(self, paramstyle: str) -> None:
        try:
            self._marker = _MARKERS[paramstyle]
        except KeyError:
            raise ValueError(f"unsupported paramstyle: {paramstyle}") from None
        self.args: list[Any] = []

    def __call__(self, value: Any) -> str:
        self.args.append(_db_value(value))
        return self._marker(len(self.args))

    def many(self, values: Iterable[Any]) -> str:
        return ",".join(self(value) for value in values)


class _Store:
    """Shared plumbing for repositories over a DB-API connection."""

    def __init__(
        self,
        connection: Any,
        *,
        paramstyle: str = "qmark",
        commit: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        _Binder(paramstyle)
        self._conn = connection
        self._paramstyle = paramstyle
        self._commit = commit
        self._clock = clock

    def _binder(self) -> _Binder:
        return _Binder(self._paramstyle)

    def _fetchone(self, query: str, args: Sequence[Any]) -> Optional[Sequence[Any]]:
        with closing(self._conn.cursor()) as cursor:
            cursor.execute(query, list(args))
            return cursor.fetchone()

    def _fetchall(self, query: str, args: Sequence[Any]) -> list[Sequence[Any]]:
        with closing(self._conn.cursor()) as cursor:
            cursor.execute(query, list(args))
            return list(cursor.fetchall())

    def _write(self, query: str, args: Sequence[Any]) -> int:
        with closing(self._conn.cursor()) as cursor:
            cursor.execute(query, list(args))
            affected = cursor.rowcount
        if self._commit:
            self._conn.commit()
        return affected


def _row_to_company(row: Sequence[Any]) -> Company:
    values = dict(zip(_COLUMNS, row))
    company = Company(id=_to_uuid(values["id"]))
    for name in _TEXT_COLUMNS:
        setattr(company, name, values[name] or "")
    for name in _DATE_COLUMNS:
        setattr(company, name, _to_datetime(values[name]))
    company.trading_volume = int(values["trading_volume"] or 0)
    company.profile_verified = bool(values["profile_verified"])
    return company


class CompanyRepository(_Store):
    """Reads and writes companies."""

    def _select(self, prefix: str = "") -> str:
        return ", ".join(f"{prefix}{column}" for column in _COLUMNS)

    def get_by_id(self, company_id: UUID) -> Company:
        """Return the company with this id."""
        bind = self._binder()
        query = f"SELECT {self._select()} FROM companies WHERE id = {bind(company_id)}"
        row = self._fetchone(query, bind.args)
        if row is None:
            raise NotFoundError("company not found")
        return _row_to_company(row)

    def get_by_ticker(self, ticker: str) -> Company:
        """Return the company with this ticker symbol."""
        bind = self._binder()
        query = f"SELECT {self._select()} FROM companies WHERE ticker = {bind(ticker)}"
        row = self._fetchone(query, bind.args)
        if row is None:
            raise NotFoundError(f"company with ticker {ticker} not found")
        return _row_to_company(row)

    def create(self, company: Company) -> Company:
        """Insert a company, giving it an id if it has none and fresh timestamps."""
        if company.id is None:
            company.id = uuid4()
        now = self._clock()
        company.created_at = now
        company.updated_at = now
        bind = self._binder()
        markers = bind.many(getattr(company, column) for column in _COLUMNS)
        query = f"INSERT INTO companies ({', '.join(_COLUMNS)}) VALUES ({markers})"
        self._write(query, bind.args)
        return company

    def update(self, company: Company) -> Company:
        """Update a stored company and refresh its updated_at."""
        company.updated_at = self._clock()
        bind = self._binder()
        assignments = ", ".join(f"{c} = {bind(getattr(company, c))}" for c in _UPDATABLE)
        query = f"UPDATE companies SET {assignments} WHERE id = {bind(company.id)}"
        if self._write(query, bind.args) == 0:
            raise NotFoundError("company not found")
        return company

    def delete(self, company_id: UUID) -> None:
        """Delete the company with this id."""
        bind = self._binder()
        query = f"DELETE FROM companies WHERE id = {bind(company_id)}"
        if self._write(query, bind.args) == 0:
            raise NotFoundError("company not found")

    def get_all(self, filters: Optional[CompanyFilters] = None) -> list[Company]:
        """List companies matching the filters, most recently updated first."""
        filters = filters if filters is not None else CompanyFilters()
        bind = self._binder()
        clauses: list[str] = []

        if filters.market_tier:
            clauses.append(f"market_tier IN ({bind.many(filters.market_tier)})")
        if filters.quote_status:
            clauses.append(f"quote_status IN ({bind.many(filters.quote_status)})")
        if filters.has_website is not None:
            if filters.has_website:
                clauses.append("website IS NOT NULL AND website != ''")
            else:
                clauses.append("(website IS NULL OR website = '')")
        if filters.is_verified is not None:
            clauses.append(f"profile_verified = {bind(filters.is_verified)}")
        if filters.min_volume is not None:
            clauses.append(f"trading_volume >= {bind(filters.min_volume)}")
        if filters.max_volume is not None:
            clauses.append(f"trading_volume <= {bind(filters.max_volume)}")
        if filters.last_filing_from is not None:
            clauses.append(f"last_filing_date >= {bind(filters.last_filing_from)}")
        if filters.last_filing_to is not None:
            clauses.append(f"last_filing_date <= {bind(filters.last_filing_to)}")

        query = f"SELECT {self._select()} FROM companies"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY updated_at DESC"
        if filters.limit > 0:
            query += f" LIMIT {bind(filters.limit)}"
        if filters.offset > 0:
            query += f" OFFSET {bind(filters.offset)}"

        return [_row_to_company(row) for row in self._fetchall(query, bind.args)]

    def get_unscored(self, criteria: UnscoredCriteria) -> list[Company]:
        """List companies, optionally only those the given model has not scored."""
        bind = self._binder()
        clauses: list[str] = []
        query = f"SELECT {self._select('c.')} FROM companies c"

        if criteria.exclude_scored:
            query += (
                " LEFT JOIN company_scores cs ON c.id = cs.company_id"
                f" AND cs.scoring_model_id = {bind(criteria.model_id)}"
            )
            clauses.append("cs.company_id IS NULL")
        if criteria.market_tiers:
            clauses.append(f"c.market_tier IN ({bind.many(criteria.market_tiers)})")

        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY c.updated_at DESC"
        if criteria.limit > 0:
            query += f" LIMIT {bind(criteria.limit)}"

        return [_row_to_company(row) for row in self._fetchall(query, bind.args)]

    def get_all_ids(self) -> list[UUID]:
        """Return every company id, most recently updated first."""
        rows = self._fetchall("SELECT id FROM companies ORDER BY updated_at DESC", [])
        return [_to_uuid(row[0]) for row in rows]