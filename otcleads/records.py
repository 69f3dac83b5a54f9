"""Record types stored by the repositories."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from otcleads.scoring.models import ICPModel, load_icp_model_from_json

_EMAIL = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")


@dataclass
class Company:
    """A company as stored in the database."""

    ticker: str = ""
    id: Optional[UUID] = None
    company_name: str = ""
    market_tier: str = ""
    quote_status: str = ""
    trading_volume: int = 0
    website: str = ""
    description: str = ""
    officers: str = ""
    address: str = ""
    transfer_agent: str = ""
    auditor: str = ""
    last_10k_date: Optional[datetime] = None
    last_10q_date: Optional[datetime] = None
    last_filing_date: Optional[datetime] = None
    profile_verified: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class ScoringModel:
    """A stored scoring model whose rules are kept as a JSON string."""

    id: str
    name: str
    description: str = ""
    version: int = 0
    is_active: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    rules: str = ""

    def to_icp_model(self) -> ICPModel:
        """Parse the stored rules into a scoring model."""
        return load_icp_model_from_json(
            self.id, self.name, self.description, self.version,
            self.rules, self.is_active, self.created_at, self.updated_at,
        )


@dataclass
class ScoringModelForm:
    """Form data for creating or updating a scoring model."""

    name: str
    rules: str
    description: str = ""
    is_active: bool = False

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("name is required")
        if not self.rules:
            raise ValueError("rules is required")


@dataclass
class CompanyScore:
    """A company's score from one model."""

    company_id: UUID
    scoring_model_id: str
    id: Optional[UUID] = None
    score: int = 0
    qualified: bool = False
    requirements_met: bool = False
    breakdown: str = ""
    scored_at: Optional[datetime] = None
    model_name: str = ""


@dataclass
class RegisterRequest:
    """A request to register a new user."""

    email: str
    password: str
    role: str = ""

    def __post_init__(self) -> None:
        if not self.email:
            raise ValueError("email is required")
        if not _EMAIL.fullmatch(self.email):
            raise ValueError("email is not a valid address")
        if not self.password:
            raise ValueError("password is required")
        if len(self.password) < 8:
            raise ValueError("password must be at least 8 characters")


def from_icp_model(model: ICPModel, rules: str) -> ScoringModel:
    """Wrap a scoring model together with its serialised rules."""
    return ScoringModel(
        id=model.id,
        name=model.name,
        description=model.description,
        version=model.version,
        is_active=model.is_active,
        created_at=model.created_at,
        updated_at=model.updated_at,
        rules=rules,
    )