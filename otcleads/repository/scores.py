"""Storage of scoring models and company scores."""

from __future__ import annotations

import json
from typing import Any, Sequence
from uuid import UUID, uuid4

from otcleads.repository.companies import NotFoundError, _Store, _to_datetime, _to_uuid
from otcleads.scoring.models import (
    ICPModel,
    ScoreDetail,
    ScoreResult,
    load_icp_model_from_json,
)

_MODEL_COLUMNS = "id, name, description, rules, version, is_active, created_at, updated_at"


def _as_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode()
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _rules_json(model: ICPModel) -> str:
    return json.dumps(model.rules_document())


def _breakdown_json(breakdown: dict[str, ScoreDetail]) -> str:
    return json.dumps(
        {
            key: {
                "points": detail.points,
                "triggered": detail.triggered,
                "description": detail.description,
                "value": detail.value,
            }
            for key, detail in breakdown.items()
        }
    )


def _parse_breakdown(raw: Any) -> dict[str, ScoreDetail]:
    if isinstance(raw, (str, bytes)):
        raw = json.loads(raw)
    if not raw:
        return {}
    return {
        key: ScoreDetail(
            points=int(item.get("points", 0)),
            triggered=bool(item.get("triggered", False)),
            description=str(item.get("description", "")),
            value=str(item.get("value", "")),
        )
        for key, item in raw.items()
    }


def _row_to_model(row: Sequence[Any]) -> ICPModel:
    model_id, name, description, rules, version, is_active, created_at, updated_at = row
    return load_icp_model_from_json(
        str(model_id),
        name,
        description or "",
        int(version),
        _as_text(rules),
        bool(is_active),
        _to_datetime(created_at),
        _to_datetime(updated_at),
    )


class ScoringRepository(_Store):
    """Reads and writes scoring models and the scores they produce."""

    def get_active_models(self) -> list[ICPModel]:
        """Return all active models ordered by name."""
        query = (
            f"SELECT {_MODEL_COLUMNS} FROM scoring_models"
            " WHERE is_active = true ORDER BY name"
        )
        return [_row_to_model(row) for row in self._fetchall(query, [])]

    def get_model_by_id(self, model_id: str) -> ICPModel:
        """Return the model with this id, active or not."""
        bind = self._binder()
        query = f"SELECT {_MODEL_COLUMNS} FROM scoring_models WHERE id = {bind(model_id)}"
        row = self._fetchone(query, bind.args)
        if row is None:
            raise NotFoundError(f"scoring model {model_id} not found")
        return _row_to_model(row)

    def create_model(self, model: ICPModel, user_id: UUID) -> ICPModel:
        """Store a new model, giving it an id if it has none."""
        rules = _rules_json(model)
        if not model.id:
            model.id = str(uuid4())
        now = self._clock()
        model.created_at = now
        model.updated_at = now
        bind = self._binder()
        markers = bind.many(
            (model.id, model.name, model.description, rules, model.version,
             model.is_active, user_id, now, now)
        )
        query = (
            "INSERT INTO scoring_models (id, name, description, rules, version, is_active,"
            f" created_by, created_at, updated_at) VALUES ({markers})"
        )
        self._write(query, bind.args)
        return model

    def update_model(self, model: ICPModel) -> ICPModel:
        """Store changes to a model, bumping its version."""
        model.version += 1
        rules = _rules_json(model)
        model.updated_at = self._clock()
        bind = self._binder()
        query = (
            f"UPDATE scoring_models SET name = {bind(model.name)},"
            f" description = {bind(model.description)}, rules = {bind(rules)},"
            f" version = {bind(model.version)}, is_active = {bind(model.is_active)},"
            f" updated_at = {bind(model.updated_at)} WHERE id = {bind(model.id)}"
        )
        if self._write(query, bind.args) == 0:
            raise NotFoundError(f"scoring model {model.id} not found")
        return model

    def delete_model(self, model_id: str) -> None:
        """Deactivate a model; its record is kept."""
        bind = self._binder()
        query = (
            f"UPDATE scoring_models SET is_active = false, updated_at = {bind(self._clock())}"
            f" WHERE id = {bind(model_id)}"
        )
        if self._write(query, bind.args) == 0:
            raise NotFoundError(f"scoring model {model_id} not found")

    def store_score(self, score: ScoreResult) -> None:
        """Insert a score, replacing any earlier one for the same company and model."""
        breakdown = _breakdown_json(score.breakdown)
        try:
            company_id = UUID(str(score.company_id))
        except ValueError as exc:
            raise ValueError(f"invalid company ID format: {exc}") from exc
        bind = self._binder()
        markers = bind.many(
            (company_id, score.scoring_model_id, score.score, score.qualified,
             score.requirements_met, breakdown, score.scored_at)
        )
        query = (
            "INSERT INTO company_scores (company_id, scoring_model_id, score, qualified,"
            f" requirements_met, score_breakdown, scored_at) VALUES ({markers})"
            " ON CONFLICT (company_id, scoring_model_id) DO UPDATE SET"
            " score = excluded.score, qualified = excluded.qualified,"
            " requirements_met = excluded.requirements_met,"
            " score_breakdown = excluded.score_breakdown, scored_at = excluded.scored_at"
        )
        self._write(query, bind.args)

    def scores_by_company(self, company_id: UUID) -> list[ScoreResult]:
        """Return every score of a company, newest first."""
        bind = self._binder()
        query = (
            "SELECT cs.scoring_model_id, cs.score, cs.qualified, cs.requirements_met,"
            " cs.score_breakdown, cs.scored_at, sm.name AS model_name"
            " FROM company_scores cs JOIN scoring_models sm ON cs.scoring_model_id = sm.id"
            f" WHERE cs.company_id = {bind(company_id)} ORDER BY cs.scored_at DESC"
        )
        return [
            ScoreResult(
                company_id=str(company_id),
                scoring_model_id=str(model_id),
                score=int(points),
                qualified=bool(qualified),
                requirements_met=bool(met),
                breakdown=_parse_breakdown(breakdown),
                scored_at=_to_datetime(scored_at),
            )
            for model_id, points, qualified, met, breakdown, scored_at, _ in self._fetchall(
                query, bind.args
            )
        ]

    def scores_by_model(self, model_id: str) -> list[ScoreResult]:
        """Return every score a model produced, newest first."""
        bind = self._binder()
        query = (
            "SELECT cs.company_id, cs.score, cs.qualified, cs.requirements_met,"
            " cs.score_breakdown, cs.scored_at FROM company_scores cs"
            f" WHERE cs.scoring_model_id = {bind(model_id)} ORDER BY cs.scored_at DESC"
        )
        return [
            ScoreResult(
                company_id=str(_to_uuid(company_id)),
                scoring_model_id=model_id,
                score=int(points),
                qualified=bool(qualified),
                requirements_met=bool(met),
                breakdown=_parse_breakdown(breakdown),
                scored_at=_to_datetime(scored_at),
            )
            for company_id, points, qualified, met, breakdown, scored_at in self._fetchall(
                query, bind.args
            )
        ]

    def delete_scores_by_company(self, company_id: UUID) -> None:
        """Delete all scores of a company."""
        bind = self._binder()
        self._write(f"DELETE FROM company_scores WHERE company_id = {bind(company_id)}", bind.args)

    def delete_scores_by_model(self, model_id: str) -> None:
        """Delete all scores a model produced."""
        bind = self._binder()
        self._write(
            f"DELETE FROM company_scores WHERE scoring_model_id = {bind(model_id)}", bind.args
        )