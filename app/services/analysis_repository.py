"""Persistence adapter for brand analysis records.

Reads the latest analysis for a user and merges new top-level keys into its
JSON blob. Writes are read-merge-write with whole-field replacement and no
version check, so concurrent writers to the same record: last writer wins.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, PersistenceError
from app.models.brand_analysis import BrandAnalysis

logger = logging.getLogger(__name__)


class AnalysisRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def load_latest_analysis(self, user_id: str) -> BrandAnalysis | None:
        """Newest analysis (by created_at) owned by the user."""
        try:
            result = await self.db.execute(
                select(BrandAnalysis)
                .where(BrandAnalysis.user_id == user_id)
                .order_by(BrandAnalysis.created_at.desc())
                .limit(1)
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load analysis: {e}") from e
        return result.scalar_one_or_none()

    async def get_analysis(self, analysis_id: uuid.UUID) -> BrandAnalysis:
        try:
            analysis = await self.db.get(BrandAnalysis, analysis_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load analysis: {e}") from e
        if analysis is None:
            raise NotFoundError("Analysis not found")
        return analysis

    async def create_analysis(
        self,
        user_id: str,
        company_name: str | None = None,
        url: str | None = None,
        analysis_data: Mapping[str, Any] | None = None,
    ) -> BrandAnalysis:
        analysis = BrandAnalysis(
            user_id=user_id,
            company_name=company_name,
            url=url,
            analysis_data=dict(analysis_data or {}),
        )
        self.db.add(analysis)
        await self._commit("create")
        return analysis

    async def save_analysis_results(
        self,
        analysis_id: uuid.UUID,
        fields: Mapping[str, Any],
    ) -> BrandAnalysis:
        """Merge ``fields`` into the stored JSON blob (each key replaced whole) and write back."""
        analysis = await self.get_analysis(analysis_id)
        merged = dict(analysis.analysis_data or {})
        merged.update(fields)
        # New dict object so the JSON column is flagged dirty
        analysis.analysis_data = merged
        analysis.updated_at = datetime.now(timezone.utc)
        await self._commit("save results")
        return analysis

    async def update_analysis_data(self, analysis_id: uuid.UUID, data: Mapping[str, Any]) -> BrandAnalysis:
        """Replace the whole JSON blob (prompt add/delete)."""
        analysis = await self.get_analysis(analysis_id)
        analysis.analysis_data = dict(data)
        analysis.updated_at = datetime.now(timezone.utc)
        await self._commit("update data")
        return analysis

    async def _commit(self, action: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Analysis %s failed: %s", action, e)
            raise PersistenceError(f"Failed to {action} analysis: {e}") from e
