"""Brand monitor service — runs the tracked prompts and manages the prompt list.

Run pipeline:
  1. load the user's latest analysis (company, competitors, prompts)
  2. schedule every prompt against every configured provider
  3. aggregate citations, competitive metrics and visibility
  4. persist everything once, at the end of the run
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.analysis.citations import analyze_citations
from app.analysis.metrics import compute_competitive_metrics
from app.analysis.types import CitationAnalysis, CompetitiveMetrics, VisibilitySummary
from app.analysis.visibility import compute_visibility
from app.core.config import Settings, settings as default_settings
from app.core.exceptions import PersistenceError, ValidationError
from app.gateway.registry import resolve_providers
from app.gateway.scheduler import BatchScheduler
from app.gateway.types import Prompt, PromptCategory, PromptResult, RunContext
from app.models.brand_analysis import BrandAnalysis
from app.services.analysis_repository import AnalysisRepository

logger = logging.getLogger(__name__)

DEFAULT_COMPANY_NAME = "your company"

VALID_CATEGORIES = {c.value for c in PromptCategory}


@dataclass
class RunOutcome:
    analysis_id: uuid.UUID
    prompt_results: list[PromptResult]
    citation_analysis: CitationAnalysis
    competitive_metrics: CompetitiveMetrics
    visibility: VisibilitySummary
    last_run_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "promptResults": [r.to_dict() for r in self.prompt_results],
            "citationAnalysis": self.citation_analysis.to_dict(),
            "competitiveMetrics": self.competitive_metrics.to_dict(),
            "visibility": self.visibility.to_dict(),
            "lastRunAt": self.last_run_at,
        }


@dataclass
class AddPromptsOutcome:
    added_count: int
    total_prompts: int
    prompts: list[dict[str, Any]] = field(default_factory=list)


def competitor_names(raw: Any) -> list[str]:
    """Stringify and trim stored competitors, dropping empties. Objects contribute their ``name``."""
    if not isinstance(raw, list):
        return []
    names = []
    for item in raw:
        if isinstance(item, dict):
            item = item.get("name", "")
        if item is None:
            continue
        name = str(item).strip()
        if name:
            names.append(name)
    return names


def _stored_prompts(data: dict[str, Any]) -> list[dict[str, Any]]:
    prompts = data.get("prompts")
    if not isinstance(prompts, list):
        return []
    return [p for p in prompts if isinstance(p, dict)]


class BrandMonitorService:
    def __init__(
        self,
        db: AsyncSession,
        scheduler: BatchScheduler | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or default_settings
        self.repository = AnalysisRepository(db)
        self._scheduler = scheduler

    @property
    def scheduler(self) -> BatchScheduler:
        if self._scheduler is None:
            self._scheduler = BatchScheduler(settings=self.settings)
        return self._scheduler

    async def _latest(self, user_id: str) -> BrandAnalysis:
        analysis = await self.repository.load_latest_analysis(user_id)
        if analysis is None:
            raise ValidationError("No analysis found. Please run an analysis first.")
        return analysis

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run_prompts(
        self,
        user_id: str,
        prompt_ids: Sequence[str] | None = None,
        use_web_search: bool | None = None,
        provider_ids: Sequence[str] | None = None,
    ) -> RunOutcome:
        analysis = await self._latest(user_id)
        data = dict(analysis.analysis_data or {})

        prompts = [Prompt.from_dict(p) for p in _stored_prompts(data)]
        if prompt_ids:
            wanted = set(prompt_ids)
            prompts = [p for p in prompts if p.id in wanted]
        if not prompts:
            raise ValidationError("No prompts found to run")

        company_name = str(analysis.company_name or DEFAULT_COMPANY_NAME).strip() or DEFAULT_COMPANY_NAME
        competitors = competitor_names(data.get("competitors"))

        providers = resolve_providers(provider_ids, self.settings)
        if not providers:
            raise ValidationError("No AI providers configured")

        context = RunContext(
            company_name=company_name,
            competitors=tuple(competitors),
            use_web_search=self.settings.use_web_search if use_web_search is None else use_web_search,
        )
        logger.info(
            "Running %d prompts for %s (%d competitors)",
            len(prompts),
            company_name,
            len(competitors),
            extra={"analysis_id": str(analysis.id)},
        )
        prompt_results = await self.scheduler.run(prompts, providers, context)

        all_results = [r for pr in prompt_results for r in pr.results]
        citation_analysis = analyze_citations(prompt_results, company_name, competitors)
        metrics = compute_competitive_metrics(citation_analysis, company_name, competitors)
        visibility = compute_visibility(all_results, competitors)

        outcome = RunOutcome(
            analysis_id=analysis.id,
            prompt_results=prompt_results,
            citation_analysis=citation_analysis,
            competitive_metrics=metrics,
            visibility=visibility,
            last_run_at=datetime.now(timezone.utc).isoformat(),
        )

        try:
            await self.repository.save_analysis_results(analysis.id, outcome.to_dict())
        except PersistenceError:
            logger.exception("Failed to persist run results", extra={"analysis_id": str(analysis.id)})
            raise

        logger.info(
            "Run complete: %d prompt results, %d sources, share of voice %.2f%%",
            len(prompt_results),
            citation_analysis.total_sources,
            metrics.brand_share_of_voice,
            extra={"analysis_id": str(analysis.id)},
        )
        return outcome

    # ------------------------------------------------------------------
    # Prompt list
    # ------------------------------------------------------------------

    async def list_prompts(self, user_id: str) -> list[dict[str, Any]]:
        analysis = await self.repository.load_latest_analysis(user_id)
        if analysis is None:
            return []
        return _stored_prompts(analysis.analysis_data or {})

    async def add_prompts(self, user_id: str, prompts: Iterable[dict[str, Any]]) -> AddPromptsOutcome:
        new_prompts = list(prompts)
        if not new_prompts:
            raise ValidationError("Prompts array is required and must not be empty")
        for prompt in new_prompts:
            if not prompt.get("id") or not prompt.get("prompt") or not prompt.get("category"):
                raise ValidationError("Each prompt must have id, prompt, and category")
            if prompt["category"] not in VALID_CATEGORIES:
                raise ValidationError(f"Invalid category: {prompt['category']}")

        analysis = await self._latest(user_id)
        data = dict(analysis.analysis_data or {})
        existing = _stored_prompts(data)
        existing_ids = {p.get("id") for p in existing}

        to_add = []
        for prompt in new_prompts:
            if prompt["id"] not in existing_ids:
                existing_ids.add(prompt["id"])
                to_add.append(prompt)

        if not to_add:
            return AddPromptsOutcome(added_count=0, total_prompts=len(existing), prompts=existing)

        updated = existing + to_add
        data["prompts"] = updated
        await self.repository.update_analysis_data(analysis.id, data)
        logger.info("Added %d prompts", len(to_add), extra={"analysis_id": str(analysis.id)})
        return AddPromptsOutcome(added_count=len(to_add), total_prompts=len(updated), prompts=updated)

    async def delete_prompt(self, user_id: str, prompt_id: str) -> None:
        """Remove a prompt and its stored results."""
        if not prompt_id:
            raise ValidationError("Prompt ID is required")

        analysis = await self.repository.load_latest_analysis(user_id)
        if analysis is None:
            raise ValidationError("No analysis found")

        data = dict(analysis.analysis_data or {})
        data["prompts"] = [p for p in _stored_prompts(data) if p.get("id") != prompt_id]
        results = data.get("promptResults")
        if isinstance(results, list):
            data["promptResults"] = [r for r in results if not (isinstance(r, dict) and r.get("promptId") == prompt_id)]
        await self.repository.update_analysis_data(analysis.id, data)
