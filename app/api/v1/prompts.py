"""Brand monitor prompts — list, add, run and delete the tracked prompts."""

from fastapi import APIRouter, Depends

from app.core.dependencies import get_brand_monitor_service, get_current_user_id
from app.schemas.prompt import (
    AddPromptsRequest,
    AddPromptsResponse,
    DeletePromptRequest,
    DeletePromptResponse,
    PromptListResponse,
    RunPromptsRequest,
    RunPromptsResponse,
)
from app.services.brand_monitor import BrandMonitorService

router = APIRouter(prefix="/brand-monitor/prompts", tags=["brand-monitor"])


@router.get("", response_model=PromptListResponse)
async def list_prompts(
    user_id: str = Depends(get_current_user_id),
    service: BrandMonitorService = Depends(get_brand_monitor_service),
):
    return PromptListResponse(prompts=await service.list_prompts(user_id))


@router.post("", response_model=AddPromptsResponse)
async def add_prompts(
    body: AddPromptsRequest,
    user_id: str = Depends(get_current_user_id),
    service: BrandMonitorService = Depends(get_brand_monitor_service),
):
    outcome = await service.add_prompts(
        user_id,
        [p.model_dump(mode="json", by_alias=True, exclude_none=True) for p in body.prompts],
    )
    return AddPromptsResponse(
        message="Prompts added successfully" if outcome.added_count else "All prompts already exist",
        added_count=outcome.added_count,
        total_prompts=outcome.total_prompts,
        prompts=outcome.prompts,
    )


@router.put("", response_model=RunPromptsResponse)
async def run_prompts(
    body: RunPromptsRequest | None = None,
    user_id: str = Depends(get_current_user_id),
    service: BrandMonitorService = Depends(get_brand_monitor_service),
):
    """Run the stored prompts against the configured providers. Long-running."""
    body = body or RunPromptsRequest()
    outcome = await service.run_prompts(
        user_id,
        body.prompt_ids,
        body.use_web_search,
        provider_ids=body.provider_ids,
    )
    data = outcome.to_dict()
    return RunPromptsResponse(
        message="Prompts executed successfully",
        results=data["promptResults"],
        citation_analysis=data["citationAnalysis"],
        competitive_metrics=data["competitiveMetrics"],
        visibility=data["visibility"],
        last_run_at=data["lastRunAt"],
    )


@router.delete("", response_model=DeletePromptResponse)
async def delete_prompt(
    body: DeletePromptRequest,
    user_id: str = Depends(get_current_user_id),
    service: BrandMonitorService = Depends(get_brand_monitor_service),
):
    await service.delete_prompt(user_id, body.prompt_id)
    return DeletePromptResponse(message="Prompt deleted successfully", prompt_id=body.prompt_id)
