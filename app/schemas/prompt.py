from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.gateway.types import PromptCategory


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PromptIn(_CamelModel):
    id: str = Field(min_length=1, max_length=255)
    prompt: str = Field(min_length=1)
    category: PromptCategory
    topic_id: str | None = None


class AddPromptsRequest(_CamelModel):
    prompts: list[PromptIn] = Field(min_length=1, max_length=500)


class RunPromptsRequest(_CamelModel):
    """All fields optional: no ids runs every stored prompt on every configured provider."""

    prompt_ids: list[str] | None = None
    provider_ids: list[str] | None = None
    use_web_search: bool = True


class DeletePromptRequest(_CamelModel):
    prompt_id: str = Field(min_length=1)


class PromptListResponse(_CamelModel):
    prompts: list[dict[str, Any]]


class AddPromptsResponse(_CamelModel):
    message: str
    added_count: int
    total_prompts: int
    prompts: list[dict[str, Any]] = []


class DeletePromptResponse(_CamelModel):
    message: str
    prompt_id: str


class RunPromptsResponse(_CamelModel):
    message: str
    results: list[dict[str, Any]]
    citation_analysis: dict[str, Any]
    competitive_metrics: dict[str, Any]
    visibility: dict[str, Any]
    last_run_at: str
