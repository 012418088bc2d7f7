"""Batch Scheduler — runs every prompt against every configured provider.

  - prompts are processed in sequential batches of ``batch_size``
  - prompts inside a batch run concurrently
  - the providers for one prompt run concurrently, provider k starting
    ``k * stagger_seconds`` after the prompt's start
  - a cooldown of ``inter_batch_delay_seconds`` separates batches

Output order is positional: batch order, prompt order within a batch,
provider order within a prompt. Individual provider failures become
error entries; a run always yields one PromptResult per prompt.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence

from app.core.config import Settings, settings as default_settings
from app.core.exceptions import ValidationError
from app.gateway.normalizer import error_result
from app.gateway.rate_limiter import AdaptiveRateLimiter
from app.gateway.retry import RateLimitRetry
from app.gateway.types import NormalizedResult, Prompt, PromptResult, ProviderDescriptor, RunContext
from app.gateway.vendor_adapters import ProviderInvoker

logger = logging.getLogger(__name__)


class BatchScheduler:
    def __init__(
        self,
        invoker: ProviderInvoker | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rate_limiter: AdaptiveRateLimiter | None = None,
        retry: RateLimitRetry | None = None,
    ):
        self.settings = settings or default_settings
        self.batch_size = max(1, self.settings.batch_size)
        self.stagger_seconds = self.settings.stagger_seconds
        self.inter_batch_delay_seconds = self.settings.inter_batch_delay_seconds
        self._sleep = sleep
        self.invoker = invoker or ProviderInvoker(self.settings)
        self.retry = retry or RateLimitRetry(
            self.invoker,
            default_retry_after=self.settings.default_retry_after_seconds,
            sleep=sleep,
        )
        if rate_limiter is None and self.settings.rpm_limits:
            rate_limiter = AdaptiveRateLimiter(self.settings.rpm_limits, sleep=sleep)
        self.rate_limiter = rate_limiter

    async def run(
        self,
        prompts: Sequence[Prompt],
        providers: Sequence[ProviderDescriptor],
        context: RunContext,
    ) -> list[PromptResult]:
        if not prompts:
            raise ValidationError("No prompts to run")
        if not providers:
            raise ValidationError("No AI providers configured")

        batches = [list(prompts[i : i + self.batch_size]) for i in range(0, len(prompts), self.batch_size)]
        logger.info(
            "Running %d prompts x %d providers in %d batches",
            len(prompts),
            len(providers),
            len(batches),
        )

        results: list[PromptResult] = []
        for index, batch in enumerate(batches, start=1):
            started = time.monotonic()
            batch_results = await asyncio.gather(*(self._run_prompt(p, providers, context) for p in batch))
            results.extend(batch_results)

            failures = sum(1 for pr in batch_results for r in pr.results if r.is_error)
            logger.info(
                "Batch %d/%d done: %d prompts, %d failed calls, %.1fs",
                index,
                len(batches),
                len(batch),
                failures,
                time.monotonic() - started,
            )
            if index < len(batches) and self.inter_batch_delay_seconds > 0:
                await self._sleep(self.inter_batch_delay_seconds)

        return results

    async def _run_prompt(
        self,
        prompt: Prompt,
        providers: Sequence[ProviderDescriptor],
        context: RunContext,
    ) -> PromptResult:
        results = await asyncio.gather(
            *(self._run_provider(prompt, provider, k, context) for k, provider in enumerate(providers))
        )
        return PromptResult(
            prompt_id=prompt.id,
            prompt=prompt.text,
            results=list(results),
            topic_id=prompt.topic_id,
            category=prompt.category.value if prompt.category else None,
        )

    async def _run_provider(
        self,
        prompt: Prompt,
        provider: ProviderDescriptor,
        k: int,
        context: RunContext,
    ) -> NormalizedResult:
        delay = k * self.stagger_seconds
        if delay > 0:
            await self._sleep(delay)

        if self.rate_limiter is not None and self.rate_limiter.limits(provider.id):
            acquired = await self.rate_limiter.acquire_blocking(provider.id)
            if not acquired:
                return error_result(provider.name, f"{provider.name} request rate limit wait timed out")

        logger.debug("Prompt %s -> %s", prompt.id, provider.name, extra={"prompt_id": prompt.id, "provider": provider.id})
        result = await self.retry.call(provider, prompt.text, context)
        if result.is_error:
            logger.warning(
                "Prompt %s failed on %s: %s",
                prompt.id,
                provider.name,
                result.error,
                extra={"prompt_id": prompt.id, "provider": provider.id},
            )
        return result
