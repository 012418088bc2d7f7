"""Tests for the Batch Scheduler: batching, staggering, ordering and failure isolation."""

from __future__ import annotations

import asyncio
import time

import pytest

from app.core.exceptions import ValidationError
from app.gateway.rate_limiter import AdaptiveRateLimiter
from app.gateway.scheduler import BatchScheduler
from app.gateway.types import Prompt, ProviderDescriptor, RawProviderResponse, RunContext
from app.gateway.vendor_adapters import ProviderError
from tests.conftest import FakeInvoker, SleepRecorder, make_settings

CONTEXT = RunContext(company_name="Acme", competitors=("Globex",))


def _prompts(n: int) -> list[Prompt]:
    return [Prompt(id=f"q{i}", text=f"Question {i}") for i in range(1, n + 1)]


def _echo(text: str, provider_id: str) -> RawProviderResponse:
    return RawProviderResponse(text=f"{provider_id}: {text}")


class _FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# ==========================================================================
# Test: Validation
# ==========================================================================


class TestValidation:
    @pytest.mark.asyncio
    async def test_no_prompts(self, two_providers):
        scheduler = BatchScheduler(invoker=FakeInvoker(_echo), settings=make_settings(), sleep=SleepRecorder())
        with pytest.raises(ValidationError, match="No prompts to run"):
            await scheduler.run([], two_providers, CONTEXT)

    @pytest.mark.asyncio
    async def test_no_providers(self):
        scheduler = BatchScheduler(invoker=FakeInvoker(_echo), settings=make_settings(), sleep=SleepRecorder())
        with pytest.raises(ValidationError, match="No AI providers configured"):
            await scheduler.run(_prompts(1), [], CONTEXT)


# ==========================================================================
# Test: Batching
# ==========================================================================


class TestBatching:
    @pytest.mark.asyncio
    async def test_batches_separated_by_cooldown(self):
        sleep = SleepRecorder()
        settings = make_settings(batch_size=10, inter_batch_delay_seconds=2.0)
        invoker = FakeInvoker(_echo)
        scheduler = BatchScheduler(invoker=invoker, settings=settings, sleep=sleep)
        provider = [ProviderDescriptor(id="openai", name="OpenAI")]

        results = await scheduler.run(_prompts(23), provider, CONTEXT)

        assert len(results) == 23
        # 3 batches, cooldown between them but not after the last one
        assert sleep.calls == [2.0, 2.0]
        assert len(invoker.calls) == 23

    @pytest.mark.asyncio
    async def test_single_batch_has_no_cooldown(self):
        sleep = SleepRecorder()
        settings = make_settings(batch_size=10, inter_batch_delay_seconds=2.0)
        scheduler = BatchScheduler(invoker=FakeInvoker(_echo), settings=settings, sleep=sleep)

        await scheduler.run(_prompts(10), [ProviderDescriptor(id="openai", name="OpenAI")], CONTEXT)

        assert sleep.calls == []

    @pytest.mark.asyncio
    async def test_prompts_in_batch_run_concurrently(self):
        active = 0
        peak = 0

        async def handler(text, provider_id):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return RawProviderResponse(text="ok")

        settings = make_settings(batch_size=4)
        scheduler = BatchScheduler(invoker=FakeInvoker(handler), settings=settings, sleep=SleepRecorder())

        await scheduler.run(_prompts(8), [ProviderDescriptor(id="openai", name="OpenAI")], CONTEXT)

        assert peak == 4

    @pytest.mark.asyncio
    async def test_output_order_is_positional(self, two_providers):
        async def handler(text, provider_id):
            # later prompts finish first
            number = int(text.split()[-1])
            await asyncio.sleep(0.001 * (6 - number))
            return RawProviderResponse(text=f"{provider_id}: {text}")

        settings = make_settings(batch_size=3)
        scheduler = BatchScheduler(invoker=FakeInvoker(handler), settings=settings, sleep=SleepRecorder())

        results = await scheduler.run(_prompts(5), two_providers, CONTEXT)

        assert [r.prompt_id for r in results] == ["q1", "q2", "q3", "q4", "q5"]
        for prompt_result in results:
            assert [r.provider for r in prompt_result.results] == ["OpenAI", "Perplexity"]
            assert prompt_result.results[0].response == f"openai: {prompt_result.prompt}"


# ==========================================================================
# Test: Staggering
# ==========================================================================


class TestStagger:
    @pytest.mark.asyncio
    async def test_provider_offsets_recorded(self):
        sleep = SleepRecorder()
        providers = [
            ProviderDescriptor(id="openai", name="OpenAI"),
            ProviderDescriptor(id="anthropic", name="Anthropic"),
            ProviderDescriptor(id="perplexity", name="Perplexity"),
        ]
        scheduler = BatchScheduler(
            invoker=FakeInvoker(_echo),
            settings=make_settings(stagger_seconds=1.5),
            sleep=sleep,
        )

        await scheduler.run(_prompts(1), providers, CONTEXT)

        # provider 0 starts immediately, provider k waits k * stagger
        assert sorted(sleep.calls) == [1.5, 3.0]

    @pytest.mark.asyncio
    async def test_provider_start_times_are_staggered(self, two_providers):
        starts: dict[str, float] = {}

        def handler(text, provider_id):
            starts[provider_id] = time.monotonic()
            return RawProviderResponse(text="ok")

        scheduler = BatchScheduler(invoker=FakeInvoker(handler), settings=make_settings(stagger_seconds=0.05))

        await scheduler.run(_prompts(1), two_providers, CONTEXT)

        assert starts["perplexity"] - starts["openai"] >= 0.04


# ==========================================================================
# Test: Failure isolation and rate limiting
# ==========================================================================


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_one_failure_leaves_the_rest(self, two_providers):
        def handler(text, provider_id):
            if provider_id == "perplexity" and text == "Question 1":
                return ProviderError("Perplexity API error 500: boom", status_code=500)
            return RawProviderResponse(text=f"{provider_id} answered", brand_mentioned=True)

        scheduler = BatchScheduler(invoker=FakeInvoker(handler), settings=make_settings(), sleep=SleepRecorder())

        results = await scheduler.run(_prompts(2), two_providers, CONTEXT)

        q1, q2 = results
        assert len(q1.results) == 2
        assert not q1.results[0].is_error
        assert q1.results[1].is_error
        assert q1.results[1].error == "Perplexity API error 500: boom"
        assert q1.results[1].response == ""
        assert "brandMentioned" not in q1.results[1].to_dict()
        assert q1.results[0].brand_mentioned is True
        assert q1.results[0].to_dict()["brandMentioned"] is True
        assert all(not r.is_error and r.brand_mentioned for r in q2.results)

    @pytest.mark.asyncio
    async def test_rate_limited_call_retried_once(self, two_providers):
        attempts: dict[str, int] = {}

        def handler(text, provider_id):
            attempts[provider_id] = attempts.get(provider_id, 0) + 1
            if provider_id == "openai" and attempts[provider_id] == 1:
                return ProviderError("OpenAI API error 429", status_code=429, response_headers={"retry-after": "5"})
            return RawProviderResponse(text="ok")

        sleep = SleepRecorder()
        scheduler = BatchScheduler(invoker=FakeInvoker(handler), settings=make_settings(), sleep=sleep)

        results = await scheduler.run(_prompts(1), two_providers, CONTEXT)

        assert sleep.calls == [5.0]
        assert all(not r.is_error for r in results[0].results)
        assert attempts == {"openai": 2, "perplexity": 1}

    @pytest.mark.asyncio
    async def test_rpm_limiter_spaces_calls(self):
        clock = _FakeClock()
        limiter = AdaptiveRateLimiter({"openai": 1}, clock=clock, sleep=clock.sleep)
        scheduler = BatchScheduler(
            invoker=FakeInvoker(_echo),
            settings=make_settings(),
            sleep=SleepRecorder(),
            rate_limiter=limiter,
        )

        results = await scheduler.run(_prompts(2), [ProviderDescriptor(id="openai", name="OpenAI")], CONTEXT)

        assert clock.sleeps == [60.0]
        assert all(not r.is_error for pr in results for r in pr.results)

    def test_limiter_built_from_settings(self):
        scheduler = BatchScheduler(invoker=FakeInvoker(_echo), settings=make_settings(provider_rpm_limits="perplexity:20"))
        assert scheduler.rate_limiter is not None
        assert scheduler.rate_limiter.limits("perplexity")
        assert not scheduler.rate_limiter.limits("openai")

    def test_no_limiter_without_limits(self):
        scheduler = BatchScheduler(invoker=FakeInvoker(_echo), settings=make_settings())
        assert scheduler.rate_limiter is None
