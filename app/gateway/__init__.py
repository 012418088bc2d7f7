"""AI provider gateway.

Async infrastructure for sending tracked prompts to AI answer engines:
  - Provider Registry (configured providers, keys, models)
  - Vendor Adapters (one HTTP protocol per provider, web search on)
  - Adaptive Rate Limiter (optional RPM caps per provider)
  - Rate-limit Retry (one retry after the advertised wait)
  - Batch Scheduler (batched, staggered fan-out)
  - Response Normalizer (unified NormalizedResult)
"""
