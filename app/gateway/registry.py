"""Provider Registry — which AI providers exist and which are configured.

A provider is configured when its API key is set; ``ENABLED_PROVIDERS``
optionally narrows that set. Order is always the table order below and
is the order of results inside every PromptResult.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from app.core.config import Settings, settings as default_settings
from app.core.exceptions import ValidationError
from app.gateway.types import ProviderCapabilities, ProviderDescriptor

logger = logging.getLogger(__name__)


PROVIDER_CONFIGS: dict[str, ProviderDescriptor] = {
    "openai": ProviderDescriptor(
        id="openai",
        name="OpenAI",
        model="gpt-4o-mini",
        capabilities=ProviderCapabilities(web_search=True),
    ),
    "anthropic": ProviderDescriptor(
        id="anthropic",
        name="Anthropic",
        model="claude-sonnet-4-20250514",
        capabilities=ProviderCapabilities(web_search=True),
    ),
    "google": ProviderDescriptor(
        id="google",
        name="Google",
        model="gemini-2.5-flash",
        capabilities=ProviderCapabilities(web_search=True),
    ),
    "perplexity": ProviderDescriptor(
        id="perplexity",
        name="Perplexity",
        model="sonar",
        capabilities=ProviderCapabilities(web_search=True),
    ),
}

# Settings attribute holding each provider's API key
_API_KEY_FIELDS: dict[str, str] = {
    "openai": "openai_api_key",
    "anthropic": "anthropic_api_key",
    "google": "google_api_key",
    "perplexity": "perplexity_api_key",
}


def api_key_for(provider_id: str, settings: Settings | None = None) -> str:
    settings = settings or default_settings
    field_name = _API_KEY_FIELDS.get(provider_id)
    return getattr(settings, field_name, "") if field_name else ""


def list_configured_providers(settings: Settings | None = None) -> list[ProviderDescriptor]:
    """Providers with an API key set, restricted to ENABLED_PROVIDERS when given."""
    settings = settings or default_settings
    allowed = settings.enabled_provider_ids
    unknown = [pid for pid in allowed if pid not in PROVIDER_CONFIGS]
    if unknown:
        logger.warning("ENABLED_PROVIDERS names unknown providers: %s", ", ".join(unknown))

    providers = []
    for provider_id, descriptor in PROVIDER_CONFIGS.items():
        if allowed and provider_id not in allowed:
            continue
        if not api_key_for(provider_id, settings):
            continue
        providers.append(descriptor)

    if not providers:
        logger.warning("No AI providers configured (set at least one provider API key)")
    return providers


def get_provider(provider_id: str) -> ProviderDescriptor:
    descriptor = PROVIDER_CONFIGS.get(provider_id.strip().lower())
    if descriptor is None:
        raise ValidationError(f"Unknown AI provider: {provider_id}")
    return descriptor


def resolve_providers(
    provider_ids: Sequence[str] | None,
    settings: Settings | None = None,
) -> list[ProviderDescriptor]:
    """Validate a requested subset against the configured providers.

    ``None`` or an empty list means every configured provider.
    """
    configured = list_configured_providers(settings)
    if not provider_ids:
        return configured

    requested = {get_provider(pid).id for pid in provider_ids}
    configured_ids = {p.id for p in configured}
    missing = sorted(requested - configured_ids)
    if missing:
        raise ValidationError(f"AI provider not configured: {', '.join(missing)}")
    return [p for p in configured if p.id in requested]
