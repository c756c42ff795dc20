"""Provider catalog and singleton map of provider name → instance."""

from podmeta.config.settings import get_settings
from podmeta.providers.base import ProviderDescriptor, VisionProvider
from podmeta.providers.openai_compat import OpenAICompatibleProvider

# Models are listed in descending capability order.
PROVIDER_CATALOG: dict[str, ProviderDescriptor] = {
    "mistral": ProviderDescriptor(
        name="mistral",
        label="Mistral",
        base_url="https://api.mistral.ai/v1",
        models=("pixtral-large-latest", "pixtral-12b-2409"),
    ),
    "groq": ProviderDescriptor(
        name="groq",
        label="Groq",
        base_url="https://api.groq.com/openai/v1",
        models=(
            "meta-llama/llama-4-maverick-17b-128e-instruct",
            "meta-llama/llama-4-scout-17b-16e-instruct",
        ),
    ),
}

_providers: dict[str, VisionProvider] = {}


def get_descriptor(name: str) -> ProviderDescriptor:
    try:
        return PROVIDER_CATALOG[name]
    except KeyError:
        raise ValueError(f"Unknown provider: {name}") from None


def get_catalog() -> list[ProviderDescriptor]:
    """Descriptors in configured priority order; unknown names are ignored.

    Providers missing from the priority setting are appended after the
    listed ones so that a key is never silently unusable.
    """
    settings = get_settings()
    ordered = [PROVIDER_CATALOG[n] for n in settings.provider_priority_list if n in PROVIDER_CATALOG]
    ordered += [d for n, d in PROVIDER_CATALOG.items() if d not in ordered]
    return ordered


def get_provider(name: str) -> VisionProvider:
    """Get or create a provider instance by name."""
    if name in _providers:
        return _providers[name]

    _providers[name] = OpenAICompatibleProvider(get_descriptor(name))
    return _providers[name]


async def close_all_providers() -> None:
    """Gracefully shut down all provider connections."""
    for provider in _providers.values():
        await provider.close()
    _providers.clear()
