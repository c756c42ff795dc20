"""Singletons for the credential pool and provider state store."""

from podmeta.config.settings import get_settings
from podmeta.credentials.pool import CredentialPool
from podmeta.credentials.store import ProviderStateStore
from podmeta.providers.registry import PROVIDER_CATALOG

_pool: CredentialPool | None = None
_state_store: ProviderStateStore | None = None


def get_credential_pool() -> CredentialPool:
    """Get the pool singleton, backed by the configured JSON file."""
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = CredentialPool(path=settings.key_pool_path)
    return _pool


def get_state_store() -> ProviderStateStore:
    global _state_store
    if _state_store is None:
        settings = get_settings()
        providers = list(PROVIDER_CATALOG)
        _state_store = ProviderStateStore(
            providers=providers,
            pool=get_credential_pool(),
            fallback_keys={p: settings.fallback_key_for(p) for p in providers},
            rate_limit_cooldown=settings.rate_limit_cooldown_seconds,
        )
    return _state_store
