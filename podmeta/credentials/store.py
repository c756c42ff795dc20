"""In-process provider state: active flags and advisory health status.

The orchestrator only ever sees immutable ProviderConfig snapshots;
status reports flow back through report_status(), which is the status
callback handed to it. A rate-limited provider is reported active again
once its cooldown elapses, so a later request will probe it.
"""

import time

from podmeta.credentials.models import ProviderConfig, ProviderStatus
from podmeta.credentials.pool import CredentialPool


class ProviderStateStore:

    def __init__(self, providers: list[str], pool: CredentialPool,
                 fallback_keys: dict[str, str] | None = None,
                 rate_limit_cooldown: float = 60.0):
        self._pool = pool
        self._fallback_keys = fallback_keys or {}
        self._cooldown = rate_limit_cooldown
        self._active: dict[str, bool] = {p: True for p in providers}
        self._status: dict[str, ProviderStatus] = {p: ProviderStatus.ACTIVE for p in providers}
        self._rate_limited_at: dict[str, float] = {}

    @property
    def providers(self) -> list[str]:
        return list(self._active)

    def _check(self, provider: str) -> None:
        if provider not in self._active:
            raise ValueError(f"Unknown provider: {provider}")

    def _current_status(self, provider: str) -> ProviderStatus:
        status = self._status[provider]
        if status is ProviderStatus.RATE_LIMITED:
            since = self._rate_limited_at.get(provider, 0.0)
            if time.monotonic() - since >= self._cooldown:
                status = ProviderStatus.ACTIVE
                self._status[provider] = status
                self._rate_limited_at.pop(provider, None)
        return status

    def report_status(self, provider: str, status: ProviderStatus) -> None:
        """Status callback for the orchestrator."""
        self._check(provider)
        self._status[provider] = status
        if status is ProviderStatus.RATE_LIMITED:
            self._rate_limited_at[provider] = time.monotonic()
        else:
            self._rate_limited_at.pop(provider, None)

    def set_active(self, provider: str, is_active: bool) -> None:
        self._check(provider)
        self._active[provider] = is_active
        if is_active and self._status[provider] is ProviderStatus.DISABLED:
            self._status[provider] = ProviderStatus.ACTIVE
        elif not is_active:
            self._status[provider] = ProviderStatus.DISABLED

    def reset_status(self, provider: str) -> None:
        self._check(provider)
        self._rate_limited_at.pop(provider, None)
        self._status[provider] = (
            ProviderStatus.ACTIVE if self._active[provider] else ProviderStatus.DISABLED
        )

    def config_for(self, provider: str) -> ProviderConfig:
        self._check(provider)
        keys = self._pool.keys_for(provider)
        api_key = keys[0] if keys else (self._fallback_keys.get(provider) or None)
        return ProviderConfig(
            provider=provider,
            is_active=self._active[provider],
            status=self._current_status(provider),
            api_key=api_key,
        )

    def snapshot(self) -> dict[str, ProviderConfig]:
        """Read-only view of every provider, for one orchestrator call."""
        return {p: self.config_for(p) for p in self._active}
