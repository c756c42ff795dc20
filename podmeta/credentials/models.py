"""Provider configuration model."""

from dataclasses import dataclass
from enum import Enum


class ProviderStatus(str, Enum):
    ACTIVE = "active"
    RATE_LIMITED = "rate-limited"
    ERROR = "error"
    DISABLED = "disabled"


@dataclass(frozen=True)
class ProviderConfig:
    provider: str
    is_active: bool = True
    status: ProviderStatus = ProviderStatus.ACTIVE  # advisory, set by status reports
    api_key: str | None = None  # single key; pooled keys live in CredentialPool
