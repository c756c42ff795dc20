"""Provider/model fallback orchestrator.

Walks providers in priority order and, within a provider, models in
descending capability order. Each model is tried through the retry
controller. The first success is normalized and returned; a missing
model moves on to the next model, any other terminal failure moves on
to the next provider. Provider health is reported through `on_status`.
"""

from collections.abc import Awaitable, Callable, Mapping, Sequence

from podmeta.config.settings import get_settings
from podmeta.credentials.models import ProviderConfig, ProviderStatus
from podmeta.credentials.pool import CredentialPool, mask_key
from podmeta.logging.audit import RequestTimer, get_audit_logger
from podmeta.metadata.models import Marketplace, NormalizedMetadata
from podmeta.metadata.normalizer import normalize_metadata
from podmeta.orchestration.retry import retry_with_backoff
from podmeta.providers.base import ImagePayload, ProviderDescriptor, RequestTarget, VisionProvider
from podmeta.providers.errors import NO_PROVIDER_MESSAGE, ErrorKind, ProviderError
from podmeta.providers.registry import get_catalog, get_provider

StatusCallback = Callable[[str, ProviderStatus], None]


def _is_eligible(config: ProviderConfig | None, pool: CredentialPool | None) -> tuple[bool, str]:
    if config is None:
        return False, "not configured"
    if not config.is_active:
        return False, "inactive"
    if not config.api_key and not (pool is not None and pool.has_keys(config.provider)):
        return False, "no api key"
    if config.status is ProviderStatus.RATE_LIMITED:
        return False, "rate limited"
    return True, ""


def _credential(config: ProviderConfig, pool: CredentialPool | None) -> str:
    if pool is not None:
        key = pool.next_key(config.provider)
        if key:
            return key
    return config.api_key or ""


async def generate_metadata(
    image_base64: str,
    mime_type: str,
    marketplace: Marketplace,
    configs: Mapping[str, ProviderConfig],
    on_status: StatusCallback,
    *,
    pool: CredentialPool | None = None,
    catalog: Sequence[ProviderDescriptor] | None = None,
    provider_factory: Callable[[str], VisionProvider] | None = None,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> NormalizedMetadata:
    """Produce normalized metadata for one image, falling back across providers.

    Raises:
        InvalidImageError: empty payload or unsupported mime type.
        ProviderError: the last classified failure, or NO_PROVIDER_AVAILABLE
            when no provider passed the eligibility check.
    """
    image = ImagePayload.build(image_base64, mime_type)
    settings = get_settings()
    logger = get_audit_logger()
    catalog = get_catalog() if catalog is None else catalog
    provider_factory = provider_factory or get_provider

    last_error: ProviderError | None = None
    attempted = False

    for descriptor in catalog:
        config = configs.get(descriptor.name)
        eligible, reason = _is_eligible(config, pool)
        if not eligible:
            logger.info(
                "Provider skipped",
                extra={"audit_data": {"provider": descriptor.name, "reason": reason}},
            )
            continue

        attempted = True
        provider = provider_factory(descriptor.name)
        provider_failed = False

        for model in descriptor.models:

            async def attempt(model: str = model) -> dict:
                target = RequestTarget(descriptor.name, model, _credential(config, pool))
                timer = RequestTimer()
                try:
                    with timer:
                        return await provider.analyze(image, marketplace, target)
                finally:
                    logger.debug(
                        "Provider attempt finished",
                        extra={"audit_data": {
                            "provider": descriptor.name,
                            "model": model,
                            "api_key": mask_key(target.api_key),
                            "latency_ms": timer.elapsed_ms,
                        }},
                    )

            try:
                raw = await retry_with_backoff(
                    attempt,
                    settings.max_retries,
                    base_delay=settings.backoff_base_seconds,
                    jitter=settings.backoff_jitter_seconds,
                    max_delay=settings.backoff_max_seconds,
                    sleep=sleep,
                )
            except ProviderError as exc:
                last_error = exc
                logger.warning(
                    "Provider attempt failed",
                    extra={"audit_data": {
                        "provider": descriptor.name,
                        "model": model,
                        "error_kind": exc.kind.value,
                        "upstream_status": exc.status_code,
                        "error": exc.message,
                    }},
                )
                if exc.kind is ErrorKind.MODEL_UNAVAILABLE:
                    continue
                status = (
                    ProviderStatus.RATE_LIMITED
                    if exc.kind is ErrorKind.RATE_LIMITED
                    else ProviderStatus.ERROR
                )
                on_status(descriptor.name, status)
                provider_failed = True
                break

            on_status(descriptor.name, ProviderStatus.ACTIVE)
            logger.info(
                "Metadata generated",
                extra={"audit_data": {
                    "provider": descriptor.name,
                    "model": model,
                    "marketplace": marketplace.value,
                }},
            )
            return normalize_metadata(raw, marketplace)

        if not provider_failed:
            # Every model of this provider was unavailable
            on_status(descriptor.name, ProviderStatus.ERROR)

    if not attempted or last_error is None:
        raise ProviderError(ErrorKind.NO_PROVIDER_AVAILABLE, NO_PROVIDER_MESSAGE)
    raise last_error
