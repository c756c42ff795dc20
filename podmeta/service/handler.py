"""Service handler — wires the orchestrator to the shared pool and state store."""

from dataclasses import dataclass

from podmeta.credentials.factory import get_credential_pool, get_state_store
from podmeta.credentials.pool import mask_key
from podmeta.logging.audit import get_audit_logger
from podmeta.metadata.models import Marketplace, NormalizedMetadata
from podmeta.orchestration.orchestrator import generate_metadata
from podmeta.providers.errors import InvalidImageError, ProviderError
from podmeta.providers.registry import close_all_providers, get_descriptor, get_provider


@dataclass
class BatchItem:
    id: str
    image_base64: str
    mime_type: str


@dataclass
class ItemResult:
    id: str
    status: str  # "completed" | "error"
    metadata: NormalizedMetadata | None = None
    error: str | None = None
    error_kind: str | None = None


@dataclass
class KeyValidation:
    key: str  # masked
    valid: bool
    error: str | None = None


async def process_item(image_base64: str, mime_type: str, marketplace: Marketplace) -> NormalizedMetadata:
    """Generate metadata for one image using the current provider snapshot."""
    pool = get_credential_pool()
    pool.reload()
    store = get_state_store()
    return await generate_metadata(
        image_base64,
        mime_type,
        marketplace,
        store.snapshot(),
        store.report_status,
        pool=pool,
    )


async def process_batch(items: list[BatchItem], marketplace: Marketplace) -> list[ItemResult]:
    """Process items one after another; a failed item does not stop the batch.

    Items run sequentially so a shared key pool is not hammered in parallel.
    """
    logger = get_audit_logger()
    results: list[ItemResult] = []
    for item in items:
        try:
            metadata = await process_item(item.image_base64, item.mime_type, marketplace)
        except ProviderError as exc:
            results.append(ItemResult(
                id=item.id, status="error", error=exc.message, error_kind=exc.kind.value,
            ))
        except InvalidImageError as exc:
            results.append(ItemResult(
                id=item.id, status="error", error=str(exc), error_kind="invalid_image",
            ))
        else:
            results.append(ItemResult(id=item.id, status="completed", metadata=metadata))

    logger.info(
        "Batch processed",
        extra={"audit_data": {
            "marketplace": marketplace.value,
            "items": len(items),
            "completed": sum(1 for r in results if r.status == "completed"),
        }},
    )
    return results


async def validate_provider_keys(name: str) -> list[KeyValidation]:
    """Check every pooled key (or the single fallback key) for a provider."""
    get_descriptor(name)
    pool = get_credential_pool()
    pool.reload()
    keys = pool.keys_for(name)
    if not keys:
        fallback = get_state_store().config_for(name).api_key
        keys = [fallback] if fallback else []

    provider = get_provider(name)
    results: list[KeyValidation] = []
    for key in keys:
        try:
            valid = await provider.validate_key(key)
            results.append(KeyValidation(key=mask_key(key), valid=valid))
        except ProviderError as exc:
            results.append(KeyValidation(key=mask_key(key), valid=False, error=exc.message))
    return results


async def close_client() -> None:
    """Gracefully close all providers on shutdown."""
    await close_all_providers()
