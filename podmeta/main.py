"""POD Metadata service — FastAPI application entry point.

Takes base64-encoded design images and returns marketplace-ready SEO
metadata, generated by whichever configured vision provider answers
first in priority order.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from podmeta.config.settings import get_settings
from podmeta.credentials.factory import get_credential_pool, get_state_store
from podmeta.logging.audit import (
    RequestTimer,
    generate_request_id,
    get_audit_logger,
    request_id_var,
    setup_logging,
)
from podmeta.metadata.models import MARKETPLACE_RULES, Marketplace
from podmeta.providers.errors import ErrorKind, InvalidImageError, ProviderError
from podmeta.providers.registry import PROVIDER_CATALOG
from podmeta.service.handler import (
    BatchItem,
    close_client,
    process_batch,
    process_item,
    validate_provider_keys,
)

VERSION = "0.3.0"

ERROR_STATUS = {
    ErrorKind.INVALID_CREDENTIAL: 401,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.NO_PROVIDER_AVAILABLE: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle hooks."""
    setup_logging()
    get_audit_logger().info("Metadata service started")
    yield
    await close_client()
    get_audit_logger().info("Metadata service stopped")


app = FastAPI(
    title="POD Metadata Service",
    description="Bulk SEO metadata generation for print-on-demand designs",
    version=VERSION,
    lifespan=lifespan,
)


class MetadataRequest(BaseModel):
    image_base64: str
    mime_type: str
    marketplace: Marketplace = Marketplace.SPREADSHIRT


class BatchItemRequest(BaseModel):
    id: str
    image_base64: str
    mime_type: str


class BatchRequest(BaseModel):
    marketplace: Marketplace = Marketplace.SPREADSHIRT
    items: list[BatchItemRequest] = Field(default_factory=list)


class ProviderUpdate(BaseModel):
    is_active: bool | None = None
    reset_status: bool = False


class KeyRequest(BaseModel):
    key: str


def _error_response(exc: ProviderError) -> JSONResponse:
    return JSONResponse(
        status_code=ERROR_STATUS.get(exc.kind, 502),
        content={"error": exc.message, "kind": exc.kind.value},
    )


def _require_provider(name: str) -> None:
    if name not in PROVIDER_CATALOG:
        raise HTTPException(status_code=404, detail=f"Unknown provider: {name}")


@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION}


@app.get("/v1/marketplaces")
async def marketplaces():
    return {
        m.value: {
            "title_max": rules.title_max,
            "description_max": rules.description_max,
            "tag_floor": rules.tag_floor,
            "tag_ceiling": rules.tag_ceiling,
            "requires_main_tag": rules.requires_main_tag,
        }
        for m, rules in MARKETPLACE_RULES.items()
    }


@app.post("/v1/metadata")
async def create_metadata(payload: MetadataRequest):
    """Analyze one image and return normalized metadata for the marketplace."""
    logger = get_audit_logger()
    rid = generate_request_id()
    request_id_var.set(rid)

    try:
        with RequestTimer() as timer:
            metadata = await process_item(payload.image_base64, payload.mime_type, payload.marketplace)
    except InvalidImageError as exc:
        return JSONResponse(status_code=422, content={"error": str(exc), "kind": "invalid_image"})
    except ProviderError as exc:
        logger.warning(
            "Metadata request failed",
            extra={"audit_data": {
                "marketplace": payload.marketplace.value,
                "error_kind": exc.kind.value,
                "provider": exc.provider,
                "upstream_status": exc.status_code,
            }},
        )
        return _error_response(exc)

    logger.info(
        "Metadata request completed",
        extra={"audit_data": {
            "marketplace": payload.marketplace.value,
            "latency_ms": timer.elapsed_ms,
            "tag_count": len(metadata.tags),
        }},
    )
    return JSONResponse(
        status_code=200,
        content={"status": "completed", "metadata": metadata.to_dict()},
        headers={"X-Request-Id": rid},
    )


@app.post("/v1/metadata/batch")
async def create_metadata_batch(payload: BatchRequest):
    """Analyze several images sequentially; per-item failures are reported inline."""
    settings = get_settings()
    rid = generate_request_id()
    request_id_var.set(rid)

    if len(payload.items) > settings.max_batch_size:
        return JSONResponse(
            status_code=413,
            content={"error": f"Batch exceeds {settings.max_batch_size} items"},
        )

    items = [BatchItem(id=i.id, image_base64=i.image_base64, mime_type=i.mime_type) for i in payload.items]
    results = await process_batch(items, payload.marketplace)
    return JSONResponse(
        status_code=200,
        content={
            "marketplace": payload.marketplace.value,
            "results": [
                {
                    "id": r.id,
                    "status": r.status,
                    "metadata": r.metadata.to_dict() if r.metadata else None,
                    "error": r.error,
                    "error_kind": r.error_kind,
                }
                for r in results
            ],
        },
        headers={"X-Request-Id": rid},
    )


def _provider_view(name: str) -> dict:
    config = get_state_store().config_for(name)
    descriptor = PROVIDER_CATALOG[name]
    return {
        "name": name,
        "label": descriptor.label,
        "is_active": config.is_active,
        "status": config.status.value,
        "key_count": len(get_credential_pool().keys_for(name)) or (1 if config.api_key else 0),
        "models": list(descriptor.models),
    }


@app.get("/v1/providers")
async def list_providers():
    get_credential_pool().reload()
    return {"providers": [_provider_view(name) for name in PROVIDER_CATALOG]}


@app.patch("/v1/providers/{name}")
async def update_provider(name: str, update: ProviderUpdate):
    _require_provider(name)
    store = get_state_store()
    if update.is_active is not None:
        store.set_active(name, update.is_active)
    if update.reset_status:
        store.reset_status(name)
    return _provider_view(name)


@app.post("/v1/providers/{name}/keys")
async def add_provider_key(name: str, body: KeyRequest):
    _require_provider(name)
    if not body.key.strip():
        raise HTTPException(status_code=422, detail="Key must not be empty")
    get_credential_pool().add_key(name, body.key)
    return _provider_view(name)


@app.delete("/v1/providers/{name}/keys")
async def remove_provider_key(name: str, body: KeyRequest):
    _require_provider(name)
    if not get_credential_pool().remove_key(name, body.key.strip()):
        raise HTTPException(status_code=404, detail="Key not found")
    return _provider_view(name)


@app.post("/v1/providers/{name}/validate")
async def validate_provider(name: str):
    _require_provider(name)
    results = await validate_provider_keys(name)
    return {
        "provider": name,
        "valid": sum(1 for r in results if r.valid),
        "results": [{"key": r.key, "valid": r.valid, "error": r.error} for r in results],
    }
