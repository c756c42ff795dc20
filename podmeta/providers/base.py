"""Abstract base and shared types for vision providers."""

import base64
import binascii
from abc import ABC, abstractmethod
from dataclasses import dataclass

from podmeta.metadata.models import ApiResponse, Marketplace
from podmeta.providers.errors import InvalidImageError

SUPPORTED_MIME_TYPES = frozenset({"image/png", "image/jpeg", "image/webp", "image/gif"})


@dataclass(frozen=True)
class ProviderDescriptor:
    name: str                # provider tag, e.g. "mistral"
    label: str               # display name used in error messages
    base_url: str            # OpenAI-compatible API root, e.g. https://api.groq.com/openai/v1
    models: tuple[str, ...]  # descending capability order

    @property
    def chat_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"

    @property
    def models_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/models"


@dataclass(frozen=True)
class ImagePayload:
    data_base64: str
    mime_type: str

    @classmethod
    def build(cls, data_base64: str, mime_type: str) -> "ImagePayload":
        """Validate and build a payload. Accepts a full data URI as well."""
        data = (data_base64 or "").strip()
        if data.startswith("data:") and "," in data:
            data = data.split(",", 1)[1]
        if not data:
            raise InvalidImageError("Image data is empty")

        mime = (mime_type or "").strip().lower()
        if mime == "image/jpg":
            mime = "image/jpeg"
        if mime not in SUPPORTED_MIME_TYPES:
            raise InvalidImageError(f"Unsupported image type: {mime_type or 'unknown'}")

        try:
            base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            raise InvalidImageError("Image data is not valid base64")
        return cls(data_base64=data, mime_type=mime)

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data_base64}"


@dataclass(frozen=True)
class RequestTarget:
    """One attempt's provider, model and credential."""
    provider: str
    model: str
    api_key: str


class VisionProvider(ABC):
    """Base class for vision provider implementations."""

    descriptor: ProviderDescriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    @abstractmethod
    async def analyze(
        self, image: ImagePayload, marketplace: Marketplace, target: RequestTarget
    ) -> ApiResponse:
        """Run one vision request and return the parsed JSON content.

        Raises:
            ProviderError: classified failure; no retry happens here.
        """
        ...

    @abstractmethod
    async def validate_key(self, api_key: str) -> bool:
        """Return True if the provider accepts the key."""
        ...

    async def close(self) -> None:
        """Cleanup resources. Override if provider holds connections."""
        pass
