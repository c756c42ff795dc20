"""Shared fixtures for the POD metadata service test suite."""

import base64
import json

import httpx
import pytest

from podmeta.config.settings import get_settings
from podmeta.providers.base import ProviderDescriptor

# Smallest valid PNG header bytes are enough; nothing decodes the image.
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


@pytest.fixture
def png_base64() -> str:
    return base64.b64encode(PNG_BYTES).decode()


@pytest.fixture
def cat_response() -> dict:
    """Raw TeePublic-style provider output."""
    return {
        "title": "Cat",
        "description": "A cat design",
        "tags": ["cat", "pet"],
        "mainTag": "cat lover",
    }


@pytest.fixture
def descriptor_a() -> ProviderDescriptor:
    return ProviderDescriptor(
        name="A", label="Provider A", base_url="https://a.example/v1",
        models=("a-large", "a-small"),
    )


@pytest.fixture
def descriptor_b() -> ProviderDescriptor:
    return ProviderDescriptor(
        name="B", label="Provider B", base_url="https://b.example/v1",
        models=("b-large",),
    )


@pytest.fixture
def pool_file(tmp_path):
    """Create a temp key pool JSON file and return its path."""
    path = tmp_path / "key_pool.json"
    path.write_text(json.dumps({
        "mistral": ["mistral-key-aaaa-1111", "mistral-key-bbbb-2222"],
        "groq": ["groq-key-cccc-3333"],
    }), encoding="utf-8")
    return str(path)


@pytest.fixture
def override_settings(monkeypatch):
    """Factory fixture: set env vars and clear settings cache.

    Usage:
        override_settings(MAX_RETRIES=2, PROVIDER_PRIORITY="groq,mistral")
    """
    def _override(**kwargs):
        for key, value in kwargs.items():
            monkeypatch.setenv(key.upper(), str(value))
        # Clear lru_cache so Settings re-reads env
        get_settings.cache_clear()

    yield _override

    # Always clear cache on teardown so other tests get fresh settings
    get_settings.cache_clear()


def chat_response(content, status_code: int = 200) -> httpx.Response:
    """Build a chat-completions envelope whose message content is `content`."""
    if not isinstance(content, str):
        content = json.dumps(content)
    return httpx.Response(
        status_code,
        json={
            "id": "chatcmpl-test",
            "object": "chat.completion",
            "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        },
    )
