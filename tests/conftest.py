"""Shared pytest configuration and fixtures for all tests."""

import os
import warnings

import pytest

from postcap.captions.fallback import FallbackCaptionSource, round_robin
from postcap.captions.models import EncodedImage, ProviderConfig


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--e2e",
        action="store_true",
        default=False,
        help="Run only e2e tests (default: run only unit tests)",
    )


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers",
        "unit: Unit tests that use mocks and don't make real API calls",
    )
    config.addinivalue_line(
        "markers",
        "e2e: End-to-end tests that make real API calls",
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers and handle skips."""
    openai_key_available = bool(os.getenv("OPENAI_API_KEY"))
    huggingface_key_available = bool(os.getenv("HUGGINGFACE_API_KEY"))

    run_e2e = config.getoption("--e2e")

    for item in items:
        # Automatically mark tests based on their directory location
        if "/e2e/" in item.nodeid or item.nodeid.startswith("tests/e2e"):
            item.add_marker(pytest.mark.e2e)
        elif "/unit/" in item.nodeid or item.nodeid.startswith("tests/unit"):
            item.add_marker(pytest.mark.unit)

        if not run_e2e and "e2e" in item.keywords:
            item.add_marker(
                pytest.mark.skip(
                    reason="E2E tests skipped by default. Use --e2e to run them."
                )
            )

        if run_e2e and "unit" in item.keywords:
            item.add_marker(
                pytest.mark.skip(reason="Unit tests skipped when --e2e flag is used.")
            )

        if run_e2e and "e2e" in item.keywords:
            if "openai" in item.nodeid.lower() and not openai_key_available:
                item.add_marker(
                    pytest.mark.skip(
                        reason="OPENAI_API_KEY environment variable not set"
                    )
                )
            if "huggingface" in item.nodeid.lower() and not huggingface_key_available:
                item.add_marker(
                    pytest.mark.skip(
                        reason="HUGGINGFACE_API_KEY environment variable not set"
                    )
                )


@pytest.fixture(autouse=True)
def suppress_warnings():
    """Suppress specific warnings during tests."""
    warnings.filterwarnings("ignore", category=DeprecationWarning)
    warnings.filterwarnings("ignore", category=PendingDeprecationWarning)


# ==================== Shared fixtures ====================


@pytest.fixture
def image_bytes():
    """Small fake image buffer; providers are mocked so content is irrelevant."""
    return b"fake-image-data"


@pytest.fixture
def encoded_image():
    return EncodedImage(payload="ZmFrZS1pbWFnZS1kYXRh", mime_type="image/jpeg", size_bytes=15)


@pytest.fixture
def openai_config():
    return ProviderConfig(
        provider="openai",
        model="gpt-4o-mini",
        api_key="sk-test-key-123456789",
        max_requests_per_minute=10,
        max_requests_per_hour=100,
        timeout=20,
    )


@pytest.fixture
def huggingface_config():
    return ProviderConfig(
        provider="huggingface",
        api_key="hf-test-key",
        max_requests_per_minute=10,
        max_requests_per_hour=100,
        timeout=20,
    )


@pytest.fixture
def fallback_source():
    """Fallback source that cycles sets in order, for reproducible assertions."""
    return FallbackCaptionSource(selector=round_robin())


@pytest.fixture
def upload_root(tmp_path):
    root = tmp_path / "uploads"
    root.mkdir()
    return root
