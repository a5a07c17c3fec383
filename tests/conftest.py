"""Pytest configuration and fixtures."""

import os

import pytest

_TEST_ENV = {
    "SUPABASE_URL": "https://test.supabase.co",
    "SUPABASE_SERVICE_ROLE_KEY": "test-key",
    "OPENAI_API_KEY": "test-openai-key",
    "PERPLEXITY_API_KEY": "test-perplexity-key",
    "KB_ENV": "test",
}

# Set before test modules import anything that reads settings
for _key, _value in _TEST_ENV.items():
    os.environ.setdefault(_key, _value)


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    for key, value in _TEST_ENV.items():
        os.environ[key] = value


@pytest.fixture
def settings():
    """Settings with test keys and no real delays."""
    from kb_builder.core.config import Settings

    return Settings(
        SUPABASE_URL="https://test.supabase.co",
        SUPABASE_SERVICE_ROLE_KEY="test-key",
        OPENAI_API_KEY="test-openai-key",
        PERPLEXITY_API_KEY="test-perplexity-key",
        ANTHROPIC_API_KEY="test-anthropic-key",
        KB_ENV="test",
    )


@pytest.fixture
def store():
    from tests.fakes.fake_kb_store import FakeKBStore

    return FakeKBStore()
