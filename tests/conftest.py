"""Pytest fixtures for setup script tests."""

import os
from unittest.mock import patch

import pytest

BEDROCK_ENV_VARS = (
    "AWS_BEARER_TOKEN_BEDROCK",
    "AWS_REGION",
    "CLAUDE_CODE_USE_BEDROCK",
    "VALIDATION_MODEL_ID",
    "NVM_DIR",
)


@pytest.fixture(autouse=True)
def clean_env():
    """Isolate tests from Bedrock variables in the real environment."""
    with patch.dict(os.environ):
        for name in BEDROCK_ENV_VARS:
            os.environ.pop(name, None)
        yield


@pytest.fixture
def home(tmp_path, monkeypatch):
    """A throwaway home directory."""
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    monkeypatch.setenv("HOME", str(home_dir))
    return home_dir


@pytest.fixture
def env_file(tmp_path):
    """A .env file with valid-looking credentials."""
    path = tmp_path / ".env"
    path.write_text(
        'export AWS_BEARER_TOKEN_BEDROCK="bedrock-api-key-test-token-123456"\n'
        'export AWS_REGION="us-west-2"\n'
        'export CLAUDE_CODE_USE_BEDROCK="1"\n'
    )
    return path
