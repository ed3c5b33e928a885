"""Tests for Bedrock credential validation."""

import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from bedrock_setup.lib.bedrock import (
    CredentialValidationError,
    ValidationResult,
    credential_hints,
    is_retryable_error,
    require_valid_credentials,
    validate_credentials,
)
from bedrock_setup.lib.config import SetupConfig

SUCCESS_RESPONSE = {
    "output": {"message": {"role": "assistant", "content": [{"text": "Hello! How can I help you today?"}]}},
    "stopReason": "end_turn",
    "ResponseMetadata": {"HTTPStatusCode": 200},
}


def client_error(code: str, status: int, message: str = "error") -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": message},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        "Converse",
    )


@pytest.fixture
def config():
    return SetupConfig(env_file=Path("/tmp/.env"), bearer_token="test-token", region="us-west-2")


@pytest.fixture
def mock_runtime_client():
    """Mock bedrock-runtime client."""
    mock_client = MagicMock()
    with patch("boto3.client", return_value=mock_client) as mock_factory:
        mock_client.factory = mock_factory
        yield mock_client


class TestValidateCredentials:
    """Tests for the validate_credentials function."""

    def test_success(self, config, mock_runtime_client):
        """Test a successful Converse call returns a preview."""
        mock_runtime_client.converse.return_value = SUCCESS_RESPONSE

        result = validate_credentials(config)

        assert result.ok
        assert result.status_code == 200
        assert result.preview == "Hello! How can I help you today?"
        mock_runtime_client.factory.assert_called_once_with("bedrock-runtime", region_name="us-west-2")
        kwargs = mock_runtime_client.converse.call_args.kwargs
        assert kwargs["modelId"] == config.validation_model_id
        assert kwargs["messages"][0]["content"] == [{"text": "Hello"}]

    def test_token_exported_for_client(self, config, mock_runtime_client):
        """Test the bearer token is visible to botocore."""
        mock_runtime_client.converse.return_value = SUCCESS_RESPONSE

        validate_credentials(config)

        assert os.environ["AWS_BEARER_TOKEN_BEDROCK"] == "test-token"

    def test_preview_truncated(self, config, mock_runtime_client):
        """Test long replies are cut to 200 characters."""
        response = {
            "output": {"message": {"content": [{"text": "x" * 500}]}},
            "ResponseMetadata": {"HTTPStatusCode": 200},
        }
        mock_runtime_client.converse.return_value = response

        assert len(validate_credentials(config).preview) == 200

    def test_auth_failure(self, config, mock_runtime_client):
        """Test an invalid token is reported with status and code."""
        mock_runtime_client.converse.side_effect = client_error(
            "UnrecognizedClientException", 403, "The security token included in the request is invalid."
        )

        result = validate_credentials(config)

        assert not result.ok
        assert result.status_code == 403
        assert result.error_code == "UnrecognizedClientException"
        assert "security token" in result.message
        mock_runtime_client.converse.assert_called_once()

    def test_throttling_retried(self, config, mock_runtime_client):
        """Test throttling is retried before succeeding."""
        mock_runtime_client.converse.side_effect = [
            client_error("ThrottlingException", 429),
            SUCCESS_RESPONSE,
        ]

        result = validate_credentials(config, min_wait_seconds=0, max_wait_seconds=0)

        assert result.ok
        assert mock_runtime_client.converse.call_count == 2

    def test_throttling_exhausted(self, config, mock_runtime_client):
        """Test persistent throttling is reported after the last attempt."""
        mock_runtime_client.converse.side_effect = client_error("ThrottlingException", 429)

        result = validate_credentials(config, max_attempts=2, min_wait_seconds=0, max_wait_seconds=0)

        assert not result.ok
        assert result.error_code == "ThrottlingException"
        assert mock_runtime_client.converse.call_count == 2

    def test_endpoint_unreachable(self, config, mock_runtime_client):
        """Test network failures are reported, not raised."""
        mock_runtime_client.converse.side_effect = EndpointConnectionError(
            endpoint_url="https://bedrock-runtime.us-west-2.amazonaws.com"
        )

        result = validate_credentials(config)

        assert not result.ok
        assert result.error_code == "EndpointConnectionError"


class TestRequireValidCredentials:
    """Tests for the require_valid_credentials function."""

    def test_raises_on_failure(self, config, mock_runtime_client):
        """Test a failed check raises CredentialValidationError."""
        mock_runtime_client.converse.side_effect = client_error("AccessDeniedException", 403)

        with pytest.raises(CredentialValidationError) as exc_info:
            require_valid_credentials(config)

        assert exc_info.value.result.status_code == 403


class TestHelpers:
    """Tests for error classification and hints."""

    def test_is_retryable_error(self):
        """Test only transient error codes are retried."""
        assert is_retryable_error(client_error("ThrottlingException", 429))
        assert not is_retryable_error(client_error("AccessDeniedException", 403))
        assert not is_retryable_error(RuntimeError("boom"))

    def test_auth_hints(self):
        """Test auth failures point at the token."""
        result = ValidationResult(ok=False, status_code=403, error_code="UnrecognizedClientException")
        hints = credential_hints(result, "us-east-1")
        assert any("AWS_BEARER_TOKEN_BEDROCK" in hint for hint in hints)
        assert any("expired" in hint for hint in hints)

    def test_model_access_hints(self):
        """Test validation errors point at model access."""
        result = ValidationResult(ok=False, status_code=400, error_code="ValidationException")
        hints = credential_hints(result, "us-east-1")
        assert any("model access" in hint for hint in hints)

    def test_network_hints(self):
        """Test connection errors point at the network and region."""
        result = ValidationResult(ok=False, error_code="EndpointConnectionError")
        hints = credential_hints(result, "xx-nowhere-1")
        assert any("internet" in hint for hint in hints)
        assert any("xx-nowhere-1" in hint for hint in hints)
