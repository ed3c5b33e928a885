"""
Bedrock credential validation.

Sends a single short Converse request with bearer-token auth before anything
is installed, so a bad token or region fails fast. Transient throttling is
retried with exponential backoff.
"""

import logging
import os
from dataclasses import dataclass

import boto3
from botocore.exceptions import BotoCoreError, ClientError, EndpointConnectionError
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .config import TOKEN_VAR, SetupConfig

logger = logging.getLogger(__name__)

# Error codes worth retrying before reporting failure
RETRYABLE_ERROR_CODES = {
    "ThrottlingException",
    "ServiceUnavailableException",
    "ServiceUnavailable",
    "InternalServerException",
    "ModelNotReadyException",
}

AUTH_ERROR_CODES = {
    "UnrecognizedClientException",
    "AccessDeniedException",
    "ExpiredTokenException",
    "InvalidSignatureException",
    "UnauthorizedException",
}

PREVIEW_LENGTH = 200


class CredentialValidationError(Exception):
    """Bedrock rejected the configured credentials."""

    def __init__(self, result: "ValidationResult"):
        self.result = result
        super().__init__(result.message)


@dataclass
class ValidationResult:
    """Outcome of a credential check."""

    ok: bool
    status_code: int | None = None
    error_code: str | None = None
    message: str = ""
    preview: str = ""


def is_retryable_error(exception: BaseException) -> bool:
    """Check if exception should trigger a retry."""
    if isinstance(exception, ClientError):
        error_code = exception.response.get("Error", {}).get("Code", "")
        return error_code in RETRYABLE_ERROR_CODES
    return False


def get_runtime_client(region: str):
    """Create a Bedrock Runtime client for the region."""
    return boto3.client("bedrock-runtime", region_name=region)


def _extract_text(response: dict) -> str:
    content = response.get("output", {}).get("message", {}).get("content", [])
    return "".join(part.get("text", "") for part in content)


def validate_credentials(
    config: SetupConfig,
    max_attempts: int = 3,
    min_wait_seconds: float = 1.0,
    max_wait_seconds: float = 10.0,
) -> ValidationResult:
    """
    Check the bearer token by sending "Hello" to the validation model.

    Returns:
        ValidationResult with ok=True and a reply preview, or ok=False with
        the HTTP status and AWS error code when Bedrock rejected the call.
    """
    # botocore picks up bearer-token auth for Bedrock from the environment
    os.environ[TOKEN_VAR] = config.bearer_token
    client = get_runtime_client(config.region)

    @retry(
        retry=retry_if_exception(is_retryable_error),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait_seconds, max=max_wait_seconds),
        reraise=True,
    )
    def _converse():
        return client.converse(
            modelId=config.validation_model_id,
            messages=[{"role": "user", "content": [{"text": "Hello"}]}],
        )

    logger.info(
        "Validating Bedrock credentials in %s with %s",
        config.region,
        config.validation_model_id,
    )

    try:
        response = _converse()
    except ClientError as e:
        error = e.response.get("Error", {})
        status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        logger.warning("Bedrock validation failed: %s (HTTP %s)", error.get("Code"), status)
        return ValidationResult(
            ok=False,
            status_code=status,
            error_code=error.get("Code"),
            message=error.get("Message", str(e)),
        )
    except EndpointConnectionError as e:
        logger.warning("Bedrock endpoint unreachable: %s", e)
        return ValidationResult(ok=False, error_code="EndpointConnectionError", message=str(e))
    except BotoCoreError as e:
        logger.warning("Bedrock client error: %s", e)
        return ValidationResult(ok=False, error_code=type(e).__name__, message=str(e))

    status = response.get("ResponseMetadata", {}).get("HTTPStatusCode", 200)
    return ValidationResult(
        ok=True,
        status_code=status,
        message="Connection successful",
        preview=_extract_text(response)[:PREVIEW_LENGTH],
    )


def require_valid_credentials(config: SetupConfig) -> ValidationResult:
    """
    Validate credentials, raising when Bedrock rejects them.

    Raises:
        CredentialValidationError: the check did not succeed.
    """
    result = validate_credentials(config)
    if not result.ok:
        raise CredentialValidationError(result)
    return result


def credential_hints(result: ValidationResult, region: str) -> list[str]:
    """Remediation steps for a failed validation."""
    if result.error_code in AUTH_ERROR_CODES or result.status_code in (401, 403):
        return [
            f"Verify {TOKEN_VAR} is correct",
            "Ensure the token hasn't expired",
            f"Check that the token was issued for {region}",
        ]
    if result.error_code == "ValidationException" or result.status_code == 400:
        return [
            "Check that model access is enabled for Claude in the Bedrock console",
            f"Check that AWS_REGION ({region}) supports the validation model",
        ]
    if result.error_code == "EndpointConnectionError":
        return [
            "Check your internet connection",
            f"Check that AWS_REGION ({region}) is a valid Bedrock region",
        ]
    if result.error_code in RETRYABLE_ERROR_CODES:
        return ["Bedrock is throttling or unavailable, wait a minute and try again"]
    return [
        f"Verify {TOKEN_VAR} is correct",
        f"Check that AWS_REGION ({region}) is valid",
    ]
