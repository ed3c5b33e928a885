"""Configuration loading and validation for the setup scripts."""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

from dotenv import dotenv_values

from .console import print_error, print_warning

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
DEFAULT_VALIDATION_MODEL_ID = "us.anthropic.claude-3-5-haiku-20241022-v1:0"

TOKEN_VAR = "AWS_BEARER_TOKEN_BEDROCK"
REGION_VAR = "AWS_REGION"
USE_BEDROCK_VAR = "CLAUDE_CODE_USE_BEDROCK"

SAMPLE_ENV = f"""\
export {TOKEN_VAR}="your-token-here"
export {REGION_VAR}="{DEFAULT_REGION}"
export {USE_BEDROCK_VAR}="1"
"""


class ConfigurationError(Exception):
    """Configuration validation error."""

    pass


@dataclass
class SetupConfig:
    """Validated setup configuration."""

    env_file: Path
    bearer_token: str
    region: str = DEFAULT_REGION
    use_bedrock: str = "1"
    validation_model_id: str = DEFAULT_VALIDATION_MODEL_ID


def load_env_file(env_path: Path = Path(".env")) -> dict[str, str]:
    """Load configuration from .env file using python-dotenv."""
    if not env_path.is_file():
        raise ConfigurationError(f".env file not found at {env_path}")
    return {k: v for k, v in dotenv_values(env_path).items() if v is not None}


def validate_aws_region(region: str) -> None:
    """Validate AWS region format (e.g., us-east-1)."""
    pattern = r"^[a-z]{2}(-gov)?-[a-z]+-[0-9]+$"
    if not re.match(pattern, region):
        raise ConfigurationError(
            f"Invalid {REGION_VAR} format: {region} (expected format: us-east-1)"
        )


def mask_secret(value: str, visible: int = 20) -> str:
    """Show only the start of a secret."""
    return f"{value[:visible]}..."


def get_setup_config(
    env_file: Path = Path(".env"),
    token: str | None = None,
    region: str | None = None,
) -> SetupConfig:
    """
    Load and validate setup configuration.

    Explicit arguments win over the .env file, which wins over the
    process environment. The .env file is optional when a token is given.
    """
    if env_file.is_file() or token is None:
        env = load_env_file(env_file)
    else:
        env = {}

    def lookup(name: str) -> str:
        return (env.get(name) or os.environ.get(name, "")).strip()

    bearer_token = (token or lookup(TOKEN_VAR)).strip()
    aws_region = (region or lookup(REGION_VAR)).strip()
    use_bedrock = lookup(USE_BEDROCK_VAR)
    model_id = lookup("VALIDATION_MODEL_ID") or DEFAULT_VALIDATION_MODEL_ID

    if not aws_region:
        print_warning(f"{REGION_VAR} not set, defaulting to {DEFAULT_REGION}")
        aws_region = DEFAULT_REGION

    if not use_bedrock:
        print_warning(f"{USE_BEDROCK_VAR} not set, defaulting to 1")
        use_bedrock = "1"

    # Validate required values
    errors = []

    if not bearer_token:
        errors.append(f"{TOKEN_VAR} is not set in {env_file}")

    try:
        validate_aws_region(aws_region)
    except ConfigurationError as e:
        errors.append(str(e))

    if errors:
        for error in errors:
            print_error(error)
        raise ConfigurationError("Configuration validation failed")

    logger.debug("Loaded configuration from %s (region %s)", env_file, aws_region)

    return SetupConfig(
        env_file=env_file.resolve(),
        bearer_token=bearer_token,
        region=aws_region,
        use_bedrock=use_bedrock,
        validation_model_id=model_id,
    )


def export_to_process(config: SetupConfig) -> None:
    """Expose the Bedrock settings to child processes and AWS clients."""
    os.environ[TOKEN_VAR] = config.bearer_token
    os.environ[REGION_VAR] = config.region
    os.environ[USE_BEDROCK_VAR] = config.use_bedrock
