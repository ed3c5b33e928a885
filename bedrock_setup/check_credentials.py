#!/usr/bin/env python3
"""Check AWS Bedrock credentials and provide helpful feedback."""

import argparse
import sys
from pathlib import Path

from .lib.bedrock import credential_hints, validate_credentials
from .lib.config import SAMPLE_ENV, TOKEN_VAR, ConfigurationError, get_setup_config, mask_secret


def check_bedrock_credentials(env_file: Path, region: str | None = None) -> bool:
    """
    Check if the Bedrock bearer token is valid and print status.

    Args:
        env_file: .env file holding the token and region.
        region: Override for AWS_REGION.

    Returns:
        True if credentials are valid, False otherwise.
    """
    try:
        config = get_setup_config(env_file, region=region)
    except ConfigurationError as e:
        print(f"✗ {e}")
        if not env_file.is_file():
            print_missing_env_help(env_file)
        return False

    print(f"Using {TOKEN_VAR}: {mask_secret(config.bearer_token)}")
    print(f"Region: {config.region}")

    result = validate_credentials(config)
    if result.ok:
        print(f"✓ Bedrock connection successful (HTTP {result.status_code})")
        return True

    status = f"HTTP {result.status_code}" if result.status_code else result.error_code
    print(f"✗ Bedrock connection failed ({status})")
    if result.message:
        print(f"  {result.message}")
    print("")
    print("To fix this:")
    for i, hint in enumerate(credential_hints(result, config.region), start=1):
        print(f"  {i}. {hint}")
    print("")
    return False


def print_missing_env_help(env_file: Path) -> None:
    """Print help when the .env file doesn't exist."""
    print("")
    print(f"Create {env_file} with the following content:")
    print("")
    print(SAMPLE_ENV)


def main() -> int:
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(description="Check AWS Bedrock credentials")
    parser.add_argument(
        "env_file",
        nargs="?",
        default=".env",
        type=Path,
        help="Path to the .env file (default: .env)",
    )
    parser.add_argument("--region", help="Override AWS_REGION from the .env file")
    args = parser.parse_args()

    success = check_bedrock_credentials(args.env_file, region=args.region)
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
