"""Claude Code + AWS Bedrock developer machine setup."""

__version__ = "0.1.0"
