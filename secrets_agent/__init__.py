"""Local caching agent for AWS Secrets Manager."""

__version__ = "0.1.0"
