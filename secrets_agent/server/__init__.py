"""Local HTTP listener serving cached secrets."""

from secrets_agent.server.main import create_app, main

__all__ = ["create_app", "main"]
