"""Configuration for the secrets agent."""

from secrets_agent.config.settings import AgentSettings, get_settings

__all__ = ["AgentSettings", "get_settings"]
