"""Shared infrastructure used across the secrets agent."""
