"""Pydantic payload models for external configuration."""
