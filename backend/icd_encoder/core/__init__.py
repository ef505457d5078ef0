"""Core application configuration and utilities."""

from icd_encoder.core.config import Settings, settings

__all__ = [
    # Config
    "Settings",
    "settings",
]
