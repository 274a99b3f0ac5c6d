"""Configuration management with Pydantic Settings."""

from src.config.config_loader import load_projects
from src.config.settings import DashboardSettings, clear_settings_cache, get_settings

__all__ = [
    "DashboardSettings",
    "clear_settings_cache",
    "get_settings",
    "load_projects",
]
