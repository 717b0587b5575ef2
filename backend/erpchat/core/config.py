"""
Application Configuration Management
Re-exports the centralized config_manager settings
"""

from .config_manager import settings, get_settings, AppSettings as Settings

__all__ = ["settings", "get_settings", "Settings"]
