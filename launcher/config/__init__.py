"""Configuration for the launcher."""

from .settings import LauncherSettings, get_launcher_settings

__all__ = ["LauncherSettings", "get_launcher_settings"]
