"""
Configuration module for the catalog search service.

This module provides centralized configuration management using pydantic-settings.
All environment variables and configuration values should be accessed through this module.

Usage:
    from config import get_settings

    settings = get_settings()
    supabase_url = settings.supabase_url
    is_dev = settings.is_development
"""

from config.settings import Settings, get_settings, get_settings_for_testing

__all__ = ["Settings", "get_settings", "get_settings_for_testing"]
