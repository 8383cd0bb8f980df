"""
Storage Layer.

This package handles data persistence, which for this client is the INI
configuration file.
"""

from .config_manager import ConfigManager

__all__ = ["ConfigManager"]
