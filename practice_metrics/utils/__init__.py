"""Utility modules for the dashboard pipeline."""

from .logger import setup_logging
from .config_manager import ConfigManager

__all__ = ['setup_logging', 'ConfigManager']
