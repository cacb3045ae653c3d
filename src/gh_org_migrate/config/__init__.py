"""Configuration loading."""

from .config import Config, ConfigurationError

__all__ = ['Config', 'ConfigurationError']
