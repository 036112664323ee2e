"""Configuration management module."""

from .loader import LogStreamConfig, find_config_file, load_config, save_config

__all__ = ["LogStreamConfig", "load_config", "save_config", "find_config_file"]
