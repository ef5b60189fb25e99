# Path: config/__init__.py
# Purpose: Package initializer for configuration module.
# Layer: config.
# Details: Exposes settings models and logging setup for application-wide configuration.

from .log_config import configure_logging
from .settings import AppSettings, ChatSettings, CropSettings, StorageSettings

__all__ = ["AppSettings", "ChatSettings", "CropSettings", "StorageSettings", "configure_logging"]
