"""Settings for LexiLens."""

from .loader import get_settings, load_settings, reset_settings, save_settings
from .models import DictItem, Settings

__all__ = [
    "DictItem",
    "Settings",
    "get_settings",
    "load_settings",
    "reset_settings",
    "save_settings",
]
