"""
Settings shortcut

    from stockledger.core.config import settings
"""
from stockledger.core.settings import Settings, get_settings

settings: Settings = get_settings()

__all__ = ["settings", "Settings", "get_settings"]
