"""nousflash configuration module."""

from nousflash.config.settings import (
    CycleSettings,
    LoggingSettings,
    LongTermSettings,
    ProviderSettings,
    ScoringSettings,
    Settings,
    ShortTermSettings,
    SocialSettings,
    StorageSettings,
)

__all__ = [
    "Settings",
    "ShortTermSettings",
    "ScoringSettings",
    "LongTermSettings",
    "CycleSettings",
    "StorageSettings",
    "ProviderSettings",
    "SocialSettings",
    "LoggingSettings",
]
