"""Directory package — remote directory operations and tenant setting toggles."""

from .service import DirectoryService
from .settings import DirectorySettingError, SettingChange, apply_directory_setting

__all__ = [
    "DirectoryService",
    "DirectorySettingError",
    "SettingChange",
    "apply_directory_setting",
]
