"""
Cross-platform path helpers for AccessGate.

Provides platform detection and the data/log directory layout used by the
settings file, the secret store and the log file.
"""

import os
import platform
from pathlib import Path


def get_platform() -> str:
    """
    Detect the current operating system platform.

    Returns:
        str: Platform identifier - 'windows', 'macos', or 'linux'
    """
    system = platform.system()
    if system == 'Windows':
        return 'windows'
    elif system == 'Darwin':
        return 'macos'
    else:
        return 'linux'


def get_data_dir() -> Path:
    """
    Get the AccessGate data directory for the current platform.

    Returns:
        Path: Data directory path
            - Windows: %APPDATA%\\accessgate
            - macOS/Linux: ~/.accessgate
    """
    if get_platform() == 'windows':
        appdata = os.environ.get('APPDATA')
        if appdata:
            return Path(appdata) / 'accessgate'
        # Fallback if APPDATA is not set
        return Path.home() / 'AppData' / 'Roaming' / 'accessgate'
    return Path.home() / '.accessgate'


def get_log_dir(data_dir: Path) -> Path:
    """Log directory below a data directory (data_dir/logs)"""
    return Path(data_dir) / 'logs'
