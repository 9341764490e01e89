"""
Environment probing for the control request

The engine and client only see the EnvironmentInfoProvider interface, so
tests can supply fixed values without touching the OS.
"""

import locale
import os
import platform
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Tuple

DEFAULT_LANGUAGE = "en"

# Checked in POSIX precedence order
LOCALE_ENV_VARS = ("LC_ALL", "LC_MESSAGES", "LANG", "LANGUAGE")

_OS_NAMES = {
    "Darwin": "macOS",
    "Windows": "Windows",
    "Linux": "Linux",
}


class EnvironmentInfoProvider(ABC):
    """Device and locale metadata sent with the control request"""

    @abstractmethod
    def os_description(self) -> str:
        """OS name and version, e.g. 'Linux 6.1.0'"""

    @abstractmethod
    def language_code(self) -> str:
        """Two-letter lowercase language of the first preferred locale"""

    @abstractmethod
    def region_code(self) -> Optional[str]:
        """Two-letter region of the current locale, if it has one"""

    @abstractmethod
    def device_model(self) -> str:
        """Opaque hardware identifier"""


def split_locale(tag: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Split a locale tag into (language, region)

    Accepts POSIX ('en_US.UTF-8', 'de_DE@euro') and BCP 47 ('pt-BR') forms.
    """
    base = tag.split(".", 1)[0].split("@", 1)[0]
    if not base or base in ("C", "POSIX"):
        return None, None

    parts = base.replace("_", "-").split("-")
    language = parts[0].lower() or None
    region = None
    for part in parts[1:]:
        if len(part) == 2 and part.isalpha():
            region = part.upper()
            break
    return language, region


class SystemEnvironmentInfo(EnvironmentInfoProvider):
    """Reads metadata from the running interpreter's platform and locale"""

    def _preferred_locales(self) -> List[str]:
        tags: List[str] = []
        for name in LOCALE_ENV_VARS:
            value = os.environ.get(name)
            if value:
                # LANGUAGE is a colon separated priority list
                tags.extend(t for t in value.split(":") if t)
        current = locale.getlocale()[0]
        if current:
            tags.append(current)
        return tags

    def os_description(self) -> str:
        system = platform.system() or "Unknown"
        if system == "Darwin":
            version = platform.mac_ver()[0] or platform.release()
        else:
            version = platform.release()
        return f"{_OS_NAMES.get(system, system)} {version}".strip()

    def language_code(self) -> str:
        for tag in self._preferred_locales():
            language, _ = split_locale(tag)
            if language and len(language) == 2 and language.isalpha():
                return language
        return DEFAULT_LANGUAGE

    def region_code(self) -> Optional[str]:
        for tag in self._preferred_locales():
            language, region = split_locale(tag)
            if language:
                return region
        return None

    def device_model(self) -> str:
        return platform.machine() or "unknown"


@dataclass(frozen=True)
class StaticEnvironmentInfo(EnvironmentInfoProvider):
    """Fixed metadata, for tests and embedding hosts that probe themselves"""
    os: str = "Linux 6.1"
    language: str = DEFAULT_LANGUAGE
    region: Optional[str] = None
    model: str = "x86_64"

    def os_description(self) -> str:
        return self.os

    def language_code(self) -> str:
        return self.language

    def region_code(self) -> Optional[str]:
        return self.region

    def device_model(self) -> str:
        return self.model
