"""Trust cache: the non-secret half of a persisted grant"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from accessgate.directive import is_absolute_url

logger = logging.getLogger(__name__)


class TrustCache:
    """Last accepted delegated URL, kept in the ordinary settings file"""

    def __init__(self, settings_path: Path, url_key: str = "storedTrustedURL"):
        self.settings_path = Path(settings_path)
        self.url_key = url_key

    def _load(self) -> Dict[str, Any]:
        if not self.settings_path.exists():
            return {}

        try:
            with open(self.settings_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            # ValueError covers JSONDecodeError and UnicodeDecodeError
            logger.warning(f"Failed to load settings, treating as empty: {e}")
            return {}

        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Any]) -> None:
        self.settings_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.settings_path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.settings_path)

    def read_cached_url(self) -> Optional[str]:
        """Cached URL, or None if never set or not an absolute URL"""
        value = self._load().get(self.url_key)
        if not isinstance(value, str) or not is_absolute_url(value):
            return None
        return value

    def write_cached_url(self, url: str) -> None:
        """Store url, preserving other keys in the settings file"""
        data = self._load()
        data[self.url_key] = url
        self._save(data)
        logger.debug(f"Cached trusted URL under {self.url_key}")
