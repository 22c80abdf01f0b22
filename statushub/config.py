"""INI-backed configuration organised as sections of string values."""

from __future__ import annotations

import configparser
import logging
import threading
from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.ini"


class SectionInfo(Mapping):
    """Read-only key/value pairs of one section; missing keys read as ''."""

    def __init__(self, data: Mapping[str, str] | None = None) -> None:
        self._data = MappingProxyType(dict(sorted((data or {}).items())))

    def get_value(self, key: str) -> str:
        """Return the value for ``key`` or an empty string."""
        return self._data.get(key, "")

    def __getitem__(self, key: str) -> str:
        return self.get_value(key)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"SectionInfo({dict(self._data)!r})"


class ConfigMgr:
    """All sections of a configuration file, looked up by section name."""

    _instance: ConfigMgr | None = None
    _instance_lock = threading.Lock()

    def __init__(self, sections: Mapping[str, Mapping[str, str]]) -> None:
        self._sections = {
            name: SectionInfo(values) for name, values in sorted(sections.items())
        }

    @staticmethod
    def _parse(text: str, source: str) -> dict[str, dict[str, str]]:
        parser = configparser.ConfigParser(interpolation=None, strict=True)
        parser.optionxform = str  # keys are case-sensitive
        parser.read_string(text, source=source)
        return {name: dict(parser[name]) for name in parser.sections()}

    @classmethod
    def from_string(cls, text: str) -> ConfigMgr:
        """Build a configuration from INI text."""
        return cls(cls._parse(text, "<string>"))

    @classmethod
    def from_file(cls, path: str | Path) -> ConfigMgr:
        """Build a configuration from an INI file; a missing file raises."""
        path = Path(path)
        logger.info("Config path: %s", path)
        text = path.read_text(encoding="utf-8")
        config = cls(cls._parse(text, str(path)))
        for name, section in config._sections.items():
            logger.debug("[%s]", name)
            for key, value in section.items():
                logger.debug("%s=%s", key, value)
        return config

    @classmethod
    def instance(cls) -> ConfigMgr:
        """Return the shared configuration, loaded once from ./config.ini."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls.from_file(Path.cwd() / CONFIG_FILE_NAME)
            return cls._instance

    def get_value(self, section: str, key: str) -> str:
        """Return one value, or '' when the section or key is absent."""
        return self[section].get_value(key)

    def __getitem__(self, section: str) -> SectionInfo:
        return self._sections.get(section, SectionInfo())

    def sections(self) -> list[str]:
        """Return the section names in sorted order."""
        return list(self._sections)