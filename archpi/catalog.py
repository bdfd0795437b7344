import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from archpi.errors import ConfigError
from archpi.settings import CONFIG_DIR

logger = logging.getLogger("ArchPI")

DEFAULT_CATALOG = CONFIG_DIR / "programs.yaml"


class Catalog:
    """Read-only view over the YAML package catalog."""

    def __init__(self, config_path: Path = DEFAULT_CATALOG):
        self.config_path = config_path
        self._data: Dict = {}
        self.load()

    def load(self):
        if not self.config_path.exists():
            raise ConfigError(f"Package catalog not found: {self.config_path}")
        with open(self.config_path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Package catalog must be a mapping: {self.config_path}")
        self._data = data

    def _section(self, category: str, subcategory: Optional[str] = None):
        section = self._data.get(category)
        if subcategory is not None:
            section = section.get(subcategory) if isinstance(section, dict) else None
        if section is None:
            where = f"{category}/{subcategory}" if subcategory else category
            raise ConfigError(f"Missing catalog section: {where}")
        return section

    def get_packages(self, category: str, subcategory: Optional[str] = None) -> Tuple[str, ...]:
        target = self._section(category, subcategory)
        if isinstance(target, dict) and "packages" in target:
            target = target["packages"]
        if not isinstance(target, list):
            raise ConfigError(f"Catalog section {category}/{subcategory} is not a list")

        packages: List[str] = []
        for item in target:
            if isinstance(item, str):
                packages.append(item)
            elif isinstance(item, dict) and "name" in item:
                packages.append(item["name"])
            else:
                logger.warning(f"Ignoring malformed catalog entry in {category}/{subcategory}: {item!r}")
        return tuple(packages)

    def get_described(self, category: str, subcategory: Optional[str] = None) -> Tuple[Tuple[str, str], ...]:
        """Entries as (name, description) pairs; bare strings describe themselves."""
        result = []
        for item in self._section(category, subcategory):
            if isinstance(item, dict):
                result.append((item["name"], item.get("description", item["name"])))
            else:
                result.append((item, item))
        return tuple(result)

    def subcategories(self, category: str) -> Tuple[str, ...]:
        section = self._section(category)
        if not isinstance(section, dict):
            return ()
        return tuple(section)

    def get_mapping(self, category: str, subcategory: str) -> Dict[str, str]:
        section = self._section(category, subcategory)
        if not isinstance(section, dict):
            raise ConfigError(f"Catalog section {category}/{subcategory} is not a mapping")
        return {str(k): str(v) for k, v in section.items()}

    def menu_folders(self) -> Tuple[Tuple[str, Tuple[str, ...]], ...]:
        folders = []
        for item in self._section("gnome", "folders"):
            folders.append((item["name"], tuple(item["categories"])))
        return tuple(folders)
