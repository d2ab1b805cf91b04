"""YAML configuration loading with include directive support."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import yaml
from platformdirs import user_config_dir
from pydantic_settings import BaseSettings, YamlConfigSettingsSource

from mergemend.core.log import logger

DEFAULTS_FILE = Path(__file__).parent.parent / "defaults" / "default.yaml"
PROJECT_FILE = "mergemend.yaml"


def cli_includes(argv: list[str]) -> list[str]:
    """Collect the values of every ``--include FILE`` pair in argv."""
    includes = []
    i = 1
    while i < len(argv):
        if argv[i] == "--include" and i + 1 < len(argv):
            includes.append(argv[i + 1])
            i += 1
        i += 1
    return includes


class YamlWithIncludesSettingsSource(YamlConfigSettingsSource):
    """YAML settings source layering several files.

    Deep merges, lowest priority first: package defaults, user config
    (platform config dir), project config (./mergemend.yaml), then any
    ``--include`` files from the command line. Each file may itself
    carry an ``include:`` list, resolved relative to that file.
    """

    def __init__(self, settings_cls: type[BaseSettings], yaml_file=None):
        includes = cli_includes(sys.argv)
        super().__init__(settings_cls, includes or yaml_file)

    def _read_files(self, files, deep_merge: bool = False):
        """Load and deep merge every configuration layer that exists.

        Layers are always deep merged, whatever deep_merge says.
        """
        files_to_load = [
            DEFAULTS_FILE,
            Path(user_config_dir("mergemend", appauthor=False))
            / PROJECT_FILE,
            Path(PROJECT_FILE),
        ]
        if files:
            if isinstance(files, (str, os.PathLike)):
                files = [files]
            files_to_load.extend(Path(f).expanduser() for f in files)

        result = {}
        for file_path in files_to_load:
            if not file_path.is_file():
                logger.debug(
                    "Configuration file not found (skipping)",
                    file=str(file_path),
                )
                continue
            data = self._load_file_recursive(file_path, set())
            result = self._deep_merge(result, data)

        return result

    def _load_file_recursive(
        self, filepath: Path, visited: set[Path]
    ) -> dict:
        """Load one file with its include: directives resolved.

        Raises:
            ValueError: If an include cycle is found
        """
        if filepath in visited:
            raise ValueError(f"Circular include: {filepath}")
        visited.add(filepath)

        with open(filepath, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        includes = data.pop("include", None) or []
        if isinstance(includes, str):
            includes = [includes]

        for inc in includes:
            inc_path = Path(inc)
            if not inc_path.is_absolute():
                inc_path = (filepath.parent / inc_path).resolve()
            inc_data = self._load_file_recursive(inc_path, visited.copy())
            data = self._deep_merge(inc_data, data)

        return data

    @staticmethod
    def _deep_merge(base: dict, override: dict) -> dict:
        """Return base with override merged in; override wins."""
        result = base.copy()
        for key, value in override.items():
            if isinstance(result.get(key), dict) and isinstance(value, dict):
                result[key] = YamlWithIncludesSettingsSource._deep_merge(
                    result[key], value
                )
            else:
                result[key] = value
        return result
