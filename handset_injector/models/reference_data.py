"""Static reference data shared by simulated entities.

Top-app usage lists and per-series application version maps are read once
by the caller and handed to the entities that report them, so entities
never touch the filesystem themselves.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

TOP_APPS_FILE = "top_apps.json"

# Application version files by device series; unknown series fall back to 92.
APP_VERSION_FILES = {
    95: "app_versions_versity.json",
    97: "app_versions_x1.json",
    92: "app_versions_orion.json",
}


@dataclass
class ReferenceData:
    """Loaded reference data.

    Attributes:
        top_apps: Battery "top apps" usage entries
        app_versions: Application version maps keyed by device series
    """

    top_apps: list[dict[str, Any]] = field(default_factory=list)
    app_versions: dict[int, dict[str, str]] = field(default_factory=dict)

    def app_versions_for(self, series: int) -> dict[str, str]:
        """Default application versions for a device series."""
        if series in self.app_versions:
            return dict(self.app_versions[series])
        return dict(self.app_versions.get(92, {}))

    @classmethod
    def from_directory(cls, directory: Path) -> "ReferenceData":
        """Load reference data files from a directory.

        Missing or malformed files are logged and leave the corresponding
        entry empty.
        """
        directory = Path(directory)
        top_apps = _read_json(directory / TOP_APPS_FILE, default=[])

        app_versions = {}
        for series, filename in APP_VERSION_FILES.items():
            versions = _read_json(directory / filename, default={})
            if versions:
                app_versions[series] = versions

        return cls(top_apps=top_apps, app_versions=app_versions)


def _read_json(path: Path, default: Any) -> Any:
    try:
        with open(path) as f:
            return json.load(f)
    except FileNotFoundError:
        logger.error("Could not load file in the path %s: file not found", path)
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Could not load file in the path %s: %s", path, e)
    return default
