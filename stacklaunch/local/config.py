import json
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional

import stacklaunch.settings as default_settings
from stacklaunch.local.app_process import ServiceDescriptor, get_executable_path

log = logging.getLogger(__name__)


class MergedSettings:
    """
    A singleton class that merges default settings with JSON/env overrides.

    This class provides a unified, attribute-based access point for all
    supervisor configuration. It follows a clear precedence:
    1. Base values from `settings.py`.
    2. Overrides from `.env` file (handled by `python-dotenv` in settings.py).
    3. Overrides from `overrides.json` for settings in `MODIFIABLE_SETTINGS`.
    """

    def __init__(self, overrides_path: Optional[Path] = None) -> None:
        """Initializes the settings object by loading defaults and overrides."""
        self._load_defaults()
        if overrides_path is not None:
            self.OVERRIDES_JSON_PATH = Path(overrides_path)
        self._load_overrides()

    def _load_defaults(self) -> None:
        """
        Loads all uppercase attributes from the settings.py module as defaults.
        """
        for key in dir(default_settings):
            if key.isupper():
                setattr(self, key, getattr(default_settings, key))

    def _load_overrides(self) -> None:
        """
        Loads and applies settings from the `overrides.json` file.

        It will only apply overrides for keys that are explicitly listed in
        the `MODIFIABLE_SETTINGS` set in `settings.py`.
        """
        if not self.OVERRIDES_JSON_PATH.exists():
            return

        try:
            with self.OVERRIDES_JSON_PATH.open('r') as f:
                overrides = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            log.error(f"Failed to load or parse overrides file '{self.OVERRIDES_JSON_PATH}': {e}")
            return

        if not isinstance(overrides, dict):
            log.error(f"Overrides file '{self.OVERRIDES_JSON_PATH}' must contain a JSON object. Ignoring.")
            return

        log.info(f"Loading runtime configuration overrides from {self.OVERRIDES_JSON_PATH}")
        for key, value in overrides.items():
            if not hasattr(self, key):
                log.warning(f"Override setting '{key}' not found in default settings. Ignoring.")
                continue
            if key not in self.MODIFIABLE_SETTINGS:
                log.warning(f"Attempted to override non-modifiable setting '{key}'. Ignoring.")
                continue

            original_value = getattr(self, key)
            if isinstance(original_value, Path):
                setattr(self, key, Path(value))
            else:
                setattr(self, key, value)
            log.debug(f"Overridden setting: {key} = {value}")

    def get(self, item: str, default: Any = None) -> Any:
        """Provides dictionary-like access to settings with a default value."""
        return getattr(self, item, default)

    def broker_executable(self) -> Path:
        """Returns the platform-aware path of the NATS server executable."""
        return get_executable_path(self.NATS_EXECUTABLE_PATH)

    def broker_download_url(self) -> str:
        """Returns the release archive URL for the configured NATS version and platform."""
        return self.NATS_URL_TEMPLATE.format(version=self.NATS_VERSION, platform=self.NATS_PLATFORM)

    def load_service_descriptors(self) -> List[ServiceDescriptor]:
        """
        Returns the service stack to launch.

        Reads `services.json` (a JSON list of service objects) when it exists,
        falling back to `DEFAULT_SERVICES`. A broker entry without a command
        runs the provisioned NATS executable. Entries that do not describe a
        valid service are logged and skipped.

        :return list: The descriptors in launch order.
        """
        raw_services: List[Dict[str, Any]] = self.DEFAULT_SERVICES
        services_path = Path(self.SERVICES_JSON_PATH)

        if services_path.exists():
            try:
                loaded = json.loads(services_path.read_text())
                if not isinstance(loaded, list):
                    raise ValueError("expected a JSON list of service objects")
                raw_services = loaded
                log.info(f"Loaded {len(loaded)} service definitions from {services_path}")
            except (json.JSONDecodeError, IOError, ValueError) as e:
                log.error(f"Failed to load service definitions from '{services_path}': {e}. Using defaults.")

        descriptors = []
        for position, entry in enumerate(raw_services):
            try:
                entry = dict(entry)
                if entry.get("role") == "broker" and not entry.get("command"):
                    entry["command"] = str(self.broker_executable())
                descriptors.append(ServiceDescriptor.from_dict(entry, self.BASE_DIR))
            except (TypeError, ValueError) as e:
                log.error(f"Ignoring service definition #{position + 1} in '{services_path}': {e}")
        return descriptors

# Create a singleton instance to be imported by other modules
effective_settings = MergedSettings()
