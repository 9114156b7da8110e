"""Settings loader for the label engine (YAML) plus logging setup."""
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "NUTRILABEL_CONFIG"
DEFAULT_CONFIG_PATH = "config/label_settings.yaml"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class LabelSettings:
    """Tunable engine settings.

    Attributes:
        tolerance_percent: Relative discrepancy tolerance, in percent
        tolerance_floor: Absolute discrepancy tolerance
        default_grams_per_unit: Estimate used when no unit conversion matches
        serving_size_g: Reference serving weight for servings per container
        usda_page_size: Results requested per USDA search
        log_level: Root logging level name
    """
    tolerance_percent: float = 1.0
    tolerance_floor: float = 1.0
    default_grams_per_unit: float = 50.0
    serving_size_g: float = 100.0
    usda_page_size: int = 25
    log_level: str = "WARNING"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LabelSettings":
        """Build settings from a mapping; missing keys keep their defaults.

        Raises:
            ValueError: If a key is unknown or a value has the wrong type
        """
        if not data:
            return cls()
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(unknown)}")

        values: Dict[str, Any] = {}
        for key, raw in data.items():
            default = getattr(cls, key)
            try:
                values[key] = type(default)(raw)
            except (TypeError, ValueError):
                raise ValueError(f"Setting '{key}' must be {type(default).__name__}, got {raw!r}")

        settings = cls(**values)
        settings.validate()
        return settings

    def validate(self) -> None:
        """Raise ValueError for settings the engine cannot run with."""
        for name in ("default_grams_per_unit", "serving_size_g"):
            if getattr(self, name) <= 0:
                raise ValueError(f"Setting '{name}' must be positive")
        for name in ("tolerance_percent", "tolerance_floor"):
            if getattr(self, name) < 0:
                raise ValueError(f"Setting '{name}' cannot be negative")
        if self.usda_page_size <= 0:
            raise ValueError("Setting 'usda_page_size' must be positive")


class SettingsLoader:
    """Loader for label settings from YAML."""

    def __init__(self, yaml_path: Union[str, Path]):
        """Initialize settings loader from YAML file.

        Args:
            yaml_path: Path to YAML file containing settings
        """
        self.yaml_path = Path(yaml_path)

    def load(self) -> LabelSettings:
        """Load settings from the YAML file.

        Returns:
            LabelSettings object

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            ValueError: If the file holds unknown keys or bad values
        """
        with open(self.yaml_path, "r") as f:
            data = yaml.safe_load(f)

        if data is not None and not isinstance(data, dict):
            raise ValueError(f"{self.yaml_path} must contain a mapping")
        return LabelSettings.from_dict(data)


def load_settings(path: Optional[Union[str, Path]] = None) -> LabelSettings:
    """Load settings from path, $NUTRILABEL_CONFIG, or the default location.

    An explicit path must exist. The default location is optional: when it
    is missing, built-in defaults are used.
    """
    explicit = path or os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        return SettingsLoader(explicit).load()

    default_path = Path(DEFAULT_CONFIG_PATH)
    if default_path.exists():
        return SettingsLoader(default_path).load()

    logger.debug("No settings file at %s; using defaults", default_path)
    return LabelSettings()


def configure_logging(level: Union[str, int] = "WARNING") -> None:
    """Configure root logging for CLI and server entry points."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)
