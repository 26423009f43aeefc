"""
Config manager - reads the farm settings and fills in defaults
"""
from pathlib import Path
from typing import Any, Dict, Optional


class ConfigManager:
    """
    Config manager

    Holds a flat configuration: {"key": value, ...}
    Construct one per application and pass it to whoever needs it.

    Usage:
        config = ConfigManager({"fast_death_enabled": True})
        config.effective_decay_multiplier  # 720.0
    """

    # Defaults (flat structure)
    DEFAULT_CONFIG = {
        "initial_love_energy": 0,
        "starter_animal": "chicken",
        "decay_speed_multiplier": 1.0,
        "fast_death_enabled": False,
        "fast_death_multiplier": 720.0,  # 24h drains in ~2 minutes
        "refresh_interval_seconds": 30,
        "data_root": None,
    }

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        self._config: Dict[str, Any] = self.DEFAULT_CONFIG.copy()
        self.load_config(overrides)

    def load_config(self, config: Optional[Dict[str, Any]]) -> None:
        """
        Merge configuration values

        Args:
            config: flat configuration dict, unknown keys are kept as-is
        """
        if config:
            self._config.update(config)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a config value

        Args:
            key: config key
            default: value returned when the key is missing

        Returns:
            the config value
        """
        return self._config.get(key, default)

    @property
    def initial_love_energy(self) -> int:
        """Love energy a new room starts with"""
        return int(self._config.get("initial_love_energy", 0))

    @property
    def starter_animal(self) -> str:
        """Species every farm starts (and restarts) with"""
        return self._config.get("starter_animal", "chicken")

    @property
    def refresh_interval_seconds(self) -> float:
        """How often the ticker refreshes animal health"""
        return float(self._config.get("refresh_interval_seconds", 30))

    @property
    def effective_decay_multiplier(self) -> float:
        """Decay multiplier, taking the fast-death test switch into account"""
        if self._config.get("fast_death_enabled"):
            return float(self._config.get("fast_death_multiplier", 720.0))
        return float(self._config.get("decay_speed_multiplier", 1.0))

    @property
    def data_root(self) -> Optional[Path]:
        """Directory the JSON store writes to, None for the default"""
        root = self._config.get("data_root")
        return Path(root) if root else None
