"""Configuration loader for the pronunciation engine"""

import yaml
from pathlib import Path
from typing import Any, Dict, List
import os


# Project root: pronunciation_engine/config/config_loader.py -> repo root
PROJECT_ROOT = Path(__file__).resolve().parents[2]


class Config:
    """Configuration manager for the pronunciation engine"""

    def __init__(self, config_path: str = None):
        if config_path is None:
            config_path = self._default_path()

        self.config_path = Path(config_path)
        self._config = self._load_config()

    @staticmethod
    def _default_path() -> str:
        """Resolve the config file from the working directory, then the project root"""
        env = os.getenv('PRONUNCIATION_ENV', 'development')
        candidates: List[Path] = []
        for base in (Path.cwd(), PROJECT_ROOT):
            # Environment-specific config wins over the default one
            candidates.append(base / "config" / f"config.{env}.yaml")
            candidates.append(base / "config" / "config.yaml")

        for candidate in candidates:
            if candidate.exists():
                return str(candidate)
        return "config/config.yaml"

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file"""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        with open(self.config_path, 'r') as f:
            return yaml.safe_load(f) or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation

        Args:
            key: Configuration key in dot notation (e.g., 'fusion.penalty_magnitude')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split('.')
        value = self._config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default

    def __getitem__(self, key: str) -> Any:
        """Allow dictionary-style access"""
        return self.get(key)

    def validate(self) -> None:
        """Validate configuration values"""
        for group in ('fusion.local_weights', 'fusion.comparison_weights', 'detector.quality_weights'):
            weights = self.get(group)
            if weights is None:
                continue
            total = sum(float(w) for w in weights.values())
            if abs(total - 1.0) > 1e-6:
                raise ValueError(f"Invalid {group}: weights sum to {total}, must sum to 1")

        for key in ('fusion.penalty_threshold', 'fusion.cap_threshold',
                    'fusion.merge_cap_threshold', 'detector.acoustic.detection_cutoff'):
            value = self.get(key)
            if value is not None and not 0 <= value <= 1:
                raise ValueError(f"Invalid {key}: {value}, must be in [0, 1]")

        timeout = self.get('remote.attempt_timeout')
        if timeout is not None and timeout <= 0:
            raise ValueError(f"Invalid remote.attempt_timeout: {timeout}, must be positive")


# Global config instance
config = Config()
