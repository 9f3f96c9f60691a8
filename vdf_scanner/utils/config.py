import os
import yaml
from typing import Any, Dict
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()


class Config:
    def __init__(self, config_path: str = None):
        self.config_path = config_path or os.getenv('VDF_CONFIG_PATH', 'config.yaml')
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        path = Path(self.config_path)
        if not path.is_file():
            return {}
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}

    def get(self, key: str, default: Any = None) -> Any:
        keys = key.split('.')
        value = self._config
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
            if value is None:
                return default
        return value

    @property
    def timezone(self) -> str:
        return self.get('timezone', 'America/New_York')

    @property
    def log_dir(self) -> str:
        return self.get('logging.dir', 'logs')

    @property
    def log_level(self) -> str:
        return self.get('logging.level', 'INFO')

    @property
    def log_to_file(self) -> bool:
        return bool(self.get('logging.file_enabled', False))

    @property
    def vdf_overrides(self) -> Dict[str, Any]:
        """Секция `vdf:` (переопределения VDF_DEFAULT_CONFIG)"""
        overrides = self.get('vdf', {})
        if not isinstance(overrides, dict):
            raise ValueError(f"{self.config_path}: 'vdf' section must be a mapping")
        return overrides


config = Config()
