"""Configuration loading helpers for clerk-trades."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..errors import ConfigurationError
from .models import GlobalConfig

CONFIG_FILENAME = "clerk_trades.yaml"
HOME_ENV = "CLERK_TRADES_HOME"


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(HOME_ENV)
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def config_path(self) -> Path:
        return self.data_dir / CONFIG_FILENAME


class ConfigRepository:
    """Repository encapsulating config IO, schema validation and secrets."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._cache: GlobalConfig | None = None

    def load_global_config(self) -> GlobalConfig:
        if self._cache is not None:
            return self._cache
        path = self.locator.config_path()
        if path.exists():
            payload = _read_file(path)
            try:
                config = GlobalConfig.model_validate(payload)
            except ValidationError as exc:
                raise ConfigurationError(f"Invalid configuration in {path}: {exc}") from exc
        else:
            config = GlobalConfig()
            self.save_global_config(config)
        self._cache = config
        return config

    def save_global_config(self, config: GlobalConfig) -> None:
        payload = config.model_dump(mode="json")
        _write_file(self.locator.config_path(), payload)
        self._cache = config

    def links_path(self, config: GlobalConfig | None = None) -> Path:
        config = config or self.load_global_config()
        return config.resolved_path(config.links_file, self.locator.data_dir)

    def trades_path(self, config: GlobalConfig | None = None) -> Path:
        config = config or self.load_global_config()
        return config.resolved_path(config.trades_file, self.locator.data_dir)

    @staticmethod
    def require_secret(env_name: str, feature: str) -> str:
        """Return a credential from the environment or fail the feature."""

        value = os.environ.get(env_name, "").strip()
        if not value:
            raise ConfigurationError(f"{env_name} environment variable is not set ({feature})")
        return value


__all__ = ["CONFIG_FILENAME", "ConfigLocator", "ConfigRepository", "HOME_ENV"]
