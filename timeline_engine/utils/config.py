"""
Engine configuration loaded from YAML with environment variable overrides.
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_ENGINE_CONFIG = PROJECT_ROOT / "config" / "engine_config.yaml"
DEFAULT_API_CONFIG = PROJECT_ROOT / "config" / "api_config.yaml"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a YAML file, returning an empty mapping for an empty file."""
    with open(path, 'r') as f:
        return yaml.safe_load(f) or {}


def _config_value(section: Dict[str, Any], key: str, default: Any) -> Any:
    # Unresolved ${...} placeholders fall back to the default
    value = section.get(key, default)
    if isinstance(value, str) and value.startswith('${'):
        return default
    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class EngineSettings:
    """Runtime settings of the timeline engine."""
    database_path: str = "/tmp/data/timelines.db"
    busy_timeout: float = 30.0
    scheduler_autostart: bool = True
    fail_fast: bool = False


def load_engine_settings(config_path: Optional[Union[str, Path]] = None) -> EngineSettings:
    """
    Build settings from ``config/engine_config.yaml`` and the environment.

    Environment variables win over the file:
    ``TIMELINE_DB_PATH``, ``SCHEDULER_AUTOSTART``, ``BATCH_FAIL_FAST``.
    """
    path = Path(config_path) if config_path else DEFAULT_ENGINE_CONFIG
    config = load_yaml(path) if path.exists() else {}
    if not path.exists():
        logger.warning(f"Engine config {path} not found, using defaults")

    defaults = EngineSettings()
    database = config.get('database', {}) or {}
    scheduler = config.get('scheduler', {}) or {}
    batch = config.get('batch', {}) or {}

    settings = EngineSettings(
        database_path=os.getenv(
            "TIMELINE_DB_PATH", _config_value(database, 'path', defaults.database_path)
        ),
        busy_timeout=float(_config_value(database, 'busy_timeout', defaults.busy_timeout)),
        scheduler_autostart=_as_bool(os.getenv(
            "SCHEDULER_AUTOSTART", _config_value(scheduler, 'autostart', defaults.scheduler_autostart)
        )),
        fail_fast=_as_bool(os.getenv(
            "BATCH_FAIL_FAST", _config_value(batch, 'fail_fast', defaults.fail_fast)
        )),
    )
    logger.info(
        f"Engine settings: database={settings.database_path}, "
        f"autostart={settings.scheduler_autostart}, fail_fast={settings.fail_fast}"
    )
    return settings
