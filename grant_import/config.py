"""
Settings for an import run.

Values come from environment variables, optionally overridden by a YAML file:

  - GRANT_IMPORT_FOUNDATION_ID: foundation whose records are reconciled
  - GRANT_IMPORT_USER_ID: user recorded as creator/proposer of new records
  - GRANT_IMPORT_FUZZY_THRESHOLD (default: 0.70)
  - GRANT_IMPORT_ROW_TIMEOUT (default: 30 seconds)
  - GRANT_IMPORT_LOG_LEVEL (default: INFO)

Example YAML:

    foundation_id: 7f3c...
    user_id: 19ab...
    fuzzy_threshold: 0.75
    row_timeout_seconds: 20
    user_map:
      Jane Donor: 19ab...
      John Donor: 42cd...

Database connection settings live in grant_import.db.client (GRANTS_DB_*).
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, Union

import yaml

from .constants import DEFAULT_ROW_TIMEOUT_SECONDS, FUZZY_MATCH_THRESHOLD

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class ImportConfigError(Exception):
    """Settings are missing or malformed."""


@dataclass
class ImportSettings:
    """Configuration for one import run.

    Attributes:
        foundation_id: Foundation whose organizations and grants are reconciled
        user_id: Default creator of new organizations and proposer of new grants
        fuzzy_threshold: Minimum name similarity accepted as a fuzzy match
        row_timeout_seconds: Deadline for the store calls of a single row
        user_map: Provider "Submitted By" value -> user id
        log_level: Logging level for the CLI
    """

    foundation_id: Optional[str] = None
    user_id: Optional[str] = None
    fuzzy_threshold: float = FUZZY_MATCH_THRESHOLD
    row_timeout_seconds: float = DEFAULT_ROW_TIMEOUT_SECONDS
    user_map: dict[str, str] = field(default_factory=dict)
    log_level: str = "INFO"

    def validate(self) -> None:
        """Raise ImportConfigError when a value is out of range."""
        if not 0.0 < self.fuzzy_threshold <= 1.0:
            raise ImportConfigError(f"fuzzy_threshold must be in (0, 1], got {self.fuzzy_threshold}")
        if self.row_timeout_seconds <= 0:
            raise ImportConfigError(f"row_timeout_seconds must be positive, got {self.row_timeout_seconds}")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ImportConfigError(f"log_level must be one of {', '.join(_LOG_LEVELS)}, got {self.log_level}")

    def require_identity(self) -> None:
        """Commit needs both a foundation and a user."""
        missing = [name for name in ("foundation_id", "user_id") if not getattr(self, name)]
        if missing:
            raise ImportConfigError(f"Missing required setting(s): {', '.join(missing)}")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ImportConfigError(f"{name} must be a number, got {raw!r}") from None


def _settings_from_env() -> ImportSettings:
    return ImportSettings(
        foundation_id=os.environ.get("GRANT_IMPORT_FOUNDATION_ID") or None,
        user_id=os.environ.get("GRANT_IMPORT_USER_ID") or None,
        fuzzy_threshold=_env_float("GRANT_IMPORT_FUZZY_THRESHOLD", FUZZY_MATCH_THRESHOLD),
        row_timeout_seconds=_env_float("GRANT_IMPORT_ROW_TIMEOUT", DEFAULT_ROW_TIMEOUT_SECONDS),
        log_level=os.environ.get("GRANT_IMPORT_LOG_LEVEL", "INFO"),
    )


def _read_yaml(config_path: Path) -> dict:
    if not config_path.exists():
        raise ImportConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ImportConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ImportConfigError(f"{config_path} must contain a mapping at the top level")

    known = {f.name for f in fields(ImportSettings)}
    unknown = set(raw) - known
    if unknown:
        raise ImportConfigError(f"Unknown setting(s) in {config_path}: {', '.join(sorted(unknown))}")

    user_map = raw.get("user_map")
    if user_map is not None and not isinstance(user_map, dict):
        raise ImportConfigError("user_map must be a mapping of submitter name to user id")

    return raw


def load_settings(config_path: Optional[Union[str, Path]] = None) -> ImportSettings:
    """
    Load settings from the environment, then apply the YAML file if given.

    Args:
        config_path: Optional YAML file; its keys override environment values

    Returns:
        Validated ImportSettings

    Raises:
        ImportConfigError: unreadable file, unknown keys or invalid values
    """
    settings = _settings_from_env()

    if config_path is not None:
        path = Path(config_path).expanduser()
        overrides = _read_yaml(path)
        for key, value in overrides.items():
            if key == "user_map":
                value = {str(k): str(v) for k, v in (value or {}).items()}
            elif key in ("fuzzy_threshold", "row_timeout_seconds"):
                try:
                    value = float(value)
                except (TypeError, ValueError):
                    raise ImportConfigError(f"{key} must be a number, got {value!r}") from None
            elif value is not None:
                value = str(value)
            setattr(settings, key, value)
        logger.debug(f"Loaded {len(overrides)} setting(s) from {path}")

    settings.validate()
    return settings
