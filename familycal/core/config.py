"""Configuration management for familycal.

Settings come from environment variables (optionally seeded from a ``.env``
file) and may be overlaid by a YAML file named in FAMILYCAL_CONFIG_FILE.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from familycal.calendar.models import FeedSource
from familycal.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "FAMILYCAL_"
FEED_MODES = ("json", "ics")

_WEEKDAY_NAMES = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs. Empty dict if the file doesn't exist.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips quotes (both single and double) from values
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}
    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", path, exc_info=True)
        return {}

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, val = line.split("=", 1)
        key = key.strip()
        if key:
            result[key] = val.strip().strip('"').strip("'")

    return result


def load_env_file(path: Path) -> list[str]:
    """Copy .env values into the environment without overriding existing keys.

    Returns:
        Keys that were set from the file
    """
    set_keys = []
    for key, val in parse_env_file(path).items():
        if key not in os.environ:
            os.environ[key] = val
            set_keys.append(key)

    if set_keys:
        logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))
    return set_keys


def parse_weekday(value: Any) -> int:
    """Accept 0-6 or a weekday name ("monday", "Sunday", ...)."""
    if isinstance(value, int):
        day = value
    else:
        text = str(value).strip().lower()
        if text in _WEEKDAY_NAMES:
            return _WEEKDAY_NAMES[text]
        try:
            day = int(text)
        except ValueError:
            raise ConfigError(f"Invalid weekday {value!r}") from None
    if not 0 <= day <= 6:
        raise ConfigError(f"Weekday must be in 0..6, got {day}")
    return day


@dataclass
class Config:
    """familycal configuration.

    All values have device defaults taken from the reference hardware
    (1024x600 touch panel, 07:00-18:00 grid, 5 minute refresh).
    """

    # Display settings
    display_width: int = 1024
    display_height: int = 600
    font_dir: Path | None = None

    # Feed settings
    feed_mode: str = "json"  # "json" (backend API) or "ics" (raw feeds)
    api_url: str = ""
    api_key: str | None = None
    sources: list[FeedSource] = field(default_factory=list)
    api_timeout: int = 10  # seconds
    max_retries: int = 3
    retry_backoff_factor: float = 1.5

    # Time model
    utc_offset_minutes: int = 0
    first_weekday: int = 0  # Monday

    # Grid settings
    visible_start_hour: int = 7
    visible_end_hour: int = 18
    max_columns: int = 10
    min_event_height: float = 0.25  # hours

    # Ingestion limits
    retention_past_days: int = 30
    retention_future_days: int = 60
    max_events: int = 500

    # Refresh settings
    refresh_interval: int = 300  # seconds - feed refresh
    display_refresh_interval: int = 60  # seconds - redraw for the "now" marker

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            FAMILYCAL_FEED_MODE - "json" or "ics"
            FAMILYCAL_API_URL / FAMILYCAL_API_KEY - JSON backend endpoint and key
            FAMILYCAL_CAL_<n>_URL / _NAME / _COLOR - raw feed sources, n = 1, 2, ...
            FAMILYCAL_UTC_OFFSET_MINUTES - local offset from UTC
            FAMILYCAL_FIRST_WEEKDAY - "monday", "sunday" or 0-6
            FAMILYCAL_START_HOUR / FAMILYCAL_END_HOUR - visible grid window
            FAMILYCAL_RETENTION_PAST_DAYS / FAMILYCAL_RETENTION_FUTURE_DAYS
            FAMILYCAL_REFRESH_INTERVAL - feed refresh interval in seconds
            FAMILYCAL_MAX_COLUMNS - maximum concurrent grid columns
            FAMILYCAL_MAX_EVENTS - ingestion capacity
            FAMILYCAL_DISPLAY_WIDTH / FAMILYCAL_DISPLAY_HEIGHT
            FAMILYCAL_LOG_LEVEL - DEBUG, INFO, WARNING, ERROR
            FAMILYCAL_CONFIG_FILE - optional YAML file overlaid on top

        Args:
            env_file: Optional .env file (defaults to .env in the working directory)

        Returns:
            Config instance
        """
        load_env_file(env_file or Path.cwd() / ".env")

        values: dict[str, Any] = {}
        int_keys = {
            "DISPLAY_WIDTH": "display_width",
            "DISPLAY_HEIGHT": "display_height",
            "API_TIMEOUT": "api_timeout",
            "MAX_RETRIES": "max_retries",
            "UTC_OFFSET_MINUTES": "utc_offset_minutes",
            "START_HOUR": "visible_start_hour",
            "END_HOUR": "visible_end_hour",
            "MAX_COLUMNS": "max_columns",
            "RETENTION_PAST_DAYS": "retention_past_days",
            "RETENTION_FUTURE_DAYS": "retention_future_days",
            "MAX_EVENTS": "max_events",
            "REFRESH_INTERVAL": "refresh_interval",
            "DISPLAY_REFRESH_INTERVAL": "display_refresh_interval",
        }
        for suffix, name in int_keys.items():
            raw = os.environ.get(ENV_PREFIX + suffix)
            if raw is None or raw == "":
                continue
            try:
                values[name] = int(raw)
            except ValueError:
                logger.warning("Invalid %s%s=%r; ignoring", ENV_PREFIX, suffix, raw)

        for suffix, name in (
            ("RETRY_BACKOFF_FACTOR", "retry_backoff_factor"),
            ("MIN_EVENT_HEIGHT", "min_event_height"),
        ):
            raw = os.environ.get(ENV_PREFIX + suffix)
            if raw:
                try:
                    values[name] = float(raw)
                except ValueError:
                    logger.warning("Invalid %s%s=%r; ignoring", ENV_PREFIX, suffix, raw)

        feed_mode = os.environ.get(ENV_PREFIX + "FEED_MODE")
        if feed_mode:
            values["feed_mode"] = feed_mode.strip().lower()

        api_url = os.environ.get(ENV_PREFIX + "API_URL")
        if api_url:
            values["api_url"] = api_url.rstrip("/")
        api_key = os.environ.get(ENV_PREFIX + "API_KEY")
        if api_key:
            values["api_key"] = api_key

        first_weekday = os.environ.get(ENV_PREFIX + "FIRST_WEEKDAY")
        if first_weekday:
            values["first_weekday"] = parse_weekday(first_weekday)

        log_level = os.environ.get(ENV_PREFIX + "LOG_LEVEL")
        if log_level:
            values["log_level"] = log_level.upper()

        font_dir = os.environ.get(ENV_PREFIX + "FONT_DIR")
        if font_dir:
            values["font_dir"] = Path(font_dir)

        sources = _sources_from_env()
        if sources:
            values["sources"] = sources

        config = cls(**values)

        config_file = os.environ.get(ENV_PREFIX + "CONFIG_FILE")
        if config_file:
            config = config.merged_with_yaml(Path(config_file))

        return config

    def merged_with_yaml(self, path: Path) -> Config:
        """Return a copy with values from a YAML mapping laid on top.

        Keys are the dataclass field names; ``sources`` is a list of mappings
        with ``id``, ``url``, ``name`` and ``color``.

        Raises:
            ConfigError: If the file is unreadable, not a mapping, or has
                unknown keys or invalid sources
        """
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        known = {f.name for f in fields(self)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown config keys in {path}: {', '.join(sorted(unknown))}")

        merged = {f.name: getattr(self, f.name) for f in fields(self)}
        merged.update(data)

        try:
            merged["sources"] = [
                s if isinstance(s, FeedSource) else FeedSource.model_validate(s)
                for s in merged.get("sources") or []
            ]
        except ValidationError as e:
            raise ConfigError(f"Invalid feed source in {path}: {e}") from e

        if "first_weekday" in data:
            merged["first_weekday"] = parse_weekday(data["first_weekday"])
        if merged.get("font_dir") is not None:
            merged["font_dir"] = Path(merged["font_dir"])

        logger.debug("Applied config file %s (%d keys)", path, len(data))
        return Config(**merged)

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigError: On the first invalid value found
        """
        if self.feed_mode not in FEED_MODES:
            raise ConfigError(f"feed_mode must be one of {FEED_MODES}, got {self.feed_mode!r}")
        if self.feed_mode == "json" and not self.api_url:
            raise ConfigError("feed_mode 'json' requires FAMILYCAL_API_URL")
        if self.feed_mode == "ics" and not self.sources:
            raise ConfigError("feed_mode 'ics' requires at least one FAMILYCAL_CAL_<n>_URL")
        if not 0 <= self.visible_start_hour < self.visible_end_hour <= 24:
            raise ConfigError(
                f"Visible hours must satisfy 0 <= start < end <= 24, got "
                f"{self.visible_start_hour}-{self.visible_end_hour}"
            )
        if not 0 <= self.first_weekday <= 6:
            raise ConfigError(f"first_weekday must be in 0..6, got {self.first_weekday}")
        if self.max_columns < 1:
            raise ConfigError("max_columns must be at least 1")
        if self.max_events < 1:
            raise ConfigError("max_events must be at least 1")
        if self.refresh_interval <= 0 or self.display_refresh_interval <= 0:
            raise ConfigError("refresh intervals must be positive")
        if self.retention_past_days < 0 or self.retention_future_days < 0:
            raise ConfigError("retention window bounds must not be negative")
        if abs(self.utc_offset_minutes) > 14 * 60:
            raise ConfigError(f"utc_offset_minutes out of range: {self.utc_offset_minutes}")

    def get_api_endpoint(self, path: str = "") -> str:
        """Get full API endpoint URL."""
        if path and not path.startswith("/"):
            path = "/" + path
        return f"{self.api_url}{path}"


def _sources_from_env() -> list[FeedSource]:
    """Read FAMILYCAL_CAL_<n>_* variables for n = 1, 2, ... until a gap."""
    sources: list[FeedSource] = []
    index = 1
    while True:
        prefix = f"{ENV_PREFIX}CAL_{index}_"
        url = os.environ.get(prefix + "URL")
        if not url:
            break
        name = os.environ.get(prefix + "NAME") or f"Calendar {index}"
        color = os.environ.get(prefix + "COLOR")
        payload: dict[str, Any] = {"id": os.environ.get(prefix + "ID") or name, "url": url, "name": name}
        if color:
            payload["color"] = color
        try:
            sources.append(FeedSource.model_validate(payload))
        except ValidationError as e:
            raise ConfigError(f"Invalid feed source {prefix}*: {e}") from e
        index += 1
    return sources
