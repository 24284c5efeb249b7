"""Engine configuration and persisted user settings."""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import orjson

from phr.core.dates import DateResolver, validate_timezone_offset
from phr.core.models import DateSource, MediaType, ROTATION_MODES, TZ_NONE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediaDefaults:
    """Per-media-type defaults applied to freshly scanned records."""
    date_source: DateSource
    timezone_offset: str = TZ_NONE
    rotation_mode: str = "none"

    def __post_init__(self):
        if self.rotation_mode not in ROTATION_MODES:
            raise ValueError(f"Unknown rotation mode: {self.rotation_mode!r}")
        if self.date_source == DateSource.NONE:
            raise ValueError("Default date source cannot be None")
        # Frozen, so normalize through object.__setattr__
        object.__setattr__(
            self, "timezone_offset", validate_timezone_offset(self.timezone_offset)
        )


@dataclass(frozen=True)
class BurstConfig:
    """Burst detection thresholds."""
    max_interval_seconds: float = 3.0
    min_count: int = 3

    def __post_init__(self):
        if self.max_interval_seconds < 0:
            raise ValueError("max_interval_seconds must be >= 0")
        if self.min_count < 2:
            raise ValueError("min_count must be at least 2")


DEFAULT_PHOTO = MediaDefaults(date_source=DateSource.EXIF)
DEFAULT_VIDEO = MediaDefaults(date_source=DateSource.FILE_MODIFIED)


@dataclass(frozen=True)
class EngineConfig:
    """Immutable configuration passed explicitly into scan() and process().

    Usage:
        config = EngineConfig(burst=BurstConfig(max_interval_seconds=2.0))
        records = scan("/photos", config=config)
    """
    photo: MediaDefaults = DEFAULT_PHOTO
    video: MediaDefaults = DEFAULT_VIDEO
    burst: BurstConfig = field(default_factory=BurstConfig)
    max_workers: int = 4

    def defaults_for(self, media_type: MediaType) -> MediaDefaults:
        return self.photo if media_type == MediaType.PHOTO else self.video

    def resolver(self) -> DateResolver:
        """DateResolver honoring the configured preferred sources."""
        return DateResolver(
            photo_preferred=self.photo.date_source,
            video_preferred=self.video.date_source,
        )


class Settings:
    """Manages persisted user settings (defaults shown in the settings panel)."""

    DEFAULT_SETTINGS = {
        "last_source_path": "",
        "last_dest_path": "",
        "photo_date_source": DateSource.EXIF.value,
        "photo_timezone_offset": TZ_NONE,
        "photo_rotation_mode": "none",
        "video_date_source": DateSource.FILE_MODIFIED.value,
        "video_timezone_offset": TZ_NONE,
        "burst_max_interval_seconds": 3.0,
        "burst_min_count": 3,
        "max_workers": 4,
    }

    def __init__(self, config_path: Optional[str] = None):
        """Initialize settings.

        Args:
            config_path: Settings file to use (default: per-user config dir).
        """
        self._settings: Dict[str, Any] = self.DEFAULT_SETTINGS.copy()
        self._config_path = config_path or self._get_config_path()
        self.load()

    def _get_config_path(self) -> str:
        """Get path to config file."""
        if os.name == "nt":  # Windows
            base = os.environ.get("APPDATA", os.path.expanduser("~"))
        else:  # macOS/Linux
            base = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))

        return os.path.join(base, "phr", "settings.json")

    @property
    def path(self) -> str:
        return self._config_path

    def load(self) -> None:
        """Load settings from file."""
        try:
            if os.path.exists(self._config_path):
                with open(self._config_path, "rb") as f:
                    loaded = orjson.loads(f.read())
                if isinstance(loaded, dict):
                    self._settings.update(loaded)
        except (OSError, orjson.JSONDecodeError) as e:
            logger.debug(f"Error loading settings from {self._config_path}: {e}")

    def save(self) -> None:
        """Save settings to file."""
        try:
            os.makedirs(os.path.dirname(self._config_path), exist_ok=True)
            with open(self._config_path, "wb") as f:
                f.write(orjson.dumps(self._settings, option=orjson.OPT_INDENT_2))
        except OSError as e:
            logger.debug(f"Error saving settings to {self._config_path}: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get a setting value."""
        return self._settings.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set a setting value."""
        self._settings[key] = value

    def to_engine_config(self) -> EngineConfig:
        """Build an EngineConfig, falling back to defaults for bad values."""
        try:
            return EngineConfig(
                photo=MediaDefaults(
                    date_source=DateSource(self.get("photo_date_source")),
                    timezone_offset=self.get("photo_timezone_offset", TZ_NONE),
                    rotation_mode=self.get("photo_rotation_mode", "none"),
                ),
                video=MediaDefaults(
                    date_source=DateSource(self.get("video_date_source")),
                    timezone_offset=self.get("video_timezone_offset", TZ_NONE),
                ),
                burst=BurstConfig(
                    max_interval_seconds=float(self.get("burst_max_interval_seconds")),
                    min_count=int(self.get("burst_min_count")),
                ),
                max_workers=max(1, int(self.get("max_workers"))),
            )
        except (TypeError, ValueError) as e:
            logger.warning(f"Invalid settings in {self._config_path}, using defaults: {e}")
            return EngineConfig()
