import json
import logging
import math
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from threading import Lock
from typing import Any, Optional

import filelock

log = logging.getLogger(__name__)

SETTINGS_FILENAME = "settings.json"

# How long to wait for the settings file lock before giving up (seconds)
_LOCK_TIMEOUT = 10

# Environment variable -> settings key
_ENV_OVERRIDES = {
    "LIGHTWATCH_SERVER_URL":            "server_url",
    "LIGHTWATCH_POLL_INTERVAL":         "poll_interval_seconds",
    "LIGHTWATCH_LIGHT_THRESHOLD":       "light_threshold",
    "LIGHTWATCH_NOTIFICATIONS_ENABLED": "notifications_enabled",
}


@dataclass(frozen=True)
class Settings:
    server_url: str                       = "http://37.59.110.9:8080/AMIO-API"
    poll_interval_seconds: float          = 5.0
    connect_timeout_seconds: float        = 10.0
    read_timeout_seconds: float           = 10.0
    light_threshold: float                = 200.0
    delta_on: float                       = 25.0
    delta_off: float                      = -25.0
    notification_cooldown_seconds: float  = 5.0
    notifications_enabled: bool           = True
    vibrate_millis: int                   = 200
    sink: dict[str, Any]                  = field(default_factory=lambda: {"type": "log"})
    log_level: str                        = "INFO"

    def validate(self) -> None:
        """Raise ValueError if any value is out of range."""
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, float) and not math.isfinite(value):
                raise ValueError(f"{f.name} must be a finite number, got {value!r}")
        for name in ("poll_interval_seconds", "connect_timeout_seconds", "read_timeout_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)!r}")
        if self.notification_cooldown_seconds < 0:
            raise ValueError("notification_cooldown_seconds must not be negative")
        if self.delta_on <= 0:
            raise ValueError(f"delta_on must be positive, got {self.delta_on!r}")
        if self.delta_off >= 0:
            raise ValueError(f"delta_off must be negative, got {self.delta_off!r}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _coerce(name: str, raw: Any) -> Any:
    """Convert a raw JSON / environment value to the type of the named field."""
    default = getattr(Settings(), name)
    if isinstance(default, bool):
        if isinstance(raw, str):
            return raw.strip().lower() in ("1", "true", "yes", "on")
        return bool(raw)
    try:
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except OverflowError as exc:
        raise ValueError(f"{name} is out of range: {raw!r}") from exc
    if isinstance(default, dict):
        if not isinstance(raw, dict):
            raise ValueError(f"{name} must be an object")
        return dict(raw)
    return str(raw)


class ConfigStore:
    """
    Holder for the current Settings.

    Settings are read from {config_dir}/settings.json, then overridden by
    LIGHTWATCH_* environment variables (a .env file is loaded by main.py).
    A missing file means defaults. Unreadable JSON and unparseable values
    are logged and replaced by their defaults, so a bad preference never
    stops the monitor from starting.

    Settings instances are immutable; update() swaps in a new one under a
    lock, and readers simply call get() at the start of each operation.
    """

    def __init__(self, config_dir: Optional[str] = None, settings: Optional[Settings] = None) -> None:
        self._path = Path(config_dir) / SETTINGS_FILENAME if config_dir else None
        self._lock = Lock()
        if settings is not None:
            settings.validate()
            self._settings = settings
        else:
            self._settings = self._load()

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def get(self) -> Settings:
        with self._lock:
            return self._settings

    def update(self, **changes: Any) -> Settings:
        """
        Apply runtime overrides. Unknown keys raise KeyError and invalid
        values raise ValueError; in both cases the current settings stay.
        """
        known = {f.name for f in fields(Settings)}
        unknown = set(changes) - known
        if unknown:
            raise KeyError(f"Unknown setting(s): {sorted(unknown)}")

        with self._lock:
            candidate = replace(
                self._settings,
                **{name: _coerce(name, value) for name, value in changes.items()},
            )
            candidate.validate()
            self._settings = candidate
        log.info("Settings updated: %s", ", ".join(f"{k}={v!r}" for k, v in changes.items()))
        return candidate

    def save(self) -> bool:
        """Write the current settings back to settings.json. Returns False on failure."""
        if self._path is None:
            log.warning("No config directory configured — settings not saved")
            return False

        lock_path = self._path.with_suffix(".lock")
        data = self.get().to_dict()
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with filelock.FileLock(str(lock_path), timeout=_LOCK_TIMEOUT):
                with open(self._path, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
        except filelock.Timeout:
            log.error("Lock timeout for %s — settings not saved", self._path)
            return False
        except OSError as exc:
            log.error("Write error for %s: %s", self._path, exc)
            return False

        log.debug("Settings written to %s", self._path)
        return True

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _load(self) -> Settings:
        raw: dict[str, Any] = {}
        if self._path is not None and self._path.exists():
            try:
                with open(self._path, "r", encoding="utf-8") as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    raw = loaded
                else:
                    log.warning("%s is not a JSON object — using defaults", self._path)
            except (json.JSONDecodeError, OSError) as exc:
                log.warning("Could not read %s: %s — using defaults", self._path, exc)

        for env_var, name in _ENV_OVERRIDES.items():
            if env_var in os.environ:
                raw[name] = os.environ[env_var]

        known = {f.name for f in fields(Settings)}
        values: dict[str, Any] = {}
        for name, value in raw.items():
            if name not in known:
                log.debug("Ignoring unknown setting %r", name)
                continue
            try:
                values[name] = _coerce(name, value)
            except (TypeError, ValueError):
                log.warning("Invalid value for %s: %r — using default", name, value)

        settings = Settings(**values)
        try:
            settings.validate()
        except ValueError as exc:
            log.warning("Invalid settings (%s) — using defaults", exc)
            settings = Settings()
        return settings
