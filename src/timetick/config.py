# timetick/config.py
import json
import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Optional

APP_NAME = "timetick"


def app_dir() -> Path:
    """Directory holding the database, settings and log files."""
    override = os.getenv("TIMETICK_HOME")
    if override:
        root = Path(override)
    else:
        base = Path(os.getenv("XDG_DATA_HOME", Path.home() / ".local" / "share"))
        root = base / APP_NAME
    root.mkdir(parents=True, exist_ok=True)
    return root


def settings_path() -> Path:
    return app_dir() / "settings.json"


DEFAULT_SETTINGS = {
    # Absolute path of the SQLite file. If null, <app dir>/database.db is used.
    "database_path": None,
    "import_url": None,
    "import_sheet": None,
    "request_timeout_seconds": 10,
    "prompt_for_note": True,
    "log_level": "INFO",
}


@dataclass
class Settings:
    database_path: Optional[str] = DEFAULT_SETTINGS["database_path"]
    import_url: Optional[str] = DEFAULT_SETTINGS["import_url"]
    import_sheet: Optional[str] = DEFAULT_SETTINGS["import_sheet"]
    request_timeout_seconds: int = DEFAULT_SETTINGS["request_timeout_seconds"]
    prompt_for_note: bool = DEFAULT_SETTINGS["prompt_for_note"]
    log_level: str = DEFAULT_SETTINGS["log_level"]

    @classmethod
    def load(cls) -> "Settings":
        p = settings_path()
        if p.exists():
            try:
                data = json.loads(p.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError):
                data = {}
        else:
            data = {}
        known = {f.name for f in fields(cls)}
        merged = {**DEFAULT_SETTINGS, **{k: v for k, v in data.items() if k in known}}
        return cls(**merged)

    def save(self) -> None:
        p = settings_path()
        with p.open("w", encoding="utf-8") as f:
            json.dump(asdict(self), f, indent=2)

    def update(self, key: str, raw: str) -> None:
        """Set a field from its command-line string form."""
        known = {f.name for f in fields(self)}
        if key not in known:
            raise KeyError(f"Unknown setting '{key}'. Known settings: {', '.join(sorted(known))}")

        current = DEFAULT_SETTINGS[key]
        if raw.lower() in ("", "none", "null") and current is None:
            value = None
        elif isinstance(current, bool):
            if raw.lower() in ("1", "true", "yes", "on"):
                value = True
            elif raw.lower() in ("0", "false", "no", "off"):
                value = False
            else:
                raise ValueError(f"Setting '{key}' expects true/false, got '{raw}'")
        elif isinstance(current, int):
            try:
                value = int(raw)
            except ValueError:
                raise ValueError(f"Setting '{key}' expects a number, got '{raw}'") from None
            if value <= 0:
                raise ValueError(f"Setting '{key}' must be positive")
        elif key == "log_level":
            value = raw.upper()
            if value not in ("DEBUG", "INFO", "WARNING", "ERROR"):
                raise ValueError(f"Unsupported log level '{raw}'")
        else:
            value = raw
        setattr(self, key, value)
