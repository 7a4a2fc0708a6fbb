"""Configuration helpers — safe to import from anywhere.

Call init(data_dir) once at startup before accessing any paths.

Layout under the data directory:
  config.json    — optional settings overrides (see _SETTINGS_DEFAULTS)
  state/         — persisted sessions, favorites and directory names
  scratchpad/    — shared directory advertised to every spawned session
  logs/          — process logs
"""

import json
import os
import shutil
from pathlib import Path
from typing import Any

DEFAULT_DATA_DIR = Path(os.path.expanduser("~/.local/share/term-party"))

# Advertised to every child so auxiliary tooling can find the scratchpad
SCRATCHPAD_ENV_VAR = "TERM_PARTY_SCRATCHPAD"

_data_dir: Path | None = None


def init(data_dir: Path | None = None) -> Path:
    """Set the data directory. Must be called before any other config access.

    Falls back to $TERM_PARTY_DATA, then ~/.local/share/term-party.
    """
    global _data_dir
    if data_dir is None:
        env = os.environ.get("TERM_PARTY_DATA")
        data_dir = Path(env).expanduser() if env else DEFAULT_DATA_DIR
    _data_dir = Path(data_dir).resolve()
    return _data_dir


def data_dir() -> Path:
    """Get the data directory. Raises if init() hasn't been called."""
    if _data_dir is None:
        raise RuntimeError("config.init() not called")
    return _data_dir


def state_dir() -> Path:
    return data_dir() / "state"


def scratchpad_dir() -> Path:
    return data_dir() / "scratchpad"


def ensure_dirs() -> None:
    """Ensure all required directories exist."""
    dd = data_dir()
    (dd / "state").mkdir(parents=True, exist_ok=True)
    (dd / "scratchpad").mkdir(parents=True, exist_ok=True)
    (dd / "logs").mkdir(parents=True, exist_ok=True)


# Settings — read from data dir, cached with mtime check
_settings_cache: dict[str, Any] | None = None
_settings_mtime: float = 0.0

_SETTINGS_DEFAULTS: dict[str, Any] = {
    # Interpreter for new sessions; None means $SHELL, then /bin/bash
    "shell": None,
    "term": "xterm-256color",
    "initial_cols": 80,
    "initial_rows": 24,
    # Bytes of recent output kept per session
    "tail_bytes": 4096,
    "exit_history_limit": 20,
    # Seconds to coalesce mutations before writing state
    "persist_debounce": 0.25,
    # Output bytes a slow subscriber may fall behind before losing old events
    "subscriber_backlog_bytes": 1024 * 1024,
    "log_level": "INFO",
    # Seconds a killed session gets after SIGHUP before SIGKILL
    "kill_grace": 2.0,
}


def get_settings() -> dict[str, Any]:
    """Load settings from the data dir, with mtime caching and defaults."""
    global _settings_cache, _settings_mtime
    config_file = data_dir() / "config.json"
    try:
        mtime = config_file.stat().st_mtime
    except OSError:
        mtime = 0.0
    if _settings_cache is None or mtime != _settings_mtime:
        settings = dict(_SETTINGS_DEFAULTS)
        if config_file.exists():
            try:
                loaded = json.loads(config_file.read_text())
                if isinstance(loaded, dict):
                    settings.update(loaded)
            except (OSError, json.JSONDecodeError):
                pass
        _settings_cache = settings
        _settings_mtime = mtime
    return _settings_cache


def resolve_shell() -> str:
    """Pick the interpreter for new sessions.

    $TERM_PARTY_SHELL wins, then the "shell" setting, then $SHELL, then bash.
    """
    override = os.environ.get("TERM_PARTY_SHELL")
    if override:
        return override
    configured = get_settings().get("shell")
    if configured:
        return configured
    return os.environ.get("SHELL") or shutil.which("bash") or "/bin/bash"
