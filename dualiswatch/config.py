"""
Configuration.

Settings come from environment variables. A .env file in the working
directory (or the file passed to load_settings) is read first, real
environment variables take precedence:

    DUALIS_EMAIL=max.mustermann@dh-karlsruhe.de
    DUALIS_PASSWORD=...
    DUALIS_WEBHOOK_URL=https://discord.com/api/webhooks/...
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from dualiswatch.errors import ConfigError
from dualiswatch.storage import DEFAULT_RESULTS_FILE


MODES = ("overview", "semesters")

DEFAULT_BASE_URL = "https://dualis.dhbw.de"
DEFAULT_RAW_DIR = "data/raw"
DEFAULT_TIMEOUT = 30.0


@dataclass
class Settings:
    email: str = ""
    password: str = ""
    base_url: str = DEFAULT_BASE_URL
    mode: str = "overview"
    raw_dir: Path = Path(DEFAULT_RAW_DIR)
    results_file: Path = Path(DEFAULT_RESULTS_FILE)
    webhook_url: str = ""
    timeout: float = DEFAULT_TIMEOUT


def check_mode(mode: str) -> str:
    mode = mode.strip().lower()
    if mode not in MODES:
        raise ConfigError(f"Unknown mode {mode!r} (expected one of: {', '.join(MODES)})")
    return mode


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def load_settings(env_file: Optional[str | Path] = None, mode: Optional[str] = None) -> Settings:
    """
    Read settings from the environment (after loading the .env file).

    Without env_file the .env is looked up from the working directory upwards.
    A given mode replaces DUALIS_MODE before it is checked.
    """
    load_dotenv(dotenv_path=env_file or find_dotenv(usecwd=True))

    timeout_raw = _env("DUALIS_TIMEOUT", str(DEFAULT_TIMEOUT))
    try:
        timeout = float(timeout_raw)
    except ValueError:
        raise ConfigError(f"DUALIS_TIMEOUT must be a number, got {timeout_raw!r}") from None

    return Settings(
        email=_env("DUALIS_EMAIL"),
        password=os.getenv("DUALIS_PASSWORD", ""),
        base_url=_env("DUALIS_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
        mode=check_mode(mode or _env("DUALIS_MODE", "overview")),
        raw_dir=Path(_env("DUALIS_RAW_DIR", DEFAULT_RAW_DIR)),
        results_file=Path(_env("DUALIS_RESULTS_FILE", DEFAULT_RESULTS_FILE)),
        webhook_url=_env("DUALIS_WEBHOOK_URL"),
        timeout=timeout,
    )
