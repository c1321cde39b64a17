from __future__ import annotations

import os
from pathlib import Path

APP_ENV_HOME = "ATTENTION_HOME"
APP_ENV_DB = "ATTENTION_DB"
APP_ENV_CONFIG = "ATTENTION_PRIORITY_CONFIG"


def project_root() -> Path:
    """
    Repository root directory.
    Contains attention/, api/, cli/, tests/.
    """
    return Path(__file__).parent.parent.resolve()


def app_home() -> Path:
    """
    User-writable home for the attention engine.
    Override with ATTENTION_HOME.
    """
    if os.environ.get(APP_ENV_HOME):
        return Path(os.environ[APP_ENV_HOME]).expanduser().resolve()
    return (Path.home() / ".attention").resolve()


def data_dir() -> Path:
    d = app_home() / "data"
    d.mkdir(parents=True, exist_ok=True)
    return d


def db_path() -> Path:
    """
    Canonical DB path.

    Resolution order:
    1. ATTENTION_DB env var (explicit override)
    2. ~/.attention/data/attention.db (default)
    """
    if os.environ.get(APP_ENV_DB):
        return Path(os.environ[APP_ENV_DB]).expanduser().resolve()
    return data_dir() / "attention.db"


def priority_config_path() -> Path:
    """YAML file with named priority configurations.

    ATTENTION_PRIORITY_CONFIG overrides the copy bundled with the package.
    """
    if os.environ.get(APP_ENV_CONFIG):
        return Path(os.environ[APP_ENV_CONFIG]).expanduser().resolve()
    return Path(__file__).parent / "priority" / "priority_configs.yaml"
