"""Runtime configuration for dialectic - centralized configuration management."""

import copy
import json
import os
from pathlib import Path
from typing import Any

from dialectic.utils.constants import (
    BACKUP_DIR_NAME,
    CONFIG_FILE_NAME,
    ENV_PREFIX,
    ENV_RISK_API_KEY,
    STATE_DIR,
)
from dialectic.utils.logging import logger

DEFAULTS = {
    "paths": {
        "backup_dir": BACKUP_DIR_NAME,
        "state_dir": str(STATE_DIR),
    },
    "timeouts": {
        "install": 15.0,
        "recovery_install": 300.0,
        "test_run": 300.0,
        "audit": 120.0,
        "npm_view": 5.0,
        "risk_request": 30.0,
    },
    "planner": {
        "default_strategy": "balanced",
        "minutes_per_upgrade": 2.5,
    },
    "risk": {
        "endpoint": "https://api.z.ai/api/paas/v4/chat/completions",
        "model": "glm-4.5-flash",
        "temperature": 0.7,
        "api_key": "",
    },
}

SECTIONS = tuple(DEFAULTS)


def load_runtime_config(root: str | Path = ".") -> dict[str, Any]:
    """
    Load runtime configuration from .dialectic/config.json and environment variables.

    Config priority (highest to lowest):
    1. Environment variables (DIALECTIC_<SECTION>_<KEY>, plus ZHIPU_API_KEY)
    2. .dialectic/config.json file
    3. Built-in defaults

    Values whose type does not match the default are ignored with a warning,
    so a bad config file never disables a timeout.
    """
    cfg = copy.deepcopy(DEFAULTS)

    path = Path(root) / STATE_DIR.name / CONFIG_FILE_NAME
    try:
        if path.exists():
            with open(path, encoding="utf-8") as f:
                user = json.load(f)

            if isinstance(user, dict):
                for section in SECTIONS:
                    if section in user and isinstance(user[section], dict):
                        for key, value in user[section].items():
                            if key in cfg[section] and _type_matches(value, cfg[section][key]):
                                cfg[section][key] = value
                            else:
                                logger.warning(f"Ignoring config value {section}.{key}={value!r}")
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Could not load config file from {path}: {e}")
        logger.info("Continuing with default configuration")

    if os.environ.get(ENV_RISK_API_KEY):
        cfg["risk"]["api_key"] = os.environ[ENV_RISK_API_KEY]

    for section in cfg:
        for key in cfg[section]:
            env_var = f"{ENV_PREFIX}{section.upper()}_{key.upper()}"
            if env_var in os.environ:
                value = os.environ[env_var]
                try:
                    default_value = DEFAULTS[section][key]
                    if isinstance(default_value, bool):
                        cfg[section][key] = value.lower() in ("1", "true", "yes")
                    elif isinstance(default_value, int):
                        cfg[section][key] = int(value)
                    elif isinstance(default_value, float):
                        cfg[section][key] = float(value)
                    else:
                        cfg[section][key] = value
                except ValueError as e:
                    logger.warning(
                        f"Invalid value for environment variable {env_var}: '{value}' - {e}"
                    )
                    logger.info(f"Using default value: {cfg[section][key]}")

    return cfg


def _type_matches(value: Any, default: Any) -> bool:
    if isinstance(default, float) and not isinstance(value, bool):
        return isinstance(value, (int, float))
    return isinstance(value, type(default))
