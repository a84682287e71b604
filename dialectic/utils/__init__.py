"""dialectic utilities package."""

from .constants import (
    BACKUP_DIR_NAME,
    ERROR_LOG_FILE,
    LOCKFILES,
    MANIFEST_FILE,
    MANIFEST_SECTIONS,
    STATE_DIR,
)
from .error_handler import handle_exceptions
from .exit_codes import ExitCodes
from .helpers import (
    load_json_file,
    safe_stringify,
    sanitize_string,
    save_json_file,
    to_jsonable,
    utc_now_iso,
)
from .logging import logger

__all__ = [
    "BACKUP_DIR_NAME",
    "ERROR_LOG_FILE",
    "LOCKFILES",
    "MANIFEST_FILE",
    "MANIFEST_SECTIONS",
    "STATE_DIR",
    "handle_exceptions",
    "ExitCodes",
    "load_json_file",
    "safe_stringify",
    "sanitize_string",
    "save_json_file",
    "to_jsonable",
    "utc_now_iso",
    "logger",
]
