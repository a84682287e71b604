"""Helper utility functions for dialectic.

IMPORTANT UTILITIES:
- safe_stringify(): Use this for ANY result handed back to a calling agent.
  Scanner output and process output can carry control characters that break
  line-framed transports, so they are stripped after serialization.
- sanitize_string(): Normalizes loose strings coming from external tools
  before they enter the data model.
"""

import json
import re
from dataclasses import asdict, is_dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from .logging import logger

_CONTROL_CHARS = re.compile(r"[\x00-\x1F\x7F]")
_WHITESPACE_RUN = re.compile(r"\s+")


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(UTC).isoformat()


def sanitize_string(value: Any, default: str = "") -> str:
    """Coerce a loose value into a single-line, control-character-free string.

    Examples:
        >>> sanitize_string("  lodash\\n")
        'lodash'
        >>> sanitize_string(None, default="unknown")
        'unknown'
        >>> sanitize_string(42)
        '42'
    """
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        value = str(value)
    cleaned = _CONTROL_CHARS.sub(" ", value)
    cleaned = _WHITESPACE_RUN.sub(" ", cleaned).strip()
    return cleaned or default


def to_jsonable(obj: Any) -> Any:
    """Recursively convert dataclasses, enums and paths into JSON-safe values."""
    if hasattr(obj, "to_dict") and callable(obj.to_dict):
        return obj.to_dict()
    if is_dataclass(obj) and not isinstance(obj, type):
        return to_jsonable(asdict(obj))
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [to_jsonable(v) for v in obj]
    return obj


def safe_stringify(obj: Any, indent: int | None = None) -> str:
    """Serialize a result to transport-safe JSON text.

    Control characters are removed from the final text. json.dumps already
    escapes them inside strings, so only the structural newlines added by
    ``indent`` are affected when indentation is requested.
    """
    text = json.dumps(to_jsonable(obj), indent=indent, ensure_ascii=False)
    if indent is None:
        return _CONTROL_CHARS.sub("", text)
    return text


def load_json_file(file_path: str | Path) -> Any:
    """
    Load and parse a JSON file.

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If file contains invalid JSON
    """
    try:
        with open(file_path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        logger.error(f"JSON file not found: {file_path}")
        raise
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in file {file_path}: {e}")
        raise


def save_json_file(data: Any, file_path: str | Path, indent: int = 2) -> None:
    """Write data to a JSON file with a trailing newline, creating parents."""
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent)
        f.write("\n")
