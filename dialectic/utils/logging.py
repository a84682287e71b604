"""Loguru configuration with Pino-compatible NDJSON output.

Every module logs through the single loguru logger configured here. All
console output goes to stderr: stdout is reserved for the JSON results that
commands hand back to a calling agent.

Usage:
    from dialectic.utils.logging import logger, upgrade_context

    logger.info("Auditing dependencies...")
    with upgrade_context(proposal.id, proposal.package):
        logger.warning("Tests failed, rolling back")   # tagged with upgrade_id

Environment Variables:
    DIALECTIC_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default: INFO)
    DIALECTIC_LOG_JSON: 0|1 (default: 0, human-readable)
    DIALECTIC_LOG_FILE: NDJSON log file, always at DEBUG (optional)
    DIALECTIC_REQUEST_ID: correlation id, forwarded to child processes
"""

import json
import os
import sys
import uuid
from contextlib import contextmanager
from typing import IO, Any

from loguru import logger

# Pino numeric levels
PINO_LEVELS = {
    "TRACE": 10,
    "DEBUG": 20,
    "INFO": 30,
    "SUCCESS": 30,
    "WARNING": 40,
    "ERROR": 50,
    "CRITICAL": 60,
}

# No emojis - Windows CP1252 compatibility
HUMAN_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}:{function}:{line}</cyan>"
    "{extra[upgrade_tag]} - "
    "<level>{message}</level>"
)

_request_id = os.environ.get("DIALECTIC_REQUEST_ID") or str(uuid.uuid4())


def to_pino(record: dict[str, Any]) -> dict[str, Any]:
    """Translate a loguru record into one Pino log object."""
    line = {
        "level": PINO_LEVELS.get(record["level"].name, 30),
        "time": int(record["time"].timestamp() * 1000),
        "msg": record["message"],
        "pid": record["process"].id,
        "request_id": record["extra"].get("request_id", _request_id),
    }
    for key, value in record["extra"].items():
        if key not in ("request_id", "upgrade_tag"):
            line[key] = value
    if record["exception"]:
        exc = record["exception"]
        line["err"] = {
            "type": exc.type.__name__ if exc.type else "Error",
            "message": str(exc.value) if exc.value else "",
        }
    return line


class PinoSink:
    """Writes one NDJSON line per record to a stream, or appends to a file path."""

    def __init__(self, stream: IO[str] | None = None, path: str | None = None):
        self.stream = stream
        self.path = path

    def __call__(self, message) -> None:
        text = json.dumps(to_pino(message.record), default=str) + "\n"
        # Never call logger.* in here - infinite recursion
        if self.path:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(text)
            return
        stream = self.stream or sys.stderr
        stream.write(text)
        stream.flush()


def _tag_upgrade(record) -> None:
    upgrade_id = record["extra"].get("upgrade_id")
    record["extra"]["upgrade_tag"] = f" [{upgrade_id}]" if upgrade_id else ""


def configure_logging(
    level: str | None = None,
    json_mode: bool | None = None,
    log_file: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """(Re)install dialectic's sinks. Arguments default to the environment."""
    level = (level or os.environ.get("DIALECTIC_LOG_LEVEL", "INFO")).upper()
    if json_mode is None:
        json_mode = os.environ.get("DIALECTIC_LOG_JSON", "0") == "1"
    log_file = log_file or os.environ.get("DIALECTIC_LOG_FILE")

    logger.remove()
    logger.configure(patcher=_tag_upgrade)

    if json_mode:
        logger.add(PinoSink(stream), level=level, colorize=False)
    else:
        logger.add(
            stream or sys.stderr,
            level=level,
            format=HUMAN_FORMAT,
            colorize=None,  # colors only on a TTY
        )

    if log_file:
        logger.add(PinoSink(path=log_file), level="DEBUG")


@contextmanager
def upgrade_context(upgrade_id: str | None, package: str | None = None):
    """Tag every record logged inside the block with the upgrade being processed."""
    context = {k: v for k, v in (("upgrade_id", upgrade_id), ("package", package)) if v}
    with logger.contextualize(**context):
        yield


def get_subprocess_env() -> dict:
    """Copy of os.environ carrying the request id, for every subprocess call.

    Example:
        subprocess.run(["npm", "install"], env=get_subprocess_env(), timeout=15)
    """
    env = os.environ.copy()
    env["DIALECTIC_REQUEST_ID"] = _request_id
    return env


logger.level("DEBUG", color="<blue>")
logger.level("INFO", color="<white>")
logger.level("WARNING", color="<yellow>")
logger.level("ERROR", color="<red>")
logger.level("CRITICAL", color="<red><bold>")

configure_logging()


__all__ = [
    "PinoSink",
    "configure_logging",
    "get_subprocess_env",
    "logger",
    "to_pino",
    "upgrade_context",
]
