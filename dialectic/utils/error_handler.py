"""Command-boundary error handling for dialectic."""

import traceback
from collections.abc import Callable
from datetime import datetime
from functools import wraps
from typing import Any

import click

from dialectic.errors import InputError
from dialectic.utils.logging import get_subprocess_env, logger

from .constants import ERROR_LOG_FILE, STATE_DIR


def _append_error_log(command: str, error: Exception) -> None:
    STATE_DIR.mkdir(parents=True, exist_ok=True)
    request_id = get_subprocess_env()["DIALECTIC_REQUEST_ID"]
    with open(ERROR_LOG_FILE, "a", encoding="utf-8") as f:
        f.write("\n" + "=" * 80 + "\n")
        f.write(f"[{datetime.now().isoformat()}] {command} (request {request_id})\n")
        f.write("=" * 80 + "\n")
        f.write(f"{type(error).__name__}: {error}\n\n")
        f.write(traceback.format_exc())
        f.write("=" * 80 + "\n\n")


def handle_exceptions(func: Callable[..., Any]) -> Callable[..., Any]:
    """Turn exceptions escaping a command into click errors.

    Bad caller input is reported as-is. Anything else is unexpected: it is
    logged with its traceback and appended to .dialectic/error.log.
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except click.ClickException:
            raise
        except InputError as e:
            raise click.ClickException(str(e)) from e
        except Exception as e:
            logger.opt(exception=True).error(f"Command '{func.__name__}' failed: {e}")
            _append_error_log(func.__name__, e)
            raise click.ClickException(
                f"{type(e).__name__}: {e}\n\nFull traceback logged to: {ERROR_LOG_FILE}"
            ) from e

    return wrapper
