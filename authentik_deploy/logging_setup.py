"""CLI logging setup: colour-coded [LEVEL] prefixes, errors on stderr."""

import logging
import os
import sys

from authentik_deploy.redact import SecretRedactingFilter

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

_COLORS = {
    logging.INFO: "\033[0;34m",
    SUCCESS: "\033[0;32m",
    logging.WARNING: "\033[1;33m",
    logging.ERROR: "\033[0;31m",
    logging.CRITICAL: "\033[0;31m",
}
_RESET = "\033[0m"


def _supports_color(stream) -> bool:
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty()) and os.environ.get("NO_COLOR") is None


class OperatorFormatter(logging.Formatter):
    """Prefix each line with its level name, coloured when the stream allows it.

    Records logged with ``extra={"plain": True}`` are emitted bare, for
    banners and previews that should read like ordinary program output.
    """

    def __init__(self, use_color=False):
        super().__init__("%(message)s")
        self.use_color = use_color

    def format(self, record):
        message = super().format(record)
        if getattr(record, "plain", False):
            return message
        label = f"[{record.levelname}]"
        if self.use_color:
            label = f"{_COLORS.get(record.levelno, '')}{label}{_RESET}"
        return f"{label} {message}"


class _BelowErrorFilter(logging.Filter):
    def filter(self, record):
        return record.levelno < logging.ERROR


def setup_cli_logging():
    """Configure the root logger for operator-facing CLI output.

    INFO, SUCCESS and WARNING go to stdout; ERROR and above go to stderr.
    """
    root = logging.getLogger()
    root.setLevel(logging.INFO)
    root.handlers.clear()

    redactor = SecretRedactingFilter()

    out_handler = logging.StreamHandler(sys.stdout)
    out_handler.setFormatter(OperatorFormatter(use_color=_supports_color(sys.stdout)))
    out_handler.addFilter(_BelowErrorFilter())
    out_handler.addFilter(redactor)
    root.addHandler(out_handler)

    err_handler = logging.StreamHandler(sys.stderr)
    err_handler.setLevel(logging.ERROR)
    err_handler.setFormatter(OperatorFormatter(use_color=_supports_color(sys.stderr)))
    err_handler.addFilter(redactor)
    root.addHandler(err_handler)


def log_success(logger, message):
    """Log *message* at the SUCCESS level."""
    logger.log(SUCCESS, message)


def echo(logger, message=""):
    """Log *message* at INFO without a level prefix."""
    logger.info(message, extra={"plain": True})
