"""Tests for authentik_deploy.logging_setup: prefixes, colours, stream routing."""

import logging

import pytest

from authentik_deploy.logging_setup import SUCCESS, OperatorFormatter, echo, log_success, setup_cli_logging
from authentik_deploy.redact import register_secret


def _record(level, msg, plain=False):
    record = logging.LogRecord("test", level, "", 0, msg, None, None)
    if plain:
        record.plain = True
    return record


@pytest.fixture
def cli_logging(capsys):
    """Save the root logger and restore it afterwards.

    Tests call setup_cli_logging() in their body so the handlers bind the
    call-phase streams that capsys captures.
    """
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield logging.getLogger("authentik_deploy.test")
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


def test_level_prefixes():
    formatter = OperatorFormatter()
    assert formatter.format(_record(logging.INFO, "Connecting")) == "[INFO] Connecting"
    assert formatter.format(_record(SUCCESS, "Connected")) == "[SUCCESS] Connected"
    assert formatter.format(_record(logging.WARNING, "Careful")) == "[WARNING] Careful"
    assert formatter.format(_record(logging.ERROR, "Failed")) == "[ERROR] Failed"


def test_plain_records_have_no_prefix():
    assert OperatorFormatter(use_color=True).format(_record(logging.INFO, "=====", plain=True)) == "====="


def test_colour_wraps_label_only():
    line = OperatorFormatter(use_color=True).format(_record(SUCCESS, "done"))
    assert line == "\033[0;32m[SUCCESS]\033[0m done"


def test_streams_split_at_error(cli_logging, capsys):
    setup_cli_logging()
    cli_logging.info("step one")
    log_success(cli_logging, "step two")
    cli_logging.warning("heads up")
    cli_logging.error("broken")
    echo(cli_logging, "banner")

    out, err = capsys.readouterr()
    assert out.splitlines() == ["[INFO] step one", "[SUCCESS] step two", "[WARNING] heads up", "banner"]
    assert err.splitlines() == ["[ERROR] broken"]


def test_no_colour_when_not_a_tty(cli_logging, capsys):
    setup_cli_logging()
    cli_logging.info("plain output")
    out, _ = capsys.readouterr()
    assert "\033[" not in out


def test_handlers_redact_registered_secrets(cli_logging, capsys):
    setup_cli_logging()
    register_secret("outpost-token-value")
    cli_logging.info("token outpost-token-value")
    cli_logging.error("failed with outpost-token-value")
    out, err = capsys.readouterr()
    assert out.strip() == "[INFO] token ***"
    assert err.strip() == "[ERROR] failed with ***"
