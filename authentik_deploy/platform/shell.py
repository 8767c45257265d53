"""Shell command execution helper."""

import logging
import os
import subprocess

logger = logging.getLogger(__name__)


def run_shell_cmd(command, dry_run=False, env=None, cwd=None, log_output=False):
    """Run a command and return (returncode, stdout, stderr).

    Args:
        command: list of command arguments
        dry_run: if True, log the command instead of executing
        env: extra environment variables layered over os.environ
        cwd: working directory for the command
        log_output: stream merged stdout/stderr to the log line by line
            while still capturing it (stderr is then returned empty)

    Returns:
        (returncode, stdout, stderr) tuple
    """
    if dry_run:
        logger.info(f"[dry-run] {' '.join(command)}")
        return 0, "", ""

    full_env = {**os.environ, **env} if env else None
    try:
        if log_output:
            return _run_streaming(command, full_env, cwd)
        result = subprocess.run(command, capture_output=True, text=True, env=full_env, cwd=cwd)
        return result.returncode, result.stdout, result.stderr
    except FileNotFoundError:
        logger.error(f"'{command[0]}' not found. Is it installed and on PATH?")
        return 1, "", f"'{command[0]}' not found"


def _run_streaming(command, env, cwd):
    lines = []
    with subprocess.Popen(
        command,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        env=env,
        cwd=cwd,
    ) as proc:
        for raw_line in proc.stdout:
            line = raw_line.rstrip("\n")
            logger.info(line, extra={"plain": True})
            lines.append(line)
    return proc.returncode, "\n".join(lines), ""


def make_run_cmd(env=None):
    """Create a run_cmd callable with *env* baked into every invocation."""

    def run_cmd(command, dry_run=False, cwd=None, log_output=False):
        return run_shell_cmd(command, dry_run=dry_run, env=env, cwd=cwd, log_output=log_output)

    return run_cmd
