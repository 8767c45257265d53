"""Transient files that must not outlive the process.

The CA certificate and the deployment variables file both hold secrets.
They are created through one TransientFiles registry whose cleanup is
registered exactly once, at process start, and runs on normal exit,
on fatal errors, and on SIGTERM/SIGHUP.
"""

import atexit
import logging
import os
import shutil
import signal
import sys
import tempfile

logger = logging.getLogger(__name__)


class TransientFiles:
    """Registry of temporary files and directories removed together."""

    def __init__(self):
        self._paths: list[str] = []

    def write(self, content, prefix="authentik-", suffix="") -> str:
        """Write *content* to a new owner-only (0600) temp file and return its path."""
        fd, path = tempfile.mkstemp(prefix=prefix, suffix=suffix)
        self._paths.append(path)
        with os.fdopen(fd, "w") as f:
            f.write(content)
        return path

    def mkdtemp(self, prefix="authentik-") -> str:
        path = tempfile.mkdtemp(prefix=prefix)
        self._paths.append(path)
        return path

    def discard(self, path):
        """Remove *path* now instead of at exit."""
        if path in self._paths:
            self._paths.remove(path)
        _remove(path)

    def cleanup(self):
        """Remove every registered path. Safe to call more than once."""
        while self._paths:
            _remove(self._paths.pop())

    def __contains__(self, path):
        return path in self._paths

    def __len__(self):
        return len(self._paths)


def _remove(path):
    if os.path.isdir(path):
        shutil.rmtree(path, ignore_errors=True)
    else:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass


_registry: TransientFiles | None = None


def _terminate(signum, _frame):
    logger.error(f"Interrupted by {signal.Signals(signum).name}")
    sys.exit(1)


def install_cleanup_hook() -> TransientFiles:
    """Create the process-wide registry and hook its cleanup into every exit path.

    Idempotent: later calls return the registry created by the first one.
    """
    global _registry
    if _registry is None:
        _registry = TransientFiles()
        atexit.register(_registry.cleanup)
        for sig in (signal.SIGTERM, getattr(signal, "SIGHUP", None)):
            if sig is not None:
                signal.signal(sig, _terminate)
    return _registry
