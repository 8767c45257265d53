"""Shared pytest fixtures for all test modules."""

import json
import os
import subprocess
import sys

import pytest

import authentik_deploy.redact as redact_module
from authentik_deploy.options import OpsManagerTarget
from authentik_deploy.transient import TransientFiles

PROJECT_ROOT = os.path.normpath(os.path.join(os.path.dirname(__file__), ".."))

# Environment variables the CLI reads; stripped so the host cannot leak into tests
_CLI_ENV_VARS = ("OM_TARGET", "OM_USERNAME", "OM_PASSWORD", "AUTHENTIK_VERSION", "BOSH_CLIENT_SECRET")


@pytest.fixture(scope="session")
def project_root():
    """Absolute path to the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def run_cli(project_root):
    """Return a callable that invokes the authentik-deploy CLI as a subprocess."""

    def _run(*args, env=None, input=None):
        full_env = {k: v for k, v in os.environ.items() if k not in _CLI_ENV_VARS}
        full_env["NO_COLOR"] = "1"
        full_env.update(env or {})
        result = subprocess.run(
            [sys.executable, "-m", "authentik_deploy.authentik_deploy", *args],
            capture_output=True,
            text=True,
            cwd=project_root,
            env=full_env,
            input=input if input is not None else "",
        )
        return result.returncode, result.stdout, result.stderr

    return _run


# ── Unit-test fixtures ──────────────────────────────────────────────


def bosh_table(rows):
    """Render rows the way `bosh --json` prints a single table."""
    return json.dumps({"Tables": [{"Rows": rows}]})


class FakeRunner:
    """Recording stand-in for a run_cmd callable.

    Responses are (substring, (rc, stdout, stderr)) pairs; the first
    substring found in the joined command wins, otherwise (0, "", "").
    Dry-run calls are recorded but always succeed with empty output.
    """

    def __init__(self):
        self.responses = []
        self.calls = []
        self.envs = []

    def respond(self, match, rc=0, stdout="", stderr=""):
        self.responses.append((match, (rc, stdout, stderr)))
        return self

    def factory(self, env=None):
        """make_run_cmd replacement: records *env* and returns this runner."""
        self.envs.append(dict(env or {}))
        return self

    def __call__(self, command, dry_run=False, cwd=None, log_output=False):
        self.calls.append({"command": list(command), "dry_run": dry_run, "cwd": cwd})
        if dry_run:
            return 0, "", ""
        line = " ".join(command)
        for match, result in self.responses:
            if match in line:
                return result
        return 0, "", ""

    def commands(self) -> list[str]:
        return [" ".join(call["command"]) for call in self.calls]

    def executed(self, verb) -> list[str]:
        """Commands containing *verb* that actually ran (not dry run)."""
        return [" ".join(c["command"]) for c in self.calls if verb in c["command"] and not c["dry_run"]]


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def make_runner():
    """Factory for additional FakeRunner instances (e.g. separate om and bosh runners)."""
    return FakeRunner


@pytest.fixture
def bosh_json():
    return bosh_table


@pytest.fixture
def target():
    return OpsManagerTarget(url="https://opsman.example.com", username="admin", password="opsman-password")


@pytest.fixture
def transient():
    files = TransientFiles()
    yield files
    files.cleanup()


@pytest.fixture(autouse=True)
def _isolated_secrets(monkeypatch):
    """Each test starts with no registered secrets and a fresh pattern cache."""
    monkeypatch.setattr(redact_module, "_registered", set())
    monkeypatch.setattr(redact_module, "_patterns", None)
