"""BOSH Director access through the `bosh` CLI.

Every function takes a run_cmd callable whose environment already carries
the director credentials (see platform.shell.make_run_cmd). Mutating calls
accept dry_run and only log the command when it is set.
"""

import json
import logging

from authentik_deploy.platform.types import Instance

logger = logging.getLogger(__name__)

# ── Command builders ───────────────────────────────────────────────


def _bosh_cmd(*args, deployment=None):
    cmd = ["bosh"]
    if deployment:
        cmd.extend(["-d", deployment])
    cmd.extend(args)
    return cmd


def deploy_cmd(deployment, manifest, vars_file, ops_files):
    cmd = _bosh_cmd("deploy", manifest, "-l", vars_file, deployment=deployment)
    for ops_file in ops_files:
        cmd.extend(["-o", ops_file])
    cmd.append("-n")
    return cmd


def _table_rows(stdout):
    """Rows of the first table in `bosh --json` output."""
    try:
        tables = json.loads(stdout).get("Tables") or []
    except (json.JSONDecodeError, AttributeError):
        return []
    if not tables:
        return []
    return tables[0].get("Rows") or []


# ── Queries ────────────────────────────────────────────────────────


def check_environment(run_cmd) -> bool:
    """True when the director answers `bosh environment`."""
    rc, _, _ = run_cmd(_bosh_cmd("environment"))
    return rc == 0


def list_stemcells(run_cmd) -> list[dict]:
    rc, stdout, _ = run_cmd(_bosh_cmd("stemcells", "--json"))
    return _table_rows(stdout) if rc == 0 else []


def list_releases(run_cmd) -> list[dict] | None:
    """Uploaded releases, or None when the listing itself failed."""
    rc, stdout, _ = run_cmd(_bosh_cmd("releases", "--json"))
    return _table_rows(stdout) if rc == 0 else None


def deployment_exists(run_cmd, deployment) -> bool:
    rc, _, _ = run_cmd(_bosh_cmd("deployment", deployment=deployment))
    return rc == 0


def list_instances(run_cmd, deployment) -> list[Instance]:
    rc, stdout, _ = run_cmd(_bosh_cmd("instances", "--json", deployment=deployment))
    if rc != 0:
        return []
    instances = []
    for row in _table_rows(stdout):
        ips = [ip.strip() for ip in str(row.get("ips", "")).split() if ip.strip()]
        instances.append(Instance(name=row.get("instance", ""), process_state=row.get("process_state", ""), ips=ips))
    return instances


# ── Mutations ──────────────────────────────────────────────────────


def upload_release(run_cmd, source, name=None, dry_run=False):
    cmd = _bosh_cmd("upload-release", source)
    if name:
        cmd.extend(["--name", name])
    return run_cmd(cmd, dry_run=dry_run, log_output=True)


def upload_stemcell(run_cmd, url, dry_run=False):
    return run_cmd(_bosh_cmd("upload-stemcell", url), dry_run=dry_run, log_output=True)


def create_release(run_cmd, release_dir, tarball, version=None, dry_run=False):
    cmd = _bosh_cmd("create-release", "--force")
    if version:
        cmd.append(f"--version={version}")
    cmd.append(f"--tarball={tarball}")
    return run_cmd(cmd, dry_run=dry_run, cwd=release_dir, log_output=True)


def deploy(run_cmd, deployment, manifest, vars_file, ops_files, dry_run=False):
    return run_cmd(deploy_cmd(deployment, manifest, vars_file, ops_files), dry_run=dry_run, log_output=True)


def delete_deployment(run_cmd, deployment, dry_run=False):
    return run_cmd(_bosh_cmd("delete-deployment", "-n", deployment=deployment), dry_run=dry_run, log_output=True)


def delete_release(run_cmd, name, dry_run=False):
    return run_cmd(_bosh_cmd("delete-release", name, "-n"), dry_run=dry_run, log_output=True)
