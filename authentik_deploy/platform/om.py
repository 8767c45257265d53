"""Ops Manager access through the `om` CLI."""

import json
import logging

from authentik_deploy.errors import ConnectivityError, CredentialError

logger = logging.getLogger(__name__)

INFO_PATH = "/api/v0/info"
DIRECTOR_MANIFEST_PATH = "/api/v0/deployed/director/manifest"
DEFAULT_IAAS = "vsphere"

# Keys of `om bosh-env --json` we extract; absent keys read as ""
BOSH_ENV_KEYS = ("BOSH_ENVIRONMENT", "BOSH_CLIENT", "BOSH_CLIENT_SECRET", "BOSH_CA_CERT")

# ── Command builders ───────────────────────────────────────────────


def _om_cmd(*args, skip_ssl_validation=False):
    cmd = ["om"]
    if skip_ssl_validation:
        cmd.append("--skip-ssl-validation")
    cmd.extend(args)
    return cmd


def _om_curl_cmd(path, skip_ssl_validation=False):
    return _om_cmd("curl", "-s", "-p", path, skip_ssl_validation=skip_ssl_validation)


def _om_bosh_env_cmd(skip_ssl_validation=False):
    return _om_cmd("bosh-env", "--json", skip_ssl_validation=skip_ssl_validation)


# ── Core logic ─────────────────────────────────────────────────────


def probe(run_cmd, skip_ssl_validation=False) -> bool:
    """Authenticated no-op request against Ops Manager. True when it answers."""
    rc, _, _ = run_cmd(_om_curl_cmd(INFO_PATH, skip_ssl_validation))
    return rc == 0


def fetch_bosh_env(run_cmd, skip_ssl_validation=False) -> dict:
    """Return the director credential bundle with all four keys present.

    Missing or null keys become empty strings; deciding which of them are
    required is left to the caller.
    """
    rc, stdout, stderr = run_cmd(_om_bosh_env_cmd(skip_ssl_validation))
    if rc != 0:
        raise CredentialError(f"Failed to extract BOSH credentials from Ops Manager: {stderr.strip()}")
    try:
        bundle = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise CredentialError(f"Ops Manager returned an unreadable credential bundle: {e}") from e
    if not isinstance(bundle, dict):
        raise CredentialError("Ops Manager returned an unreadable credential bundle")
    return {key: bundle.get(key) or "" for key in BOSH_ENV_KEYS}


def fetch_iaas_type(run_cmd, skip_ssl_validation=False) -> str:
    """Cloud provider type of the deployed BOSH Director (vsphere, aws, ...)."""
    rc, stdout, stderr = run_cmd(_om_curl_cmd(DIRECTOR_MANIFEST_PATH, skip_ssl_validation))
    if rc != 0:
        raise ConnectivityError(f"Failed to read the director manifest from Ops Manager: {stderr.strip()}")
    try:
        manifest = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise ConnectivityError(f"Ops Manager returned an unreadable director manifest: {e}") from e
    cloud_provider = (manifest.get("cloud_provider") if isinstance(manifest, dict) else None) or {}
    return cloud_provider.get("type") or DEFAULT_IAAS
