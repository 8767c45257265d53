"""Credential broker: operator login to Ops Manager -> BOSH Director credentials.

Verification is two-phase. Ops Manager is probed before any credential is
requested, and the director is probed with the extracted credentials before
anything else runs, because the two systems fail independently.
"""

import logging
import shutil

from authentik_deploy.errors import ConnectivityError, CredentialError, PrerequisiteMissingError
from authentik_deploy.logging_setup import log_success
from authentik_deploy.platform import bosh, om
from authentik_deploy.platform.shell import make_run_cmd
from authentik_deploy.platform.types import OrchestrationCredentials
from authentik_deploy.redact import register_secret

logger = logging.getLogger(__name__)

# Tool -> installation instructions
REQUIRED_TOOLS = {
    "om": "https://github.com/pivotal-cf/om/releases",
    "bosh": "https://bosh.io/docs/cli-v2-install/",
}


def check_tools(tools=None, which=shutil.which):
    """Raise PrerequisiteMissingError naming every required CLI missing from PATH."""
    tools = REQUIRED_TOOLS if tools is None else tools
    logger.info("Checking dependencies...")
    missing = [name for name in tools if which(name) is None]
    if missing:
        instructions = "\n".join(f"  {name}: {tools[name]}" for name in missing)
        raise PrerequisiteMissingError(
            f"Missing required dependencies: {' '.join(missing)}\n\nInstallation instructions:\n{instructions}"
        )
    log_success(logger, "All dependencies are installed")


def bootstrap(target, transient, make_cmd=make_run_cmd) -> OrchestrationCredentials:
    """Exchange Ops Manager credentials for verified BOSH Director credentials.

    Args:
        target: OpsManagerTarget with URL, username, password, TLS flag
        transient: TransientFiles registry that owns the CA certificate file
        make_cmd: factory(env=...) -> run_cmd, replaced in tests

    Returns:
        OrchestrationCredentials. When the bundle carries a CA certificate,
        ca_cert_file is a 0600 temp file removed by the registry on every
        exit path.

    Raises:
        ConnectivityError: Ops Manager or the director did not answer.
        CredentialError: the bundle lacks an environment or client id.
    """
    register_secret(target.password)

    logger.info("Connecting to Tanzu Operations Manager...")
    om_run = make_cmd(env=target.om_env())
    if not om.probe(om_run, target.skip_ssl_validation):
        raise ConnectivityError(f"Failed to connect to Ops Manager at {target.url}")
    log_success(logger, "Connected to Ops Manager")

    logger.info("Extracting BOSH Director credentials...")
    bundle = om.fetch_bosh_env(om_run, target.skip_ssl_validation)
    register_secret(bundle["BOSH_CLIENT_SECRET"])
    if not bundle["BOSH_ENVIRONMENT"] or not bundle["BOSH_CLIENT"]:
        raise CredentialError("Failed to extract BOSH credentials from Ops Manager")

    ca_cert = bundle["BOSH_CA_CERT"]
    ca_cert_file = None
    if ca_cert:
        if not ca_cert.endswith("\n"):
            ca_cert += "\n"
        ca_cert_file = transient.write(ca_cert, prefix="bosh-ca-", suffix=".pem")

    credentials = OrchestrationCredentials(
        environment=bundle["BOSH_ENVIRONMENT"],
        client=bundle["BOSH_CLIENT"],
        client_secret=bundle["BOSH_CLIENT_SECRET"],
        ca_cert=bundle["BOSH_CA_CERT"],
        ca_cert_file=ca_cert_file,
    )

    if not bosh.check_environment(make_cmd(env=credentials.bosh_env())):
        if ca_cert_file:
            transient.discard(ca_cert_file)
        raise ConnectivityError("Failed to connect to BOSH Director")
    log_success(logger, f"Connected to BOSH Director at {credentials.environment}")
    return credentials
