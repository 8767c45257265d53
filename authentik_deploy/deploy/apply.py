"""Apply engine: submit the composed deployment and derive access URLs.

State machine: COMPOSING -> PREVIEWING (dry run, terminal)
                         -> SUBMITTING -> SUCCEEDED | FAILED
"""

import enum
import logging
from dataclasses import dataclass, field

from authentik_deploy.deploy.compose import overlay_paths, render_variables
from authentik_deploy.errors import DeploymentFailedError
from authentik_deploy.logging_setup import echo, log_success
from authentik_deploy.platform import bosh
from authentik_deploy.platform.types import Instance
from authentik_deploy.redact import redact_secrets

logger = logging.getLogger(__name__)

# Protocol -> port exposed by the authentik VM
PORTS = {
    "http": 9000,
    "https": 9443,
    "metrics": 9300,
    "ldap": 3389,
    "ldaps": 6636,
    "radius": 1812,
    "proxy_http": 9080,
    "proxy_https": 9444,
}

INITIAL_SETUP_PATH = "/if/flow/initial-setup/"


class ApplyState(enum.Enum):
    COMPOSING = "composing"
    PREVIEWING = "previewing"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class AccessEndpoint:
    """One reachable address of the deployment, grouped by component."""

    group: str
    label: str
    url: str


@dataclass
class DeploymentResult:
    deployment_name: str
    state: ApplyState
    variables: dict
    overlays: list[str]
    command: list[str] = field(default_factory=list)
    instances: list[Instance] = field(default_factory=list)
    address: str = ""
    endpoints: list[AccessEndpoint] = field(default_factory=list)


def access_urls(ip, outposts=()) -> list[AccessEndpoint]:
    """Access URLs for the VM at *ip*; outpost entries only for enabled kinds.

    Args:
        ip: address of the authentik instance
        outposts: enabled outpost kinds, e.g. ("ldap", "proxy")
    """
    endpoints = [
        AccessEndpoint("Authentik", "HTTP", f"http://{ip}:{PORTS['http']}"),
        AccessEndpoint("Authentik", "HTTPS", f"https://{ip}:{PORTS['https']}"),
        AccessEndpoint("Authentik", "Metrics", f"http://{ip}:{PORTS['metrics']}/metrics"),
    ]
    if "ldap" in outposts:
        endpoints.append(AccessEndpoint("LDAP Outpost", "LDAP", f"ldap://{ip}:{PORTS['ldap']}"))
        endpoints.append(AccessEndpoint("LDAP Outpost", "LDAPS", f"ldaps://{ip}:{PORTS['ldaps']}"))
    if "radius" in outposts:
        endpoints.append(AccessEndpoint("RADIUS Outpost", "UDP", f"{ip}:{PORTS['radius']}"))
    if "proxy" in outposts:
        endpoints.append(AccessEndpoint("Proxy Outpost", "HTTP", f"http://{ip}:{PORTS['proxy_http']}"))
        endpoints.append(AccessEndpoint("Proxy Outpost", "HTTPS", f"https://{ip}:{PORTS['proxy_https']}"))
    return endpoints


def initial_setup_url(ip) -> str:
    return f"http://{ip}:{PORTS['http']}{INITIAL_SETUP_PATH}"


def find_authentik_instance(instances) -> Instance | None:
    """First instance whose name contains "authentik" and that has an address."""
    for instance in instances:
        if "authentik" in instance.name and instance.address:
            return instance
    return None


def _preview(command, rendered):
    echo(logger)
    echo(logger, "[DRY-RUN] Would deploy with the following command:")
    echo(logger)
    echo(logger, " ".join(command))
    echo(logger)
    echo(logger, "Variables file contents:")
    echo(logger, "========================")
    if redact_secrets(rendered) != rendered:
        echo(logger, "(secret values are shown as *** here; the submitted file carries them unmasked)")
    echo(logger, rendered.rstrip("\n"))
    echo(logger)


def apply(
    run_cmd,
    transient,
    manifest,
    variables,
    overlays,
    deployment_name,
    release_dir,
    dry_run=False,
    outposts=(),
) -> DeploymentResult:
    """Submit the deployment, or preview it when *dry_run* is set.

    Args:
        run_cmd: bosh run_cmd callable (see platform.shell.make_run_cmd)
        transient: TransientFiles registry that owns the variables file
        manifest: path of the base manifest
        variables: variables bundle from compose()
        overlays: overlay identifiers from compose()
        deployment_name: BOSH deployment name
        release_dir: release tree holding the operations/ fragments
        dry_run: preview only, never call bosh deploy
        outposts: enabled outpost kinds, used for access URL derivation

    Raises:
        DeploymentFailedError: bosh deploy exited non-zero.
    """
    result = DeploymentResult(
        deployment_name=deployment_name,
        state=ApplyState.COMPOSING,
        variables=variables,
        overlays=list(overlays),
    )
    rendered = render_variables(variables)
    vars_file = transient.write(rendered, prefix="authentik-vars-", suffix=".yml")
    try:
        ops_files = overlay_paths(overlays, release_dir)
        result.command = bosh.deploy_cmd(deployment_name, manifest, vars_file, ops_files)

        if dry_run:
            result.state = ApplyState.PREVIEWING
            _preview(result.command, rendered)
            return result

        logger.info("Running BOSH deployment...")
        result.state = ApplyState.SUBMITTING
        rc, stdout, stderr = bosh.deploy(
            run_cmd,
            deployment_name,
            manifest,
            vars_file,
            ops_files,
        )
        if rc != 0:
            result.state = ApplyState.FAILED
            raise DeploymentFailedError("BOSH deployment", rc, stdout or stderr)
        result.state = ApplyState.SUCCEEDED
        log_success(logger, "Deployment completed successfully")
    finally:
        transient.discard(vars_file)

    logger.info("Retrieving deployment information...")
    result.instances = bosh.list_instances(run_cmd, deployment_name)
    instance = find_authentik_instance(result.instances)
    if instance is None:
        logger.warning(f"No authentik instance with an IP address found in deployment '{deployment_name}'")
        return result
    result.address = instance.address
    result.endpoints = access_urls(result.address, outposts)
    return result


# ── Reporting ──────────────────────────────────────────────────────


def _banner(title):
    rule = "=" * 42
    echo(logger)
    echo(logger, rule)
    echo(logger, title.center(42).rstrip())
    echo(logger, rule)
    echo(logger)


def _instance_table(instances):
    rows = [("Instance", "Process State", "IPs")]
    rows += [(i.name, i.process_state, " ".join(i.ips)) for i in instances]
    widths = [max(len(row[col]) for row in rows) for col in range(3)]
    for row in rows:
        echo(logger, "  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip())


def report(result, outposts_enabled=(), outpost_token=""):
    """Print the deployment information block for a finished apply."""
    if result.state is not ApplyState.SUCCEEDED:
        echo(logger, "[DRY-RUN] Would display deployment information")
        return

    _banner("DEPLOYMENT INFORMATION")
    if result.instances:
        _instance_table(result.instances)
    if not result.address:
        return

    _banner("AUTHENTIK ACCESS")
    group = None
    for endpoint in result.endpoints:
        if endpoint.group != group:
            if group is not None:
                echo(logger)
            if endpoint.group == "Authentik":
                echo(logger, "Authentik is available at:")
            else:
                echo(logger, f"{endpoint.group}:")
            group = endpoint.group
        echo(logger, f"  {endpoint.label + ':':<8} {endpoint.url}")
        if endpoint.label == "Metrics":
            echo(logger)
            echo(logger, "Initial Setup:")
            echo(logger, f"  {initial_setup_url(result.address)}")
            group = "Initial Setup"

    _banner("NEXT STEPS")
    echo(logger, "1. Access the initial setup URL above to create your admin account")
    echo(logger, "2. Configure your identity providers and applications")
    echo(logger, "3. Set up outpost tokens if using LDAP/RADIUS/Proxy outposts")
    echo(logger)

    if outposts_enabled and not outpost_token:
        logger.warning("Outpost token was not provided during deployment.")
        echo(logger, "To configure outposts:")
        echo(logger, "  1. Log into authentik admin UI")
        echo(logger, "  2. Go to Applications > Outposts")
        echo(logger, "  3. Create an outpost and copy the token")
        echo(logger, "  4. Re-run this command with --outpost-token <token>")
        echo(logger)
