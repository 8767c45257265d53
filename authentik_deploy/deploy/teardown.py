"""Teardown engine: confirm, delete the deployment, optionally drop the release.

State machine: CONFIRMING -> (exists? DELETING : NO_OP)
               -> CLEANING_DEPENDENCIES (optional) -> DONE
Any answer other than "yes" ends in CANCELLED.
"""

import enum
import logging

from authentik_deploy.errors import CleanupWarning, DeploymentFailedError
from authentik_deploy.logging_setup import echo, log_success
from authentik_deploy.platform import bosh

logger = logging.getLogger(__name__)

RELEASE_NAME = "authentik"


class TeardownState(enum.Enum):
    CONFIRMING = "confirming"
    CANCELLED = "cancelled"
    NO_OP = "no-op"
    DELETING = "deleting"
    CLEANING_DEPENDENCIES = "cleaning-dependencies"
    DONE = "done"


def confirm_deletion(deployment_name, force=False, prompt=input) -> bool:
    """Ask the operator to type "yes" (any case). EOF counts as a refusal."""
    if force:
        return True

    echo(logger)
    logger.warning(f"You are about to delete the '{deployment_name}' deployment.")
    echo(logger)
    echo(logger, "This will:")
    echo(logger, "  - Stop all running Authentik services")
    echo(logger, "  - Delete all VMs associated with this deployment")
    echo(logger, "  - Remove persistent disks (DATA LOSS)")
    echo(logger)

    try:
        response = prompt("Are you sure you want to continue? (yes/no): ")
    except EOFError:
        response = ""
    return response.strip().lower() == "yes"


def delete_deployment(run_cmd, deployment_name) -> bool:
    """Delete *deployment_name* if it exists. Returns False for the no-op case.

    Raises:
        DeploymentFailedError: bosh delete-deployment exited non-zero.
    """
    logger.info(f"Deleting deployment '{deployment_name}'...")
    if not bosh.deployment_exists(run_cmd, deployment_name):
        logger.warning(f"Deployment '{deployment_name}' not found")
        return False

    rc, stdout, stderr = bosh.delete_deployment(run_cmd, deployment_name)
    if rc != 0:
        raise DeploymentFailedError(f"Deleting deployment '{deployment_name}'", rc, stdout or stderr)
    log_success(logger, "Deployment deleted successfully")
    return True


def cleanup_release(run_cmd, name=RELEASE_NAME):
    """Delete the uploaded *name* release.

    Raises:
        CleanupWarning: the release could not be listed or is still in use.
    """
    logger.info("Cleaning up uploaded releases...")
    releases = bosh.list_releases(run_cmd)
    if releases is None:
        raise CleanupWarning("Could not list releases on the BOSH Director")
    if not any(row.get("name") == name for row in releases):
        logger.info(f"No '{name}' release uploaded; nothing to remove")
        return

    logger.info(f"Removing {name} release...")
    rc, _, _ = bosh.delete_release(run_cmd, name)
    if rc != 0:
        raise CleanupWarning(
            f"Release '{name}' was not removed (exit code {rc}); it may still be used by another deployment"
        )


def teardown(run_cmd, deployment_name, force=False, cleanup_releases=False, prompt=input) -> TeardownState:
    """Run the undeploy workflow against an already verified director.

    Returns the terminal state: CANCELLED, NO_OP or DONE. Cancellation and
    a missing deployment are not errors.
    """
    if not confirm_deletion(deployment_name, force=force, prompt=prompt):
        logger.info("Deletion cancelled.")
        return TeardownState.CANCELLED

    state = TeardownState.DELETING if delete_deployment(run_cmd, deployment_name) else TeardownState.NO_OP

    if cleanup_releases:
        try:
            cleanup_release(run_cmd)
        except CleanupWarning as e:
            logger.warning(str(e))
        else:
            log_success(logger, "Release cleanup complete")

    return TeardownState.DONE if state is TeardownState.DELETING else state
