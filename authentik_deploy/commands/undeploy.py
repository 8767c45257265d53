"""Undeploy command: remove the authentik deployment from the BOSH Director."""

import logging
import shutil

from authentik_deploy.credentials import bootstrap, check_tools
from authentik_deploy.deploy import TeardownState, teardown
from authentik_deploy.logging_setup import echo, log_success
from authentik_deploy.options import add_teardown_arguments, teardown_options_from_args
from authentik_deploy.platform import make_run_cmd
from authentik_deploy.transient import install_cleanup_hook

logger = logging.getLogger(__name__)


def run_undeploy(options, transient, make_cmd=make_run_cmd, which=shutil.which, prompt=input):
    """Connect to the director and run the teardown engine.

    Returns the terminal TeardownState.
    """
    check_tools(which=which)
    credentials = bootstrap(options.target, transient, make_cmd=make_cmd)
    state = teardown(
        make_cmd(env=credentials.bosh_env()),
        options.deployment_name,
        force=options.force,
        cleanup_releases=options.cleanup_releases,
        prompt=prompt,
    )
    if state is not TeardownState.CANCELLED:
        log_success(logger, "Undeployment complete!")
    return state


def handle_undeploy(args):
    """Handle the undeploy command."""
    echo(logger)
    echo(logger, "==========================================")
    echo(logger, "  Remove Authentik from Tanzu Ops Mgr")
    echo(logger, "==========================================")
    echo(logger)
    options = teardown_options_from_args(args)
    run_undeploy(options, install_cleanup_hook())


def register_undeploy_command(subparsers):
    """Register the undeploy subcommand."""
    parser = subparsers.add_parser(
        "undeploy",
        help="Remove the authentik BOSH deployment",
        description="Remove the authentik BOSH deployment",
    )
    add_teardown_arguments(parser)
    parser.set_defaults(func=handle_undeploy)
