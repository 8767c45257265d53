"""Deploy command: authentik onto the BOSH Director behind Ops Manager."""

import logging
import shutil

from authentik_deploy.credentials import bootstrap, check_tools
from authentik_deploy.dependencies import ensure_prerequisites
from authentik_deploy.deploy import apply, compose, manifest_path, report
from authentik_deploy.logging_setup import echo, log_success
from authentik_deploy.options import add_deploy_arguments, deploy_options_from_args
from authentik_deploy.platform import make_run_cmd
from authentik_deploy.redact import register_secret
from authentik_deploy.transient import install_cleanup_hook

logger = logging.getLogger(__name__)


def _banner(title):
    echo(logger)
    echo(logger, "==========================================")
    echo(logger, f"  {title}")
    echo(logger, "==========================================")
    echo(logger)


def _register_option_secrets(options):
    if options.postgres is not None:
        register_secret(options.postgres.password)
    if options.s3 is not None:
        register_secret(options.s3.secret_key)
    register_secret(options.outposts.token)


def run_deploy(options, transient, make_cmd=make_run_cmd, which=shutil.which):
    """Drive one deploy run from validated options to the access report.

    Args:
        options: DeploymentOptions
        transient: TransientFiles registry for the CA and variables files
        make_cmd: factory(env=...) -> run_cmd
        which: PATH lookup used by the tool check

    Returns:
        DeploymentResult of the apply step.
    """
    _register_option_secrets(options)
    log_success(logger, "Configuration validated")
    for warning in options.warnings:
        logger.warning(warning)
    if options.dry_run:
        logger.warning("Running in DRY-RUN mode - no changes will be made")
        echo(logger)

    check_tools(which=which)
    credentials = bootstrap(options.target, transient, make_cmd=make_cmd)
    bosh_run = make_cmd(env=credentials.bosh_env())
    om_run = make_cmd(env=options.target.om_env())

    ensure_prerequisites(options, bosh_run, om_run)

    logger.info("Deploying Authentik...")
    variables, overlays = compose(options)
    result = apply(
        bosh_run,
        transient,
        manifest_path(options.release_dir),
        variables,
        overlays,
        options.deployment_name,
        options.release_dir,
        dry_run=options.dry_run,
        outposts=options.outposts.enabled,
    )
    report(result, options.outposts.enabled, options.outposts.token)
    log_success(logger, "Deployment complete!")
    return result


def handle_deploy(args):
    """Handle the deploy command."""
    _banner("Authentik Deployment to Tanzu Ops Mgr")
    logger.info("Validating configuration...")
    options = deploy_options_from_args(args)
    run_deploy(options, install_cleanup_hook())


def register_deploy_command(subparsers):
    """Register the deploy subcommand."""
    parser = subparsers.add_parser(
        "deploy",
        help="Deploy authentik to Tanzu Operations Manager's BOSH Director",
        description="Deploy authentik to Tanzu Operations Manager's BOSH Director",
    )
    add_deploy_arguments(parser)
    parser.set_defaults(func=handle_deploy)
