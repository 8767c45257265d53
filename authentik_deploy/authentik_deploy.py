#!/usr/bin/env python3
"""authentik deployment tools for Tanzu Operations Manager: CLI entrypoint."""

import logging
import sys

from authentik_deploy.commands.deploy import register_deploy_command
from authentik_deploy.commands.tile import register_tile_command
from authentik_deploy.commands.undeploy import register_undeploy_command
from authentik_deploy.errors import DeployError
from authentik_deploy.logging_setup import setup_cli_logging
from authentik_deploy.options import OptionParser
from authentik_deploy.transient import install_cleanup_hook

logger = logging.getLogger(__name__)


def build_parser():
    parser = OptionParser(
        prog="authentik-deploy",
        description="Deploy authentik to Tanzu Operations Manager's BOSH Director",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_deploy_command(subparsers)
    register_undeploy_command(subparsers)
    register_tile_command(subparsers)
    return parser


def main(argv=None):
    setup_cli_logging()
    install_cleanup_hook()
    try:
        args = build_parser().parse_args(argv)
        args.func(args)
    except DeployError as e:
        logger.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logger.error("Interrupted")
        sys.exit(1)


if __name__ == "__main__":
    main()
