"""Tile command: build the .pivotal file for Ops Manager."""

import logging
import os

from authentik_deploy.logging_setup import echo
from authentik_deploy.options import DEFAULT_AUTHENTIK_VERSION
from authentik_deploy.platform import make_run_cmd
from authentik_deploy.tile import TileOptions, build_tile, show_summary
from authentik_deploy.tile.builder import DEFAULT_OUTPUT_DIR, METADATA_TEMPLATE
from authentik_deploy.transient import install_cleanup_hook

logger = logging.getLogger(__name__)


def handle_tile(args):
    """Handle the tile command."""
    echo(logger)
    echo(logger, "==========================================")
    echo(logger, "      Authentik Tile Builder")
    echo(logger, "==========================================")
    echo(logger)
    options = TileOptions(
        version=args.version,
        output_dir=os.path.abspath(args.output_dir),
        release_dir=os.path.abspath(args.release_dir),
        metadata=os.path.abspath(args.metadata) if args.metadata else None,
        skip_release_build=args.skip_release_build,
        skip_dependency_download=args.skip_dependency_download,
    )
    tile_path = build_tile(options, install_cleanup_hook(), make_run_cmd())
    show_summary(tile_path, options.version)


def register_tile_command(subparsers):
    """Register the tile subcommand."""
    parser = subparsers.add_parser(
        "tile",
        help="Build an Ops Manager tile (.pivotal) from the BOSH release",
        description="Build an Ops Manager tile (.pivotal) from the BOSH release",
    )
    parser.add_argument(
        "--version",
        default=DEFAULT_AUTHENTIK_VERSION,
        help=f"Tile version (default: {DEFAULT_AUTHENTIK_VERSION})",
    )
    parser.add_argument(
        "--output-dir",
        default=DEFAULT_OUTPUT_DIR,
        help=f"Output directory for the tile (default: ./{DEFAULT_OUTPUT_DIR})",
    )
    parser.add_argument("--release-dir", default=".", help="BOSH release directory (default: current directory)")
    parser.add_argument(
        "--metadata",
        default=None,
        help=f"Tile metadata template (default: <release-dir>/{METADATA_TEMPLATE})",
    )
    parser.add_argument(
        "--skip-release-build",
        action="store_true",
        help="Use an existing release tarball instead of building one",
    )
    parser.add_argument(
        "--skip-dependency-download",
        action="store_true",
        help="Skip downloading BPM and PostgreSQL releases",
    )
    parser.set_defaults(func=handle_tile)
