"""Tile builder: package the BOSH release into an Ops Manager .pivotal file."""

import glob
import logging
import os
import shutil
import zipfile
from dataclasses import dataclass

import httpx
import yaml

from authentik_deploy.credentials import REQUIRED_TOOLS, check_tools
from authentik_deploy.dependencies import BLOBS_SCRIPT, BPM_RELEASE, POSTGRES_RELEASE, RELEASE_TARBALL, REQUIRED_BLOB
from authentik_deploy.errors import ConnectivityError, DeploymentFailedError, PrerequisiteMissingError
from authentik_deploy.logging_setup import echo, log_success
from authentik_deploy.options import DEFAULT_AUTHENTIK_VERSION
from authentik_deploy.platform import bosh

logger = logging.getLogger(__name__)

BPM_VERSION = "1.2.20"
POSTGRES_VERSION = "53"

DEFAULT_OUTPUT_DIR = "output"
METADATA_TEMPLATE = os.path.join("tile", "metadata", "metadata.yml")

ICON_PLACEHOLDER = "((icon_image))"
# 1x1 transparent PNG
ICON_IMAGE = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="

INITIAL_MIGRATION_NAME = "202501301200_initial.js"
INITIAL_MIGRATION = """exports.migrate = function(input) {
  // Initial migration - no changes needed
  return input;
};
"""

TILE_SUBDIRS = ("metadata", "releases", os.path.join("migrations", "v1"), "content_migrations")

DOWNLOAD_TIMEOUT = 300


@dataclass(frozen=True)
class TileOptions:
    version: str = DEFAULT_AUTHENTIK_VERSION
    output_dir: str = DEFAULT_OUTPUT_DIR
    release_dir: str = "."
    metadata: str | None = None
    skip_release_build: bool = False
    skip_dependency_download: bool = False

    @property
    def metadata_template(self) -> str:
        return self.metadata or os.path.join(self.release_dir, METADATA_TEMPLATE)

    @property
    def tile_name(self) -> str:
        return f"authentik-{self.version}.pivotal"


def dependency_downloads() -> list[tuple[str, str, str]]:
    """(label, url, file name) of every release bundled alongside authentik."""
    return [
        ("BPM", f"{BPM_RELEASE[1]}?v={BPM_VERSION}", f"bpm-{BPM_VERSION}.tgz"),
        ("PostgreSQL", f"{POSTGRES_RELEASE[1]}?v={POSTGRES_VERSION}", f"postgres-{POSTGRES_VERSION}.tgz"),
    ]


# ── Steps ──────────────────────────────────────────────────────────


def setup_build_tree(transient) -> str:
    """Create the temporary tile tree and return its root."""
    logger.info("Setting up build directory...")
    build_dir = transient.mkdtemp(prefix="authentik-tile-")
    tile_dir = os.path.join(build_dir, "tile")
    for subdir in TILE_SUBDIRS:
        os.makedirs(os.path.join(tile_dir, subdir), exist_ok=True)
    log_success(logger, f"Build directory: {build_dir}")
    return tile_dir


def download_file(url, dest, client=None):
    """Stream *url* to *dest*, following redirects. A partial file is removed on failure."""
    own_client = client is None
    if own_client:
        client = httpx.Client(follow_redirects=True, timeout=DOWNLOAD_TIMEOUT)
    try:
        with client.stream("GET", url) as resp:
            resp.raise_for_status()
            with open(dest, "wb") as f:
                for chunk in resp.iter_bytes():
                    f.write(chunk)
    except httpx.HTTPError as e:
        if os.path.exists(dest):
            os.unlink(dest)
        raise ConnectivityError(f"Failed to download {url}: {e}") from e
    finally:
        if own_client:
            client.close()


def download_dependencies(tile_dir, client=None):
    logger.info("Downloading dependency releases...")
    releases_dir = os.path.join(tile_dir, "releases")
    for label, url, filename in dependency_downloads():
        dest = os.path.join(releases_dir, filename)
        if os.path.isfile(dest):
            continue
        logger.info(f"Downloading {label} release {filename}...")
        download_file(url, dest, client=client)
    log_success(logger, "Dependencies downloaded")


def find_existing_release(release_dir) -> str | None:
    """An already built authentik release tarball in *release_dir*, if any."""
    candidates = sorted(glob.glob(os.path.join(release_dir, "authentik-*.tgz")))
    if candidates:
        return candidates[0]
    legacy = os.path.join(release_dir, RELEASE_TARBALL)
    return legacy if os.path.isfile(legacy) else None


def build_release(run_cmd, options, tile_dir) -> str:
    """Place authentik-<version>.tgz in the tile, copying or building it.

    Raises:
        PrerequisiteMissingError: bosh or the blobs are missing.
        DeploymentFailedError: bosh create-release failed.
    """
    dest = os.path.join(tile_dir, "releases", f"authentik-{options.version}.tgz")

    if options.skip_release_build:
        logger.info("Skipping release build, looking for existing tarball...")
        existing = find_existing_release(options.release_dir)
        if existing:
            shutil.copyfile(existing, dest)
            log_success(logger, f"Using existing release: {existing}")
            return dest
        logger.warning("No existing release found, building...")

    logger.info("Building Authentik BOSH release...")
    check_tools({"bosh": REQUIRED_TOOLS["bosh"]})
    if not os.path.isfile(os.path.join(options.release_dir, REQUIRED_BLOB)):
        raise PrerequisiteMissingError(f"Blobs not found. Please run {BLOBS_SCRIPT} first")

    rc, stdout, stderr = bosh.create_release(run_cmd, options.release_dir, dest, version=options.version)
    if rc != 0:
        raise DeploymentFailedError("Building authentik release", rc, stdout or stderr)
    log_success(logger, "Authentik release built")
    return dest


def render_metadata(template, version) -> dict:
    """Return the tile metadata with version, release file and icon filled in."""
    data = yaml.safe_load(template.replace(ICON_PLACEHOLDER, ICON_IMAGE)) or {}
    data["product_version"] = version
    for release in data.get("releases") or []:
        if release.get("name") == "authentik":
            release["version"] = version
            release["file"] = f"authentik-{version}.tgz"
    return data


def generate_metadata(template_path, tile_dir, version):
    logger.info("Generating tile metadata...")
    try:
        with open(template_path) as f:
            template = f.read()
    except FileNotFoundError:
        raise PrerequisiteMissingError(f"Tile metadata template not found: {template_path}") from None

    dest = os.path.join(tile_dir, "metadata", os.path.basename(template_path))
    with open(dest, "w") as f:
        yaml.safe_dump(render_metadata(template, version), f, default_flow_style=False, sort_keys=False)
    log_success(logger, "Metadata generated")


def create_migrations(tile_dir):
    logger.info("Creating migration files...")
    with open(os.path.join(tile_dir, "migrations", "v1", INITIAL_MIGRATION_NAME), "w") as f:
        f.write(INITIAL_MIGRATION)
    with open(os.path.join(tile_dir, "content_migrations", "content_migrations.yml"), "w") as f:
        f.write("---\n")
        yaml.safe_dump({"product": "authentik", "installation_schema_version": "1.0"}, f, sort_keys=False)
    log_success(logger, "Migrations created")


def package_tile(tile_dir, output_dir, tile_name) -> str:
    """Zip *tile_dir* into <output_dir>/<tile_name> and return the path."""
    logger.info("Packaging tile...")
    os.makedirs(output_dir, exist_ok=True)
    tile_path = os.path.join(output_dir, tile_name)
    with zipfile.ZipFile(tile_path, "w", zipfile.ZIP_DEFLATED) as zf:
        for root, dirs, files in os.walk(tile_dir):
            dirs.sort()
            for name in sorted(files):
                path = os.path.join(root, name)
                zf.write(path, os.path.relpath(path, tile_dir))
    log_success(logger, f"Tile packaged: {tile_path}")
    return tile_path


def show_summary(tile_path, version):
    echo(logger)
    echo(logger, "==========================================")
    echo(logger, "         TILE BUILD COMPLETE")
    echo(logger, "==========================================")
    echo(logger)
    echo(logger, f"Tile: {tile_path}")
    echo(logger)
    echo(logger, "To install the tile:")
    echo(logger, "  1. Log into Tanzu Operations Manager")
    echo(logger, "  2. Click 'Import a Product'")
    echo(logger, "  3. Select the .pivotal file")
    echo(logger, "  4. Click '+' to stage the product")
    echo(logger, "  5. Configure the tile settings")
    echo(logger, "  6. Apply Changes")
    echo(logger)
    echo(logger, "Or use the OM CLI:")
    echo(logger, f"  om upload-product -p {tile_path}")
    echo(logger, f"  om stage-product -p authentik -v {version}")
    echo(logger, "  om configure-product -c config.yml")
    echo(logger, "  om apply-changes")
    echo(logger)


def build_tile(options, transient, run_cmd, client=None) -> str:
    """Run every build step and return the path of the .pivotal file.

    Args:
        options: TileOptions
        transient: TransientFiles registry that owns the build tree
        run_cmd: run_cmd callable used for bosh create-release
        client: optional httpx.Client for the dependency downloads
    """
    tile_dir = setup_build_tree(transient)
    if options.skip_dependency_download:
        logger.info("Skipping dependency download...")
    else:
        download_dependencies(tile_dir, client=client)
    build_release(run_cmd, options, tile_dir)
    generate_metadata(options.metadata_template, tile_dir, options.version)
    create_migrations(tile_dir)
    return package_tile(tile_dir, options.output_dir, options.tile_name)
