"""Dependency resolver: releases and stemcell the authentik manifest needs.

Two idempotence policies apply here:

- Releases are uploaded every run. The director deduplicates releases
  itself, so a non-zero exit from upload-release ("already present") is
  logged and ignored. This is the one place a failed call is non-fatal.
- The stemcell is listed first and uploaded only when no ubuntu-jammy
  stemcell exists, because the director does not deduplicate stemcell
  uploads cheaply.
"""

import logging
import os

from authentik_deploy.errors import DeploymentFailedError, PrerequisiteMissingError, UnsupportedInfrastructureError
from authentik_deploy.logging_setup import log_success
from authentik_deploy.platform import bosh, om

logger = logging.getLogger(__name__)

BPM_RELEASE = ("bpm", "https://bosh.io/d/github.com/cloudfoundry/bpm-release")
POSTGRES_RELEASE = ("postgres", "https://bosh.io/d/github.com/cloudfoundry/postgres-release")

STEMCELL_OS = "ubuntu-jammy"

# Director cloud provider type -> stemcell URL
STEMCELL_URLS = {
    "vsphere": "https://bosh.io/d/stemcells/bosh-vsphere-esxi-ubuntu-jammy-go_agent",
    "aws": "https://bosh.io/d/stemcells/bosh-aws-xen-hvm-ubuntu-jammy-go_agent",
    "azure": "https://bosh.io/d/stemcells/bosh-azure-hyperv-ubuntu-jammy-go_agent",
    "google": "https://bosh.io/d/stemcells/bosh-google-kvm-ubuntu-jammy-go_agent",
}

RELEASE_TARBALL = "authentik-release.tgz"
REQUIRED_BLOB = os.path.join("blobs", "python", "Python-3.12.4.tar.xz")
BLOBS_SCRIPT = os.path.join("scripts", "download-blobs.sh")


def stemcell_url(iaas):
    """Map a director cloud provider type to its ubuntu-jammy stemcell URL."""
    try:
        return STEMCELL_URLS[iaas]
    except KeyError:
        raise UnsupportedInfrastructureError(iaas) from None


def supporting_releases(options):
    """(name, url) of the bosh.io releases the deployment needs.

    The postgres release is only needed for the embedded database.
    """
    releases = [BPM_RELEASE]
    if options.postgres is None:
        releases.append(POSTGRES_RELEASE)
    return releases


def resolve_stemcell(bosh_run, om_run, skip_ssl_validation=False):
    """Return the stemcell URL to upload, or None when one is already present."""
    logger.info("Checking stemcell availability...")
    if any(row.get("os") == STEMCELL_OS for row in bosh.list_stemcells(bosh_run)):
        log_success(logger, "Ubuntu Jammy stemcell already available")
        return None
    iaas = om.fetch_iaas_type(om_run, skip_ssl_validation)
    url = stemcell_url(iaas)
    logger.info(f"No Ubuntu Jammy stemcell on the director; will upload the {iaas} stemcell")
    return url


def upload_release_tolerant(bosh_run, label, source, name=None, dry_run=False):
    """Upload a release; a failure means "already present" and is not fatal."""
    logger.info(f"Uploading {label} release...")
    rc, _, _ = bosh.upload_release(bosh_run, source, name=name, dry_run=dry_run)
    if rc != 0:
        logger.warning(f"Upload of {label} release exited with code {rc}; assuming it is already present")


def ensure_release_tarball(bosh_run, release_dir, version=None, dry_run=False):
    """Return the authentik release tarball path, building it when absent.

    Raises:
        PrerequisiteMissingError: the raw blobs needed to build are missing.
        DeploymentFailedError: bosh create-release failed.
    """
    tarball = os.path.join(release_dir, RELEASE_TARBALL)
    if os.path.isfile(tarball):
        return tarball

    logger.info("Authentik release tarball not found. Building release...")
    if not os.path.isfile(os.path.join(release_dir, REQUIRED_BLOB)):
        message = (
            f"Blobs not found ({REQUIRED_BLOB}). Run {BLOBS_SCRIPT}, complete the manual steps it prints, "
            "and re-run this command."
        )
        if not dry_run:
            raise PrerequisiteMissingError(message)
        logger.warning(message)

    rc, stdout, stderr = bosh.create_release(bosh_run, release_dir, tarball, version=version, dry_run=dry_run)
    if rc != 0:
        raise DeploymentFailedError("Building authentik release", rc, stdout or stderr)
    return tarball


def ensure_prerequisites(options, bosh_run, om_run):
    """Make every release and the stemcell available on the director.

    The stemcell source is resolved before any upload so an unsupported
    IaaS stops the run before anything is changed.
    """
    stemcell = resolve_stemcell(bosh_run, om_run, options.target.skip_ssl_validation)

    logger.info("Uploading required BOSH releases...")
    for name, url in supporting_releases(options):
        upload_release_tolerant(bosh_run, name, url, name=name, dry_run=options.dry_run)

    tarball = ensure_release_tarball(
        bosh_run,
        options.release_dir,
        version=options.authentik_version,
        dry_run=options.dry_run,
    )
    upload_release_tolerant(bosh_run, "authentik", tarball, dry_run=options.dry_run)
    log_success(logger, "All releases uploaded")

    if stemcell:
        logger.info("Uploading Ubuntu Jammy stemcell...")
        rc, stdout, stderr = bosh.upload_stemcell(bosh_run, stemcell, dry_run=options.dry_run)
        if rc != 0:
            raise DeploymentFailedError("Uploading stemcell", rc, stdout or stderr)
        log_success(logger, "Stemcell uploaded")
