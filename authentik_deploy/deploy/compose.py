"""Manifest composition: variables bundle and ordered overlay list."""

import os

import yaml

MANIFEST_PATH = os.path.join("manifests", "authentik.yml")
OPERATIONS_DIR = "operations"

# Overlays apply in this order; later ones may patch structure added by earlier ones
OVERLAY_ORDER = (
    "use-external-postgres",
    "use-s3-storage",
    "scale-authentik",
    "add-ldap-outpost",
    "add-radius-outpost",
    "add-proxy-outpost",
)


def select_overlays(options) -> list[str]:
    """Overlay identifiers for *options*, in OVERLAY_ORDER regardless of flag order."""
    enabled = set()
    if options.postgres is not None:
        enabled.add("use-external-postgres")
    if options.s3 is not None:
        enabled.add("use-s3-storage")
    if options.instances > 1:
        enabled.add("scale-authentik")
    for kind in options.outposts.enabled:
        enabled.add(f"add-{kind}-outpost")
    return [name for name in OVERLAY_ORDER if name in enabled]


def build_variables(options) -> dict:
    """Variables bundle: SMTP always, then one block per enabled feature.

    Disabled features contribute no keys at all; the overlays key their
    activation on the presence of their variables.
    """
    variables = {
        "smtp_host": options.smtp.host,
        "smtp_port": options.smtp.port,
        "smtp_from": options.smtp.from_address,
    }

    if options.postgres is not None:
        pg = options.postgres
        variables.update(
            {
                "postgres_host": pg.host,
                "postgres_port": pg.port,
                "postgres_user": pg.user,
                "postgres_password": pg.password,
                "postgres_database": pg.database,
                "postgres_sslmode": pg.sslmode,
            }
        )

    if options.s3 is not None:
        s3 = options.s3
        variables.update(
            {
                "s3_region": s3.region,
                "s3_endpoint": s3.endpoint,
                "s3_bucket_name": s3.bucket,
                "s3_access_key": s3.access_key,
                "s3_secret_key": s3.secret_key,
            }
        )

    if options.instances > 1:
        variables["authentik_instances"] = options.instances

    if options.outposts.token:
        variables["outpost_token"] = options.outposts.token

    return variables


def compose(options) -> tuple[dict, list[str]]:
    """Return (variables, overlays) for *options*. Deterministic, no I/O."""
    return build_variables(options), select_overlays(options)


def manifest_path(release_dir) -> str:
    return os.path.join(release_dir, MANIFEST_PATH)


def overlay_paths(overlays, release_dir) -> list[str]:
    """Resolve overlay identifiers to fragment files under <release_dir>/operations."""
    return [os.path.join(release_dir, OPERATIONS_DIR, f"{name}.yml") for name in overlays]


def render_variables(variables) -> str:
    """Render the bundle as the YAML vars file handed to `bosh deploy -l`."""
    return yaml.safe_dump(variables, default_flow_style=False, sort_keys=False)
