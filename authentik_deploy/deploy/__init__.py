"""Deploy library: manifest composition, apply and teardown engines."""

from authentik_deploy.deploy.compose import (
    OVERLAY_ORDER,
    build_variables,
    compose,
    manifest_path,
    overlay_paths,
    render_variables,
    select_overlays,
)
from authentik_deploy.deploy.apply import (
    AccessEndpoint,
    ApplyState,
    DeploymentResult,
    access_urls,
    apply,
    report,
)
from authentik_deploy.deploy.teardown import (
    TeardownState,
    confirm_deletion,
    teardown,
)

__all__ = [
    "OVERLAY_ORDER",
    "build_variables",
    "compose",
    "manifest_path",
    "overlay_paths",
    "render_variables",
    "select_overlays",
    "AccessEndpoint",
    "ApplyState",
    "DeploymentResult",
    "access_urls",
    "apply",
    "report",
    "TeardownState",
    "confirm_deletion",
    "teardown",
]
