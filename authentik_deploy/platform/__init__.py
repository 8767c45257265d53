"""Platform access: shell helper, om/bosh CLI wrappers, shared types."""

from authentik_deploy.platform.shell import make_run_cmd, run_shell_cmd
from authentik_deploy.platform.types import Instance, OrchestrationCredentials

__all__ = [
    "Instance",
    "OrchestrationCredentials",
    "make_run_cmd",
    "run_shell_cmd",
]
