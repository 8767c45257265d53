"""Error taxonomy for the deploy and undeploy workflows.

Every fatal condition is a DeployError subclass. The CLI entry point turns
any DeployError into a single [ERROR] line and exit code 1; nothing below
the entry point calls sys.exit().
"""


class DeployError(Exception):
    """Base class for fatal workflow errors."""


class UsageError(DeployError):
    """Unknown flag or malformed flag value."""

    def __init__(self, message):
        super().__init__(f"{message}. Use --help for usage information")


class ValidationError(DeployError):
    """Incomplete option combination. Carries every problem found in one pass."""

    def __init__(self, problems):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class ConnectivityError(DeployError):
    """Ops Manager or the BOSH Director is unreachable."""


class CredentialError(DeployError):
    """The credential bundle returned by Ops Manager is unusable."""


class UnsupportedInfrastructureError(DeployError):
    """The director's cloud provider has no known stemcell mapping."""

    def __init__(self, iaas):
        self.iaas = iaas
        super().__init__(f"Unknown IaaS type: {iaas}. Please upload stemcell manually.")


class PrerequisiteMissingError(DeployError):
    """A required local input (tool, blob, release artifact) is absent."""


class DeploymentFailedError(DeployError):
    """The director rejected a mutating request. The backend output is kept verbatim."""

    def __init__(self, action, returncode, output=""):
        self.action = action
        self.returncode = returncode
        self.output = output
        message = f"{action} failed (exit code {returncode})"
        if output.strip():
            message += f":\n{output.rstrip()}"
        super().__init__(message)


class CleanupWarning(Exception):
    """Best-effort cleanup did not complete. Logged, never fatal."""
