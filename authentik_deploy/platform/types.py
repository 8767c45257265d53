"""Shared data types for the Ops Manager / BOSH layer."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class OrchestrationCredentials:
    """BOSH Director credentials extracted from Ops Manager."""

    environment: str
    client: str
    client_secret: str = ""
    ca_cert: str = ""
    ca_cert_file: str | None = None

    def bosh_env(self) -> dict:
        """Environment variables the bosh CLI reads its target from.

        BOSH_CA_CERT points at the materialized certificate file, never at
        the certificate content itself.
        """
        env = {
            "BOSH_ENVIRONMENT": self.environment,
            "BOSH_CLIENT": self.client,
            "BOSH_CLIENT_SECRET": self.client_secret,
        }
        if self.ca_cert_file:
            env["BOSH_CA_CERT"] = self.ca_cert_file
        return env


@dataclass(frozen=True)
class Instance:
    """One row of `bosh instances`."""

    name: str
    process_state: str = ""
    ips: list[str] = field(default_factory=list)

    @property
    def address(self) -> str:
        """First IP of the instance, or empty string."""
        return self.ips[0] if self.ips else ""
