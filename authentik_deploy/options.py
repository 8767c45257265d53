"""Deployment options: flag definitions, precedence resolution, validation.

Every option resolves as explicit flag > environment variable > --config
file > documented default. The result is a frozen dataclass built once per
run; nothing downstream mutates it.
"""

import argparse
import os
from dataclasses import dataclass, field

import yaml

from authentik_deploy.errors import UsageError, ValidationError

DEFAULT_DEPLOYMENT_NAME = "authentik"
DEFAULT_AUTHENTIK_VERSION = "2025.12.1"
AUTHENTIK_VERSION_ENV = "AUTHENTIK_VERSION"

# (dest, flag, env var, label) for the Ops Manager credentials
CREDENTIAL_OPTIONS = [
    ("ops_manager_url", "--ops-manager-url", "OM_TARGET", "Ops Manager URL"),
    ("ops_manager_username", "--ops-manager-username", "OM_USERNAME", "Ops Manager username"),
    ("ops_manager_password", "--ops-manager-password", "OM_PASSWORD", "Ops Manager password"),
]

OUTPOST_KINDS = ("ldap", "radius", "proxy")
_OUTPOST_LABELS = {"ldap": "LDAP", "radius": "RADIUS", "proxy": "Proxy"}

# Options that are not deployment settings and so cannot appear in --config
_NON_CONFIG_DESTS = {"config", "func", "command"}

# store_true options; in --config these must be YAML booleans
FLAG_OPTIONS = {
    "skip_ssl_validation",
    "use_external_postgres",
    "use_s3_storage",
    "add_ldap_outpost",
    "add_radius_outpost",
    "add_proxy_outpost",
    "dry_run",
}


# ── Types ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class OpsManagerTarget:
    """Ops Manager endpoint and operator credentials."""

    url: str
    username: str
    password: str
    skip_ssl_validation: bool = False

    def om_env(self) -> dict:
        """Environment the om CLI reads its target from."""
        return {"OM_TARGET": self.url, "OM_USERNAME": self.username, "OM_PASSWORD": self.password}


@dataclass(frozen=True)
class ExternalPostgres:
    host: str
    user: str
    password: str
    database: str
    port: int = 5432
    sslmode: str = "require"


@dataclass(frozen=True)
class S3Storage:
    bucket: str
    access_key: str
    secret_key: str
    region: str = "us-east-1"
    endpoint: str = ""


@dataclass(frozen=True)
class Outposts:
    ldap: bool = False
    radius: bool = False
    proxy: bool = False
    token: str = ""

    @property
    def enabled(self) -> tuple[str, ...]:
        """Enabled outpost kinds, always in ldap -> radius -> proxy order."""
        return tuple(kind for kind in OUTPOST_KINDS if getattr(self, kind))


@dataclass(frozen=True)
class SmtpSettings:
    host: str = "localhost"
    port: int = 25
    from_address: str = "authentik@localhost"


@dataclass(frozen=True)
class DeploymentOptions:
    """Validated configuration for one deploy run."""

    target: OpsManagerTarget
    deployment_name: str = DEFAULT_DEPLOYMENT_NAME
    authentik_version: str = DEFAULT_AUTHENTIK_VERSION
    postgres: ExternalPostgres | None = None
    s3: S3Storage | None = None
    outposts: Outposts = field(default_factory=Outposts)
    instances: int = 1
    smtp: SmtpSettings = field(default_factory=SmtpSettings)
    dry_run: bool = False
    release_dir: str = "."

    @property
    def database_mode(self) -> str:
        return "embedded" if self.postgres is None else "external"

    @property
    def storage_mode(self) -> str:
        return "file" if self.s3 is None else "s3"

    @property
    def warnings(self) -> list[str]:
        """Non-fatal configuration findings for the operator."""
        if self.outposts.enabled and not self.outposts.token:
            return [
                "Outpost(s) enabled but --outpost-token not provided.",
                "You will need to configure the token in authentik UI after initial deployment.",
            ]
        return []


@dataclass(frozen=True)
class TeardownOptions:
    """Validated configuration for one undeploy run."""

    target: OpsManagerTarget
    deployment_name: str = DEFAULT_DEPLOYMENT_NAME
    force: bool = False
    cleanup_releases: bool = False


# ── Argument definitions ───────────────────────────────────────────


class OptionParser(argparse.ArgumentParser):
    """ArgumentParser that raises UsageError instead of exiting with status 2."""

    def error(self, message):
        raise UsageError(message)


def positive_int(value):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise argparse.ArgumentTypeError(f"invalid positive integer: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {number}")
    return number


def add_target_arguments(parser):
    """Flags shared by deploy and undeploy: Ops Manager target and deployment name."""
    group = parser.add_argument_group("Ops Manager")
    for dest, flag, env_var, label in CREDENTIAL_OPTIONS:
        group.add_argument(flag, dest=dest, default=None, help=f"{label} (or set {env_var})")
    group.add_argument(
        "--skip-ssl-validation",
        action="store_true",
        default=None,
        help="Skip SSL certificate validation (passed through to om)",
    )
    parser.add_argument(
        "--deployment-name",
        default=None,
        help=f"BOSH deployment name (default: {DEFAULT_DEPLOYMENT_NAME})",
    )


def add_deploy_arguments(parser):
    """Register every deploy flag on *parser*. All defaults are None so precedence can be resolved later."""
    add_target_arguments(parser)
    parser.add_argument(
        "--authentik-version",
        default=None,
        help=f"Authentik version to deploy (default: ${AUTHENTIK_VERSION_ENV} or {DEFAULT_AUTHENTIK_VERSION})",
    )
    parser.add_argument("--release-dir", default=None, help="BOSH release directory (default: current directory)")
    parser.add_argument("--config", default=None, help="YAML file with option values (flag names, underscored)")

    pg = parser.add_argument_group("External PostgreSQL")
    pg.add_argument("--use-external-postgres", action="store_true", default=None, help="Use external PostgreSQL database")
    pg.add_argument("--postgres-host", default=None, help="External PostgreSQL host")
    pg.add_argument("--postgres-port", type=int, default=None, help="External PostgreSQL port (default: 5432)")
    pg.add_argument("--postgres-user", default=None, help="External PostgreSQL user")
    pg.add_argument("--postgres-password", default=None, help="External PostgreSQL password")
    pg.add_argument("--postgres-database", default=None, help="External PostgreSQL database name")
    pg.add_argument("--postgres-sslmode", default=None, help="External PostgreSQL sslmode (default: require)")

    s3 = parser.add_argument_group("S3 storage")
    s3.add_argument("--use-s3-storage", action="store_true", default=None, help="Use S3 for media storage")
    s3.add_argument("--s3-region", default=None, help="S3 region (default: us-east-1)")
    s3.add_argument("--s3-endpoint", default=None, help="S3 endpoint (for S3-compatible storage)")
    s3.add_argument("--s3-bucket", default=None, help="S3 bucket name")
    s3.add_argument("--s3-access-key", default=None, help="S3 access key")
    s3.add_argument("--s3-secret-key", default=None, help="S3 secret key")

    outposts = parser.add_argument_group("Outposts")
    for kind in OUTPOST_KINDS:
        outposts.add_argument(
            f"--add-{kind}-outpost",
            action="store_true",
            default=None,
            help=f"Deploy {_OUTPOST_LABELS[kind]} outpost",
        )
    outposts.add_argument("--outpost-token", default=None, help="Token for outpost authentication")

    parser.add_argument(
        "--scale-instances",
        type=positive_int,
        default=None,
        help="Number of authentik instances (default: 1)",
    )

    smtp = parser.add_argument_group("SMTP")
    smtp.add_argument("--smtp-host", default=None, help="SMTP server host (default: localhost)")
    smtp.add_argument("--smtp-port", type=int, default=None, help="SMTP server port (default: 25)")
    smtp.add_argument("--smtp-from", default=None, help="SMTP from address (default: authentik@localhost)")

    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Show what would be done without making changes",
    )


def add_teardown_arguments(parser):
    add_target_arguments(parser)
    parser.add_argument("--force", action="store_true", help="Skip confirmation prompt")
    parser.add_argument("--cleanup-releases", action="store_true", help="Also remove the uploaded authentik release")


def build_deploy_parser(prog="authentik-deploy deploy"):
    parser = OptionParser(prog=prog, description="Deploy authentik to Tanzu Operations Manager's BOSH Director")
    add_deploy_arguments(parser)
    return parser


def build_teardown_parser(prog="authentik-deploy undeploy"):
    parser = OptionParser(prog=prog, description="Remove the authentik BOSH deployment")
    add_teardown_arguments(parser)
    return parser


# ── Resolution ─────────────────────────────────────────────────────


def _check_config_types(path, data):
    for key, value in data.items():
        if value is None:
            continue
        if key in FLAG_OPTIONS:
            if not isinstance(value, bool):
                raise UsageError(f"Option '{key}' in config file '{path}' must be true or false, got {value!r}")
        elif isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise UsageError(f"Option '{key}' in config file '{path}' must be a string or number, got {value!r}")


def load_options_file(path, allowed_keys) -> dict:
    """Load a --config YAML mapping, rejecting unknown keys and mistyped values."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise UsageError(f"Config file '{path}' not found") from None
    except (OSError, UnicodeDecodeError) as e:
        raise UsageError(f"Config file '{path}' could not be read: {e}") from None
    except yaml.YAMLError as e:
        raise UsageError(f"Error parsing YAML config '{path}': {e}") from None
    if not isinstance(data, dict):
        raise UsageError(f"Config file '{path}' must contain a mapping of option names to values")
    unknown = sorted(set(data) - set(allowed_keys))
    if unknown:
        raise UsageError(f"Unknown option(s) in config file '{path}': {', '.join(unknown)}")
    _check_config_types(path, data)
    return data


class _Resolver:
    """Looks up one option through flag > env > config file > default."""

    def __init__(self, args, env, config):
        self.args = args
        self.env = env
        self.config = config

    def get(self, dest, default=None, env_var=None):
        value = getattr(self.args, dest, None)
        if value is not None:
            return value
        if env_var and self.env.get(env_var):
            return self.env[env_var]
        if self.config.get(dest) is not None:
            return self.config[dest]
        return default

    def get_int(self, dest, default, convert=int):
        value = self.get(dest, default)
        try:
            return convert(value)
        except (TypeError, ValueError, argparse.ArgumentTypeError) as e:
            raise UsageError(f"argument --{dest.replace('_', '-')}: {e}") from None

    def get_flag(self, dest) -> bool:
        return bool(self.get(dest, False))


def _resolve_target(resolver, problems) -> OpsManagerTarget:
    values = {}
    for dest, flag, env_var, label in CREDENTIAL_OPTIONS:
        values[dest] = resolver.get(dest, "", env_var=env_var)
        if not values[dest]:
            problems.append(f"{label} is required. Set {env_var} or use {flag}")
    return OpsManagerTarget(
        url=values["ops_manager_url"],
        username=values["ops_manager_username"],
        password=values["ops_manager_password"],
        skip_ssl_validation=resolver.get_flag("skip_ssl_validation"),
    )


def _missing(pairs):
    return [flag for flag, value in pairs if not value]


def deploy_options_from_args(args, env=None) -> DeploymentOptions:
    """Resolve and validate a parsed deploy Namespace.

    Raises:
        UsageError: unreadable --config file or malformed value in it.
        ValidationError: every missing credential and every missing field of
            an enabled feature, reported together.
    """
    env = os.environ if env is None else env
    config = {}
    if getattr(args, "config", None):
        config = load_options_file(args.config, set(vars(args)) - _NON_CONFIG_DESTS)
    r = _Resolver(args, env, config)
    problems = []

    target = _resolve_target(r, problems)

    postgres = None
    if r.get_flag("use_external_postgres"):
        host, user = r.get("postgres_host", ""), r.get("postgres_user", "")
        password, database = r.get("postgres_password", ""), r.get("postgres_database", "")
        missing = _missing(
            [
                ("--postgres-host", host),
                ("--postgres-user", user),
                ("--postgres-password", password),
                ("--postgres-database", database),
            ]
        )
        if missing:
            problems.append(f"External PostgreSQL enabled but missing: {' '.join(missing)}")
        postgres = ExternalPostgres(
            host=host,
            user=user,
            password=password,
            database=database,
            port=r.get_int("postgres_port", 5432),
            sslmode=r.get("postgres_sslmode", "require"),
        )

    s3 = None
    if r.get_flag("use_s3_storage"):
        bucket, access_key, secret_key = r.get("s3_bucket", ""), r.get("s3_access_key", ""), r.get("s3_secret_key", "")
        missing = _missing([("--s3-bucket", bucket), ("--s3-access-key", access_key), ("--s3-secret-key", secret_key)])
        if missing:
            problems.append(f"S3 storage enabled but missing: {' '.join(missing)}")
        s3 = S3Storage(
            bucket=bucket,
            access_key=access_key,
            secret_key=secret_key,
            region=r.get("s3_region") or "us-east-1",
            endpoint=r.get("s3_endpoint", ""),
        )

    if problems:
        raise ValidationError(problems)

    return DeploymentOptions(
        target=target,
        deployment_name=r.get("deployment_name", DEFAULT_DEPLOYMENT_NAME),
        authentik_version=r.get("authentik_version", DEFAULT_AUTHENTIK_VERSION, env_var=AUTHENTIK_VERSION_ENV),
        postgres=postgres,
        s3=s3,
        outposts=Outposts(
            ldap=r.get_flag("add_ldap_outpost"),
            radius=r.get_flag("add_radius_outpost"),
            proxy=r.get_flag("add_proxy_outpost"),
            token=r.get("outpost_token", ""),
        ),
        instances=r.get_int("scale_instances", 1, convert=positive_int),
        smtp=SmtpSettings(
            host=r.get("smtp_host", "localhost"),
            port=r.get_int("smtp_port", 25),
            from_address=r.get("smtp_from", "authentik@localhost"),
        ),
        dry_run=r.get_flag("dry_run"),
        release_dir=os.path.abspath(r.get("release_dir", ".")),
    )


def teardown_options_from_args(args, env=None) -> TeardownOptions:
    """Resolve and validate a parsed undeploy Namespace."""
    env = os.environ if env is None else env
    r = _Resolver(args, env, {})
    problems = []
    target = _resolve_target(r, problems)
    if problems:
        raise ValidationError(problems)
    return TeardownOptions(
        target=target,
        deployment_name=r.get("deployment_name", DEFAULT_DEPLOYMENT_NAME),
        force=r.get_flag("force"),
        cleanup_releases=r.get_flag("cleanup_releases"),
    )


def parse_deploy_options(argv, env=None) -> DeploymentOptions:
    """Parse deploy flags and validate them in one pure step."""
    return deploy_options_from_args(build_deploy_parser().parse_args(argv), env)


def parse_teardown_options(argv, env=None) -> TeardownOptions:
    return teardown_options_from_args(build_teardown_parser().parse_args(argv), env)
