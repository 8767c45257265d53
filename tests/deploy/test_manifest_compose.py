"""Tests for the manifest composer: overlay selection and variables bundle."""

import os

import yaml

from authentik_deploy.deploy import (
    OVERLAY_ORDER,
    compose,
    manifest_path,
    overlay_paths,
    render_variables,
)
from authentik_deploy.options import DeploymentOptions, ExternalPostgres, Outposts, S3Storage


def _options(target, **kwargs):
    return DeploymentOptions(target=target, **kwargs)


def _postgres():
    return ExternalPostgres(host="db1", user="u", password="p", database="app")


def _s3():
    return S3Storage(bucket="media", access_key="ak", secret_key="sk")


# ── Scenarios ───────────────────────────────────────────────────────


def test_external_database_only(target):
    variables, overlays = compose(_options(target, postgres=_postgres()))
    assert overlays == ["use-external-postgres"]
    assert variables["postgres_host"] == "db1"
    assert variables["postgres_port"] == 5432
    assert variables["postgres_sslmode"] == "require"
    assert not [key for key in variables if key.startswith("s3_")]
    assert "authentik_instances" not in variables


def test_scaled_with_ldap_outpost(target):
    options = _options(target, instances=3, outposts=Outposts(ldap=True, token="abc"))
    variables, overlays = compose(options)
    assert overlays == ["scale-authentik", "add-ldap-outpost"]
    assert variables["authentik_instances"] == 3
    assert variables["outpost_token"] == "abc"


def test_defaults_only_smtp(target):
    variables, overlays = compose(_options(target))
    assert overlays == []
    assert variables == {"smtp_host": "localhost", "smtp_port": 25, "smtp_from": "authentik@localhost"}


def test_single_instance_has_no_scaling(target):
    variables, overlays = compose(_options(target, instances=1))
    assert "scale-authentik" not in overlays
    assert "authentik_instances" not in variables


def test_outpost_token_without_outposts_still_included(target):
    variables, overlays = compose(_options(target, outposts=Outposts(token="abc")))
    assert overlays == []
    assert variables["outpost_token"] == "abc"


def test_outpost_without_token_omits_token_key(target):
    variables, overlays = compose(_options(target, outposts=Outposts(radius=True)))
    assert overlays == ["add-radius-outpost"]
    assert "outpost_token" not in variables


def test_s3_block(target):
    variables, overlays = compose(_options(target, s3=_s3()))
    assert overlays == ["use-s3-storage"]
    assert variables["s3_bucket_name"] == "media"
    assert variables["s3_region"] == "us-east-1"
    assert variables["s3_endpoint"] == ""
    assert variables["s3_access_key"] == "ak"
    assert variables["s3_secret_key"] == "sk"


# ── Ordering and determinism ────────────────────────────────────────


def test_everything_enabled_follows_fixed_order(target):
    options = _options(
        target,
        postgres=_postgres(),
        s3=_s3(),
        instances=2,
        outposts=Outposts(ldap=True, radius=True, proxy=True, token="abc"),
    )
    _, overlays = compose(options)
    assert overlays == list(OVERLAY_ORDER)
    assert overlays.index("use-external-postgres") < overlays.index("use-s3-storage")


def test_outposts_after_scaling(target):
    options = _options(target, instances=4, outposts=Outposts(proxy=True, ldap=True))
    _, overlays = compose(options)
    assert overlays == ["scale-authentik", "add-ldap-outpost", "add-proxy-outpost"]


def test_compose_is_deterministic(target):
    options = _options(target, postgres=_postgres(), s3=_s3(), instances=2, outposts=Outposts(proxy=True))
    first_vars, first_overlays = compose(options)
    second_vars, second_overlays = compose(options)
    assert first_overlays == second_overlays
    assert list(first_vars.items()) == list(second_vars.items())


def test_smtp_keys_come_first(target):
    variables, _ = compose(_options(target, postgres=_postgres(), s3=_s3()))
    assert list(variables)[:3] == ["smtp_host", "smtp_port", "smtp_from"]


# ── Paths and rendering ─────────────────────────────────────────────


def test_overlay_paths(tmp_path):
    paths = overlay_paths(["use-external-postgres", "add-ldap-outpost"], str(tmp_path))
    assert paths == [
        os.path.join(str(tmp_path), "operations", "use-external-postgres.yml"),
        os.path.join(str(tmp_path), "operations", "add-ldap-outpost.yml"),
    ]


def test_manifest_path(tmp_path):
    assert manifest_path(str(tmp_path)) == os.path.join(str(tmp_path), "manifests", "authentik.yml")


def test_render_variables_keeps_order(target):
    variables, _ = compose(_options(target, postgres=_postgres()))
    rendered = render_variables(variables)
    assert yaml.safe_load(rendered) == variables
    keys = [line.split(":", 1)[0] for line in rendered.splitlines()]
    assert keys == list(variables)
