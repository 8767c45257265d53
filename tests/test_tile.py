"""Tests for the tile builder: downloads, metadata, packaging."""

import os
import zipfile

import httpx
import pytest
import yaml

import authentik_deploy.tile.builder as builder
from authentik_deploy.errors import ConnectivityError, PrerequisiteMissingError
from authentik_deploy.tile import TileOptions, build_tile, download_file, render_metadata

METADATA_TEMPLATE = """\
name: authentik
product_version: "0.0.0"
icon_image: ((icon_image))
releases:
- name: authentik
  file: authentik-2025.12.1.tgz
  version: "2025.12.1"
- name: bpm
  file: bpm-1.2.20.tgz
  version: "1.2.20"
"""


@pytest.fixture
def release_dir(tmp_path):
    root = tmp_path / "release"
    (root / "tile" / "metadata").mkdir(parents=True)
    (root / "tile" / "metadata" / "metadata.yml").write_text(METADATA_TEMPLATE)
    return root


def _mock_client(responses, seen):
    def handler(request):
        seen.append(str(request.url))
        return responses(request)

    return httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)


# ── Downloads ───────────────────────────────────────────────────────


def test_download_follows_redirects(tmp_path):
    def responses(request):
        if request.url.host == "bosh.io":
            return httpx.Response(302, headers={"Location": "https://cdn.example.com/bpm.tgz"})
        return httpx.Response(200, content=b"release-bytes")

    seen = []
    dest = tmp_path / "bpm.tgz"
    with _mock_client(responses, seen) as client:
        download_file("https://bosh.io/d/github.com/cloudfoundry/bpm-release?v=1.2.20", str(dest), client=client)

    assert dest.read_bytes() == b"release-bytes"
    assert seen == [
        "https://bosh.io/d/github.com/cloudfoundry/bpm-release?v=1.2.20",
        "https://cdn.example.com/bpm.tgz",
    ]


def test_download_failure_leaves_no_file(tmp_path):
    dest = tmp_path / "postgres.tgz"
    with _mock_client(lambda request: httpx.Response(404), []) as client:
        with pytest.raises(ConnectivityError) as exc_info:
            download_file("https://bosh.io/d/missing", str(dest), client=client)
    assert "https://bosh.io/d/missing" in str(exc_info.value)
    assert not dest.exists()


def test_download_dependencies_skips_existing(tmp_path):
    (tmp_path / "releases").mkdir()
    (tmp_path / "releases" / "bpm-1.2.20.tgz").write_bytes(b"cached")

    seen = []
    with _mock_client(lambda request: httpx.Response(200, content=b"fresh"), seen) as client:
        builder.download_dependencies(str(tmp_path), client=client)

    assert seen == ["https://bosh.io/d/github.com/cloudfoundry/postgres-release?v=53"]
    assert (tmp_path / "releases" / "bpm-1.2.20.tgz").read_bytes() == b"cached"
    assert (tmp_path / "releases" / "postgres-53.tgz").read_bytes() == b"fresh"


# ── Metadata ────────────────────────────────────────────────────────


def test_render_metadata():
    data = render_metadata(METADATA_TEMPLATE, "2026.1.0")
    assert data["product_version"] == "2026.1.0"
    assert data["icon_image"] == builder.ICON_IMAGE
    authentik, bpm = data["releases"]
    assert authentik == {"name": "authentik", "file": "authentik-2026.1.0.tgz", "version": "2026.1.0"}
    assert bpm["version"] == "1.2.20"


def test_missing_metadata_template(tmp_path):
    with pytest.raises(PrerequisiteMissingError):
        builder.generate_metadata(str(tmp_path / "absent.yml"), str(tmp_path), "2026.1.0")


# ── Release ─────────────────────────────────────────────────────────


def test_release_build_without_blobs(runner, release_dir, tmp_path, monkeypatch):
    monkeypatch.setattr(builder, "check_tools", lambda tools: None)
    (tmp_path / "tile" / "releases").mkdir(parents=True)
    options = TileOptions(release_dir=str(release_dir))
    with pytest.raises(PrerequisiteMissingError) as exc_info:
        builder.build_release(runner, options, str(tmp_path / "tile"))
    assert "download-blobs.sh" in str(exc_info.value)
    assert runner.calls == []


def test_release_build_with_blobs(runner, release_dir, tmp_path, monkeypatch):
    monkeypatch.setattr(builder, "check_tools", lambda tools: None)
    blob = release_dir / builder.REQUIRED_BLOB
    blob.parent.mkdir(parents=True)
    blob.write_bytes(b"python")
    tile_dir = tmp_path / "tile"

    dest = builder.build_release(runner, TileOptions(version="2026.1.0", release_dir=str(release_dir)), str(tile_dir))

    assert dest == os.path.join(str(tile_dir), "releases", "authentik-2026.1.0.tgz")
    assert runner.calls[0]["command"] == ["bosh", "create-release", "--force", "--version=2026.1.0", f"--tarball={dest}"]
    assert runner.calls[0]["cwd"] == str(release_dir)


# ── End to end ──────────────────────────────────────────────────────


def test_build_tile_from_existing_release(runner, transient, release_dir, tmp_path):
    (release_dir / "authentik-release.tgz").write_bytes(b"prebuilt")
    options = TileOptions(
        version="2026.1.0",
        output_dir=str(tmp_path / "output"),
        release_dir=str(release_dir),
        skip_release_build=True,
        skip_dependency_download=True,
    )

    tile_path = build_tile(options, transient, runner)

    assert tile_path == str(tmp_path / "output" / "authentik-2026.1.0.pivotal")
    assert runner.calls == []
    with zipfile.ZipFile(tile_path) as zf:
        names = set(zf.namelist())
        assert names == {
            "metadata/metadata.yml",
            "releases/authentik-2026.1.0.tgz",
            "migrations/v1/202501301200_initial.js",
            "content_migrations/content_migrations.yml",
        }
        assert zf.read("releases/authentik-2026.1.0.tgz") == b"prebuilt"
        assert "exports.migrate = function(input)" in zf.read("migrations/v1/202501301200_initial.js").decode()
        content = yaml.safe_load(zf.read("content_migrations/content_migrations.yml"))
        assert content == {"product": "authentik", "installation_schema_version": "1.0"}
        assert yaml.safe_load(zf.read("metadata/metadata.yml"))["product_version"] == "2026.1.0"

    transient.cleanup()
    assert os.path.exists(tile_path)
