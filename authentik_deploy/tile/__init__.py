"""Ops Manager tile packaging."""

from authentik_deploy.tile.builder import (
    TileOptions,
    build_tile,
    download_file,
    render_metadata,
    show_summary,
)

__all__ = [
    "TileOptions",
    "build_tile",
    "download_file",
    "render_metadata",
    "show_summary",
]
