"""HTTP surface for sitesmith."""

from sitesmith.api.app import create_app

__all__ = ["create_app"]
