"""HTTP API."""

from cyclescope.api.app import create_api_app


__all__ = ["create_api_app"]
