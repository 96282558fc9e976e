"""REST namespace ``/ahoi/v1`` served by FastAPI."""

from ahoi.api.app import API_PREFIX, create_app

__all__ = ["API_PREFIX", "create_app"]
