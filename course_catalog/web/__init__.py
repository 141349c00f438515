"""HTTP surface of the course catalog."""

from .server import create_app

__all__ = ["create_app"]
