"""SSL configuration module."""

from .ssl_setup import setup_ssl

__all__ = ["setup_ssl"]
