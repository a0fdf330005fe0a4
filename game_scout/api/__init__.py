"""HTTP request surface for jobs and corpus search."""

from .main import create_app, run

__all__ = ["create_app", "run"]
