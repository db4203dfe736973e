"""
Builder API - HTTP surface and external collaborators of the application builder.

Wraps the app_builder_core graph with project persistence, the AI generation
client and a Flask REST interface.
"""

from .app import create_app
from .settings import Settings

__all__ = ["create_app", "Settings"]
