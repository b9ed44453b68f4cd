"""CLI module for stepflow."""

from .main import main

__all__ = ["main"]
