"""
Command line runner.
"""

from .main import create_cli, main

__all__ = ["create_cli", "main"]
