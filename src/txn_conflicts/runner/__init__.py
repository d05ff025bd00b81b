"""
CLI runner module.

Provides commands:
- scan: List potential conflicts
- resolve: Resolve one conflict
- resolve-all: Resolve every conflict in one batch
- init-config: Write a default config file
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
