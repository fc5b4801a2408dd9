"""
Maintenance commands for the EAV model storage.

The package currently ships the ``fix-discriminator`` command, which keeps the
ORM discriminator column of every stored row aligned with the data class of the
family the row belongs to.
"""

from .cli import run_cli

__all__ = ["run_cli"]
