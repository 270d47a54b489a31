"""Command Line Interface for mitresync.

Provides the ``mitre-sync`` command for listing mitigated techniques,
generating nGQL scripts and syncing them into Nebula Graph.
"""

from mitresync.cli.main import cli

__all__ = ["cli"]
