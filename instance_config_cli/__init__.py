"""Quickstart CLI for custom Cloud Spanner instance configurations.

The command surface is implemented with Typer and Rich for help and error
ergonomics, while the remote work is delegated to the Spanner instance admin
client.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
