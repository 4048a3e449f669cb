"""Command line interface of ampliplex.

Copyright © 2024 Pixelgen Technologies AB.
"""

from ampliplex.cli.main import main_cli

__all__ = ["main_cli"]
