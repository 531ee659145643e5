"""Command-line surface."""

from acr_conformance.ui.cli import CLIError, build_parser, main, run_cli
from acr_conformance.ui.render import CLIRenderer, create_renderer

__all__ = ["CLIError", "CLIRenderer", "build_parser", "create_renderer", "main", "run_cli"]
