"""
Accessibility conformance report core.

Maps audit issues onto success criteria, classifies each criterion with a confidence,
attributes every finding to its author, aggregates multi-document batches, and keeps an
append-only version history of report documents.

Importing the package has no side effects: no config is loaded and logging is only
configured by the CLI or an explicit ``setup_logging`` call.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
