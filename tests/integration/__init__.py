"""Subprocess-level tests for the ``python -m acr_conformance`` entrypoint."""
