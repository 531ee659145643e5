"""Shared utilities."""

from acr_conformance.utils.concurrency import BoundedSemaphore, WorkerPool

__all__ = ["BoundedSemaphore", "WorkerPool"]
