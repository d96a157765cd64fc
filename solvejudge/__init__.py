"""Sandboxed compilation and execution, task queue, permissions and standings."""

__version__ = "0.1.0"