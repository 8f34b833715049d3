"""Detect node problems from system logs and component health checks."""

__version__ = "0.1.0"