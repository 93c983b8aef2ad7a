"""
Agent Artifacts Core Package

Versioned artifact storage and the observability it reports through.
"""

from . import artifacts
from . import observability

__all__ = ["artifacts", "observability"]
