"""Desired-state diff and apply engine."""

from .apply import ApplyAction, ApplyEngine, ApplyResult, DesiredResource
from .kinds import KindHandler

__all__ = ["ApplyAction", "ApplyEngine", "ApplyResult", "DesiredResource", "KindHandler"]
