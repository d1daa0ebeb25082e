"""
This module initializes the console package, exposing the colored status
line writer used by the supervisor.
"""

from .reporter import COLORS, report

__all__ = ["COLORS", "report"]
