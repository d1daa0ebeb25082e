"""
Local package for the stacklaunch supervisor.

This package provides the merged runtime configuration through the
`effective_settings` object, plus the console, provisioning and
supervision subpackages.
"""

from .config import effective_settings

__all__ = ["effective_settings"]
